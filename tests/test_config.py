"""Tests for configuration lookup (Env, build_key)."""

import pytest

from m2mauth.config import Env, build_key
from m2mauth.errors import ConfigurationMissingError


class TestBuildKey:
    """Tests for the OAUTH2[_<PREFIX>]_<FIELD> key pattern."""

    def test_with_prefix(self) -> None:
        assert build_key("auth0", "jwks_url") == "oauth2_auth0_jwks_url"

    def test_without_prefix(self) -> None:
        """Empty or missing prefix is omitted."""
        assert build_key("", "jwt_issuer") == "oauth2_jwt_issuer"
        assert build_key(None, "jwt_issuer") == "oauth2_jwt_issuer"


class TestEnv:
    """Tests for Env accessors."""

    def test_keys_are_case_insensitive(self) -> None:
        env = Env({"OAuth2_Auth0_JWKS_URL": "https://a/jwks"})
        assert env.get("oauth2_auth0_jwks_url") == "https://a/jwks"
        assert env.key("OAUTH2_AUTH0_JWKS_URL")
        assert "oauth2_auth0_jwks_url" in env

    def test_get_default(self) -> None:
        assert Env({}).get("missing", "fallback") == "fallback"
        assert Env({}).get("missing") is None

    def test_snapshot_of_os_environ(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Env() copies os.environ once; later changes are not seen."""
        monkeypatch.setenv("OAUTH_PROVIDERS", "auth0")
        env = Env()
        monkeypatch.setenv("OAUTH_PROVIDERS", "okta")
        assert env.get("oauth_providers") == "auth0"

    def test_get_required_raises_with_upper_cased_key(self) -> None:
        with pytest.raises(ConfigurationMissingError) as exc_info:
            Env({}).get_required("oauth_providers")
        assert exc_info.value.keys == ["OAUTH_PROVIDERS"]

    def test_get_list_strips_and_drops_blanks(self) -> None:
        env = Env({"OAUTH_PROVIDERS": " auth0 , ,okta,"})
        assert env.get_list("oauth_providers") == ["auth0", "okta"]

    def test_get_list_default_when_absent(self) -> None:
        assert Env({}).get_list("oauth_apps") is None
        assert Env({}).get_list("oauth_apps", []) == []

    def test_get_list_required_raises(self) -> None:
        with pytest.raises(ConfigurationMissingError):
            Env({}).get_list_required("oauth_providers")

    def test_is_enabled_and_disabled(self) -> None:
        env = Env({"FEATURE_A": "TRUE", "FEATURE_B": "false", "FEATURE_C": "yes"})
        assert env.is_enabled("feature_a")
        assert not env.is_enabled("feature_c")
        assert env.is_disabled("feature_b")
        assert not env.is_disabled("feature_a")
        assert env.is_enabled("missing", default=True)

    def test_numeric_accessors(self) -> None:
        env = Env({"PORT": " 8080 ", "RATIO": "0.5"})
        assert env.get_int("port") == 8080
        assert env.get_float("ratio") == 0.5
        assert env.get_int("missing", 3) == 3

    def test_get_int_invalid_raises_value_error(self) -> None:
        with pytest.raises(ValueError):
            Env({"PORT": "eighty"}).get_int("port")

    def test_check_present_lists_all_missing(self) -> None:
        env = Env({"A": "1"})
        assert env.check_present("a")
        with pytest.raises(ConfigurationMissingError) as exc_info:
            env.check_present("a", "b", "c")
        assert exc_info.value.keys == ["B", "C"]

    def test_ambient_defaults(self) -> None:
        env = Env({})
        assert env.app_name() == "app"
        assert env.redis_url() == "redis://localhost:6379/0"
        assert env.cache_backend() == "memory"

    def test_ambient_overrides(self) -> None:
        env = Env({"APP_NAME": "billing", "M2MAUTH_CACHE_BACKEND": " Redis "})
        assert env.app_name() == "billing"
        assert env.cache_backend() == "redis"
