"""Command-line interface for m2mauth.

Every command builds an :class:`AuthContext` from the process environment
(OAUTH_PROVIDERS, OAUTH_APPS, OAUTH2_* settings, M2MAUTH_CACHE_BACKEND).

Example:
    >>> # From terminal:
    >>> # m2mauth --version
    >>> # m2mauth providers
    >>> # m2mauth apps
    >>> # m2mauth validate <token>
    >>> # m2mauth token bank_account
    >>> # m2mauth clear-cache
"""

import json
import sys
from typing import Annotated

import typer

from m2mauth import __version__
from m2mauth.config import Env
from m2mauth.context import AuthContext
from m2mauth.errors import M2MAuthError
from m2mauth.observability import configure_logging

app = typer.Typer(help="Bearer token validation and M2M token acquisition.")


def _version_callback(value: bool) -> None:
    """Print the version and exit when requested."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


VERSION_OPTION = typer.Option(
    False,
    "--version",
    help="Show m2mauth version and exit.",
    callback=_version_callback,
    is_eager=True,
)


@app.callback()
def cli(version: bool = VERSION_OPTION) -> None:
    """m2mauth CLI entrypoint."""
    # Keep stdout for command output.
    configure_logging(stream=sys.stderr, force=True)


def _context() -> AuthContext:
    try:
        return AuthContext.from_env(Env())
    except M2MAuthError as exc:
        typer.echo(f"Error: {exc.message}", err=True)
        raise typer.Exit(1) from exc


@app.command("providers")
def providers() -> None:
    """List configured identity providers as JSON."""
    with _context() as context:
        rows = [
            provider.model_dump(exclude={"client_secret"}) for provider in context.providers
        ]
    typer.echo(json.dumps(rows, indent=2))


@app.command("apps")
def apps() -> None:
    """List configured downstream apps as JSON."""
    with _context() as context:
        rows = [
            {**entry.model_dump(), "can_get_access_tokens": context.acquirer.can_get_access_tokens(entry)}
            for entry in context.apps
        ]
    typer.echo(json.dumps(rows, indent=2))


@app.command("validate")
def validate(
    token: Annotated[str, typer.Argument(help="Bearer token to validate.")],
) -> None:
    """Validate a token; print [payload, header] JSON."""
    with _context() as context:
        try:
            auth_token = context.validator.validate_token(token)
        except M2MAuthError as exc:
            typer.echo(f"Error: {exc.message}", err=True)
            raise typer.Exit(1) from exc
    typer.echo(auth_token.to_json())


@app.command("token")
def token(
    app_name: Annotated[str, typer.Argument(help="Downstream app name.")],
) -> None:
    """Acquire access tokens for an app; print one JSON object per token."""
    with _context() as context:
        try:
            tokens = context.acquirer.get_access_tokens(app_name)
        except M2MAuthError as exc:
            typer.echo(f"Error: {exc.message}", err=True)
            raise typer.Exit(1) from exc
    if not tokens:
        typer.echo(f"No access tokens acquired for: {app_name}", err=True)
        raise typer.Exit(1)
    for access_token in tokens:
        typer.echo(access_token.model_dump_json())


@app.command("clear-cache")
def clear_cache() -> None:
    """Clear cached key sets and access tokens."""
    with _context() as context:
        context.clear_cache()
    typer.echo("Cache cleared")


def main() -> None:
    """Run the m2mauth CLI."""
    app()


if __name__ == "__main__":
    main()
