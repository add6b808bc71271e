"""Base Pydantic model configuration for m2mauth models.

All m2mauth models inherit from M2MBaseModel to ensure consistent behavior:
- Immutability (frozen=True) for thread-safety and predictability
- Strict validation (extra="forbid") to catch typos and invalid fields
- Flexible field naming (populate_by_name=True) for alias support
"""

from pydantic import BaseModel, ConfigDict


class M2MBaseModel(BaseModel):
    """Base model for all m2mauth entities.

    Example:
        >>> class MyModel(M2MBaseModel):
        ...     name: str
        >>> obj = MyModel(name="test")
        >>> obj.name = "other"  # Raises ValidationError (frozen)
        Traceback (most recent call last):
        ...
        pydantic_core._pydantic_core.ValidationError: ...
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        validate_default=True,
    )
