"""Base Pydantic model configuration for callforge models.

All callforge models inherit from CallforgeBaseModel to ensure consistent behavior:
- Immutability (frozen=True) so parsed metadata can be shared across calls
- Strict validation (extra="forbid") to catch typos and invalid fields
- Arbitrary types allowed, since metadata carries Python types, templates
  and expander objects
"""

from pydantic import BaseModel, ConfigDict


class CallforgeBaseModel(BaseModel):
    """Base model for all callforge value objects.

    This base class provides:
    - **Immutability**: Models are frozen after creation (thread-safe)
    - **Strict validation**: Extra fields are forbidden (catches errors early)
    - **Flexible naming**: Fields can be populated by name or alias

    Example:
        >>> class Point(CallforgeBaseModel):
        ...     x: int
        >>> Point(x=1).x
        1
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        arbitrary_types_allowed=True,
        validate_default=True,
    )
