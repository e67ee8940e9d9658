"""Field validators shared by the story and criteria services."""

from typing import Optional

from storyboard.errors import ValidationError


def validate_text(field: str, value: str, label: str, max_length: Optional[int] = None) -> None:
    """
    Check that ``value`` is not blank and not longer than ``max_length``.

    Raises ValidationError naming ``field``.
    """
    if value is None or not value.strip():
        raise ValidationError(field, f"{label} cannot be empty")
    if max_length is not None and len(value) > max_length:
        raise ValidationError(field, f"{label} cannot exceed {max_length} characters")


def validate_id(field: str, value: str, prefix: str, label: str) -> None:
    """Check that an identifier is not blank and starts with ``prefix``."""
    validate_text(field, value, label)
    if not value.startswith(prefix):
        raise ValidationError(field, f"{label} should start with '{prefix}'")
