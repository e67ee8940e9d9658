"""
Request shapes accepted by the services.

Records coming back from the repositories are plain dicts (one key per
column). Requests are dataclasses so callers get a typed surface. The
``from_dict`` constructors check structure only: required keys present and
values of the right type. Business rules (id formats, length bounds,
uniqueness) are enforced by the services.
"""

from dataclasses import dataclass
from typing import Optional

from storyboard.errors import ValidationError


def _required_str(data: dict, key: str) -> str:
    if key not in data or data[key] is None:
        raise ValidationError(key, f"Missing required field: {key}")
    value = data[key]
    if not isinstance(value, str):
        raise ValidationError(key, f"Field {key} must be a string")
    return value


def _optional_str(data: dict, key: str) -> Optional[str]:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ValidationError(key, f"Field {key} must be a string")
    return value


def _require_mapping(data, name: str) -> dict:
    if not isinstance(data, dict):
        raise ValidationError(name, f"{name} must be an object")
    return data


@dataclass
class CreateStoryRequest:
    id: str
    title: str
    description: str
    persona: str

    @classmethod
    def from_dict(cls, data: dict) -> "CreateStoryRequest":
        data = _require_mapping(data, "user_story")
        return cls(
            id=_required_str(data, "id"),
            title=_required_str(data, "title"),
            description=_required_str(data, "description"),
            persona=_required_str(data, "persona"),
        )


@dataclass
class UpdateStoryRequest:
    """Partial update: fields left as None are not changed."""

    title: Optional[str] = None
    description: Optional[str] = None
    persona: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "UpdateStoryRequest":
        data = _require_mapping(data, "changes")
        return cls(
            title=_optional_str(data, "title"),
            description=_optional_str(data, "description"),
            persona=_optional_str(data, "persona"),
        )

    def changes(self) -> dict:
        """Return only the fields that were supplied."""
        fields = {
            "title": self.title,
            "description": self.description,
            "persona": self.persona,
        }
        return {k: v for k, v in fields.items() if v is not None}


@dataclass
class CreateCriteriaRequest:
    id: str
    user_story_id: str
    description: str

    @classmethod
    def from_dict(cls, data: dict) -> "CreateCriteriaRequest":
        data = _require_mapping(data, "acceptance_criteria")
        return cls(
            id=_required_str(data, "id"),
            user_story_id=_required_str(data, "user_story_id"),
            description=_required_str(data, "description"),
        )


@dataclass
class UpdateCriteriaRequest:
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "UpdateCriteriaRequest":
        data = _require_mapping(data, "changes")
        return cls(description=_optional_str(data, "description"))

    def changes(self) -> dict:
        if self.description is None:
            return {}
        return {"description": self.description}
