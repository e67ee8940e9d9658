"""
Error kinds raised by the storyboard services.

Repositories only ever raise StorageError (or one of its subclasses);
absence of a row is a normal result there, not an exception. Services
translate repository results into the richer kinds below. Every error
carries a ``kind`` string so outer layers can report it as a structured
value without inspecting the class hierarchy.
"""


class StoryboardError(Exception):
    """Base class for all errors reported by storyboard."""

    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class ValidationError(StoryboardError):
    """A field bound or format was violated."""

    kind = "validation"

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message, "field": self.field}


class AlreadyExistsError(StoryboardError):
    kind = "already_exists"


class NotFoundError(StoryboardError):
    kind = "not_found"


class ParentNotFoundError(StoryboardError):
    """An acceptance criterion references a user story that does not exist."""

    kind = "parent_not_found"


class LimitExceededError(StoryboardError):
    """A user story already holds the maximum number of acceptance criteria."""

    kind = "limit_exceeded"


class StorageError(StoryboardError):
    """
    The database failed.

    Wraps psycopg errors so callers never see driver exceptions.
    """

    kind = "storage"


class DuplicateKeyError(StorageError):
    """A unique constraint was violated."""


class ForeignKeyError(StorageError):
    """A foreign key constraint was violated."""
