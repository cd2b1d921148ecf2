"""
Error kinds raised by the program engine.

Every failure a caller can act on maps to one of these. The API layer
translates them to HTTP status codes; nothing in the core retries.
"""

from typing import Optional


class ProgramError(Exception):
    """Base class for all program engine errors."""
    pass


class NotFoundError(ProgramError):
    """A program, category, template or row index does not exist."""

    def __init__(self, resource: str, identifier: object) -> None:
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} {identifier!r} not found")


class ValidationError(ProgramError, ValueError):
    """
    A required field is missing or a value is not allowed.

    Subclasses ValueError so model-level checks in __post_init__ read
    the same as any other dataclass validation.
    """
    pass


class SelectionError(ValidationError):
    """
    A selection transition is not enabled for the row yet.

    A UI renders these as disabled dropdowns rather than showing a message;
    the is_*_enabled queries on the state machine tell it which ones.
    """
    pass


class IllegalTransitionError(ValidationError):
    """A program status change the status machine does not allow."""
    pass


class IllegalModeError(ProgramError):
    """The operation is not available in the workspace's current mode."""
    pass


class PersistenceError(ProgramError):
    """The persistence gateway failed to read or write a document."""
    pass


class PartialLoadError(ProgramError):
    """
    Auxiliary data could not be loaded.

    Never raised out of a user flow: it is recorded and the data
    degrades to an empty list.
    """

    def __init__(self, what: str, cause: Optional[BaseException] = None) -> None:
        self.what = what
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Failed to load {what}{detail}")
