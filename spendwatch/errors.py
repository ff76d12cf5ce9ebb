"""
SpendWatch DZD - Exceptions.

Validation failures subclass ValueError so callers that already handle
ValueError keep working. Database errors are not wrapped; sqlite3
exceptions reach the caller unchanged.
"""


class SpendWatchError(Exception):
    """Base class for SpendWatch errors."""


class ValidationError(SpendWatchError, ValueError):
    """Input rejected at the boundary (bad amount, month, currency...)."""


class DuplicateBudgetError(ValidationError):
    """A budget already exists for the same month, year and source."""


class DuplicateSourceError(ValidationError):
    """An ad source with the same name or slug already exists."""


class NotFoundError(SpendWatchError, LookupError):
    """A referenced record does not exist."""
