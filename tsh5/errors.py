"""Errors raised by the time series storage.

Each error also derives from the closest builtin exception, so callers that
already catch ``LookupError`` or ``ValueError`` keep working.
"""


class TimeSeriesStorageError(Exception):
    """Base class for all storage errors."""


class ReadOnlyViolationError(TimeSeriesStorageError, PermissionError):
    """A mutating operation was attempted on a read-only storage."""


class NotFoundError(TimeSeriesStorageError, LookupError):
    """A storage file or a time series entry does not exist."""


class ReferenceNotFoundError(TimeSeriesStorageError, ValueError):
    """An owner reference was absent, or present more than once."""


class UnsupportedDataKindError(TimeSeriesStorageError, TypeError):
    """An element type has no defined encoding."""


class MalformedPayloadShapeError(TimeSeriesStorageError, ValueError):
    """A payload's rank or shape does not match its data kind."""


class UnresolvableTypeError(TimeSeriesStorageError, LookupError):
    """A stored type tag has no registered in-memory type."""


class TypeMismatchError(TimeSeriesStorageError, TypeError):
    """The stored type is incompatible with the requested type."""
