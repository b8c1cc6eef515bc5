"""
Exception taxonomy for the health tracker
"""

from typing import Any, Optional


class TrackerError(Exception):
    """Base class for all health tracker errors."""
    pass


class PersistenceError(TrackerError):
    """A gateway write was rejected. Optimistic state is left in place."""

    def __init__(self, message: str, table: str, record: Optional[Any] = None):
        super().__init__(message)
        self.table = table
        self.record = record


class QueryError(TrackerError):
    """A gateway read failed."""

    def __init__(self, message: str, table: str):
        super().__init__(message)
        self.table = table


class MissingRelatedEntityError(TrackerError):
    """A dependent entity (e.g. the assigned coach) does not exist yet."""
    pass


class ProfileNotFoundError(TrackerError):
    """No profile row for the signed-in user; the session is terminated."""
    pass


class AuthorizationError(TrackerError):
    """The acting role may not perform this write or read."""
    pass


class InvalidTransitionError(TrackerError):
    """A lifecycle change that the current state does not allow."""
    pass


class SchemaValidationError(TrackerError):
    """A storage row failed validation at the gateway boundary."""

    def __init__(self, message: str, table: str, row: Any = None):
        super().__init__(message)
        self.table = table
        self.row = row


class RecordNotFoundError(TrackerError, KeyError):
    """The store holds no record with the requested id."""
    pass
