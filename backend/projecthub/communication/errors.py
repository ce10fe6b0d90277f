"""
Communication Log Errors

Every failure of a log operation is one of these. Operations are
all-or-nothing, so none of them leaves the log partially updated.
"""


class CommunicationError(Exception):
    """Base exception for communication log errors."""
    pass


class ValidationError(CommunicationError):
    """Malformed input to a log operation (bad kind, bad content, bad paging)."""
    pass


class NotFoundError(CommunicationError):
    """The project log or the event does not exist."""
    pass


class ConcurrencyError(CommunicationError):
    """The store rejected a write because of a concurrent write. Retry the operation."""
    pass
