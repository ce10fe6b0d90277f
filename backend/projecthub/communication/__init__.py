# Project Communication Log
from .errors import CommunicationError, ValidationError, NotFoundError, ConcurrencyError
from .log import CommunicationLog, MessagePage, LogSummary, MESSAGE_MAX_LENGTH

__all__ = [
    "CommunicationLog",
    "MessagePage",
    "LogSummary",
    "MESSAGE_MAX_LENGTH",
    "CommunicationError",
    "ValidationError",
    "NotFoundError",
    "ConcurrencyError",
]
