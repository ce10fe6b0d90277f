# ProjectHub Models
from .user import User, UserRole
from .project import (
    Project,
    ProjectStatus,
    ProjectPriority,
    ProjectCategory,
    ProjectPlatform,
    ACTIVE_STATUSES,
)
from .communication import CommunicationEvent, ReadReceipt, EventKind

__all__ = [
    "User",
    "UserRole",
    "Project",
    "ProjectStatus",
    "ProjectPriority",
    "ProjectCategory",
    "ProjectPlatform",
    "ACTIVE_STATUSES",
    "CommunicationEvent",
    "ReadReceipt",
    "EventKind",
]
