"""
Project Model

Projects are the top-level container for a client request.
Each project owns exactly one communication log.
"""
from datetime import datetime
from sqlalchemy import String, Text, DateTime, ForeignKey, Enum as SQLEnum, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import Optional, List
import enum
import json
import uuid

from ..database import Base


def _enum_values(e):
    return [m.value for m in e]


class ProjectStatus(str, enum.Enum):
    """Lifecycle status of a project."""
    DRAFT = "draft"
    PROTOTYPE = "prototype"
    IN_DEVELOPMENT = "in-development"
    TESTING = "testing"
    DEPLOYED = "deployed"
    CANCELLED = "cancelled"


# Statuses that show up in the conversations list
ACTIVE_STATUSES = (
    ProjectStatus.PROTOTYPE,
    ProjectStatus.IN_DEVELOPMENT,
    ProjectStatus.TESTING,
)


class ProjectPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ProjectCategory(str, enum.Enum):
    MOBILE_APP = "mobile-app"
    WEB_APP = "web-app"
    WEBSITE = "website"
    AUTOMATION = "automation"
    AI_TOOL = "ai-tool"
    OTHER = "other"


class ProjectPlatform(str, enum.Enum):
    IOS = "ios"
    ANDROID = "android"
    WEB = "web"
    DESKTOP = "desktop"


class Project(Base):
    """
    A client's project request.

    Owned by the client who submitted it, optionally assigned to a
    developer by an admin. The communication log (messages, status
    updates, milestones, files) lives and dies with the project.
    """
    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    owner_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id"),
        nullable=False,
        index=True
    )
    assigned_developer_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    status: Mapped[ProjectStatus] = mapped_column(
        SQLEnum(ProjectStatus, values_callable=_enum_values),
        default=ProjectStatus.DRAFT,
        nullable=False
    )
    priority: Mapped[ProjectPriority] = mapped_column(
        SQLEnum(ProjectPriority, values_callable=_enum_values),
        default=ProjectPriority.MEDIUM,
        nullable=False
    )
    category: Mapped[ProjectCategory] = mapped_column(
        SQLEnum(ProjectCategory, values_callable=_enum_values),
        nullable=False
    )

    # Target platforms as a JSON list of ProjectPlatform values
    platform_json: Mapped[str] = mapped_column(Text, nullable=False, default='["web"]')

    estimated_start: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    estimated_end: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    actual_end: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
        index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False
    )

    # Relationships
    events: Mapped[List["CommunicationEvent"]] = relationship(
        "CommunicationEvent",
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="CommunicationEvent.position"
    )

    __table_args__ = (
        Index("idx_projects_owner_status", "owner_id", "status"),
        Index("idx_projects_developer_status", "assigned_developer_id", "status"),
    )

    @property
    def platform(self) -> List[ProjectPlatform]:
        return [ProjectPlatform(p) for p in json.loads(self.platform_json or "[]")]

    def has_participant(self, user_id: str) -> bool:
        """Whether the user is the owner or the assigned developer."""
        return user_id in (self.owner_id, self.assigned_developer_id)

    def __repr__(self) -> str:
        return f"<Project(id={self.id}, title={self.title})>"
