"""
Communication Models

The per-project communication log: an append-only sequence of events
(messages, files, milestones, status updates) with per-user read receipts.
"""
from datetime import datetime
from sqlalchemy import (
    String,
    Text,
    Integer,
    DateTime,
    ForeignKey,
    Enum as SQLEnum,
    Index,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import Optional, List
import enum
import json
import uuid

from ..database import Base


class EventKind(str, enum.Enum):
    """Kinds of communication events."""
    MESSAGE = "message"
    FILE = "file"
    MILESTONE = "milestone"
    STATUS_UPDATE = "status-update"


class CommunicationEvent(Base):
    """
    One entry in a project's communication log.

    Events are never updated or deleted individually; only their
    read receipts grow. `position` is the authoritative order.
    """
    __tablename__ = "communication_events"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    project_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False
    )

    # 1-based insertion index within the project's log
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    kind: Mapped[EventKind] = mapped_column(
        SQLEnum(EventKind, values_callable=lambda e: [m.value for m in e]),
        nullable=False
    )
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    author_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id"),
        nullable=False
    )

    # Attachment references stored as JSON string (for SQLite)
    attachments_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False
    )

    # Relationships
    project: Mapped["Project"] = relationship(
        "Project",
        back_populates="events"
    )
    read_receipts: Mapped[List["ReadReceipt"]] = relationship(
        "ReadReceipt",
        back_populates="event",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by="ReadReceipt.read_at"
    )

    __table_args__ = (
        UniqueConstraint("project_id", "position", name="uq_event_project_position"),
        Index("idx_events_project_kind", "project_id", "kind", "position"),
    )

    @property
    def attachments(self) -> List[str]:
        return json.loads(self.attachments_json or "[]")

    def is_read_by(self, user_id: str) -> bool:
        return any(r.user_id == user_id for r in self.read_receipts)

    def __repr__(self) -> str:
        return f"<CommunicationEvent(id={self.id}, kind={self.kind}, position={self.position})>"


class ReadReceipt(Base):
    """A user has seen an event. At most one per (event, user)."""
    __tablename__ = "read_receipts"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    event_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("communication_events.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    read_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False
    )

    event: Mapped["CommunicationEvent"] = relationship(
        "CommunicationEvent",
        back_populates="read_receipts"
    )

    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_receipt_event_user"),
    )

    def __repr__(self) -> str:
        return f"<ReadReceipt(event_id={self.event_id}, user_id={self.user_id})>"
