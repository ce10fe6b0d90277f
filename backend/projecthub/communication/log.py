"""
Communication Log

Append-only, per-project log of messages, files, milestones and status
updates, with per-user read receipts.

Ordering is by `position`, assigned at append time under a per-project
lock. The unique (project_id, position) constraint catches writers in
other processes; the loser of such a race gets a ConcurrencyError.
"""
import asyncio
import json
import weakref
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Union

from sqlalchemy import select, func, and_, exists
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.project import Project
from ..models.communication import CommunicationEvent, ReadReceipt, EventKind
from ..tracer import traced, trace_step
from .errors import ValidationError, NotFoundError, ConcurrencyError

MESSAGE_MIN_LENGTH = 1
MESSAGE_MAX_LENGTH = 2000

# project_id -> append lock; entries vanish once no coroutine holds them
_append_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()


def _append_lock(project_id: str) -> asyncio.Lock:
    lock = _append_locks.get(project_id)
    if lock is None:
        lock = asyncio.Lock()
        _append_locks[project_id] = lock
    return lock


def _violates(error: IntegrityError, *markers: str) -> bool:
    """Whether an IntegrityError was raised by one of the named constraints."""
    text = str(error.orig)
    return any(marker in text for marker in markers)


def coerce_kind(kind: Union[EventKind, str]) -> EventKind:
    """Parse an event kind, rejecting anything outside the enumeration."""
    if isinstance(kind, EventKind):
        return kind
    try:
        return EventKind(kind)
    except ValueError:
        allowed = ", ".join(k.value for k in EventKind)
        raise ValidationError(f"Invalid event kind {kind!r}; expected one of: {allowed}")


def validate_content(kind: EventKind, content: Optional[str]) -> Optional[str]:
    """Check content against the rules for its kind. Messages are trimmed."""
    if kind != EventKind.MESSAGE:
        return content
    text = (content or "").strip()
    if not MESSAGE_MIN_LENGTH <= len(text) <= MESSAGE_MAX_LENGTH:
        raise ValidationError(
            f"Message must be {MESSAGE_MIN_LENGTH}-{MESSAGE_MAX_LENGTH} characters"
        )
    return text


@dataclass
class MessagePage:
    """One page of the chat view, oldest message first."""
    events: List[CommunicationEvent]
    page: int
    page_size: int
    has_more: bool


@dataclass
class LogSummary:
    """Derived state of a log's chat view."""
    last_message: Optional[CommunicationEvent] = None
    total_message_count: int = 0


class CommunicationLog:
    """
    The communication log of one project.

    Usage:
        log = await CommunicationLog.open(db, project_id)
        event = await log.append(EventKind.MESSAGE, "Hello", author_id)
        page = await log.list_messages(page=1, page_size=50)
        await log.mark_read(event.id, reader_id)

    Access control is the caller's job: the log assumes the actor has
    already been checked against the project.
    """

    def __init__(self, db: AsyncSession, project: Project):
        self.db = db
        self.project = project
        self.project_id = project.id

    @classmethod
    async def open(cls, db: AsyncSession, project_id: str) -> "CommunicationLog":
        """Bind to the log of an existing project."""
        stmt = select(Project).where(Project.id == project_id)
        result = await db.execute(stmt)
        project = result.scalar_one_or_none()
        if project is None:
            raise NotFoundError(f"Project {project_id} not found")
        return cls(db, project)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @traced("communication.log")
    async def append(
        self,
        kind: Union[EventKind, str],
        content: Optional[str],
        author_id: str,
        attachments: Iterable[str] = (),
    ) -> CommunicationEvent:
        """
        Append an event to the end of the log.

        Raises:
            ValidationError: unknown kind, or message content empty / too long
            ConcurrencyError: another writer took the same position
        """
        kind = coerce_kind(kind)
        content = validate_content(kind, content)
        if not author_id:
            raise ValidationError("author_id is required")
        attachments = [str(a) for a in attachments]

        async with _append_lock(self.project_id):
            last = await self._last_event()
            now = datetime.utcnow()
            position = 1
            if last is not None:
                position = last.position + 1
                # Clock skew must not reorder timestamps within a log
                if last.created_at > now:
                    now = last.created_at

            event = CommunicationEvent(
                project_id=self.project_id,
                position=position,
                kind=kind,
                content=content,
                author_id=author_id,
                attachments_json=json.dumps(attachments),
                created_at=now,
                read_receipts=[],
            )
            self.db.add(event)
            self.project.updated_at = now

            try:
                await self.db.commit()
            except IntegrityError as e:
                await self.db.rollback()
                if _violates(e, "uq_event_project_position", "communication_events.position"):
                    raise ConcurrencyError(
                        f"Position {position} in project {self.project_id} was taken concurrently"
                    ) from e
                raise

        trace_step("communication.log", f"Appended {kind.value} at position {position}")
        return event

    @traced("communication.log")
    async def mark_read(self, event_id: str, user_id: str) -> None:
        """
        Record that a user has read an event. Marking twice is a no-op.

        Raises:
            NotFoundError: the event is not part of this log
        """
        event = await self.get_event(event_id)
        if event.is_read_by(user_id):
            return

        event.read_receipts.append(
            ReadReceipt(event_id=event.id, user_id=user_id, read_at=datetime.utcnow())
        )
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            # Same user marked it concurrently: their receipt stands
            if not _violates(e, "uq_receipt_event_user", "read_receipts.event_id"):
                raise

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_event(self, event_id: str) -> CommunicationEvent:
        stmt = (
            select(CommunicationEvent)
            .where(
                CommunicationEvent.id == event_id,
                CommunicationEvent.project_id == self.project_id,
            )
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        event = result.scalar_one_or_none()
        if event is None:
            raise NotFoundError(f"Event {event_id} not found")
        return event

    async def list_messages(
        self,
        page: int = 1,
        page_size: int = 50,
        author_id: Optional[str] = None,
    ) -> MessagePage:
        """
        Page backward through the chat view.

        Page 1 holds the newest messages. Within a page, messages are
        returned oldest first so a chat UI can render newest at the bottom.
        """
        if page < 1 or page_size < 1:
            raise ValidationError("page and page_size must be at least 1")

        conditions = self._message_conditions()
        if author_id is not None:
            conditions.append(CommunicationEvent.author_id == author_id)

        # One extra row tells us whether older messages remain
        stmt = (
            select(CommunicationEvent)
            .where(*conditions)
            .order_by(CommunicationEvent.position.desc())
            .offset((page - 1) * page_size)
            .limit(page_size + 1)
        )
        result = await self.db.execute(stmt)
        rows = list(result.scalars().all())

        events = rows[:page_size]
        events.reverse()
        return MessagePage(
            events=events,
            page=page,
            page_size=page_size,
            has_more=len(rows) > page_size,
        )

    def _event_conditions(self, kinds: Optional[Sequence[Union[EventKind, str]]]) -> list:
        conditions = [CommunicationEvent.project_id == self.project_id]
        if kinds:
            conditions.append(CommunicationEvent.kind.in_([coerce_kind(k) for k in kinds]))
        return conditions

    async def list_events(
        self,
        kinds: Optional[Sequence[Union[EventKind, str]]] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[CommunicationEvent]:
        """All events (or only the given kinds), newest first."""
        stmt = (
            select(CommunicationEvent)
            .where(*self._event_conditions(kinds))
            .order_by(CommunicationEvent.position.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def count_events(self, kinds: Optional[Sequence[Union[EventKind, str]]] = None) -> int:
        """Number of events in the log, optionally only the given kinds."""
        stmt = select(func.count(CommunicationEvent.id)).where(*self._event_conditions(kinds))
        result = await self.db.execute(stmt)
        return result.scalar() or 0

    async def unread_count_for(self, user_id: str) -> int:
        """
        Count messages the user has not marked read.

        A user's own messages count too, until that user marks them read.
        """
        receipt_exists = exists().where(
            and_(
                ReadReceipt.event_id == CommunicationEvent.id,
                ReadReceipt.user_id == user_id,
            )
        )
        stmt = (
            select(func.count(CommunicationEvent.id))
            .where(*self._message_conditions(), ~receipt_exists)
        )
        result = await self.db.execute(stmt)
        return result.scalar() or 0

    async def summarize(self) -> LogSummary:
        """Last message and total message count."""
        conditions = self._message_conditions()

        count_stmt = select(func.count(CommunicationEvent.id)).where(*conditions)
        count_result = await self.db.execute(count_stmt)
        total = count_result.scalar() or 0

        last_stmt = (
            select(CommunicationEvent)
            .where(*conditions)
            .order_by(CommunicationEvent.position.desc())
            .limit(1)
        )
        last_result = await self.db.execute(last_stmt)
        return LogSummary(
            last_message=last_result.scalar_one_or_none(),
            total_message_count=total,
        )

    # ------------------------------------------------------------------

    def _message_conditions(self) -> list:
        return [
            CommunicationEvent.project_id == self.project_id,
            CommunicationEvent.kind == EventKind.MESSAGE,
        ]

    async def _last_event(self) -> Optional[CommunicationEvent]:
        stmt = (
            select(CommunicationEvent)
            .where(CommunicationEvent.project_id == self.project_id)
            .order_by(CommunicationEvent.position.desc())
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()
