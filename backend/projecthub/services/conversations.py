"""
Conversations Service

Caller-side helpers around the communication log: appends that retry on
write conflicts, and the per-user conversation list.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Union

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from ..communication import CommunicationLog, LogSummary, ConcurrencyError
from ..models.communication import CommunicationEvent, EventKind
from ..models.project import Project, ACTIVE_STATUSES

logger = logging.getLogger(__name__)


@retry(
    retry=retry_if_exception_type(ConcurrencyError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.05, min=0.05, max=1),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
async def append_event(
    db: AsyncSession,
    project_id: str,
    kind: Union[EventKind, str],
    content: Optional[str],
    author_id: str,
    attachments: Iterable[str] = (),
) -> CommunicationEvent:
    """Append to a project's log, retrying when another writer got there first."""
    log = await CommunicationLog.open(db, project_id)
    event = await log.append(kind, content, author_id, list(attachments))
    logger.info(f"Appended {event.kind.value} {event.id} to project {project_id}")
    return event


@dataclass
class Conversation:
    """A project as seen from one participant's inbox."""
    project: Project
    summary: LogSummary
    unread_count: int


async def list_conversations(db: AsyncSession, user_id: str) -> List[Conversation]:
    """
    Active projects the user takes part in, most recently updated first.

    Admins only see projects they own or develop here; the conversation
    list is a participant's inbox, not an oversight view.
    """
    stmt = (
        select(Project)
        .where(
            or_(Project.owner_id == user_id, Project.assigned_developer_id == user_id),
            Project.status.in_(ACTIVE_STATUSES),
        )
        .order_by(Project.updated_at.desc())
    )
    result = await db.execute(stmt)
    projects = result.scalars().all()

    conversations = []
    for project in projects:
        log = CommunicationLog(db, project)
        conversations.append(Conversation(
            project=project,
            summary=await log.summarize(),
            unread_count=await log.unread_count_for(user_id),
        ))
    return conversations
