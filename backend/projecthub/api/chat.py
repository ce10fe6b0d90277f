"""
Chat API

Endpoints for project messaging: the paged chat view, posting messages,
read receipts, unread counts and the conversation list.
"""
import logging
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import get_current_actor, get_accessible_project
from ..communication import CommunicationLog
from ..config import settings
from ..database import get_db
from ..models.communication import EventKind
from ..models.user import User
from ..schemas.chat import (
    MessageCreate,
    EventResponse,
    MessageListResponse,
    Pagination,
    UnreadResponse,
    LastMessage,
    ConversationResponse,
    ConversationListResponse,
    TypingRequest,
    StatusMessage,
)
from ..services import append_event, list_conversations
from ..tracer import trace_section, trace_input, trace_output

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


@router.get("/projects/{project_id}/messages", response_model=MessageListResponse)
async def get_messages(
    project_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.message_page_size, ge=1, le=200),
    actor: User = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """
    Get a page of chat messages.

    Page 1 holds the newest messages; each page is ordered oldest first.
    Status updates and other event kinds are not part of the chat view.
    """
    project = await get_accessible_project(db, project_id, actor)
    log = CommunicationLog(db, project)
    result = await log.list_messages(page=page, page_size=limit)

    return MessageListResponse(
        messages=[EventResponse.from_event(e) for e in result.events],
        pagination=Pagination(current=page, limit=limit, has_more=result.has_more),
    )


@router.post("/projects/{project_id}/messages", response_model=EventResponse, status_code=201)
async def send_message(
    project_id: str,
    data: MessageCreate,
    actor: User = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Post a message to the project chat."""
    trace_section("Send Message")
    trace_input("api.chat", "content", data.content)

    await get_accessible_project(db, project_id, actor)
    event = await append_event(
        db, project_id, EventKind.MESSAGE, data.content, actor.id, data.attachments
    )

    trace_output("api.chat", "event_id", event.id)
    return EventResponse.from_event(event)


@router.put("/projects/{project_id}/messages/{event_id}/read", response_model=StatusMessage)
async def mark_message_read(
    project_id: str,
    event_id: str,
    actor: User = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Mark a message as read by the caller. Repeated calls are harmless."""
    project = await get_accessible_project(db, project_id, actor)
    log = CommunicationLog(db, project)
    await log.mark_read(event_id, actor.id)

    return StatusMessage(message="Message marked as read")


@router.get("/projects/{project_id}/unread", response_model=UnreadResponse)
async def get_unread(
    project_id: str,
    actor: User = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Unread message count for the caller, with the latest message."""
    project = await get_accessible_project(db, project_id, actor)
    log = CommunicationLog(db, project)
    summary = await log.summarize()

    return UnreadResponse(
        project_id=project.id,
        unread_count=await log.unread_count_for(actor.id),
        total_message_count=summary.total_message_count,
        last_message=LastMessage.from_event(summary.last_message),
    )


@router.get("/conversations", response_model=ConversationListResponse)
async def get_conversations(
    actor: User = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Active projects the caller takes part in, with last message and unread count."""
    conversations = await list_conversations(db, actor.id)

    return ConversationListResponse(
        conversations=[
            ConversationResponse(
                project_id=c.project.id,
                title=c.project.title,
                status=c.project.status.value,
                owner_id=c.project.owner_id,
                assigned_developer_id=c.project.assigned_developer_id,
                last_message=LastMessage.from_event(c.summary.last_message),
                unread_count=c.unread_count,
            )
            for c in conversations
        ],
        total=len(conversations),
    )


@router.post("/projects/{project_id}/typing", response_model=StatusMessage)
async def typing_indicator(
    project_id: str,
    data: TypingRequest,
    actor: User = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """
    Acknowledge a typing indicator.

    Nothing is delivered to other participants; the endpoint only checks
    access so clients can call it unconditionally.
    """
    await get_accessible_project(db, project_id, actor)
    logger.debug(f"User {actor.id} typing={data.is_typing} in project {project_id}")
    return StatusMessage(message="Typing indicator sent")
