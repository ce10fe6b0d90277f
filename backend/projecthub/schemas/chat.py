"""
Chat Schemas

Pydantic models for communication log requests and responses.
"""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel

from ..models.communication import CommunicationEvent, EventKind


class MessageCreate(BaseModel):
    """Request to post a chat message. Length rules are enforced by the log."""
    content: str
    attachments: List[str] = []

    model_config = {"extra": "forbid"}


class EventCreate(BaseModel):
    """Request to append any kind of event (file, milestone, ...)."""
    kind: str
    content: Optional[str] = None
    attachments: List[str] = []

    model_config = {"extra": "forbid"}


class TypingRequest(BaseModel):
    is_typing: bool = True


class ReadReceiptResponse(BaseModel):
    user_id: str
    read_at: datetime

    model_config = {"from_attributes": True}


class EventResponse(BaseModel):
    """A communication log entry."""
    id: str
    project_id: str
    position: int
    kind: EventKind
    content: Optional[str] = None
    author_id: str
    attachments: List[str] = []
    created_at: datetime
    read_by: List[ReadReceiptResponse] = []

    @classmethod
    def from_event(cls, event: CommunicationEvent) -> "EventResponse":
        return cls(
            id=event.id,
            project_id=event.project_id,
            position=event.position,
            kind=event.kind,
            content=event.content,
            author_id=event.author_id,
            attachments=event.attachments,
            created_at=event.created_at,
            read_by=[ReadReceiptResponse.model_validate(r) for r in event.read_receipts],
        )


class Pagination(BaseModel):
    current: int
    limit: int
    has_more: bool


class MessageListResponse(BaseModel):
    """One page of chat messages, oldest first."""
    messages: List[EventResponse]
    pagination: Pagination


class LastMessage(BaseModel):
    content: Optional[str] = None
    author_id: str
    created_at: datetime

    @classmethod
    def from_event(cls, event: Optional[CommunicationEvent]) -> Optional["LastMessage"]:
        if event is None:
            return None
        return cls(content=event.content, author_id=event.author_id, created_at=event.created_at)


class UnreadResponse(BaseModel):
    project_id: str
    unread_count: int
    total_message_count: int
    last_message: Optional[LastMessage] = None


class ConversationResponse(BaseModel):
    """A project in the user's conversation list."""
    project_id: str
    title: str
    status: str
    owner_id: str
    assigned_developer_id: Optional[str] = None
    last_message: Optional[LastMessage] = None
    unread_count: int = 0


class ConversationListResponse(BaseModel):
    conversations: List[ConversationResponse]
    total: int


class TimelineResponse(BaseModel):
    """Project events, newest first."""
    events: List[EventResponse]
    total: int


class StatusMessage(BaseModel):
    success: bool = True
    message: str
