"""
Projects API

Endpoints for project submission, lookup, deletion and the project timeline.
"""
import json
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import get_current_actor, get_accessible_project
from ..communication import CommunicationLog, LogSummary
from ..database import get_db
from ..models.communication import EventKind
from ..models.project import Project, ProjectStatus, ProjectCategory
from ..models.user import User
from ..schemas.chat import EventCreate, EventResponse, LastMessage, TimelineResponse
from ..schemas.project import ProjectCreate, ProjectResponse, ProjectListResponse
from ..services import append_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects", tags=["projects"])


def _project_to_response(project: Project, summary: Optional[LogSummary] = None) -> ProjectResponse:
    """Convert Project model to response schema."""
    summary = summary or LogSummary()
    return ProjectResponse(
        id=project.id,
        title=project.title,
        description=project.description,
        owner_id=project.owner_id,
        assigned_developer_id=project.assigned_developer_id,
        status=project.status,
        priority=project.priority,
        category=project.category,
        platform=project.platform,
        estimated_start=project.estimated_start,
        estimated_end=project.estimated_end,
        actual_end=project.actual_end,
        created_at=project.created_at,
        updated_at=project.updated_at,
        message_count=summary.total_message_count,
        last_message=LastMessage.from_event(summary.last_message),
    )


@router.post("", response_model=ProjectResponse, status_code=201)
async def create_project(
    data: ProjectCreate,
    actor: User = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Submit a new project owned by the caller."""
    project = Project(
        title=data.title,
        description=data.description,
        category=data.category,
        priority=data.priority,
        platform_json=json.dumps([p.value for p in data.platform]),
        estimated_start=data.estimated_start,
        estimated_end=data.estimated_end,
        owner_id=actor.id,
    )
    db.add(project)
    await db.commit()
    await db.refresh(project)

    await append_event(
        db, project.id, EventKind.STATUS_UPDATE, "Project created successfully", actor.id
    )
    logger.info(f"Project {project.id} created by {actor.id}")

    return _project_to_response(project)


@router.get("", response_model=ProjectListResponse)
async def list_projects(
    status: Optional[ProjectStatus] = Query(None, description="Filter by status"),
    category: Optional[ProjectCategory] = Query(None, description="Filter by category"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    actor: User = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """List projects visible to the caller, newest first. Admins see all."""
    conditions = []
    if not actor.is_admin:
        conditions.append(
            or_(Project.owner_id == actor.id, Project.assigned_developer_id == actor.id)
        )
    if status:
        conditions.append(Project.status == status)
    if category:
        conditions.append(Project.category == category)

    count_stmt = select(func.count(Project.id)).where(*conditions)
    count_result = await db.execute(count_stmt)
    total = count_result.scalar() or 0

    stmt = (
        select(Project)
        .where(*conditions)
        .order_by(Project.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    result = await db.execute(stmt)
    projects = result.scalars().all()

    responses = []
    for project in projects:
        summary = await CommunicationLog(db, project).summarize()
        responses.append(_project_to_response(project, summary))

    return ProjectListResponse(projects=responses, total=total)


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: str,
    actor: User = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Get a project by ID."""
    project = await get_accessible_project(db, project_id, actor)
    summary = await CommunicationLog(db, project).summarize()
    return _project_to_response(project, summary)


@router.delete("/{project_id}")
async def delete_project(
    project_id: str,
    actor: User = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Delete a project together with its communication log."""
    project = await get_accessible_project(db, project_id, actor)
    if not (actor.is_admin or project.owner_id == actor.id):
        raise HTTPException(status_code=403, detail="Only the owner or an admin can delete a project")

    await db.delete(project)
    await db.commit()
    logger.info(f"Project {project_id} deleted by {actor.id}")

    return {"status": "deleted", "project_id": project_id}


@router.get("/{project_id}/timeline", response_model=TimelineResponse)
async def get_timeline(
    project_id: str,
    kind: Optional[str] = Query(None, description="Filter by event kind"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    actor: User = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """
    Get the project's full communication log, newest first.

    Unlike the chat view this includes status updates, milestones and files.
    """
    project = await get_accessible_project(db, project_id, actor)
    log = CommunicationLog(db, project)
    kinds = [kind] if kind else None
    events = await log.list_events(kinds=kinds, limit=limit, offset=offset)
    total = await log.count_events(kinds=kinds)

    return TimelineResponse(
        events=[EventResponse.from_event(e) for e in events],
        total=total,
    )


@router.post("/{project_id}/events", response_model=EventResponse, status_code=201)
async def create_event(
    project_id: str,
    data: EventCreate,
    actor: User = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Append an event of any kind (file, milestone, ...) to the project log."""
    await get_accessible_project(db, project_id, actor)
    event = await append_event(db, project_id, data.kind, data.content, actor.id, data.attachments)
    return EventResponse.from_event(event)
