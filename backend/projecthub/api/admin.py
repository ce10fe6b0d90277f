"""
Admin API

Developer listing, developer assignment and project status changes.
Assignments and status changes are recorded in the project's
communication log as status updates.
"""
import logging
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import get_current_actor, require_role, ACCESS_DENIED
from ..database import get_db
from ..models.communication import EventKind
from ..models.project import Project, ProjectStatus
from ..models.user import User, UserRole
from ..schemas.project import (
    AssignDeveloperRequest,
    StatusUpdateRequest,
    ProjectResponse,
    DeveloperResponse,
    DeveloperListResponse,
)
from ..services import append_event
from .projects import _project_to_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


async def _get_project(db: AsyncSession, project_id: str) -> Project:
    result = await db.execute(select(Project).where(Project.id == project_id))
    return result.scalar_one_or_none()


@router.put("/projects/{project_id}/assign", response_model=ProjectResponse)
async def assign_developer(
    project_id: str,
    data: AssignDeveloperRequest,
    actor: User = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Assign a developer to a project and move it into development."""
    require_role(actor, UserRole.ADMIN)

    stmt = select(User).where(User.id == data.developer_id, User.role == UserRole.DEVELOPER)
    result = await db.execute(stmt)
    developer = result.scalar_one_or_none()
    if not developer:
        raise HTTPException(status_code=400, detail="Developer not found")

    project = await _get_project(db, project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")

    project.assigned_developer_id = developer.id
    project.status = ProjectStatus.IN_DEVELOPMENT
    await db.commit()

    await append_event(
        db, project.id, EventKind.STATUS_UPDATE, f"Project assigned to {developer.name}", actor.id
    )
    logger.info(f"Project {project.id} assigned to developer {developer.id}")

    return _project_to_response(project)


@router.put("/projects/{project_id}/status", response_model=ProjectResponse)
async def update_status(
    project_id: str,
    data: StatusUpdateRequest,
    actor: User = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """
    Change a project's status.

    Admins may update any project; developers only the ones assigned to them.
    """
    require_role(actor, UserRole.DEVELOPER, UserRole.ADMIN)

    project = await _get_project(db, project_id)
    if not project or not (actor.is_admin or project.assigned_developer_id == actor.id):
        raise HTTPException(status_code=404, detail=ACCESS_DENIED)

    project.status = data.status
    if data.status == ProjectStatus.DEPLOYED:
        project.actual_end = datetime.utcnow()
    await db.commit()

    content = f"Status updated to {data.status.value}"
    if data.notes:
        content += f": {data.notes}"
    await append_event(db, project.id, EventKind.STATUS_UPDATE, content, actor.id)
    logger.info(f"Project {project.id} status -> {data.status.value} by {actor.id}")

    return _project_to_response(project)


# Statuses that count towards a developer's workload
WORKLOAD_STATUSES = (ProjectStatus.IN_DEVELOPMENT, ProjectStatus.TESTING)


@router.get("/developers", response_model=DeveloperListResponse)
async def list_developers(
    actor: User = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """List developers, newest first, with their count of active projects."""
    require_role(actor, UserRole.ADMIN)

    active = func.count(Project.id).label("active_projects")
    stmt = (
        select(User, active)
        .outerjoin(
            Project,
            and_(
                Project.assigned_developer_id == User.id,
                Project.status.in_(WORKLOAD_STATUSES),
            ),
        )
        .where(User.role == UserRole.DEVELOPER)
        .group_by(User.id)
        .order_by(User.created_at.desc())
    )
    result = await db.execute(stmt)

    return DeveloperListResponse(
        developers=[
            DeveloperResponse(
                id=developer.id,
                name=developer.name,
                email=developer.email,
                created_at=developer.created_at,
                active_projects=count,
            )
            for developer, count in result.all()
        ]
    )
