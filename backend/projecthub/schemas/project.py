"""
Project Schemas

Pydantic models for project API requests and responses.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, model_validator

from ..models.project import ProjectStatus, ProjectPriority, ProjectCategory, ProjectPlatform
from .chat import LastMessage


class ProjectCreate(BaseModel):
    """Request to submit a new project."""
    title: str = Field(..., min_length=3, max_length=100)
    description: str = Field(..., min_length=10, max_length=1000)
    category: ProjectCategory
    priority: ProjectPriority = ProjectPriority.MEDIUM
    platform: list[ProjectPlatform] = Field(
        default_factory=lambda: [ProjectPlatform.WEB], min_length=1
    )
    estimated_start: Optional[datetime] = None
    estimated_end: Optional[datetime] = None

    model_config = {"extra": "forbid", "str_strip_whitespace": True}

    @model_validator(mode="after")
    def check_estimates(self):
        if self.estimated_start and self.estimated_end and self.estimated_end < self.estimated_start:
            raise ValueError("estimated_end must not be before estimated_start")
        return self


class AssignDeveloperRequest(BaseModel):
    """Admin request to assign a developer."""
    developer_id: str = Field(..., min_length=1)

    model_config = {"extra": "forbid"}


class StatusUpdateRequest(BaseModel):
    """Request to move a project to a new status."""
    status: ProjectStatus
    notes: Optional[str] = Field(None, max_length=500)

    model_config = {"extra": "forbid"}


class ProjectResponse(BaseModel):
    """Project data returned from API."""
    id: str
    title: str
    description: str
    owner_id: str
    assigned_developer_id: Optional[str] = None
    status: ProjectStatus
    priority: ProjectPriority
    category: ProjectCategory
    platform: list[ProjectPlatform]
    estimated_start: Optional[datetime] = None
    estimated_end: Optional[datetime] = None
    actual_end: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    # Chat stats
    message_count: int = 0
    last_message: Optional[LastMessage] = None

    model_config = {"from_attributes": True}


class ProjectListResponse(BaseModel):
    """List of projects."""
    projects: list[ProjectResponse]
    total: int


class DeveloperResponse(BaseModel):
    """A developer an admin can assign, with current workload."""
    id: str
    name: str
    email: str
    created_at: datetime
    active_projects: int = 0


class DeveloperListResponse(BaseModel):
    developers: list[DeveloperResponse]
