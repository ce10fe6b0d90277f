"""
Authentication and Project Access

Bearer tokens are issued elsewhere; here they are only verified and
resolved into an actor. Project access is granted to the owner, the
assigned developer, and admins. Everyone else gets the same 404 as for a
project that does not exist.
"""
from datetime import datetime, timedelta
from typing import Optional

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .config import settings
from .database import get_db
from .models.project import Project
from .models.user import User, UserRole

# auto_error=False so a missing header is a 401, not FastAPI's default 403
security = HTTPBearer(auto_error=False)

ACCESS_DENIED = "Project not found or access denied"


def create_access_token(user_id: str, expires_minutes: Optional[int] = None) -> str:
    """Mint a signed token for a user id."""
    minutes = expires_minutes or settings.access_token_expire_minutes
    payload = {
        "userId": user_id,
        "exp": datetime.utcnow() + timedelta(minutes=minutes),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> dict:
    """
    Verify a bearer token and return its payload.

    Raises:
        HTTPException(401): If token is expired or invalid
    """
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")


async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Dependency resolving the bearer token into the acting user."""
    if credentials is None:
        raise HTTPException(status_code=401, detail="No token provided")

    payload = verify_token(credentials.credentials)
    user_id = payload.get("userId")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token payload")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    return user


def require_role(actor: User, *roles: UserRole) -> None:
    """Reject actors whose role is not in `roles`."""
    if actor.role not in roles:
        allowed = " or ".join(r.value for r in roles)
        raise HTTPException(status_code=403, detail=f"Access denied. {allowed} role required.")


def can_access(project: Project, actor: User) -> bool:
    return actor.is_admin or project.has_participant(actor.id)


async def get_accessible_project(db: AsyncSession, project_id: str, actor: User) -> Project:
    """Load a project the actor may see, or 404 without revealing whether it exists."""
    result = await db.execute(select(Project).where(Project.id == project_id))
    project = result.scalar_one_or_none()
    if project is None or not can_access(project, actor):
        raise HTTPException(status_code=404, detail=ACCESS_DENIED)
    return project
