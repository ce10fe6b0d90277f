"""
User Model

Users are the actors behind every request. Accounts are provisioned
elsewhere; this service only reads them to resolve bearer tokens.
"""
from datetime import datetime
from sqlalchemy import String, DateTime, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column
import enum
import uuid

from ..database import Base


class UserRole(str, enum.Enum):
    """Marketplace roles."""
    CLIENT = "client"
    DEVELOPER = "developer"
    ADMIN = "admin"


class User(Base):
    """A marketplace participant: client, developer, or admin."""
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole, values_callable=lambda e: [m.value for m in e]),
        default=UserRole.CLIENT,
        nullable=False,
        index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def __repr__(self) -> str:
        return f"<User(id={self.id}, role={self.role})>"
