"""
ProjectHub Configuration

Environment-based configuration with fail-fast validation.
The JWT secret is required and must not be hardcoded.
"""
from typing import List
from pydantic_settings import BaseSettings
from pydantic import field_validator


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./projecthub.db"

    # Debug mode (verbose low-level logging)
    debug: bool = False

    # Follow-through mode (structured step-by-step execution tracing)
    follow_through: bool = False

    # Bearer token verification
    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7

    # Communication log
    message_page_size: int = 50

    cors_origins: List[str] = ["*"]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @field_validator("jwt_secret", mode="before")
    @classmethod
    def validate_not_placeholder(cls, v: str) -> str:
        """Ensure the secret is not a placeholder value."""
        if v and "your-" in v.lower():
            return ""
        return v

    def validate_jwt_secret(self) -> None:
        """Validate that a token secret is configured."""
        if not self.jwt_secret:
            raise ValueError(
                "JWT_SECRET environment variable is required. "
                "Please set it in your .env file or environment."
            )

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


# Global settings instance
settings = Settings()
