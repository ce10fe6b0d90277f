# API Routes
from .projects import router as projects_router
from .chat import router as chat_router
from .admin import router as admin_router

__all__ = [
    "projects_router",
    "chat_router",
    "admin_router",
]
