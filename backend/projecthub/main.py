"""
ProjectHub - Project Marketplace Backend

FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .database import init_db, close_db
from .config import settings
from .api import projects_router, chat_router, admin_router
from .communication import ValidationError, NotFoundError, ConcurrencyError
from .tracer import setup_follow_through_logging

# Configure logging based on mode
if settings.debug:
    log_level = logging.DEBUG
elif settings.follow_through:
    log_level = logging.WARNING  # Suppress normal logs, let tracer handle output
else:
    log_level = logging.INFO

logging.basicConfig(
    level=log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

# Quiet down noisy loggers when not in debug mode
if not settings.debug:
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

setup_follow_through_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting ProjectHub...")

    try:
        settings.validate_jwt_secret()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        raise

    await init_db()
    logger.info("Database initialized")

    yield

    logger.info("Shutting down ProjectHub...")
    await close_db()


app = FastAPI(
    title="ProjectHub",
    description="""
    Project marketplace backend.

    Clients submit project requests, admins assign developers, developers
    report status, and everyone involved talks in the project chat.

    ## Features
    - **Projects**: submission, assignment, status tracking
    - **Communication log**: append-only per-project history of messages,
      files, milestones and status updates
    - **Read receipts**: per-user read state and unread counts
    """,
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(projects_router)
app.include_router(chat_router)
app.include_router(admin_router)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ConcurrencyError)
async def concurrency_error_handler(request: Request, exc: ConcurrencyError):
    logger.warning(f"Write conflict on {request.url.path}: {exc}")
    return JSONResponse(status_code=409, content={"detail": "Concurrent update, please retry"})


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": "ProjectHub",
        "version": "1.0.0",
        "docs": "/docs",
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}
