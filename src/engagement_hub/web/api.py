"""FastAPI application factory.

Main entry point for the AI Engagement Hub Web API.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from engagement_hub import __version__
from engagement_hub.config.app_config import load_app_config
from engagement_hub.db.database import get_db_path, init_db
from engagement_hub.web.routes import (
    admin_router,
    analytics_router,
    announcements_router,
    attachments_router,
    chats_router,
    courses_router,
    health_router,
    notes_router,
    projects_router,
    tags_router,
    users_router,
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan context manager for startup/shutdown events."""
    # Startup
    init_db(get_db_path())
    config = load_app_config()
    logger.info(
        "api_startup",
        db_path=str(get_db_path().absolute()),
        uploads_dir=config.hub.uploads_dir,
        providers=sorted(config.providers),
    )
    yield
    # Shutdown (nothing to do for now)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="AI Engagement Hub API",
        description="Course-scoped AI chat, tagging, reflections and usage analytics",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS middleware for web clients
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(health_router)
    app.include_router(users_router)
    app.include_router(courses_router)
    app.include_router(projects_router)
    app.include_router(chats_router)
    app.include_router(tags_router)
    app.include_router(notes_router)
    app.include_router(announcements_router)
    app.include_router(attachments_router)
    app.include_router(analytics_router)
    app.include_router(admin_router)

    return app


# Default app instance for uvicorn
app = create_app()
