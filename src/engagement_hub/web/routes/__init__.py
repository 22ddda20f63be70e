"""Route handlers for the Web API."""

from engagement_hub.web.routes.health import router as health_router
from engagement_hub.web.routes.users import router as users_router
from engagement_hub.web.routes.courses import router as courses_router
from engagement_hub.web.routes.projects import router as projects_router
from engagement_hub.web.routes.chats import router as chats_router
from engagement_hub.web.routes.tags import router as tags_router
from engagement_hub.web.routes.notes import router as notes_router
from engagement_hub.web.routes.announcements import router as announcements_router
from engagement_hub.web.routes.attachments import router as attachments_router
from engagement_hub.web.routes.analytics import router as analytics_router
from engagement_hub.web.routes.admin import router as admin_router

__all__ = [
    "health_router",
    "users_router",
    "courses_router",
    "projects_router",
    "chats_router",
    "tags_router",
    "notes_router",
    "announcements_router",
    "attachments_router",
    "analytics_router",
    "admin_router",
]
