"""Database module for SQLite persistence.

Provides:
- Database connection management
- Schema initialization
- Repository modules, one per table family (users, courses, projects,
  chats, tags, reflections, notes, announcements, attachments)
"""

from engagement_hub.db.database import get_db, init_db

__all__ = ["get_db", "init_db"]
