"""AI Engagement Hub: course-scoped AI chat, tagging, reflections and usage analytics."""

__version__ = "0.1.0"
