"""Core business logic module.

Modules:
- roles: course roles and permission predicates
- cost_calculator: model pricing and cost aggregation
- analytics: platform usage analytics and daily aggregates
- account_cleanup: cascading deletes for users and projects
- conversation_history: context-window aware chat history
- retry: backoff for transient provider failures
- document_extractor: PDF and text attachment extraction
- exporter: CSV exports
- chat_service: chat orchestration
"""

__all__ = [
    "roles",
    "cost_calculator",
    "analytics",
    "account_cleanup",
    "conversation_history",
    "retry",
    "document_extractor",
    "exporter",
    "chat_service",
]
