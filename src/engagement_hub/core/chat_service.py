"""Chat orchestration: history, attachments, provider call, persistence.

Tools are the model names students pick in the chat UI (e.g. "Claude
Sonnet 4"); each maps to a provider and a concrete API model id.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from engagement_hub.config.app_config import load_app_config
from engagement_hub.core.conversation_history import (
    get_history_summary,
    get_smart_conversation_history,
)
from engagement_hub.core.cost_calculator import DISPLAY_NAME_MAPPING, provider_for_model
from engagement_hub.core.retry import get_model_retry_config, with_retry
from engagement_hub.core.roles import require
from engagement_hub.db.attachments_repository import (
    AttachmentRecord,
    get_attachments_by_ids,
    link_attachments_to_chat,
)
from engagement_hub.db.chats_repository import ChatRecord, create_chat, get_project_chats
from engagement_hub.db.projects_repository import get_project_by_id
from engagement_hub.llm.client import PROVIDERS, LLMClient, LLMConfig, Message

logger = structlog.get_logger(__name__)

SYSTEM_PROMPT = (
    "You are a helpful AI assistant designed to support educational activities. "
    "Please provide thoughtful, accurate, and educational responses. "
    "Encourage critical thinking and ethical use of AI tools."
)

# Tool name -> (provider, API model id)
TOOL_CONFIG: dict[str, tuple[str, str]] = {
    "GPT-5 Nano": ("openai", "gpt-5-nano-2025-08-07"),
    "GPT-5 Mini": ("openai", "gpt-5-mini-2025-08-07"),
    "GPT-5": ("openai", "gpt-5-2025-08-07"),
    "Claude Sonnet 4": ("anthropic", "claude-sonnet-4-20250514"),
    "Claude Opus 4": ("anthropic", "claude-4-opus-20250514"),
    "Gemini Flash": ("google", "gemini-1.5-flash"),
    "Gemini 2.5 Pro": ("google", "gemini-2.5-pro"),
    "Sonar Pro": ("perplexity", "sonar-pro"),
}


class ProjectNotFoundError(Exception):
    """Raised when a chat targets a project that doesn't exist."""

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Project not found: {project_id}")


class UnknownToolError(ValueError):
    """Raised when no provider serves the requested tool."""

    def __init__(self, tool: str):
        self.tool = tool
        super().__init__(f"Unknown AI tool: {tool}")


@dataclass
class ProviderStatus:
    provider: str
    model: str
    configured: bool
    available: bool


def resolve_tool(tool: str) -> tuple[str, str]:
    """Map a tool name or model id to (provider, model id).

    Raises:
        UnknownToolError: If no provider matches
    """
    if tool in TOOL_CONFIG:
        return TOOL_CONFIG[tool]

    model_id = DISPLAY_NAME_MAPPING.get(tool, tool)
    provider = provider_for_model(model_id)
    if provider is None:
        raise UnknownToolError(tool)
    return provider, model_id


def build_attachment_context(attachment_ids: list[str]) -> str:
    """Attachment text appended to the prompt, one block per document."""
    blocks = []
    for attachment in get_attachments_by_ids(attachment_ids):
        text = attachment.extracted_text or "[No text content available]"
        blocks.append(f"\n\n[Document Attachment: {attachment.file_name}]\n{text}")
    return "".join(blocks)


def check_attachments(attachment_ids: list[str], user_id: str) -> list[AttachmentRecord]:
    """Attachments the user may send: their own uploads not yet on a chat.

    Raises:
        ValueError: If an attachment is missing or was already sent
        PermissionDeniedError: If an attachment belongs to someone else
    """
    attachments = get_attachments_by_ids(attachment_ids)
    missing = set(attachment_ids) - {a.attachment_id for a in attachments}
    if missing:
        raise ValueError(f"Attachment not found: {', '.join(sorted(missing))}")

    for attachment in attachments:
        require(
            attachment.user_id == user_id,
            "You can only send attachments you uploaded",
        )
        if attachment.chat_id is not None:
            raise ValueError(f"Attachment already sent: {attachment.file_name}")
    return attachments


def send_chat(
    user_id: str,
    project_id: str,
    prompt: str,
    tool: str | None = None,
    attachment_ids: list[str] | None = None,
) -> ChatRecord:
    """Send a prompt to the selected model and store the exchange.

    Earlier chats of the same user in the project are sent as context,
    trimmed to fit the model's context window.

    Raises:
        ProjectNotFoundError: If project_id doesn't exist
        PermissionDeniedError: If the project or an attachment belongs to
            someone else
        ValueError: If there is neither a prompt nor an attachment, or an
            attachment is missing or already sent
        UnknownToolError: If the tool has no provider
        LLMError / RetryExhaustedError: If the provider call fails
    """
    attachment_ids = list(dict.fromkeys(attachment_ids or []))
    tool = tool or load_app_config().hub.default_model

    project = get_project_by_id(project_id)
    if project is None:
        raise ProjectNotFoundError(project_id)
    require(
        project.created_by == user_id,
        "Only the project owner can send AI messages in this project",
    )
    attachments = check_attachments(attachment_ids, user_id)

    final_prompt = prompt.strip()
    if not final_prompt and not attachment_ids:
        raise ValueError("Prompt is required")

    attachments_text = build_attachment_context(attachment_ids)
    if not final_prompt:
        names = ", ".join(a.file_name for a in attachments)
        final_prompt = (
            f'I\'ve uploaded a document "{names}". '
            "Please analyze its content and provide insights."
        )

    provider, model_id = resolve_tool(tool)

    user_chats = [c for c in get_project_chats(project_id) if c.user_id == user_id]
    history = get_smart_conversation_history(user_chats, tool, final_prompt, attachments_text)
    summary = get_history_summary(user_chats, tool, final_prompt, attachments_text)
    logger.info(
        "chat.context_selected",
        tool=tool,
        included=summary.messages_included,
        total=summary.total_messages,
        estimated_tokens=summary.estimated_tokens,
    )

    messages = [Message(role="system", content=SYSTEM_PROMPT)]
    for chat in history:
        messages.append(Message(role="user", content=chat.prompt))
        messages.append(Message(role="assistant", content=chat.response))
    messages.append(Message(role="user", content=final_prompt + attachments_text))

    client = LLMClient(LLMConfig.from_app_config(provider, model_id))
    # GPT-5 models only accept the default temperature
    temperature = 1.0 if model_id.startswith("gpt-5") else None

    response = with_retry(
        lambda: client.chat(messages, temperature=temperature),
        get_model_retry_config(model_id),
    )

    chat = create_chat(
        user_id=user_id,
        prompt=final_prompt,
        response=response.content,
        tool_used=tool,
        project_id=project_id,
        course_id=project.course_id,
        input_tokens=response.prompt_tokens,
        output_tokens=response.completion_tokens,
        searches=1 if provider == "perplexity" else 0,
    )
    link_attachments_to_chat(attachment_ids, chat.chat_id, user_id)

    logger.info(
        "chat.sent",
        chat_id=chat.chat_id,
        tool=tool,
        provider=provider,
        tokens=response.total_tokens,
        latency_ms=response.latency_ms,
    )
    return chat


def check_providers() -> list[ProviderStatus]:
    """Report, per provider, whether a key is configured and the API answers."""
    app_config = load_app_config()
    statuses = []
    for provider in PROVIDERS:
        provider_config = app_config.providers.get(provider)
        if provider_config is None:
            continue

        configured = bool(provider_config.get_api_key())
        available = False
        if configured:
            client = LLMClient(LLMConfig.from_app_config(provider))
            available = client.is_available()

        statuses.append(
            ProviderStatus(
                provider=provider,
                model=provider_config.default_model,
                configured=configured,
                available=available,
            )
        )
        logger.info(
            "chat.provider_checked",
            provider=provider,
            configured=configured,
            available=available,
        )
    return statuses
