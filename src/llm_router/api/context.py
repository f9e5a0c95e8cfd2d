"""Build routing contexts from OpenAI/Anthropic-style request bodies."""

from collections.abc import Mapping
from typing import Any

from llm_router.engines.base import RoutingContext, UserPreferences

AUTO_MODEL = "auto"


def _message_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        # Multi-modal content: keep the text parts only
        return "\n".join(
            part.get("text", "")
            for part in content
            if isinstance(part, dict) and part.get("type") == "text"
        )
    return ""


def extract_prompt(body: Any) -> str:
    """Get the prompt from ``prompt`` or the last chat message."""
    if not isinstance(body, Mapping):
        return ""
    prompt = body.get("prompt")
    if isinstance(prompt, str) and prompt:
        return prompt
    messages = body.get("messages")
    if isinstance(messages, list) and messages:
        last = messages[-1]
        if isinstance(last, Mapping):
            return _message_text(last.get("content"))
    return ""


def build_context(
    body: Mapping[str, Any],
    headers: Mapping[str, str] | None = None,
    preferences: UserPreferences | None = None,
) -> RoutingContext:
    """
    Build a routing context from a request body.

    Args:
        body: Parsed JSON request body
        headers: Request headers (user agent and forwarded IP are kept)
        preferences: Optional user routing preferences

    Returns:
        RoutingContext for the request
    """
    headers = headers or {}

    requested_model = body.get("model")
    if not isinstance(requested_model, str) or requested_model in ("", AUTO_MODEL):
        requested_model = None

    history: list[str] = []
    messages = body.get("messages")
    if isinstance(messages, list):
        for message in messages[:-1]:
            if isinstance(message, Mapping) and isinstance(message.get("content"), str):
                history.append(message["content"])

    return RoutingContext(
        prompt=extract_prompt(body),
        requested_model=requested_model,
        conversation_history=tuple(history),
        preferences=preferences,
        metadata={
            "user_agent": headers.get("user-agent"),
            "ip": headers.get("x-forwarded-for", "unknown"),
        },
    )
