"""Chat analysis over the loaded sessions via the Anthropic Messages API."""
from __future__ import annotations

import json
import logging
from typing import Any, Optional

import anthropic

from csdash import config
from csdash.models import ChatResponse

logger = logging.getLogger("csdash.assistant")

CONTEXT_SESSION_LIMIT = 3
FOLLOW_UP_SUGGESTIONS = [
    "Analyze sentiment trends across all sessions",
    "What are the most common customer issues?",
    "How can we improve resolution times?",
    "Show me escalation patterns",
]
_PROMPT_HEAD = (
    "Analyze customer service data concisely. Your response to the user should be 3-5 "
    "sentences max. Format your response in sentences. Sound more human, as if you are "
    "having an actual conversation with someone."
)


class AssistantUnavailable(RuntimeError):
    """No API key is configured for the chat assistant."""


class AssistantError(RuntimeError):
    """The upstream model call failed or returned no text."""


def build_system_prompt(sessions: Optional[list[dict[str, Any]]]) -> str:
    if not sessions:
        return _PROMPT_HEAD
    shown = sessions[:CONTEXT_SESSION_LIMIT]
    suffix = f" (showing first {CONTEXT_SESSION_LIMIT} sessions)" if len(sessions) > CONTEXT_SESSION_LIMIT else ""
    return (
        f"{_PROMPT_HEAD}\n\n"
        "Current session data context:\n"
        f"- Total sessions: {len(sessions)}\n"
        f"- Session details: {json.dumps(shown, default=str)}{suffix}"
    )


def _default_client() -> anthropic.AsyncAnthropic:
    if not config.ANTHROPIC_API_KEY:
        raise AssistantUnavailable("ANTHROPIC_API_KEY is not configured")
    return anthropic.AsyncAnthropic(api_key=config.ANTHROPIC_API_KEY)


async def analyze(
    message: str,
    sessions: Optional[list[dict[str, Any]]] = None,
    *,
    client: Any | None = None,
) -> ChatResponse:
    llm = client or _default_client()
    try:
        response = await llm.messages.create(
            model=config.ANTHROPIC_MODEL,
            max_tokens=config.ANTHROPIC_MAX_TOKENS,
            temperature=config.ANTHROPIC_TEMPERATURE,
            system=build_system_prompt(sessions),
            messages=[{"role": "user", "content": message}],
        )
    except anthropic.APIError as exc:
        logger.warning("Anthropic API call failed: %s", exc)
        raise AssistantError("Failed to get response from Claude") from exc

    texts = [block.text for block in response.content if getattr(block, "type", "") == "text"]
    if not texts:
        raise AssistantError("Unexpected response format")
    return ChatResponse(content="".join(texts), suggestions=list(FOLLOW_UP_SUGGESTIONS))
