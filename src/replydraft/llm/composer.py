"""Reply draft generation via the Anthropic Messages API.

The system prompt (output-format rules) is sent with ``cache_control`` so
repeated prepare cycles reuse the cached prefix.  ``AnthropicDraftGenerator``
adapts ``compose_reply`` to the ``DraftGenerator`` protocol and maps any
failure to ``GenerationError``.
"""

from __future__ import annotations

import anthropic
import structlog
from anthropic import Anthropic

from replydraft.domain.errors import GenerationError
from replydraft.llm.client import COMPOSE_MODEL, DEFAULT_MAX_TOKENS
from replydraft.llm.models import ComposedDraft
from replydraft.llm.prompts import REPLY_DRAFT_SYSTEM_PROMPT, REPLY_DRAFT_USER_PROMPT
from replydraft.resilience.retry import resilient_api_call

logger = structlog.get_logger()


def _is_transient(exc: BaseException) -> bool:
    """Return True for connection errors, rate limits, and 5xx responses."""
    if isinstance(exc, anthropic.APIConnectionError):
        return True
    if isinstance(exc, anthropic.APIStatusError):
        return exc.status_code == 429 or exc.status_code >= 500
    return False


@resilient_api_call("anthropic_messages", retry_if=_is_transient)
def compose_reply(
    compiled_context: str,
    instructions: str,
    client: Anthropic,
    model: str = COMPOSE_MODEL,
    max_tokens: int = DEFAULT_MAX_TOKENS,
) -> ComposedDraft:
    """Generate a reply draft using the Claude API.

    Args:
        compiled_context: Thread transcript, history and knowledge rendered
            by ``compile_context``.
        instructions: The user's instructions for the reply.
        client: Configured Anthropic client instance.
        model: Model ID to use. Defaults to COMPOSE_MODEL (Sonnet).
        max_tokens: Output token limit.

    Returns:
        ComposedDraft with the raw generator output, model used, and token counts.
    """
    user_text = REPLY_DRAFT_USER_PROMPT.format(
        instructions=instructions,
        compiled_context=compiled_context,
    )

    response = client.messages.create(
        model=model,
        max_tokens=max_tokens,
        system=[
            {
                "type": "text",
                "text": REPLY_DRAFT_SYSTEM_PROMPT,
                "cache_control": {"type": "ephemeral"},
            }
        ],
        messages=[
            {
                "role": "user",
                "content": user_text,
            }
        ],
    )

    raw_text = "".join(
        block.text for block in response.content if getattr(block, "type", "") == "text"
    )

    return ComposedDraft(
        raw_text=raw_text,
        model_used=model,
        input_tokens=response.usage.input_tokens,
        output_tokens=response.usage.output_tokens,
    )


class AnthropicDraftGenerator:
    """``DraftGenerator`` backed by the Anthropic Messages API.

    Args:
        client: Configured Anthropic client instance.
        model: Model ID to use for generation.
    """

    def __init__(self, client: Anthropic, model: str = COMPOSE_MODEL) -> None:
        self._client = client
        self._model = model

    def generate_draft_text(self, compiled_context: str, instructions: str) -> str:
        try:
            composed = compose_reply(compiled_context, instructions, self._client, model=self._model)
        except anthropic.AnthropicError as exc:
            raise GenerationError(f"Draft generation failed: {exc}") from exc

        logger.info(
            "reply_draft_generated",
            model=composed.model_used,
            input_tokens=composed.input_tokens,
            output_tokens=composed.output_tokens,
            output_chars=len(composed.raw_text),
        )
        if not composed.raw_text.strip():
            raise GenerationError("Draft generation returned no text")
        return composed.raw_text
