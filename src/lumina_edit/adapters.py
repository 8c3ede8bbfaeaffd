from __future__ import annotations

import logging

from lumina_edit.config import Settings, settings
from lumina_edit.errors import (
    EMPTY_RESULT_MESSAGE,
    MISSING_KEY_MESSAGE,
    UPSTREAM_FALLBACK_MESSAGE,
    ConfigurationError,
    EditError,
    EmptyResultError,
    UpstreamError,
)
from lumina_edit.providers.base import GatewayProvider, ImageEditProvider, StyleSuggestion, StyleSuggestionProvider

logger = logging.getLogger(__name__)


def build_provider(cfg: Settings = settings) -> GatewayProvider | None:
    """Build the gateway provider once at startup; None when no key is configured."""
    if not cfg.gemini_api_key:
        logger.warning("GEMINI_API_KEY is not set; gateway calls are disabled")
        return None
    from lumina_edit.providers.gemini_provider import GeminiProvider

    return GeminiProvider(api_key=cfg.gemini_api_key)


async def request_edit(provider: ImageEditProvider | None, image: str, instruction: str) -> str:
    """
    Send one edit request and return the resulting image handle.

    Raises ConfigurationError, EmptyResultError or UpstreamError. No retries.
    """
    if not image:
        raise ValueError("image is required")
    if not instruction or not instruction.strip():
        raise ValueError("instruction is required")
    if provider is None:
        raise ConfigurationError(MISSING_KEY_MESSAGE)

    try:
        result = await provider.edit_image(image, instruction)
    except EditError:
        raise
    except Exception as exc:
        logger.error("gemini edit failed: %s", exc)
        raise UpstreamError(_gateway_message(exc)) from exc

    if not result:
        raise EmptyResultError(EMPTY_RESULT_MESSAGE)
    return result


async def request_suggestions(
    provider: StyleSuggestionProvider | None,
    image: str,
    count: int | None = None,
) -> list[StyleSuggestion]:
    """
    Ask for style suggestions for a freshly loaded image.

    Never raises: any failure degrades to an empty list so that editing is
    never blocked by the suggestion call.
    """
    n = count if count is not None else settings.suggestion_count
    if provider is None:
        logger.info("skipping style suggestions: no gateway configured")
        return []
    try:
        suggestions = await provider.suggest_styles(image, n)
    except Exception as exc:
        logger.warning("style suggestion request failed: %s", exc)
        return []
    return list(suggestions or [])[:n]


def _gateway_message(exc: Exception) -> str:
    # google.genai.errors.APIError carries the service text in `.message`.
    message = getattr(exc, "message", None)
    if isinstance(message, str) and message.strip():
        return message.strip()
    text = str(exc).strip()
    return text or UPSTREAM_FALLBACK_MESSAGE
