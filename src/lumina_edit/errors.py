from __future__ import annotations


class EditError(Exception):
    """Base class for failures surfaced by the edit adapter."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(EditError):
    """No gateway credential is configured."""


class EmptyResultError(EditError):
    """The gateway answered but returned no image (refused or not actionable)."""


class UpstreamError(EditError):
    """Transport or service failure; keeps the gateway's message when it has one."""


MISSING_KEY_MESSAGE = "API Key is missing. Please ensure GEMINI_API_KEY is configured correctly."
EMPTY_RESULT_MESSAGE = "The model did not return an edited image. Try a different prompt."
UPSTREAM_FALLBACK_MESSAGE = "Failed to process image transformation."
