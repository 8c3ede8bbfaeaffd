from __future__ import annotations

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PROMPT = (
    "Without changing the face. High-angle POV, medium close-up of a young South Asian woman with long "
    "messy dark hair, reclining on floral bedding. Intimate calm gaze, dewy makeup with pink blush and "
    "highlighter. Wearing pastel pink chiffon ethnic wear with shimmering gold Zari work, jhumkas, and "
    "bangles. Hard on-camera flash lighting, deep vignette, dark bedroom background with wooden headboard. "
    "Lo-fi grainy CCD texture nostalgic mood."
)


class Settings(BaseSettings):
    # Loads keys from process env, and also from a local .env file.
    model_config = SettingsConfigDict(env_prefix="", extra="ignore", env_file=".env", env_file_encoding="utf-8")

    # Key (API_KEY is accepted too, that is what the browser build reads)
    gemini_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("gemini_api_key", "api_key"),
    )

    # Models
    gemini_edit_model: str = "gemini-2.5-flash-image"
    gemini_suggest_model: str = "gemini-3-flash-preview"

    # Session defaults
    suggestion_count: int = 6
    default_prompt: str = DEFAULT_PROMPT

    # Sessions untouched for this long are dropped (0 keeps them until deleted)
    session_idle_seconds: int = 3600

    log_level: str = "INFO"


settings = Settings()
