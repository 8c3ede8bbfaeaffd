from __future__ import annotations

import json
import logging
from typing import Any

from lumina_edit.config import settings
from lumina_edit.images import parse_data_url, to_data_url
from lumina_edit.providers.base import StyleSuggestion

logger = logging.getLogger(__name__)

SUGGESTION_FIELDS = ("id", "label", "icon", "prompt", "sampleOutcome")

SUGGESTION_TEMPLATE = (
    "You are a creative director for a photo editing app.\n"
    "Look at this photo and propose {count} diverse, currently trending style transformations for it "
    "(for example film looks, lighting moods, eras, art styles, editorial treatments).\n"
    "For each one return:\n"
    "- id: short kebab-case identifier, unique in the list\n"
    "- label: 1-3 word name shown on a chip\n"
    "- icon: a Font Awesome icon class such as fa-film or fa-sun\n"
    "- prompt: the full editing instruction to send to an image model; keep the subject's identity and face\n"
    "- sampleOutcome: one short sentence describing how the result will look\n"
    "Return exactly {count} items."
)


class GeminiProvider:
    name = "gemini"

    def __init__(self, api_key: str, client: Any | None = None) -> None:
        if client is None:
            # Imported lazily so the app can start without the dependency installed.
            from google import genai  # type: ignore

            client = genai.Client(api_key=api_key)
        self.client = client

    async def edit_image(self, image: str, instruction: str) -> str | None:
        """
        One multimodal call: the image first, then the instruction text.
        Returns the first inline image part as a data URL, or None if the model
        only answered with text (typically a refusal).
        """
        from google.genai import types  # type: ignore

        mime_type, data = parse_data_url(image)
        resp = await self.client.aio.models.generate_content(
            model=settings.gemini_edit_model,
            contents=[types.Part.from_bytes(data=data, mime_type=mime_type), instruction],
        )

        extracted = _extract_images_from_generate_content(resp)
        if not extracted:
            logger.info("gemini edit returned no image part: %s", (getattr(resp, "text", None) or "")[:200])
            return None
        img_bytes, mime = extracted[0]
        return to_data_url(img_bytes, mime or "image/png")

    async def suggest_styles(self, image: str, count: int) -> list[StyleSuggestion]:
        """
        Ask for `count` style ideas with a response schema so the output parses
        deterministically. Raises ValueError when the response does not match it.
        """
        from google.genai import types  # type: ignore

        mime_type, data = parse_data_url(image)
        resp = await self.client.aio.models.generate_content(
            model=settings.gemini_suggest_model,
            contents=[
                types.Part.from_bytes(data=data, mime_type=mime_type),
                SUGGESTION_TEMPLATE.format(count=count),
            ],
            config=types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=_suggestion_schema(types),
            ),
        )

        raw_text: str | None = getattr(resp, "text", None)
        return _parse_suggestions(raw_text)[:count]


def _suggestion_schema(types: Any) -> Any:
    string = types.Schema(type=types.Type.STRING)
    return types.Schema(
        type=types.Type.ARRAY,
        items=types.Schema(
            type=types.Type.OBJECT,
            properties={field: string for field in SUGGESTION_FIELDS},
            required=list(SUGGESTION_FIELDS),
        ),
    )


def _strip_code_fences(text: str) -> str:
    s = text.strip()
    if s.startswith("```"):
        # Remove leading fence line
        first_nl = s.find("\n")
        if first_nl != -1:
            s = s[first_nl + 1 :]
        # Remove trailing fence
        if s.rstrip().endswith("```"):
            s = s.rstrip()[:-3]
    return s.strip()


def _parse_suggestions(raw_text: str | None) -> list[StyleSuggestion]:
    if not raw_text or not raw_text.strip():
        raise ValueError("empty suggestion response")
    try:
        data = json.loads(_strip_code_fences(raw_text))
    except json.JSONDecodeError as exc:
        raise ValueError(f"suggestion response is not JSON: {exc}") from exc
    if not isinstance(data, list):
        raise ValueError("suggestion response must be a JSON array")

    out: list[StyleSuggestion] = []
    for item in data:
        if not isinstance(item, dict):
            raise ValueError("suggestion items must be objects")
        values = {field: item.get(field) for field in SUGGESTION_FIELDS}
        missing = [k for k, v in values.items() if not isinstance(v, str) or not v.strip()]
        if missing:
            raise ValueError(f"suggestion item is missing {', '.join(missing)}")
        out.append(
            StyleSuggestion(
                id=values["id"].strip(),
                label=values["label"].strip(),
                icon=values["icon"].strip(),
                prompt=values["prompt"].strip(),
                sample_outcome=values["sampleOutcome"].strip(),
            )
        )
    return out


def _extract_images_from_generate_content(resp: Any) -> list[tuple[bytes, str]]:
    out: list[tuple[bytes, str]] = []
    for cand in getattr(resp, "candidates", []) or []:
        content = getattr(cand, "content", None)
        parts = getattr(content, "parts", None) or []
        for part in parts:
            inline = getattr(part, "inline_data", None)
            if not inline:
                continue
            mime = getattr(inline, "mime_type", None) or ""
            data = getattr(inline, "data", None)
            if not data:
                continue
            if mime and not mime.startswith("image/"):
                continue
            out.append((data, mime))
    return out
