from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class StyleSuggestion:
    id: str
    label: str
    icon: str
    prompt: str
    sample_outcome: str


class ImageEditProvider(Protocol):
    name: str

    async def edit_image(self, image: str, instruction: str) -> str | None:
        """Return the first image the model produced as a data URL, or None if it produced none."""
        ...


class StyleSuggestionProvider(Protocol):
    name: str

    async def suggest_styles(self, image: str, count: int) -> list[StyleSuggestion]: ...


class GatewayProvider(ImageEditProvider, StyleSuggestionProvider, Protocol):
    pass
