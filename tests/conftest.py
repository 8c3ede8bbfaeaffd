"""Shared fixtures: tiny real images and a scriptable gateway provider."""

from __future__ import annotations

import asyncio
import io

import pytest
from PIL import Image

from lumina_edit.images import to_data_url
from lumina_edit.providers.base import StyleSuggestion


def make_image_bytes(color: str = "red", fmt: str = "PNG", size: tuple[int, int] = (8, 8)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format=fmt)
    return buf.getvalue()


def make_suggestions(n: int = 6) -> list[StyleSuggestion]:
    return [
        StyleSuggestion(
            id=f"style-{i}",
            label=f"Style {i}",
            icon="fa-film",
            prompt=f"Apply style number {i}",
            sample_outcome=f"Looks like style {i}",
        )
        for i in range(n)
    ]


class FakeProvider:
    """Stands in for GeminiProvider. Set attributes to script its behaviour."""

    name = "fake"

    def __init__(self) -> None:
        self.edit_result: str | None = to_data_url(make_image_bytes("blue"))
        self.edit_error: Exception | None = None
        self.suggestions: list[StyleSuggestion] = make_suggestions()
        self.suggest_error: Exception | None = None
        # When set, edit_image blocks until the event fires.
        self.gate: asyncio.Event | None = None
        self.edit_calls: list[tuple[str, str]] = []
        self.suggest_calls: list[tuple[str, int]] = []

    async def edit_image(self, image: str, instruction: str) -> str | None:
        self.edit_calls.append((image, instruction))
        if self.gate is not None:
            await self.gate.wait()
        if self.edit_error is not None:
            raise self.edit_error
        return self.edit_result

    async def suggest_styles(self, image: str, count: int) -> list[StyleSuggestion]:
        self.suggest_calls.append((image, count))
        if self.suggest_error is not None:
            raise self.suggest_error
        return list(self.suggestions)


@pytest.fixture
def image_a() -> str:
    return to_data_url(make_image_bytes("red"))


@pytest.fixture
def image_b() -> str:
    return to_data_url(make_image_bytes("blue"))


@pytest.fixture
def provider(image_b) -> FakeProvider:
    fake = FakeProvider()
    fake.edit_result = image_b
    return fake
