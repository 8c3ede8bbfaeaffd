import pytest

from lumina_edit.adapters import build_provider, request_edit, request_suggestions
from lumina_edit.config import Settings
from lumina_edit.errors import (
    EMPTY_RESULT_MESSAGE,
    UPSTREAM_FALLBACK_MESSAGE,
    ConfigurationError,
    EmptyResultError,
    UpstreamError,
)


class _ApiError(Exception):
    def __init__(self, message):
        super().__init__(f"400 INVALID_ARGUMENT. {message}")
        self.message = message


class TestRequestEdit:
    @pytest.mark.asyncio
    async def test_returns_provider_image(self, provider, image_a, image_b):
        assert await request_edit(provider, image_a, "make it sepia") == image_b
        assert provider.edit_calls == [(image_a, "make it sepia")]

    @pytest.mark.asyncio
    async def test_missing_credential(self, image_a):
        with pytest.raises(ConfigurationError) as excinfo:
            await request_edit(None, image_a, "make it sepia")
        assert "API Key" in excinfo.value.message

    @pytest.mark.asyncio
    async def test_no_image_in_response(self, provider, image_a):
        provider.edit_result = None
        with pytest.raises(EmptyResultError) as excinfo:
            await request_edit(provider, image_a, "do something impossible")
        assert excinfo.value.message == EMPTY_RESULT_MESSAGE

    @pytest.mark.asyncio
    async def test_gateway_message_is_preserved(self, provider, image_a):
        provider.edit_error = _ApiError("Image is too large")
        with pytest.raises(UpstreamError) as excinfo:
            await request_edit(provider, image_a, "sepia")
        assert excinfo.value.message == "Image is too large"

    @pytest.mark.asyncio
    async def test_transport_error_is_wrapped(self, provider, image_a):
        provider.edit_error = ConnectionError("connection reset")
        with pytest.raises(UpstreamError) as excinfo:
            await request_edit(provider, image_a, "sepia")
        assert excinfo.value.message == "connection reset"
        assert isinstance(excinfo.value.__cause__, ConnectionError)

    @pytest.mark.asyncio
    async def test_blank_error_gets_fallback_message(self, provider, image_a):
        provider.edit_error = RuntimeError()
        with pytest.raises(UpstreamError) as excinfo:
            await request_edit(provider, image_a, "sepia")
        assert excinfo.value.message == UPSTREAM_FALLBACK_MESSAGE

    @pytest.mark.asyncio
    async def test_single_attempt(self, provider, image_a):
        provider.edit_error = ConnectionError("down")
        with pytest.raises(UpstreamError):
            await request_edit(provider, image_a, "sepia")
        assert len(provider.edit_calls) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("image,instruction", [("", "sepia"), ("data:image/png;base64,QQ==", "   ")])
    async def test_invalid_inputs(self, provider, image, instruction):
        with pytest.raises(ValueError):
            await request_edit(provider, image, instruction)
        assert provider.edit_calls == []


class TestRequestSuggestions:
    @pytest.mark.asyncio
    async def test_returns_suggestions(self, provider, image_a):
        suggestions = await request_suggestions(provider, image_a)
        assert len(suggestions) == 6
        assert provider.suggest_calls == [(image_a, 6)]

    @pytest.mark.asyncio
    async def test_truncates(self, provider, image_a):
        assert len(await request_suggestions(provider, image_a, count=3)) == 3

    @pytest.mark.asyncio
    async def test_no_credential_degrades_to_empty(self, image_a):
        assert await request_suggestions(None, image_a) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [ValueError("bad schema"), ConnectionError("down"), RuntimeError("boom")])
    async def test_any_failure_degrades_to_empty(self, provider, image_a, error):
        provider.suggest_error = error
        assert await request_suggestions(provider, image_a) == []


def test_build_provider_without_key_is_none():
    assert build_provider(Settings(gemini_api_key=None)) is None
