"""
Gemini client against a mocked transport.
"""
import httpx
import pytest

from retention_engine.services.text_generation import GeminiTextGenerator, TextGenerationError

BASE_URL = "https://generativelanguage.example/v1beta"


def _generator(handler, api_key: str = "test-key") -> GeminiTextGenerator:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GeminiTextGenerator(
        api_key=api_key, model="gemini-1.5-flash", base_url=BASE_URL + "/", timeout_seconds=5, client=client,
    )


def _candidates(*texts: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": t} for t in texts]}}]}


class TestGenerate:

    async def test_returns_candidate_text(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = request.url
            return httpx.Response(200, json=_candidates("Hello ", "there"))

        text = await _generator(handler).generate("Say hi")

        assert text == "Hello there"
        assert seen["url"].path == "/v1beta/models/gemini-1.5-flash:generateContent"
        assert seen["url"].params["key"] == "test-key"

    async def test_prompt_sent_as_user_content(self):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(request.content)
            return httpx.Response(200, json=_candidates("ok"))

        await _generator(handler).generate("Tell me about Ana")
        assert b"Tell me about Ana" in bodies[0]

    async def test_http_error_raises(self):
        gen = _generator(lambda request: httpx.Response(503, text="overloaded"))
        with pytest.raises(TextGenerationError):
            await gen.generate("x")

    async def test_transport_error_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(TextGenerationError):
            await _generator(handler).generate("x")

    @pytest.mark.parametrize("payload", [
        {},
        {"candidates": []},
        _candidates("   "),
    ])
    async def test_no_usable_text_raises(self, payload):
        gen = _generator(lambda request: httpx.Response(200, json=payload))
        with pytest.raises(TextGenerationError):
            await gen.generate("x")

    async def test_non_json_body_raises(self):
        gen = _generator(lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(TextGenerationError):
            await gen.generate("x")

    async def test_missing_api_key_raises_without_request(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json=_candidates("ok"))

        with pytest.raises(TextGenerationError):
            await _generator(handler, api_key="").generate("x")
        assert calls == []
