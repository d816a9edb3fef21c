"""
External text-generation client.

The engine treats the language model as a black box: a prompt goes in,
free text comes out. All structure is imposed by the callers' parsing.
One request per call; there is no retry loop, and the configured timeout
bounds how long a caller can be held up.
"""
from __future__ import annotations

from typing import Optional, Protocol

import httpx
import structlog

from retention_engine.core.config import Settings

logger = structlog.get_logger()


class TextGenerationError(Exception):
    """The external capability failed or returned no usable text."""


class TextGenerator(Protocol):
    async def generate(self, prompt: str) -> str:
        ...


class GeminiTextGenerator:
    """
    Calls the Gemini `generateContent` REST endpoint.

    POST {base_url}/models/{model}:generateContent?key=...
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str,
        timeout_seconds: float,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings, client: Optional[httpx.AsyncClient] = None) -> "GeminiTextGenerator":
        return cls(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            base_url=settings.gemini_base_url,
            timeout_seconds=settings.llm_timeout_seconds,
            client=client,
        )

    async def generate(self, prompt: str) -> str:
        if not self.api_key:
            raise TextGenerationError("Text generation is not configured (missing API key)")

        url = f"{self.base_url}/models/{self.model}:generateContent"
        body = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}

        try:
            if self._client is not None:
                resp = await self._client.post(
                    url, params={"key": self.api_key}, json=body, timeout=self.timeout_seconds,
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                    resp = await client.post(url, params={"key": self.api_key}, json=body)
            resp.raise_for_status()
            payload = resp.json()
        except httpx.HTTPError as e:
            logger.warning("text_generation_request_failed", model=self.model, error=str(e))
            raise TextGenerationError(f"Text generation request failed: {e}") from e
        except ValueError as e:
            raise TextGenerationError("Text generation returned a non-JSON body") from e

        return _candidate_text(payload)


def _candidate_text(payload: dict) -> str:
    try:
        parts = payload["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError) as e:
        raise TextGenerationError("Text generation response has no candidates") from e

    text = "".join(p.get("text", "") for p in parts if isinstance(p, dict))
    if not text.strip():
        raise TextGenerationError("Text generation returned empty text")
    return text
