"""OpenRouter chat-completions client — the shipped ``TextGenerator``.

Thin ``httpx.AsyncClient`` wrapper.  It only moves text: prompt in, reply
text out.  Parsing and validation of the reply belong to the caller.

Usage::

    async with OpenRouterGenerator(api_key="sk-...") as generator:
        text = await generator.generate(
            [{"role": "user", "content": prompt}], temperature=0.8,
        )
"""

from __future__ import annotations

import logging
import os
from typing import Any, Optional

import httpx

from survey_engine.errors import ModelCallError
from survey_engine.interfaces import ChatMessage, ReasoningEffort, TextGenerator

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_MODEL = "google/gemini-3-flash-preview"
DEFAULT_TIMEOUT = 120.0

# Truncation for request/response bodies in debug logs.
_LOG_PREVIEW_CHARS = 500


class OpenRouterGenerator(TextGenerator):
    """Calls ``POST {base_url}/chat/completions``.

    Args:
        api_key: bearer token for the endpoint.
        model: model slug sent in every request.
        base_url: API root; the path ``/chat/completions`` is appended.
        site_url: sent as ``HTTP-Referer`` for attribution.
        app_title: sent as ``X-Title``.
        timeout: per-request timeout in seconds.
        client: optional pre-built client (tests pass one with a mock
            transport); when given, the generator does not close it.
    """

    def __init__(
        self,
        api_key: str,
        *,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        site_url: str = "http://localhost:8000",
        app_title: str = "Adaptive Survey",
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._model = model
        self._url = base_url.rstrip("/") + "/chat/completions"
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": site_url,
            "X-Title": app_title,
        }
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_env(cls) -> OpenRouterGenerator:
        """Build from ``OPENROUTER_*`` / ``SITE_URL`` / ``APP_TITLE`` env vars."""
        return cls(
            api_key=os.getenv("OPENROUTER_API_KEY", ""),
            model=os.getenv("OPENROUTER_MODEL", DEFAULT_MODEL),
            base_url=os.getenv("OPENROUTER_BASE_URL", DEFAULT_BASE_URL),
            site_url=os.getenv("SITE_URL", "http://localhost:8000"),
            app_title=os.getenv("APP_TITLE", "Adaptive Survey"),
            timeout=float(os.getenv("MODEL_TIMEOUT_SECONDS", str(DEFAULT_TIMEOUT))),
        )

    async def __aenter__(self) -> OpenRouterGenerator:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def generate(
        self,
        messages: list[ChatMessage],
        *,
        temperature: float,
        max_tokens: Optional[int] = None,
        reasoning_effort: Optional[ReasoningEffort] = None,
    ) -> str:
        payload: dict[str, Any] = {
            "model": self._model,
            "messages": messages,
            "temperature": temperature,
        }
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        if reasoning_effort is not None:
            payload["reasoning"] = {"effort": reasoning_effort}

        logger.debug(
            "Model request: model=%s temperature=%s max_tokens=%s reasoning=%s",
            self._model, temperature, max_tokens, reasoning_effort,
        )

        try:
            resp = await self._client.post(self._url, json=payload, headers=self._headers)
        except httpx.HTTPError as exc:
            raise ModelCallError(f"model request failed: {exc}") from exc

        if resp.status_code >= 400:
            logger.error(
                "Model endpoint returned %d: %s",
                resp.status_code, resp.text[:_LOG_PREVIEW_CHARS],
            )
            raise ModelCallError(
                f"model endpoint returned HTTP {resp.status_code}",
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise ModelCallError("model endpoint returned non-JSON body") from exc

        choices = data.get("choices") if isinstance(data, dict) else None
        if not choices:
            raise ModelCallError("model response carried no choices")
        content = (choices[0].get("message") or {}).get("content") or ""

        logger.debug("Model response: %s", content[:_LOG_PREVIEW_CHARS])
        return content
