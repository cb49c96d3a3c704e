# src/attractor/plugins/llm/openrouter.py
"""OpenRouter (OpenAI-compatible chat completions) backend over httpx."""

from __future__ import annotations

import os
from typing import Any

import httpx

from attractor.core.config import LLMSettings
from attractor.core.logging import get_logger
from attractor.plugins.llm.base import (
    LLMClientError,
    LLMRequest,
    LLMResponse,
    NetworkError,
    RateLimitError,
    ServerError,
)

logger = get_logger(__name__)


class OpenRouterBackend:
    """Live backend calling ``POST {base_url}/chat/completions``.

    The API key is read from the environment variable named by
    ``settings.api_key_env`` when the first request is made.
    """

    name = "openrouter"

    def __init__(self, settings: LLMSettings, *, transport: httpx.BaseTransport | None = None) -> None:
        self._settings = settings
        self._transport = transport
        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            api_key = os.environ.get(self._settings.api_key_env)
            if not api_key:
                raise LLMClientError(
                    f"{self._settings.api_key_env} is not set; export it or run with --simulate",
                )
            self._client = httpx.Client(
                base_url=self._settings.base_url,
                headers={"Authorization": f"Bearer {api_key}"},
                timeout=self._settings.timeout_seconds,
                transport=self._transport,
            )
        return self._client

    def complete(self, request: LLMRequest) -> LLMResponse:
        body: dict[str, Any] = {
            "model": request.model,
            "messages": [{"role": "user", "content": request.prompt}],
        }
        if request.reasoning_effort:
            body["reasoning"] = {"effort": request.reasoning_effort}
        if request.provider:
            body["provider"] = {"order": [request.provider]}

        client = self._get_client()
        timeout = request.timeout_seconds or self._settings.timeout_seconds
        try:
            response = client.post("/chat/completions", json=body, timeout=timeout)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            if status_code == 429:
                raise RateLimitError(f"Rate limited: {e}") from e
            if status_code >= 500:
                raise ServerError(f"Server error ({status_code}): {e}") from e
            raise LLMClientError(f"API call failed ({status_code}): {e}") from e
        except httpx.RequestError as e:
            raise NetworkError(f"Network error: {e}") from e

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise LLMClientError(f"Malformed response: {type(e).__name__}: {e}") from e

        # OpenRouter can return {"usage": null} or omit usage entirely.
        usage = data.get("usage") or {}
        logger.debug("LLM call completed", node_id=request.node_id, model=data.get("model", request.model))
        return LLMResponse(
            content=content or "",
            model=data.get("model", request.model),
            usage={k: int(v) for k, v in usage.items() if isinstance(v, int)},
        )

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
