# tests/unit/plugins/llm/test_openrouter.py
"""Tests for the OpenRouter backend over a mocked httpx transport."""

import json
from collections.abc import Callable

import httpx
import pytest

from attractor.core.config import LLMSettings
from attractor.plugins.llm import (
    LLMClientError,
    LLMRequest,
    NetworkError,
    OpenRouterBackend,
    RateLimitError,
    ServerError,
)

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture(autouse=True)
def api_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENROUTER_API_KEY", "sk-test")


def _backend(handler: Handler) -> OpenRouterBackend:
    return OpenRouterBackend(LLMSettings(), transport=httpx.MockTransport(handler))


def _request(**kwargs: object) -> LLMRequest:
    fields: dict[str, object] = {"node_id": "plan", "prompt": "Write a plan", "model": "test/model"}
    fields.update(kwargs)
    return LLMRequest(**fields)  # type: ignore[arg-type]


class TestOpenRouterBackend:
    def test_successful_completion(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={
                    "model": "test/model-v2",
                    "choices": [{"message": {"content": "the plan"}}],
                    "usage": {"prompt_tokens": 4, "completion_tokens": 2},
                },
            )

        response = _backend(handler).complete(_request(reasoning_effort="high", provider="acme"))

        assert response.content == "the plan"
        assert response.model == "test/model-v2"
        assert response.total_tokens == 6
        (request,) = seen
        assert request.url.path.endswith("/chat/completions")
        assert request.headers["Authorization"] == "Bearer sk-test"
        body = json.loads(request.content)
        assert body["messages"] == [{"role": "user", "content": "Write a plan"}]
        assert body["reasoning"] == {"effort": "high"}
        assert body["provider"] == {"order": ["acme"]}

    def test_null_usage(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"choices": [{"message": {"content": "x"}}], "usage": None})

        response = _backend(handler).complete(_request())

        assert response.total_tokens == 0
        assert response.model == "test/model"

    @pytest.mark.parametrize(
        ("status_code", "error_type", "retryable"),
        [(429, RateLimitError, True), (503, ServerError, True), (400, LLMClientError, False)],
    )
    def test_http_errors(self, status_code: int, error_type: type[LLMClientError], retryable: bool) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status_code, json={"error": "nope"})

        with pytest.raises(error_type) as exc_info:
            _backend(handler).complete(_request())

        assert exc_info.value.retryable is retryable

    def test_network_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(NetworkError, match="connection refused"):
            _backend(handler).complete(_request())

    def test_malformed_response(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"choices": []})

        with pytest.raises(LLMClientError, match="Malformed response: IndexError"):
            _backend(handler).complete(_request())

    def test_missing_api_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("OPENROUTER_API_KEY")

        with pytest.raises(LLMClientError, match="OPENROUTER_API_KEY is not set"):
            _backend(lambda request: httpx.Response(200)).complete(_request())

    def test_close_is_idempotent(self) -> None:
        backend = _backend(lambda request: httpx.Response(200, json={"choices": [{"message": {"content": "x"}}]}))
        backend.complete(_request())

        backend.close()
        backend.close()
