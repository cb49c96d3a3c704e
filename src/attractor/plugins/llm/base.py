# src/attractor/plugins/llm/base.py
"""LLM backend protocol, request/response types and client errors."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class LLMRequest:
    """One completion request issued by an LLM node.

    Attributes:
        node_id: Node issuing the request.
        prompt: Fully rendered user prompt.
        model: Model id (node, stylesheet, or settings default).
        provider: Provider name when the node or stylesheet sets one.
        reasoning_effort: Provider hint, passed through when set.
        timeout_seconds: Per-request timeout, None for the backend default.
        attrs: Raw node attributes, for backend-specific extras.
    """

    node_id: str
    prompt: str
    model: str
    provider: str | None = None
    reasoning_effort: str | None = None
    timeout_seconds: float | None = None
    attrs: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class LLMResponse:
    """Response from an LLM call.

    Attributes:
        content: The generated text response
        model: The model that processed the request
        usage: Token counts (prompt_tokens, completion_tokens)
        outcome: Outcome the backend asks the node to record
            (``success`` unless a simulated failure was requested)
    """

    content: str
    model: str
    usage: Mapping[str, int] = field(default_factory=dict)
    outcome: str = "success"

    @property
    def total_tokens(self) -> int:
        return self.usage.get("prompt_tokens", 0) + self.usage.get("completion_tokens", 0)


class LLMClientError(Exception):
    """Error from an LLM backend.

    Attributes:
        retryable: Whether the error is likely transient
    """

    def __init__(self, message: str, *, retryable: bool = False) -> None:
        super().__init__(message)
        self.retryable = retryable


class RateLimitError(LLMClientError):
    """Provider returned HTTP 429."""

    def __init__(self, message: str) -> None:
        super().__init__(message, retryable=True)


class NetworkError(LLMClientError):
    """Connection failure or timeout talking to the provider."""

    def __init__(self, message: str) -> None:
        super().__init__(message, retryable=True)


class ServerError(LLMClientError):
    """Provider returned a 5xx status."""

    def __init__(self, message: str) -> None:
        super().__init__(message, retryable=True)


@runtime_checkable
class LLMBackend(Protocol):
    """A completion backend.

    Implementations are registered through the ``attractor_llm_backend``
    hook and selected by ``name``.
    """

    name: str

    def complete(self, request: LLMRequest) -> LLMResponse:
        """Run one completion.

        Raises:
            LLMClientError: On provider or transport failures.
        """
        ...

    def close(self) -> None: ...
