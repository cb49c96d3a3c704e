# src/attractor/plugins/llm/__init__.py
"""LLM backends and prompt templating."""

from attractor.plugins.llm.base import (
    LLMBackend,
    LLMClientError,
    LLMRequest,
    LLMResponse,
    NetworkError,
    RateLimitError,
    ServerError,
)
from attractor.plugins.llm.openrouter import OpenRouterBackend
from attractor.plugins.llm.simulated import SimulatedLLMBackend
from attractor.plugins.llm.templates import PromptTemplate, TemplateError

__all__ = [
    "LLMBackend",
    "LLMClientError",
    "LLMRequest",
    "LLMResponse",
    "NetworkError",
    "OpenRouterBackend",
    "PromptTemplate",
    "RateLimitError",
    "ServerError",
    "SimulatedLLMBackend",
    "TemplateError",
]
