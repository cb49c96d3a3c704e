# src/attractor/plugins/llm/simulated.py
"""Deterministic backend used by ``--simulate``.

The response is derived from the node id and a hash of the prompt, so
re-running a graph produces identical artifacts. A node can force its
simulated outcome with ``sim.outcome`` (``success``, ``fail`` or
``partial_success``), and ``sim.response`` replaces the generated text.
"""

from __future__ import annotations

from attractor.core.canonical import stable_hash
from attractor.plugins.llm.base import LLMRequest, LLMResponse

SIMULATED_MODEL = "simulated"


class SimulatedLLMBackend:
    """Offline backend; never touches the network."""

    name = "simulated"

    def complete(self, request: LLMRequest) -> LLMResponse:
        digest = stable_hash({"node": request.node_id, "prompt": request.prompt})[:12]
        content = request.attrs.get("sim.response") or (
            f"[simulated] {request.node_id} ({request.model}) prompt#{digest}\n\n{request.prompt}"
        )
        words = len(request.prompt.split())
        return LLMResponse(
            content=content,
            model=SIMULATED_MODEL,
            usage={"prompt_tokens": words, "completion_tokens": len(content.split())},
            outcome=request.attrs.get("sim.outcome", "success"),
        )

    def close(self) -> None:
        pass
