# src/attractor/core/context.py
"""Run context: the string-keyed key/value store shared by stages.

The canonical store always keeps full values. Lossy fidelity policies
only shape the *view* materialized for a downstream node (its
context.json and prompt), never the stored data.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import TYPE_CHECKING, Any

from attractor.contracts import context_value

if TYPE_CHECKING:
    from attractor.core.dag.models import FidelityPolicy, PipelineGraph

GRAPH_PREFIX = "graph."


class ContextStore:
    """Ordered string-to-string mapping owned by one execution path.

    Not thread-safe: parallel branches each work on their own copy and
    the coordinator merges the results.
    """

    def __init__(self, values: Mapping[str, Any] | None = None) -> None:
        self._values: dict[str, str] = {}
        if values:
            self.update(values)

    @classmethod
    def for_graph(cls, graph: PipelineGraph) -> ContextStore:
        """Fresh context seeded with ``graph.*`` keys."""
        store = cls()
        store.set("graph.name", graph.name)
        store.set("graph.goal", graph.goal)
        for key, value in graph.attrs.items():
            store.set(f"{GRAPH_PREFIX}{key}", value)
        return store

    def get(self, key: str, default: str | None = None) -> str | None:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = context_value(value)

    def update(self, values: Mapping[str, Any]) -> None:
        for key, value in values.items():
            self.set(str(key), value)

    def snapshot(self) -> dict[str, str]:
        return dict(self._values)

    def changed_since(self, base: Mapping[str, str]) -> dict[str, str]:
        """Keys whose value differs from ``base`` (including new keys)."""
        return {key: value for key, value in self._values.items() if base.get(key) != value}

    def retain_graph_keys(self) -> ContextStore:
        """Fresh context keeping only ``graph.*`` keys, as after a loop restart."""
        return ContextStore({k: v for k, v in self._values.items() if k.startswith(GRAPH_PREFIX)})

    def project(self, policy: FidelityPolicy | None, default_limit: int) -> dict[str, str]:
        """Materialize the view a downstream node sees.

        Args:
            policy: Fidelity of the traversed edge, None for full fidelity.
            default_limit: Truncation length when the policy sets none.

        Returns:
            A new dict; the store itself is unchanged.
        """
        if policy is None:
            return self.snapshot()
        return {key: policy.apply(value, default_limit) for key, value in self._values.items()}

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"ContextStore({len(self._values)} keys)"
