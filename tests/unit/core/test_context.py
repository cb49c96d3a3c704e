# tests/unit/core/test_context.py
"""Tests for ContextStore and fidelity projection."""

from hypothesis import given
from hypothesis import strategies as st

from attractor.contracts import FidelityMode
from attractor.core.context import ContextStore
from attractor.core.dag import load_graph
from attractor.core.dag.models import FidelityPolicy
from attractor.core.dag.parser import parse_fidelity


class TestContextStore:
    def test_values_are_stored_as_strings(self) -> None:
        store = ContextStore()
        store.set("flag", True)
        store.set("count", 3)
        store.set("nothing", None)

        assert store.snapshot() == {"flag": "true", "count": "3", "nothing": ""}

    def test_for_graph_seeds_graph_keys(self) -> None:
        graph = load_graph('digraph Release { graph [goal="ship", owner="ops"] a [prompt=x] }')

        store = ContextStore.for_graph(graph)

        assert store.get("graph.name") == "Release"
        assert store.get("graph.goal") == "ship"
        assert store.get("graph.owner") == "ops"

    def test_snapshot_is_a_copy(self) -> None:
        store = ContextStore({"a": "1"})
        snapshot = store.snapshot()
        snapshot["a"] = "changed"

        assert store.get("a") == "1"

    def test_changed_since(self) -> None:
        store = ContextStore({"a": "1", "b": "2"})
        base = store.snapshot()
        store.update({"b": "3", "c": "4", "a": "1"})

        assert store.changed_since(base) == {"b": "3", "c": "4"}

    def test_retain_graph_keys(self) -> None:
        store = ContextStore({"graph.goal": "g", "plan.output": "long", "last_stage": "plan"})

        fresh = store.retain_graph_keys()

        assert fresh.snapshot() == {"graph.goal": "g"}
        assert "plan.output" in store

    def test_branch_store_does_not_alias_its_source(self) -> None:
        source = {"a": "1"}
        branch = ContextStore(source)
        branch.set("a", "2")

        assert source == {"a": "1"}
        assert len(branch) == 1


class TestProjection:
    """Lossy views never change the stored values."""

    def test_full_fidelity_returns_everything(self) -> None:
        store = ContextStore({"k": "x" * 50})

        assert store.project(FidelityPolicy(FidelityMode.FULL), 10) == {"k": "x" * 50}
        assert store.project(None, 10) == {"k": "x" * 50}

    def test_truncate_uses_explicit_limit(self) -> None:
        store = ContextStore({"k": "abcdefghij"})

        assert store.project(FidelityPolicy(FidelityMode.TRUNCATE, limit=4), 8) == {"k": "abcd"}

    def test_truncate_falls_back_to_default_limit(self) -> None:
        store = ContextStore({"k": "abcdefghij"})

        assert store.project(FidelityPolicy(FidelityMode.TRUNCATE), 8) == {"k": "abcdefgh"}

    def test_store_keeps_full_values(self) -> None:
        store = ContextStore({"k": "abcdefghij"})
        store.project(FidelityPolicy(FidelityMode.TRUNCATE, limit=2), 2)

        assert store.get("k") == "abcdefghij"

    def test_parse_fidelity_forms(self) -> None:
        assert parse_fidelity("full") == FidelityPolicy(FidelityMode.FULL)
        assert parse_fidelity("truncate:12") == FidelityPolicy(FidelityMode.TRUNCATE, 12)
        assert parse_fidelity("TRUNCATE", "7") == FidelityPolicy(FidelityMode.TRUNCATE, 7)

    @given(
        values=st.dictionaries(st.text(min_size=1, max_size=8), st.text(max_size=40), max_size=6),
        limit=st.integers(min_value=1, max_value=30),
    )
    def test_truncated_view_is_prefix_of_each_value(self, values: dict[str, str], limit: int) -> None:
        store = ContextStore(values)

        view = store.project(FidelityPolicy(FidelityMode.TRUNCATE, limit=limit), 500)

        assert view.keys() == values.keys()
        for key, value in view.items():
            assert len(value) <= limit
            assert values[key].startswith(value)
