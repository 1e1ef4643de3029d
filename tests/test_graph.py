"""Tests for stategraph.graph — the graph builder."""

import pytest

from stategraph.errors import ConfigurationError
from stategraph.graph import StateGraph
from stategraph.types import Identification


def _graph(*identifications) -> StateGraph:
    graph = StateGraph()
    for identification in identifications:
        graph.register_state(identification)
    return graph


# ── States ─────────────────────────────────────────────────────────────────────

class TestStates:
    def test_register_state(self):
        graph = _graph("a")
        assert "a" in graph
        assert graph.get_state("a").identification == "a"
        assert len(graph) == 1

    def test_register_state_with_hooks(self):
        hook = lambda s: None  # noqa: E731
        graph = StateGraph()
        graph.register_state("a", entry_action=hook, do_action=hook, exit_action=hook)
        state = graph.get_state("a")
        assert state.entry_action is hook
        assert state.do_action is hook
        assert state.exit_action is hook

    def test_register_overwrites(self):
        graph = _graph("a")
        first = graph.get_state("a")
        graph.register_state("a")
        assert graph.get_state("a") is not first
        assert len(graph) == 1

    def test_deregister_state(self):
        graph = _graph("a", "b")
        graph.deregister_state("a")
        assert not graph.has_state("a")
        assert graph.has_state("b")

    def test_deregister_unknown_state_is_ignored(self):
        graph = _graph("a")
        graph.deregister_state("zzz")
        assert len(graph) == 1

    def test_deregister_does_not_cascade(self):
        graph = _graph("a", "b")
        graph.register_transition("a", "b")
        graph.deregister_state("b")
        assert len(graph.get_transitions()["a"]) == 1

    def test_override_state_replaces_hooks(self):
        graph = StateGraph()
        graph.register_state("a", do_action=lambda s: None)
        graph.override_state("a")
        assert graph.get_state("a").do_action is None


# ── Registering transitions ────────────────────────────────────────────────────

class TestRegisterTransition:
    def test_entry_transition_keyed_by_initial(self):
        graph = _graph("a")
        t = graph.register_transition(destination="a")
        assert graph.get_transitions()[Identification.INITIAL] == [t]
        assert t.source is None

    def test_transition_appended_in_order(self):
        graph = _graph("a", "b", "c")
        first = graph.register_transition("a", "b")
        second = graph.register_transition("a", "c")
        assert graph.get_transitions()["a"] == [first, second]

    def test_transition_references_states(self):
        graph = _graph("a", "b")
        t = graph.register_transition("a", "b")
        assert t.source is graph.get_state("a")
        assert t.destination is graph.get_state("b")

    def test_missing_destination_raises(self):
        graph = _graph("a")
        with pytest.raises(ConfigurationError, match="Destination"):
            graph.register_transition("a")

    def test_unregistered_source_raises(self):
        graph = _graph("b")
        with pytest.raises(ConfigurationError, match="unregistered source"):
            graph.register_transition("a", "b")

    def test_unregistered_destination_raises(self):
        graph = _graph("a")
        with pytest.raises(ConfigurationError, match="unregistered destination"):
            graph.register_transition("a", "b")

    def test_configuration_error_is_value_error(self):
        graph = StateGraph()
        with pytest.raises(ValueError):
            graph.register_transition(destination="nowhere")

    def test_failed_registration_leaves_graph_untouched(self):
        graph = _graph("a")
        with pytest.raises(ConfigurationError):
            graph.register_transition("a", "b")
        assert graph.get_transitions() == {}


# ── Removing transitions ───────────────────────────────────────────────────────

class TestDeregisterTransition:
    def test_removes_all_matching(self):
        graph = _graph("a", "b", "c")
        graph.register_transition("a", "b")
        graph.register_transition("a", "b", condition=lambda t: True)
        keep = graph.register_transition("a", "c")
        assert graph.deregister_transition("a", "b") == 2
        assert graph.get_transitions()["a"] == [keep]

    def test_empty_list_removed(self):
        graph = _graph("a", "b")
        graph.register_transition("a", "b")
        graph.deregister_transition("a", "b")
        assert "a" not in graph.get_transitions()

    def test_entry_transition_removed(self):
        graph = _graph("a")
        graph.register_transition(destination="a")
        graph.deregister_transition(destination="a")
        assert Identification.INITIAL not in graph.get_transitions()

    def test_no_list_is_noop(self):
        graph = _graph("a", "b")
        assert graph.deregister_transition("a", "b") == 0

    def test_unregistered_source_raises(self):
        graph = _graph("b")
        with pytest.raises(ConfigurationError, match="unregistered source"):
            graph.deregister_transition("a", "b")

    def test_unregistered_destination_raises(self):
        graph = _graph("a")
        with pytest.raises(ConfigurationError, match="unregistered destination"):
            graph.deregister_transition("a", "b")

    def test_unregistered_destination_raises_for_entry(self):
        graph = StateGraph()
        with pytest.raises(ConfigurationError):
            graph.deregister_transition(destination="a")


# ── Overriding transitions ─────────────────────────────────────────────────────

class TestOverrideTransition:
    def test_replaces_existing(self):
        graph = _graph("a", "b")
        graph.register_transition("a", "b")
        graph.register_transition("a", "b")
        guard = lambda t: True  # noqa: E731
        t = graph.override_transition("a", "b", condition=guard)
        assert graph.get_transitions()["a"] == [t]
        assert t.condition is guard

    def test_override_entry_transition(self):
        graph = _graph("a", "b")
        graph.register_transition(destination="a")
        graph.override_transition(destination="b")
        entries = graph.get_transitions()[Identification.INITIAL]
        # only entry -> b is replaced; entry -> a is left alone
        assert [t.destination_id for t in entries] == ["a", "b"]

    def test_unregistered_endpoint_raises(self):
        graph = _graph("a")
        with pytest.raises(ConfigurationError):
            graph.override_transition("a", "b")
