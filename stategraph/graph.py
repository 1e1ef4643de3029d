"""
StateGraph — the mutable registry a runner is baked from.

States are keyed by their identification; outgoing transitions are kept
in registration order, keyed by the identification of their source. The
single entry transition has no source and is keyed by
``Identification.INITIAL``.

Usage:
    from stategraph import StateGraph, StateGraphRunner

    graph = StateGraph()
    graph.register_state("fetch", do_action=fetch)
    graph.register_state("save", do_action=save)
    graph.register_transition(destination="fetch")
    graph.register_transition("fetch", "save", condition=lambda t: t.source.get("ok"))
    graph.register_transition("fetch", "fetch")

    StateGraphRunner(graph).run()
"""

import logging
from typing import Dict, Hashable, List, Optional

from stategraph.errors import ConfigurationError
from stategraph.types import Action, Condition, Identification, State, Transition

logger = logging.getLogger(__name__)


class StateGraph:
    """
    Registry of states and the transitions between them.

    Referential integrity is checked when transitions are registered or
    removed. Removing a state does not remove the transitions that still
    reference it; those surface as a ConfigurationError when a runner is
    baked from the graph.
    """

    def __init__(self):
        self._states: Dict[Hashable, State] = {}
        self._transitions: Dict[Hashable, List[Transition]] = {}

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_states(self) -> Dict[Hashable, State]:
        """Return the identification → State mapping."""
        return self._states

    def get_transitions(self) -> Dict[Hashable, List[Transition]]:
        """Return the source identification → transition list mapping."""
        return self._transitions

    def get_state(self, identification: Hashable) -> Optional[State]:
        return self._states.get(identification)

    def has_state(self, identification: Hashable) -> bool:
        return identification in self._states

    def __contains__(self, identification):
        return self.has_state(identification)

    def __len__(self):
        return len(self._states)

    # ------------------------------------------------------------------
    # States
    # ------------------------------------------------------------------

    def register_state(
        self,
        identification: Hashable,
        entry_action: Optional[Action] = None,
        do_action: Optional[Action] = None,
        exit_action: Optional[Action] = None,
    ) -> None:
        """
        Register a state, replacing any state with the same identification.

        Args:
            identification: Hashable key for the state.
            entry_action: Hook run when the state is entered from elsewhere.
            do_action: Hook run on every visit.
            exit_action: Hook run when the state is left for elsewhere.
        """
        self._states[identification] = self.create_state(
            identification, entry_action, do_action, exit_action
        )
        logger.debug(f"Registered state {identification!r}")

    def create_state(
        self,
        identification: Hashable,
        entry_action: Optional[Action],
        do_action: Optional[Action],
        exit_action: Optional[Action],
    ) -> State:
        """Factory hook for subclasses that need their own State type."""
        return State(identification, entry_action, do_action, exit_action)

    def deregister_state(self, identification: Hashable) -> None:
        """Remove a state. Transitions referencing it are left in place."""
        if self._states.pop(identification, None) is not None:
            logger.debug(f"Deregistered state {identification!r}")

    def override_state(
        self,
        identification: Hashable,
        entry_action: Optional[Action] = None,
        do_action: Optional[Action] = None,
        exit_action: Optional[Action] = None,
    ) -> None:
        """Deregister then register ``identification``."""
        self.deregister_state(identification)
        self.register_state(identification, entry_action, do_action, exit_action)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def register_transition(
        self,
        source: Optional[Hashable] = None,
        destination: Optional[Hashable] = None,
        condition: Optional[Condition] = None,
        action: Optional[Action] = None,
    ) -> Transition:
        """
        Register a transition from ``source`` to ``destination``.

        Omitting ``source`` registers the entry transition.

        Args:
            source: Identification of a registered state, or None.
            destination: Identification of a registered state.
            condition: Optional guard called with the transition.
            action: Optional hook called with the transition when it is taken.

        Returns:
            The new Transition.

        Raises:
            ConfigurationError: If ``destination`` is omitted or either
                endpoint is not registered.
        """
        if source is None:
            source = Identification.INITIAL

        if destination is None:
            raise ConfigurationError("Destination state cannot be None")

        source_state = self._states.get(source)
        if source is not Identification.INITIAL and source_state is None:
            raise ConfigurationError(
                f"Cannot add transition from unregistered source {source!r}"
            )

        destination_state = self._states.get(destination)
        if destination_state is None:
            raise ConfigurationError(
                f"Cannot add transition to unregistered destination {destination!r}"
            )

        transition = self.create_transition(
            source_state, destination_state, condition, action
        )
        self._transitions.setdefault(source, []).append(transition)
        logger.debug(f"Registered transition {transition!r}")
        return transition

    def create_transition(
        self,
        source: Optional[State],
        destination: State,
        condition: Optional[Condition],
        action: Optional[Action],
    ) -> Transition:
        """Factory hook for subclasses that need their own Transition type."""
        return Transition(source, destination, condition, action)

    def deregister_transition(
        self,
        source: Optional[Hashable] = None,
        destination: Optional[Hashable] = None,
    ) -> int:
        """
        Remove every transition from ``source`` to ``destination``.

        Returns:
            The number of transitions removed.

        Raises:
            ConfigurationError: If either endpoint is not registered. The
                entry key (``source=None``) is exempt.
        """
        if source is None:
            source = Identification.INITIAL

        if source is not Identification.INITIAL and source not in self._states:
            raise ConfigurationError(
                f"Cannot remove transition from unregistered source {source!r}"
            )
        if destination not in self._states:
            raise ConfigurationError(
                f"Cannot remove transition to unregistered destination {destination!r}"
            )

        transitions = self._transitions.get(source)
        if not transitions:
            return 0

        kept = [
            t for t in transitions
            if not (t.source_id == source and t.destination_id == destination)
        ]
        removed = len(transitions) - len(kept)

        if kept:
            self._transitions[source] = kept
        else:
            del self._transitions[source]

        if removed:
            logger.debug(f"Deregistered {removed} transition(s) {source!r} -> {destination!r}")
        return removed

    def override_transition(
        self,
        source: Optional[Hashable] = None,
        destination: Optional[Hashable] = None,
        condition: Optional[Condition] = None,
        action: Optional[Action] = None,
    ) -> Transition:
        """Deregister then register the ``source`` → ``destination`` transition."""
        self.deregister_transition(source, destination)
        return self.register_transition(source, destination, condition, action)
