"""
StateGraphRunner — bakes a StateGraph and drives it run after run.

Features:
- One-shot baking: transitions re-bound to the registered states, sorted
  guarded-first, and the single entry transition resolved
- Entry/exit hooks suppressed on self-loops, do hooks run on every visit
- Memory handed from state to state along the taken transitions
- Initial memory rewound before every run, so runs are reproducible
- Cooperative stop() that may be called from another thread
- Bounded visit history (deque) for debugging and introspection

Usage:
    from stategraph import StateGraph, StateGraphRunner

    graph = StateGraph()
    graph.register_state("count", do_action=lambda s: s.put("n", s.get("n", 0) + 1))
    graph.register_state("done")
    graph.register_transition(destination="count")
    graph.register_transition("count", "count", condition=lambda t: t.source.get("n") < 3)
    graph.register_transition("count", "done")

    report = StateGraphRunner(graph).run()
    report.visits  # ['count', 'count', 'count', 'done']
"""

import logging
import threading
import time
from collections import deque
from dataclasses import replace
from typing import Any, Dict, Hashable, List, Optional, Tuple

from stategraph.errors import ActionFailure, ConfigurationError, RunAbort
from stategraph.graph import StateGraph
from stategraph.types import (
    Action,
    Identification,
    RunOutcome,
    RunReport,
    State,
    StateHistoryEntry,
    Transition,
)

logger = logging.getLogger(__name__)


class StateGraphRunner:
    """
    Executes a baked state graph.

    The graph is baked once, in the constructor. Later changes to the
    graph's topology do not reach an already constructed runner.

    Attributes:
        MAX_STATES_PER_RUN: Optional cap on state visits per ``run()`` call.
                            ``None`` (default) means no limit.
        HISTORY_SIZE: Number of visits kept in the history (default: 100).

    Args:
        state_graph: The graph to bake.
        strict: Reject states with more than one unguarded outgoing
                transition instead of letting the first one win.

    Raises:
        ConfigurationError: If there is not exactly one entry transition,
            a transition references a deregistered state, or ``strict``
            is set and a state has ambiguous fallbacks.
    """

    MAX_STATES_PER_RUN: Optional[int] = None
    HISTORY_SIZE: int = 100

    def __init__(self, state_graph: StateGraph, strict: bool = False):
        self._strict = strict
        self._initial_state: State = self.bake_state_graph(state_graph)
        self._initial_memory: Optional[Dict[Any, Any]] = None

        self._stop_requested = threading.Event()
        self._running = False
        self._status = RunOutcome.IDLE
        self._run_count = 0
        self._state_history: deque = deque(maxlen=self.HISTORY_SIZE)

        logger.info(
            f"{self.__class__.__name__} initialised — "
            f"{len(state_graph)} states, "
            f"starting at {self._initial_state.identification!r}"
        )

    # ------------------------------------------------------------------
    # Baking
    # ------------------------------------------------------------------

    def bake_state_graph(self, state_graph: StateGraph) -> State:
        """
        Sort the transitions of every state and resolve the entry point.

        The sorted transitions are kept by the runner, keyed by source
        identification, so baking leaves the graph's states untouched.

        Returns:
            The initial state.
        """
        states = state_graph.get_states()
        transitions = state_graph.get_transitions()

        for source in transitions:
            if source is not Identification.INITIAL and source not in states:
                raise ConfigurationError(
                    f"Transitions registered from deregistered source {source!r}"
                )

        self._transitions: Dict[Hashable, Tuple[Transition, ...]] = {}
        for identification in states:
            bound = [
                self._bind(transition, states)
                for transition in transitions.get(identification, ())
            ]
            # list.sort is stable, so registration order survives among equals
            bound.sort(key=lambda t: not t.is_guarded)
            self._check_fallbacks(identification, bound)
            self._transitions[identification] = tuple(bound)

        initial_transitions = transitions.get(Identification.INITIAL)
        if not initial_transitions or len(initial_transitions) != 1:
            raise ConfigurationError(
                "There are no or multiple entry transitions defined; "
                "register exactly one transition without a source"
            )
        return self._bind(initial_transitions[0], states).destination

    def _bind(self, transition: Transition, states: Dict[Hashable, State]) -> Transition:
        """Copy ``transition`` onto the states currently registered for its endpoints."""
        destination = states.get(transition.destination_id)
        if destination is None:
            raise ConfigurationError(
                f"Transition {transition!r} references deregistered "
                f"destination {transition.destination_id!r}"
            )
        source = None
        if transition.source is not None:
            source = states.get(transition.source_id)
            if source is None:
                raise ConfigurationError(
                    f"Transition {transition!r} references deregistered "
                    f"source {transition.source_id!r}"
                )
        return replace(transition, source=source, destination=destination)

    def _check_fallbacks(self, identification: Hashable, transitions: List[Transition]) -> None:
        fallbacks = [t for t in transitions if not t.is_guarded]
        if len(fallbacks) < 2:
            return
        if self._strict:
            raise ConfigurationError(
                f"State {identification!r} has {len(fallbacks)} unguarded transitions"
            )
        logger.warning(
            f"State {identification!r} has {len(fallbacks)} unguarded transitions — "
            f"only {fallbacks[0]!r} can ever be taken"
        )

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(self) -> RunReport:
        """
        Run the graph from the initial state until it completes or is stopped.

        The initial state's memory is restored to the copy taken before the
        previous run, then copied again for the next one with
        ``State.clone_memory()``, a shallow copy unless a subclass decides
        otherwise.

        Returns:
            A RunReport with the outcome and the visited identifications.

        Raises:
            RunAbort: If a hook or guard raised. Effects already applied
                are not rolled back.
            RuntimeError: If called while the runner is already running.
        """
        if self._running:
            raise RuntimeError(f"{self.__class__.__name__}.run() is not re-entrant")

        if self._initial_memory is not None:
            # rewind to the state the previous run started from
            self._initial_state.memory = self._initial_memory
        self._initial_memory = self._initial_state.clone_memory()

        self._run_count += 1
        run_number = self._run_count
        self._running = True
        self._status = RunOutcome.RUNNING
        logger.info(f"Run {run_number} starting at {self._initial_state.identification!r}")

        visits: List[Hashable] = []
        state: Optional[State] = self._initial_state
        transition: Optional[Transition] = None
        start = time.time()

        try:
            while state is not None and not self._stop_requested.is_set():
                if self._limit_reached(len(visits)):
                    break
                visits.append(state.identification)
                transition = self._visit(state, transition, run_number)
                state = None if transition is None else transition.destination
        except ActionFailure as failure:
            self._status = RunOutcome.ABORTED
            logger.error(
                f"Run {run_number} aborted in {failure.identification!r}: {failure}",
                exc_info=True,
            )
            raise RunAbort(failure, run_number) from failure
        finally:
            self._stop_requested.clear()
            self._running = False

        duration = time.time() - start
        self._status = RunOutcome.COMPLETED if state is None else RunOutcome.STOPPED
        logger.info(
            f"Run {run_number} {self._status.value} after {len(visits)} visits ({duration:.2f}s)"
        )
        return RunReport(
            outcome=self._status,
            visits=visits,
            run_number=run_number,
            duration=duration,
        )

    def stop(self) -> None:
        """
        Request the current run to end.

        Safe to call from another thread. The flag is checked before each
        visit, so hooks already running are never interrupted.
        """
        self._stop_requested.set()
        logger.info("Stop requested")

    def _limit_reached(self, visit_count: int) -> bool:
        if self.MAX_STATES_PER_RUN is None or visit_count < self.MAX_STATES_PER_RUN:
            return False
        logger.error(f"Safety limit reached ({self.MAX_STATES_PER_RUN} states) — stopping")
        return True

    # ------------------------------------------------------------------
    # State execution
    # ------------------------------------------------------------------

    def _visit(
        self, state: State, coming_from: Optional[Transition], run_number: int
    ) -> Optional[Transition]:
        """Execute one visit and record it in the history."""
        start = time.time()
        try:
            transition = self.execute_state(state, coming_from)
        except ActionFailure as failure:
            self._record(state, run_number, start, error_message=str(failure.original))
            raise

        next_state = None if transition is None else transition.destination_id
        self._record(state, run_number, start, next_state=next_state)
        logger.debug(f"{state.identification!r} → {next_state!r}")
        return transition

    def execute_state(
        self, state: State, coming_from: Optional[Transition]
    ) -> Optional[Transition]:
        """
        Run the hooks of ``state`` and take its first applicable transition.

        Args:
            state: The state being visited.
            coming_from: The transition that led here, None on the first visit.

        Returns:
            The transition taken, or None if the state is terminal.

        Raises:
            ActionFailure: If a hook or guard raised.
        """
        # entered from the start or from another state, not a round trip
        if state.entry_action is not None and not (
            coming_from is not None
            and coming_from.source is not None
            and coming_from.source == state
        ):
            self._invoke("entry", state.entry_action, state, state)

        if state.do_action is not None:
            self._invoke("do", state.do_action, state, state)

        transition = self.select_transition(state)

        # leaving for another state or the end, not a round trip
        if state.exit_action is not None and not (
            transition is not None and transition.destination == state
        ):
            self._invoke("exit", state.exit_action, state, state)

        if transition is not None:
            if transition.action is not None:
                self._invoke("action", transition.action, transition, state)
            self._hand_off_memory(state, transition.destination)

        return transition

    def select_transition(self, state: State) -> Optional[Transition]:
        """
        Return the first transition of ``state`` whose guard passes.

        Guarded transitions come first after baking, so unguarded ones act
        as fallbacks.
        """
        for transition in self._transitions.get(state.identification, ()):
            try:
                allowed = transition.can_transition()
            except Exception as e:
                raise ActionFailure("condition", state.identification, e) from e
            if allowed:
                return transition
        return None

    @staticmethod
    def _invoke(hook: str, action: Action, context: Any, state: State) -> None:
        try:
            action(context)
        except Exception as e:
            raise ActionFailure(hook, state.identification, e) from e

    @staticmethod
    def _hand_off_memory(source: State, destination: State) -> None:
        """Move the memory of ``source`` to ``destination``; source starts empty."""
        memory = source.memory
        source.memory = {}
        destination.memory = memory

    def _record(
        self,
        state: State,
        run_number: int,
        start: float,
        next_state: Optional[Hashable] = None,
        error_message: Optional[str] = None,
    ) -> None:
        self._state_history.append(
            StateHistoryEntry(
                state=state.identification,
                run_number=run_number,
                duration=time.time() - start,
                next_state=next_state,
                error_message=error_message,
            )
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_initial_state(self) -> State:
        """Return the resolved initial state."""
        return self._initial_state

    def get_status(self) -> RunOutcome:
        """Return IDLE before the first run, otherwise how the last run ended."""
        return self._status

    def get_run_count(self) -> int:
        return self._run_count

    def is_stop_requested(self) -> bool:
        return self._stop_requested.is_set()

    def get_transitions(self, identification: Hashable) -> Tuple[Transition, ...]:
        """Return the baked, guarded-first transitions leaving ``identification``."""
        return self._transitions.get(identification, ())

    def get_history(self, last_n: Optional[int] = None) -> List[StateHistoryEntry]:
        """
        Return the visit history.

        Args:
            last_n: If provided, return only the last N entries (none for 0).
        """
        history = list(self._state_history)
        if last_n is None:
            return history
        return history[-last_n:] if last_n > 0 else []
