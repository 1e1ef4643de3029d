"""
State graph data types and structures.

Defines the core types used by the state graph engine:
- Identification: Sentinel identities used by the graph
- State: A named execution context with memory and entry/do/exit hooks
- Transition: A guarded edge between two states
- RunOutcome: Status of a runner and outcome of a run
- StateHistoryEntry: Tracks a single state visit
- RunReport: Summary returned by a completed run
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Hashable, List, Optional

Action = Callable[[Any], None]
Condition = Callable[["Transition"], bool]


class Identification(Enum):
    """Synthetic identities that never belong to a registered state."""

    INITIAL = "initial"  # Source key of the single entry transition


class RunOutcome(Enum):
    """
    Status of a runner, and the way a run ended.
    """

    IDLE = "idle"            # Constructed, never run
    RUNNING = "running"      # Inside run()
    COMPLETED = "completed"  # Reached a state without an applicable transition
    STOPPED = "stopped"      # Ended by stop() or the safety limit
    ABORTED = "aborted"      # A hook or guard raised


class State:
    """
    A named execution context holding its own memory.

    Hooks are plain callables taking the state as their only argument.

    Args:
        identification: Hashable key, unique within one graph.
        entry_action: Called when the state is entered from elsewhere.
        do_action: Called on every visit.
        exit_action: Called when the state is left for elsewhere.
    """

    def __init__(
        self,
        identification: Hashable,
        entry_action: Optional[Action] = None,
        do_action: Optional[Action] = None,
        exit_action: Optional[Action] = None,
    ):
        self._identification = identification
        self.entry_action = entry_action
        self.do_action = do_action
        self.exit_action = exit_action
        self.memory: Dict[Any, Any] = {}

    @property
    def identification(self) -> Hashable:
        return self._identification

    def get(self, key: Any, default: Any = None) -> Any:
        return self.memory.get(key, default)

    def put(self, key: Any, value: Any) -> Any:
        """Store ``value`` under ``key`` and return it."""
        self.memory[key] = value
        return value

    def remove(self, key: Any, default: Any = None) -> Any:
        return self.memory.pop(key, default)

    def clone_memory(self) -> Dict[Any, Any]:
        """
        Return a shallow copy of the memory.

        The runner rewinds the initial state to this copy before every run.
        Override in a State subclass (see ``StateGraph.create_state``) for a
        deeper copy when memory values are mutated in place.
        """
        return dict(self.memory)

    def __eq__(self, other):
        if self is other:
            return True
        if not isinstance(other, State):
            return NotImplemented
        return self._identification == other._identification

    def __hash__(self):
        return hash(self._identification)

    def __repr__(self):
        return f"State(identification={self._identification!r})"


@dataclass
class Transition:
    """
    A directed edge between two states.

    Args:
        source: The state this transition leaves. ``None`` only for the
                entry transition.
        destination: The state this transition leads to.
        condition: Optional guard, called with the transition itself.
                   Exceptions raised by the guard propagate to the runner.
        action: Optional hook, called with the transition while it is taken.
    """

    source: Optional[State]
    destination: State
    condition: Optional[Condition] = None
    action: Optional[Action] = None

    @property
    def source_id(self) -> Hashable:
        """Identification of the source, or INITIAL for the entry transition."""
        if self.source is None:
            return Identification.INITIAL
        return self.source.identification

    @property
    def destination_id(self) -> Hashable:
        return self.destination.identification

    @property
    def is_guarded(self) -> bool:
        return self.condition is not None

    @property
    def is_self_loop(self) -> bool:
        return self.source is not None and self.source == self.destination

    def can_transition(self) -> bool:
        """
        Check if this transition may be taken.

        Returns:
            True if no condition is set, otherwise the truthiness of the
            condition's result.
        """
        if self.condition is None:
            return True
        return bool(self.condition(self))

    def __repr__(self):
        guard = ", guarded" if self.is_guarded else ""
        return f"Transition({self.source_id!r} -> {self.destination_id!r}{guard})"


@dataclass
class StateHistoryEntry:
    """
    Records a single visit of a state during a run.

    ``next_state`` is ``None`` when the visit ended the run, either because
    no transition applied or because a hook failed.
    """

    state: Hashable
    run_number: int
    duration: float
    next_state: Optional[Hashable] = None
    timestamp: float = field(default_factory=time.time)
    error_message: Optional[str] = None

    @property
    def failed(self) -> bool:
        """True if a hook or guard raised during this visit."""
        return self.error_message is not None

    def to_dict(self) -> dict:
        """Serialise to a plain dictionary."""
        return {
            "state": _label(self.state),
            "run_number": self.run_number,
            "duration": self.duration,
            "next_state": None if self.next_state is None else _label(self.next_state),
            "timestamp": self.timestamp,
            "error_message": self.error_message,
        }


@dataclass
class RunReport:
    """
    Summary of one ``run()`` invocation.

    Args:
        outcome: COMPLETED or STOPPED.
        visits: Identifications of the visited states, in order.
        run_number: 1 for the first run of a runner, 2 for the second, ...
        duration: Wall-clock seconds spent inside the loop.
    """

    outcome: RunOutcome
    visits: List[Hashable] = field(default_factory=list)
    run_number: int = 0
    duration: float = 0.0

    @property
    def completed(self) -> bool:
        return self.outcome == RunOutcome.COMPLETED

    @property
    def visit_count(self) -> int:
        return len(self.visits)


def _label(identification: Hashable) -> str:
    if isinstance(identification, Enum):
        return identification.name
    return str(identification)
