"""
python-stategraph
~~~~~~~~~~~~~~~~~

A small, embeddable engine for graphs of states and guarded transitions.

Quick start:
    from stategraph import StateGraph, StateGraphRunner
    from stategraph import ConfigurationError, RunAbort
"""

from stategraph.errors import ActionFailure, ConfigurationError, RunAbort
from stategraph.graph import StateGraph
from stategraph.runner import StateGraphRunner
from stategraph.types import (
    Identification,
    RunOutcome,
    RunReport,
    State,
    StateHistoryEntry,
    Transition,
)
from stategraph.helpers import (
    build_graph,
    log_action,
    memory_equals,
)

__all__ = [
    "StateGraph",
    "StateGraphRunner",
    "State",
    "Transition",
    "Identification",
    "RunOutcome",
    "RunReport",
    "StateHistoryEntry",
    "ConfigurationError",
    "ActionFailure",
    "RunAbort",
    "build_graph",
    "log_action",
    "memory_equals",
]
