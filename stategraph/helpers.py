"""
Helper utilities for building state graphs.

Provides convenience functions and decorators that reduce boilerplate
when declaring states, guards and hooks.
"""

import logging
from functools import wraps
from typing import Any, Dict, Hashable, Iterable, Optional

from stategraph.errors import ConfigurationError
from stategraph.graph import StateGraph
from stategraph.types import Condition, State, Transition

logger = logging.getLogger(__name__)

_STATE_KEYS = {"entry", "do", "exit"}
_TRANSITION_KEYS = {"source", "destination", "condition", "action"}


def build_graph(
    states: Dict[Hashable, Optional[dict]],
    transitions: Iterable[dict],
    graph: Optional[StateGraph] = None,
) -> StateGraph:
    """
    Build a StateGraph from a compact configuration.

    States are registered first, in mapping order, then transitions in
    list order, so guarded alternatives keep the order they are listed in.

    Args:
        states: Mapping of identification → hook dict. Supported keys:
            - ``entry`` (callable, optional): Entry hook.
            - ``do`` (callable, optional): Do hook.
            - ``exit`` (callable, optional): Exit hook.
            A value of ``None`` registers a state without hooks.
        transitions: Transition dicts. Supported keys:
            - ``destination`` (required): Destination identification.
            - ``source`` (optional): Source identification; omit for the
              entry transition.
            - ``condition`` (callable, optional): Guard.
            - ``action`` (callable, optional): Transition hook.
        graph: Existing graph to add to (default: a new one).

    Returns:
        The populated StateGraph.

    Raises:
        ConfigurationError: On unknown keys, a missing ``destination``, or
            references to unregistered states.

    Example:
        graph = build_graph(
            {"fetch": {"do": fetch}, "save": {"do": save}},
            [
                {"destination": "fetch"},
                {"source": "fetch", "destination": "save"},
            ],
        )
    """
    graph = graph if graph is not None else StateGraph()

    for identification, hooks in states.items():
        hooks = hooks or {}
        unknown = set(hooks) - _STATE_KEYS
        if unknown:
            raise ConfigurationError(
                f"State {identification!r} config has unknown keys {sorted(unknown)}"
            )
        graph.register_state(
            identification,
            entry_action=hooks.get("entry"),
            do_action=hooks.get("do"),
            exit_action=hooks.get("exit"),
        )

    for config in transitions:
        unknown = set(config) - _TRANSITION_KEYS
        if unknown:
            raise ConfigurationError(f"Transition config has unknown keys {sorted(unknown)}")
        if config.get("destination") is None:
            raise ConfigurationError(
                f"Transition config missing required 'destination' field: {config!r}"
            )
        graph.register_transition(
            config.get("source"),
            config["destination"],
            condition=config.get("condition"),
            action=config.get("action"),
        )

    return graph


def memory_equals(key: Any, value: Any) -> Condition:
    """
    Create a guard that passes while the source state's memory holds ``value``
    under ``key``.

    Example:
        graph.register_transition("a", "b", condition=memory_equals("data", 1))
    """

    def condition(transition: Transition) -> bool:
        if transition.source is None:
            return False
        return transition.source.get(key) == value

    condition.__name__ = f"memory_equals({key!r}, {value!r})"
    return condition


def log_action(func):
    """
    Decorator that adds DEBUG logging around a state or transition hook.

    Usage:
        @log_action
        def on_fetch(state: State) -> None:
            state.put("payload", download())

    Note:
        Optional; the runner itself logs visits and failures.
    """

    @wraps(func)
    def wrapper(context):
        label = _describe(context)
        logger.debug(f"{label}: {func.__name__} starting...")
        result = func(context)
        logger.debug(f"{label}: {func.__name__} complete")
        return result

    return wrapper


def _describe(context: Any) -> str:
    if isinstance(context, State):
        return repr(context.identification)
    if isinstance(context, Transition):
        return f"{context.source_id!r} -> {context.destination_id!r}"
    return repr(context)
