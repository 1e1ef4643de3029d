"""
Exceptions raised while building or running a state graph.

- ConfigurationError: The graph definition is malformed. Raised at
  registration or bake time and never retried.
- ActionFailure: A user-supplied hook or guard raised.
- RunAbort: Ends the current ``run()`` because of an ActionFailure.
"""

from typing import Any, Hashable, Optional


class ConfigurationError(ValueError):
    """Malformed graph: missing or unregistered endpoints, bad entry edges."""


class ActionFailure(Exception):
    """
    A hook or guard raised during a run.

    Args:
        hook: Which callable failed: "entry", "do", "exit", "condition"
              or "action".
        identification: The state being visited when the failure happened.
        original: The exception raised by the callable.
    """

    def __init__(self, hook: str, identification: Hashable, original: BaseException):
        super().__init__(
            f"{hook} hook of state {identification!r} failed: {original!r}"
        )
        self.hook = hook
        self.identification = identification
        self.original = original


class RunAbort(RuntimeError):
    """
    Raised from ``run()`` when a hook or guard fails.

    Side effects already applied (memory writes, external effects) are
    left as they were at the point of failure.
    """

    def __init__(self, failure: ActionFailure, run_number: Optional[int] = None):
        super().__init__(f"Run {run_number} aborted: {failure}")
        self.failure = failure
        self.run_number = run_number

    @property
    def original(self) -> Any:
        return self.failure.original
