"""
Typed errors raised by the workflow state machine.

Every error carries a machine-readable ``code`` plus the structured data
that produced it, so callers can catch by type instead of parsing messages.
"""

from typing import Any, List, Optional, Sequence


def describe(value: Any) -> str:
    """Readable name for a state or trigger (enum member name or str())"""
    return getattr(value, "name", None) or str(value)


class StateMachineError(Exception):
    """Base class for all state machine errors"""
    code = "STATE_MACHINE_ERROR"


class IllegalTriggerError(StateMachineError):
    """No rule permits the trigger from the current state"""
    code = "ILLEGAL_TRIGGER"

    def __init__(self, state: Any, trigger: Any, failed_guards: Optional[Sequence[str]] = None):
        self.state = state
        self.trigger = trigger
        self.failed_guards: List[str] = list(failed_guards or [])

        message = f"No valid leaving transitions are permitted from state '{describe(state)}' for trigger '{describe(trigger)}'"
        if self.failed_guards:
            message += f". Unmet guard conditions: {', '.join(self.failed_guards)}"
        super().__init__(message)


class ReentrantFireError(StateMachineError):
    """fire() was called while another fire() on the same machine is running"""
    code = "REENTRANT_FIRE"

    def __init__(self, state: Any, trigger: Any):
        self.state = state
        self.trigger = trigger
        super().__init__(
            f"Cannot fire '{describe(trigger)}' while a transition out of '{describe(state)}' is in progress"
        )


class UnconfiguredStateError(StateMachineError):
    """The machine was asked to work from a state that was never configured"""
    code = "UNCONFIGURED_STATE"

    def __init__(self, state: Any):
        self.state = state
        super().__init__(f"State '{describe(state)}' has no configuration")


class MachineNotActivatedError(StateMachineError):
    """fire() was called before activate()"""
    code = "NOT_ACTIVATED"

    def __init__(self, trigger: Any):
        self.trigger = trigger
        super().__init__(f"Cannot fire '{describe(trigger)}': state machine has not been activated")


class ActionFailedError(StateMachineError):
    """
    An entry or exit action raised.

    For entry actions the destination state has already been committed and
    is not rolled back. The original exception is chained as ``__cause__``.
    """
    code = "ACTION_FAILED"

    def __init__(self, state: Any, action_name: str, transition: Any):
        self.state = state
        self.action_name = action_name
        self.transition = transition
        super().__init__(f"Action '{action_name}' failed in state '{describe(state)}'")


class DefinitionError(StateMachineError):
    """A declarative machine definition is malformed"""
    code = "INVALID_DEFINITION"
