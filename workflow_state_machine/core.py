"""
Core state machine implementation with guarded, reentrant transitions and Prometheus metrics.
"""

import logging
import os
import time
from typing import Any, Callable, Hashable, Iterable, List, Optional

from typing_extensions import Self

from . import guards, metrics
from .actions import ActionDispatcher, Transition
from .exceptions import (
    ActionFailedError,
    IllegalTriggerError,
    MachineNotActivatedError,
    ReentrantFireError,
    UnconfiguredStateError,
    describe,
)
from .graph import export_graph
from .guards import Guard
from .table import TransitionRule, TransitionTable

logger = logging.getLogger(__name__)


class StateConfiguration:
    """Fluent builder for the rules and actions of a single state"""

    def __init__(self, machine: "StateMachine", state: Any):
        self._machine = machine
        self.state = state

    def permit(self, trigger: Hashable, destination: Any) -> Self:
        """Unconditionally allow ``trigger`` to move to ``destination``"""
        return self._add(trigger, destination, None)

    def permit_if(self, trigger: Hashable, destination: Any,
                  guard: Callable[[], bool], description: str = "") -> Self:
        """Allow ``trigger`` to move to ``destination`` while ``guard()`` is true"""
        return self._add(trigger, destination, Guard(guard, description))

    def permit_reentry(self, trigger: Hashable) -> Self:
        """Allow ``trigger`` to leave and re-enter this state"""
        return self._add(trigger, self.state, None, reentry=True)

    def permit_reentry_if(self, trigger: Hashable, guard: Callable[[], bool], description: str = "") -> Self:
        return self._add(trigger, self.state, Guard(guard, description), reentry=True)

    def on_entry(self, callback: Callable[[Transition], None], name: Optional[str] = None) -> Self:
        """Run ``callback`` every time the machine enters this state, reentry included"""
        self._machine._dispatcher.register_entry(self.state, callback, name)
        return self

    def on_exit(self, callback: Callable[[Transition], None], name: Optional[str] = None) -> Self:
        self._machine._dispatcher.register_exit(self.state, callback, name)
        return self

    def _add(self, trigger: Hashable, destination: Any, guard: Optional[Guard], reentry: bool = False) -> Self:
        self._machine._check_state(destination)
        if destination == self.state and not reentry:
            raise ValueError(
                f"Permit() must lead to a different state than {describe(self.state)}; "
                f"use permit_reentry() for self transitions"
            )

        self._machine._table.add_rule(TransitionRule(
            source=self.state,
            trigger=trigger,
            destination=destination,
            guard=guard,
            reentry=reentry
        ))
        return self


class StateMachine:
    """
    A guarded state machine driving externally owned state.

    Features:
    - States supplied as an Enum (or any iterable of members)
    - State read and written through an accessor/mutator pair
    - Guarded transitions evaluated in registration order at fire time
    - Reentrant transitions that re-run entry actions
    - Prometheus metrics, disabled with WORKFLOW_SM_METRICS=false

    Not safe for concurrent firing; callers serialise access per instance.
    """

    def __init__(self,
                 name: str,
                 states: Iterable[Any],
                 initial_state: Any = None,
                 state_accessor: Optional[Callable[[], Any]] = None,
                 state_mutator: Optional[Callable[[Any], None]] = None):
        """
        Initialize state machine.

        Args:
            name: Name of the state machine, used in logs, metrics and graphs
            states: Enum class (or iterable) defining all legal states
            initial_state: Starting state when the machine owns its state;
                not allowed together with an accessor/mutator pair
            state_accessor: Returns the current state from external storage
            state_mutator: Writes a new state to external storage
        """
        self.name = name
        self.states = list(states)

        if (state_accessor is None) != (state_mutator is None):
            raise ValueError("state_accessor and state_mutator must be supplied together")
        if state_accessor is not None and initial_state is not None:
            raise ValueError("initial_state cannot be combined with an external state accessor")

        if state_accessor is None:
            if initial_state is None:
                raise ValueError("initial_state is required when no state accessor is supplied")
            self._check_state(initial_state)
            self._state = initial_state
            state_accessor = lambda: self._state
            state_mutator = self._set_internal_state

        self._state_accessor = state_accessor
        self._state_mutator = state_mutator

        self._table = TransitionTable()
        self._dispatcher = ActionDispatcher(name)
        self._transitioned: List[Callable[[Transition], None]] = []

        self._activated = False
        self._firing = False

        self.metrics_enabled = os.getenv('WORKFLOW_SM_METRICS', 'true').lower() == 'true'

    def _set_internal_state(self, state: Any):
        self._state = state

    def _check_state(self, state: Any):
        if state not in self.states:
            raise ValueError(f"{state!r} is not a state of {self.name}")

    def _read_state(self) -> Any:
        state = self._state_accessor()
        if state not in self.states:
            raise UnconfiguredStateError(state)
        return state

    # Configuration

    def configure(self, state: Any) -> StateConfiguration:
        """Return the configuration builder for ``state``, registering it if new"""
        self._check_state(state)
        self._table.mark_configured(state)
        return StateConfiguration(self, state)

    def on_transitioned(self, callback: Callable[[Transition], None]):
        """Register a listener called after every completed transition"""
        self._transitioned.append(callback)

    # Lifecycle

    @property
    def is_activated(self) -> bool:
        return self._activated

    def activate(self):
        """
        Mark the machine as running and run the initial state's entry actions.

        Calling activate() again is a no-op.
        """
        if self._activated:
            logger.debug(f"{self.name} already activated")
            return

        state = self._read_state()
        if not self._table.is_configured(state):
            raise UnconfiguredStateError(state)

        self._activated = True
        logger.info(f"Activated {self.name} in state {describe(state)}")

        self._firing = True
        try:
            self._run_actions(self._dispatcher.dispatch_entry, state, Transition(state, state, None))
        finally:
            self._firing = False

    def can_fire(self, trigger: Hashable) -> bool:
        """True if ``trigger`` would be accepted right now; has no side effects"""
        state = self._read_state()
        if not self._table.is_configured(state):
            return False
        return guards.evaluate(self._table.rules_for(state, trigger)).found

    def fire(self, trigger: Hashable):
        """
        Fire a trigger.

        Exit actions of the source run first, then the destination is written
        through the state mutator, then the destination's entry actions run.
        If an entry action raises, the new state stays committed and the error
        propagates as ActionFailedError.

        Raises:
            ReentrantFireError: called from inside an action of this machine
            MachineNotActivatedError: activate() has not been called
            UnconfiguredStateError: the current state was never configured
            IllegalTriggerError: no rule permits the trigger right now
        """
        source = self._read_state()

        if self._firing:
            raise ReentrantFireError(source, trigger)
        if not self._activated:
            raise MachineNotActivatedError(trigger)
        if not self._table.is_configured(source):
            raise UnconfiguredStateError(source)

        logger.debug(f"Attempting trigger: {describe(trigger)} from state {describe(source)}")
        start = time.perf_counter()
        self._firing = True

        try:
            result = guards.evaluate(self._table.rules_for(source, trigger))
            if not result.found:
                if self.metrics_enabled:
                    metrics.rejected_triggers_total.labels(
                        machine=self.name,
                        state=describe(source),
                        trigger=describe(trigger)
                    ).inc()
                logger.warning(f"{self.name}: trigger {describe(trigger)} not permitted in {describe(source)}")
                raise IllegalTriggerError(source, trigger, result.failed_guards)

            rule = result.rule
            destination = source if rule.reentry else rule.destination
            transition = Transition(source, destination, trigger)

            self._run_actions(self._dispatcher.dispatch_exit, source, transition)

            self._state_mutator(destination)
            logger.info(f"{self.name}: {describe(source)} -> {describe(destination)} via {describe(trigger)}")

            if self.metrics_enabled:
                metrics.transitions_total.labels(
                    machine=self.name,
                    from_state=describe(source),
                    to_state=describe(destination),
                    trigger=describe(trigger)
                ).inc()

            self._run_actions(self._dispatcher.dispatch_entry, destination, transition)

            for listener in self._transitioned:
                listener(transition)

        finally:
            self._firing = False
            if self.metrics_enabled:
                metrics.fire_latency.labels(machine=self.name).observe(time.perf_counter() - start)

    def _run_actions(self, dispatch: Callable[[Any, Transition], None], state: Any, transition: Transition):
        try:
            dispatch(state, transition)
        except ActionFailedError as e:
            if self.metrics_enabled:
                metrics.action_failures_total.labels(
                    machine=self.name,
                    state=describe(state),
                    action=e.action_name
                ).inc()
            raise

    # Public API for introspection

    @property
    def state(self) -> Any:
        return self._read_state()

    @property
    def table(self) -> TransitionTable:
        return self._table

    @property
    def dispatcher(self) -> ActionDispatcher:
        return self._dispatcher

    def is_in_state(self, state: Any) -> bool:
        return self._read_state() == state

    def get_permitted_triggers(self) -> List[Hashable]:
        """Triggers that can fire from the current state under current guard values"""
        state = self._read_state()
        return [
            trigger for trigger in self._table.triggers_for(state)
            if guards.evaluate(self._table.rules_for(state, trigger)).found
        ]

    def to_graph(self, format: str = "dot") -> str:
        """Describe the configured transitions; never reflects the current state"""
        return export_graph(self._table, name=self.name, dispatcher=self._dispatcher, format=format)
