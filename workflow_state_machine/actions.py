"""
Entry and exit action dispatch.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .exceptions import ActionFailedError, describe

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Transition:
    """Describes one fire: passed read-only to entry and exit actions"""
    source: Any
    destination: Any
    trigger: Any = None

    @property
    def is_reentry(self) -> bool:
        return self.source == self.destination

    @property
    def is_initial(self) -> bool:
        """True for the pseudo-transition dispatched by activate()"""
        return self.trigger is None

    def __str__(self) -> str:
        return f"{describe(self.source)} - ({describe(self.trigger)}) -> {describe(self.destination)}"


@dataclass(frozen=True)
class StateAction:
    """A callback bound to a state; the name is for logging and graphs only"""
    callback: Callable[[Transition], None]
    name: str


class ActionDispatcher:
    """Holds entry/exit callbacks per state and runs them in registration order"""

    def __init__(self, machine_name: str = ""):
        self.machine_name = machine_name
        self._entry: Dict[Any, List[StateAction]] = {}
        self._exit: Dict[Any, List[StateAction]] = {}

    def register_entry(self, state: Any, callback: Callable[[Transition], None], name: Optional[str] = None):
        self._entry.setdefault(state, []).append(self._make_action(callback, name))

    def register_exit(self, state: Any, callback: Callable[[Transition], None], name: Optional[str] = None):
        self._exit.setdefault(state, []).append(self._make_action(callback, name))

    def entry_names(self, state: Any) -> List[str]:
        return [action.name for action in self._entry.get(state, [])]

    def exit_names(self, state: Any) -> List[str]:
        return [action.name for action in self._exit.get(state, [])]

    def dispatch_entry(self, state: Any, transition: Transition):
        self._dispatch(self._entry.get(state, []), state, transition, "entry")

    def dispatch_exit(self, state: Any, transition: Transition):
        self._dispatch(self._exit.get(state, []), state, transition, "exit")

    def _dispatch(self, actions: List[StateAction], state: Any, transition: Transition, kind: str):
        for action in actions:
            logger.debug(f"{self.machine_name}: running {kind} action '{action.name}' for {transition}")
            try:
                action.callback(transition)
            except Exception as e:
                logger.error(f"{self.machine_name}: {kind} action '{action.name}' failed in state {describe(state)}: {e}")
                raise ActionFailedError(state, action.name, transition) from e

    @staticmethod
    def _make_action(callback: Callable[[Transition], None], name: Optional[str]) -> StateAction:
        if not callable(callback):
            raise TypeError(f"Action must be callable, got {type(callback).__name__}")
        return StateAction(callback=callback, name=name or getattr(callback, "__name__", "action"))
