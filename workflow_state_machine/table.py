"""
Static transition table shared by every instance of a machine type.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Hashable, Iterator, List, Optional, Tuple

from .exceptions import describe
from .guards import Guard

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitionRule:
    """A single permitted transition for a (source, trigger) pair"""
    source: Any
    trigger: Hashable
    destination: Any
    guard: Optional[Guard] = None
    reentry: bool = False

    @property
    def is_guarded(self) -> bool:
        return self.guard is not None

    def __str__(self) -> str:
        return f"{describe(self.source)} -> {describe(self.destination)} on {describe(self.trigger)}"


class TransitionTable:
    """
    Registry mapping (state, trigger) to the ordered rules that may fire.

    Holds configuration only. Nothing in here knows the current state of
    any machine instance.
    """

    def __init__(self):
        self._rules: Dict[Tuple[Any, Hashable], List[TransitionRule]] = {}
        self._configured: List[Any] = []

    def mark_configured(self, state: Any):
        if state not in self._configured:
            self._configured.append(state)

    def is_configured(self, state: Any) -> bool:
        return state in self._configured

    def add_rule(self, rule: TransitionRule):
        """Append a rule, keeping registration order per (source, trigger)"""
        self.mark_configured(rule.source)
        key = (rule.source, rule.trigger)
        existing = self._rules.setdefault(key, [])

        if any(r.guard is None for r in existing):
            logger.warning(f"Rule {rule} is unreachable: an unconditional rule is already registered for it")

        existing.append(rule)
        logger.debug(f"Added transition: {rule}" + (f" [{rule.guard.description}]" if rule.guard else ""))

    def rules_for(self, state: Any, trigger: Hashable) -> List[TransitionRule]:
        return list(self._rules.get((state, trigger), []))

    def triggers_for(self, state: Any) -> List[Hashable]:
        """Triggers with at least one rule leaving ``state``, in registration order"""
        return [trigger for (source, trigger) in self._rules if source == state]

    @property
    def configured_states(self) -> List[Any]:
        return list(self._configured)

    @property
    def states(self) -> List[Any]:
        """Configured states followed by states only ever used as destinations"""
        states = list(self._configured)
        for rule in self:
            if rule.destination not in states:
                states.append(rule.destination)
        return states

    def __iter__(self) -> Iterator[TransitionRule]:
        for rules in self._rules.values():
            yield from rules

    def __len__(self) -> int:
        return sum(len(rules) for rules in self._rules.values())
