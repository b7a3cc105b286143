"""
Guard evaluation for conditional transitions.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, TYPE_CHECKING

if TYPE_CHECKING:
    from .table import TransitionRule

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Guard:
    """A boolean predicate conditioning a transition, plus a description for diagnostics"""
    predicate: Callable[[], bool]
    description: str = ""

    def __post_init__(self):
        if not callable(self.predicate):
            raise TypeError(f"Guard predicate must be callable, got {type(self.predicate).__name__}")
        if not self.description:
            name = getattr(self.predicate, "__name__", "")
            object.__setattr__(self, "description", name if name and name != "<lambda>" else "guard")

    def check(self) -> bool:
        return bool(self.predicate())


@dataclass
class GuardResult:
    """Outcome of evaluating the rules registered for one (state, trigger) pair"""
    rule: Optional["TransitionRule"] = None
    failed_guards: List[str] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.rule is not None


def evaluate(rules: Sequence["TransitionRule"]) -> GuardResult:
    """
    Select the first rule whose guard is satisfied.

    Rules are checked in registration order. Unconditional rules always match.
    Each predicate is called at most once and nothing is cached between calls,
    so guards always see the external state as it is right now. Predicates
    are expected to be pure reads; one that raises propagates to the caller.

    Returns:
        GuardResult with the winning rule (or None) and the descriptions of
        the guards that were checked and failed before it.
    """
    result = GuardResult()

    for rule in rules:
        if rule.guard is None:
            result.rule = rule
            return result

        if rule.guard.check():
            logger.debug(f"Guard '{rule.guard.description}' passed for {rule}")
            result.rule = rule
            return result

        logger.debug(f"Guard '{rule.guard.description}' not met for {rule}")
        result.failed_guards.append(rule.guard.description)

    return result
