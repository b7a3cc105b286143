"""
Workflow State Machine Library

A guarded state machine for approval-style workflows, driving state that
lives on the caller's own business entity.
"""

__version__ = "0.1.0"

from .core import (
    StateMachine,
    StateConfiguration,
)

from .actions import ActionDispatcher, Transition
from .exceptions import (
    StateMachineError,
    IllegalTriggerError,
    ReentrantFireError,
    UnconfiguredStateError,
    MachineNotActivatedError,
    ActionFailedError,
    DefinitionError,
)
from .graph import export_graph
from .guards import Guard
from .parser import DefinitionParser, MachineDefinition
from .table import TransitionRule, TransitionTable

__all__ = [
    "StateMachine",
    "StateConfiguration",
    "ActionDispatcher",
    "Transition",
    "Guard",
    "TransitionRule",
    "TransitionTable",
    "export_graph",
    "DefinitionParser",
    "MachineDefinition",
    "StateMachineError",
    "IllegalTriggerError",
    "ReentrantFireError",
    "UnconfiguredStateError",
    "MachineNotActivatedError",
    "ActionFailedError",
    "DefinitionError",
]
