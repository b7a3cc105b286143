"""
Parser for declarative state machine definitions (YAML or dict).
"""

import yaml
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Type, Union

from .core import StateMachine
from .exceptions import DefinitionError
from .expression import ExpressionEvaluator, condition_guard
from .guards import Guard
from .table import TransitionRule, TransitionTable


logger = logging.getLogger(__name__)


@dataclass
class TransitionSpec:
    """One transition entry of a definition"""
    from_state: str
    trigger: str
    to_state: str
    guard: Optional[str] = None  # Name in the guard registry
    condition: Optional[str] = None  # Expression evaluated against the context
    description: Optional[str] = None
    reentry: bool = False


@dataclass
class MachineDefinition:
    """State machine definition"""
    name: str
    states: Type[Enum]
    triggers: Type[Enum]
    initial_state: Enum
    transitions: List[TransitionSpec] = field(default_factory=list)
    entry_actions: Dict[str, List[str]] = field(default_factory=dict)
    exit_actions: Dict[str, List[str]] = field(default_factory=dict)

    def build(self,
              guards: Optional[Mapping[str, Callable[[], bool]]] = None,
              actions: Optional[Mapping[str, Callable]] = None,
              context: Optional[Callable[[], Mapping[str, Any]]] = None,
              state_accessor: Optional[Callable[[], Any]] = None,
              state_mutator: Optional[Callable[[Any], None]] = None) -> StateMachine:
        """
        Create a configured (not yet activated) state machine.

        Args:
            guards: Guard predicates referenced by name
            actions: Entry/exit callbacks referenced by name
            context: Returns the variables visible to condition expressions
            state_accessor: Optional external state getter
            state_mutator: Optional external state setter
        """
        guards = guards or {}
        actions = actions or {}
        evaluator = ExpressionEvaluator()

        machine = StateMachine(
            name=self.name,
            states=self.states,
            initial_state=None if state_accessor else self.initial_state,
            state_accessor=state_accessor,
            state_mutator=state_mutator
        )

        for member in self.states:
            machine.configure(member)

        for spec in self.transitions:
            config = machine.configure(self.states[spec.from_state])
            trigger = self.triggers[spec.trigger]
            predicate = None

            if spec.guard:
                if spec.guard not in guards:
                    raise DefinitionError(f"Unknown guard '{spec.guard}' in {self.name}")
                predicate = guards[spec.guard]
            elif spec.condition:
                if context is None:
                    raise DefinitionError(f"Condition '{spec.condition}' requires a context provider")
                try:
                    predicate = condition_guard(spec.condition, context, evaluator)
                except ValueError as e:
                    raise DefinitionError(f"Invalid condition '{spec.condition}' in {self.name}: {e}")

            description = spec.description or spec.guard or spec.condition or ""

            if spec.reentry:
                if predicate:
                    config.permit_reentry_if(trigger, predicate, description)
                else:
                    config.permit_reentry(trigger)
            elif predicate:
                config.permit_if(trigger, self.states[spec.to_state], predicate, description)
            else:
                config.permit(trigger, self.states[spec.to_state])

        for registry, attach in ((self.entry_actions, "on_entry"), (self.exit_actions, "on_exit")):
            for state_name, names in registry.items():
                config = machine.configure(self.states[state_name])
                for action_name in names:
                    if action_name not in actions:
                        raise DefinitionError(f"Unknown action '{action_name}' in {self.name}")
                    getattr(config, attach)(actions[action_name], action_name)

        return machine

    def to_table(self) -> TransitionTable:
        """
        Transition table for graph export only.

        Guards are placeholders carrying their descriptions; evaluating one
        raises DefinitionError.
        """
        table = TransitionTable()
        for member in self.states:
            table.mark_configured(member)

        for spec in self.transitions:
            guard = None
            if spec.guard or spec.condition:
                guard = Guard(_unbound_guard, spec.description or spec.guard or spec.condition)
            table.add_rule(TransitionRule(
                source=self.states[spec.from_state],
                trigger=self.triggers[spec.trigger],
                destination=self.states[spec.to_state],
                guard=guard,
                reentry=spec.reentry
            ))
        return table


def _unbound_guard() -> bool:
    raise DefinitionError("Guard is not bound; build() the definition with a guard registry first")


class DefinitionParser:
    """Parser for state machine definitions"""

    @staticmethod
    def from_file(filepath: Union[str, Path]) -> MachineDefinition:
        """Load a machine definition from a YAML file"""
        filepath = Path(filepath)

        with open(filepath, 'r') as f:
            data = yaml.safe_load(f)

        return DefinitionParser.from_dict(data)

    @staticmethod
    def from_string(text: str) -> MachineDefinition:
        return DefinitionParser.from_dict(yaml.safe_load(text))

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> MachineDefinition:
        """Parse a machine definition from a dictionary"""
        if not isinstance(data, dict):
            raise DefinitionError("Definition must be a mapping")

        # Allow the definition to be nested under a 'state_machine' key
        data = data.get('state_machine', data)

        try:
            name = data['name']
            state_names = data['states']
        except (KeyError, TypeError) as e:
            raise DefinitionError(f"Definition is missing required field: {e}")

        if not isinstance(state_names, list):
            raise DefinitionError(f"States of {name} must be a list")
        if not state_names:
            raise DefinitionError(f"{name} defines no states")

        initial_name = data.get('initial_state', state_names[0])
        if initial_name not in state_names:
            raise DefinitionError(f"Initial state '{initial_name}' is not one of the states of {name}")

        # Empty YAML sections load as None
        transitions_data = data.get('transitions') or []
        trigger_names = data.get('triggers') or []
        for section, value in (('transitions', transitions_data), ('triggers', trigger_names)):
            if not isinstance(value, list):
                raise DefinitionError(f"'{section}' of {name} must be a list")

        transitions = [
            DefinitionParser._parse_transition(name, state_names, trans_data)
            for trans_data in transitions_data
        ]

        # Declared triggers first, then any used only in transitions
        trigger_names = list(trigger_names)
        for spec in transitions:
            if spec.trigger not in trigger_names:
                trigger_names.append(spec.trigger)

        entry_actions = DefinitionParser._parse_actions(name, state_names, data.get('entry_actions') or {})
        exit_actions = DefinitionParser._parse_actions(name, state_names, data.get('exit_actions') or {})

        try:
            states = Enum(f"{name}State", state_names)
            triggers = Enum(f"{name}Trigger", trigger_names)
        except (TypeError, ValueError) as e:
            raise DefinitionError(f"Invalid state or trigger names in {name}: {e}")

        logger.debug(f"Parsed definition {name}: {len(state_names)} states, {len(transitions)} transitions")

        return MachineDefinition(
            name=name,
            states=states,
            triggers=triggers,
            initial_state=states[initial_name],
            transitions=transitions,
            entry_actions=entry_actions,
            exit_actions=exit_actions
        )

    @staticmethod
    def _parse_transition(name: str, state_names: List[str], data: Dict[str, Any]) -> TransitionSpec:
        """Parse a single transition entry"""
        try:
            from_state = data['from']
            trigger = data['trigger']
        except (KeyError, TypeError) as e:
            raise DefinitionError(f"Transition in {name} is missing required field: {e}")

        reentry = bool(data.get('reentry', False))
        to_state = data.get('to', from_state if reentry else None)

        if to_state is None:
            raise DefinitionError(f"Transition {from_state} on {trigger} in {name} has no destination")

        for state in (from_state, to_state):
            if state not in state_names:
                raise DefinitionError(f"Transition {from_state} on {trigger} references unknown state '{state}'")

        if reentry and to_state != from_state:
            raise DefinitionError(f"Reentry transition {from_state} on {trigger} cannot lead to {to_state}")

        if not reentry and to_state == from_state:
            raise DefinitionError(f"Transition {from_state} on {trigger} leads to itself; mark it 'reentry: true'")

        if data.get('guard') and data.get('condition'):
            raise DefinitionError(f"Transition {from_state} on {trigger} has both a guard and a condition")

        if data.get('condition'):
            try:
                ExpressionEvaluator().compile(data['condition'])
            except (TypeError, ValueError) as e:
                raise DefinitionError(f"Invalid condition for {from_state} on {trigger}: {e}")

        return TransitionSpec(
            from_state=from_state,
            trigger=str(trigger),
            to_state=to_state,
            guard=data.get('guard'),
            condition=data.get('condition'),
            description=data.get('description'),
            reentry=reentry
        )

    @staticmethod
    def _parse_actions(name: str, state_names: List[str], data: Dict[str, Any]) -> Dict[str, List[str]]:
        """Parse state -> action name(s) mapping"""
        if not isinstance(data, dict):
            raise DefinitionError(f"Actions in {name} must be a mapping of state to action names")

        actions = {}
        for state, names in data.items():
            if state not in state_names:
                raise DefinitionError(f"Actions reference unknown state '{state}' in {name}")
            actions[state] = [names] if isinstance(names, str) else list(names)
        return actions
