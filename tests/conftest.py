from dataclasses import dataclass
from enum import Enum

import pytest

from workflow_state_machine import StateMachine
from workflow_state_machine.approval import create_document, define_state_machine, Notifier


class State(Enum):
    A = "a"
    B = "b"
    C = "c"
    D = "d"


class Trig(Enum):
    GO = "go"
    LOOP = "loop"
    STOP = "stop"


@dataclass
class Record:
    """External entity owning the machine's state"""
    state: State = State.A
    flag: bool = False


@pytest.fixture
def record():
    return Record()


@pytest.fixture
def machine(record):
    def set_state(state):
        record.state = state

    return StateMachine(
        name="Test",
        states=State,
        state_accessor=lambda: record.state,
        state_mutator=set_state
    )


@pytest.fixture
def document():
    return create_document()


@pytest.fixture
def notifier():
    return Notifier(sink=lambda message: None)


@pytest.fixture
def approval(document, notifier):
    return define_state_machine(document, notifier)
