import logging

from workflow_state_machine.guards import Guard
from workflow_state_machine.table import TransitionRule, TransitionTable
from tests.conftest import State, Trig


def test_rules_kept_in_registration_order():
    table = TransitionTable()
    first = TransitionRule(State.A, Trig.GO, State.B, Guard(lambda: True, "first"))
    second = TransitionRule(State.A, Trig.GO, State.C, Guard(lambda: True, "second"))

    table.add_rule(first)
    table.add_rule(second)

    assert table.rules_for(State.A, Trig.GO) == [first, second]
    assert table.rules_for(State.A, Trig.STOP) == []
    assert len(table) == 2


def test_states_include_destination_only_states():
    table = TransitionTable()
    table.mark_configured(State.D)
    table.add_rule(TransitionRule(State.A, Trig.GO, State.B))

    assert table.configured_states == [State.D, State.A]
    assert table.states == [State.D, State.A, State.B]
    assert table.is_configured(State.A)
    assert not table.is_configured(State.B)


def test_triggers_for_state():
    table = TransitionTable()
    table.add_rule(TransitionRule(State.A, Trig.GO, State.B))
    table.add_rule(TransitionRule(State.A, Trig.LOOP, State.A, reentry=True))
    table.add_rule(TransitionRule(State.B, Trig.STOP, State.C))

    assert table.triggers_for(State.A) == [Trig.GO, Trig.LOOP]
    assert table.triggers_for(State.C) == []


def test_unreachable_rule_logs_warning(caplog):
    table = TransitionTable()
    table.add_rule(TransitionRule(State.A, Trig.GO, State.B))

    with caplog.at_level(logging.WARNING, logger="workflow_state_machine.table"):
        table.add_rule(TransitionRule(State.A, Trig.GO, State.C, Guard(lambda: True, "late")))

    assert "unreachable" in caplog.text
    assert len(table) == 2


def test_rule_str():
    rule = TransitionRule(State.A, Trig.GO, State.B)

    assert str(rule) == "A -> B on GO"
    assert not rule.is_guarded
