import pytest

from workflow_state_machine import StateMachine
from workflow_state_machine.approval import Trigger
from workflow_state_machine.graph import edge_label, export_graph
from workflow_state_machine.guards import Guard
from workflow_state_machine.table import TransitionRule, TransitionTable
from tests.conftest import State, Trig


def node_lines(dot):
    return [line for line in dot.splitlines() if line.startswith('    "') and " -> " not in line]


def edge_lines(dot):
    return [line for line in dot.splitlines() if " -> " in line]


def test_one_node_per_state_and_one_edge_per_rule(approval):
    dot = approval.to_graph()

    assert dot.startswith('digraph "DocumentApproval" {')
    assert dot.endswith("}")
    assert len(node_lines(dot)) == 6
    assert len(edge_lines(dot)) == len(approval.table) == 10


def test_edge_labels(approval):
    dot = approval.to_graph()

    assert '"DRAFT" -> "PENDING_INTERNAL_APPROVAL" [label="COMPLETE_DRAFT"];' in dot
    assert ('"PENDING_INTERNAL_APPROVAL" -> "PENDING_INTERNAL_APPROVAL" '
            '[label="APPROVE, Not the last approver, reentrant"];') in dot
    assert ('"PENDING_EXTERNAL_APPROVAL" -> "COMPLETED" '
            '[label="APPROVE, Last approver, invoice number provided"];') in dot


def test_entry_action_names_in_node_labels(approval):
    dot = approval.to_graph()

    assert ('"COMPLETED" [label="COMPLETED\\nentry / send_completed_notification"];') in dot
    assert '    "DRAFT";' in dot


def test_graph_independent_of_lifecycle(approval, document):
    before = approval.to_graph()

    approval.activate()
    approval.fire(Trigger.COMPLETE_DRAFT)

    assert approval.to_graph() == before


def test_destination_only_states_are_nodes():
    sm = StateMachine("Partial", State, initial_state=State.A)
    sm.configure(State.A).permit(Trig.GO, State.B).permit(Trig.STOP, State.C)

    dot = sm.to_graph()

    assert len(node_lines(dot)) == 3
    assert '    "B";' in dot
    assert '"D"' not in dot


def test_plantuml_format(approval):
    uml = approval.to_graph(format="plantuml")
    lines = uml.splitlines()

    assert lines[0] == "@startuml"
    assert lines[-1] == "@enduml"
    assert "title DocumentApproval State Machine" in lines
    assert len([line for line in lines if line.startswith("state ")]) == 6
    assert len([line for line in lines if " --> " in line]) == 10
    assert "PENDING_INVOICE_NUMBER --> COMPLETED : PROVIDE_INVOICE_NUMBER" in lines
    assert "REJECTED : entry / send_rejected_notification" in lines


def test_unknown_format(approval):
    with pytest.raises(ValueError):
        approval.to_graph(format="svg")


def test_quotes_escaped():
    table = TransitionTable()
    table.add_rule(TransitionRule("a", "go", "b", Guard(lambda: True, 'say "yes"')))

    dot = export_graph(table, name="Quoted")

    assert '[label="go, say \\"yes\\""];' in dot


def test_backslashes_escaped():
    table = TransitionTable()
    table.add_rule(TransitionRule("a", "go", "b", Guard(lambda: True, "path C:\\")))

    dot = export_graph(table, name="Escaped")

    assert '[label="go, path C:\\\\"];' in dot


def test_entry_action_names_escaped():
    sm = StateMachine("Actions", State, initial_state=State.A)
    sm.configure(State.A).permit(Trig.GO, State.B)
    sm.configure(State.B).on_entry(lambda t: None, 'say "hi"')

    dot = sm.to_graph()

    assert '"B" [label="B\\nentry / say \\"hi\\""];' in dot


def test_edge_label_variants():
    assert edge_label(TransitionRule(State.A, Trig.GO, State.B)) == "GO"
    assert edge_label(TransitionRule(State.A, Trig.LOOP, State.A, reentry=True)) == "LOOP, reentrant"
    guarded = TransitionRule(State.A, Trig.GO, State.B, Guard(lambda: True, "ready"))
    assert edge_label(guarded) == "GO, ready"
