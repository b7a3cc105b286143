import pytest

from workflow_state_machine.approval import (
    ApproveRequest,
    Document,
    DocumentStatus,
    Notifier,
    Trigger,
    define_state_machine,
    run_rejection,
    run_state_machine,
)
from workflow_state_machine.exceptions import IllegalTriggerError


def approve_next(document, requests):
    next(r for r in requests if not r.is_approved).is_approved = True


def test_end_to_end_reference_scenario(approval, document):
    states = []
    approval.on_transitioned(lambda t: states.append((t.source, t.destination)))

    approval.activate()
    assert document.status == DocumentStatus.DRAFT

    approval.fire(Trigger.COMPLETE_DRAFT)
    assert document.status == DocumentStatus.PENDING_INTERNAL_APPROVAL

    for expected in (DocumentStatus.PENDING_INTERNAL_APPROVAL,
                     DocumentStatus.PENDING_INTERNAL_APPROVAL,
                     DocumentStatus.PENDING_EXTERNAL_APPROVAL):
        approve_next(document, document.internal_approve_requests)
        approval.fire(Trigger.APPROVE)
        assert document.status == expected

    for expected in (DocumentStatus.PENDING_EXTERNAL_APPROVAL,
                     DocumentStatus.PENDING_EXTERNAL_APPROVAL,
                     DocumentStatus.PENDING_INVOICE_NUMBER):
        approve_next(document, document.external_approve_requests)
        approval.fire(Trigger.APPROVE)
        assert document.status == expected

    document.invoice_number = "123"
    approval.fire(Trigger.PROVIDE_INVOICE_NUMBER)

    assert document.status == DocumentStatus.COMPLETED
    assert len(states) == 8


def test_reference_run_notifications(approval, document, notifier):
    run_state_machine(approval, document)

    assert document.status == DocumentStatus.COMPLETED
    assert notifier.sent == [
        "Email sent: Dear internal approver 'adam@internal.com', please approve or reject",
        "Email sent: Dear internal approver 'ben@internal.com', please approve or reject",
        "Email sent: Dear internal approver 'cyan@internal.com', please approve or reject",
        "Email sent: Dear external approver 'anna@external.com', please approve or reject",
        "Email sent: Dear external approver 'bella@external.com', please approve or reject",
        "Email sent: Dear external approver 'cyntia@external.com', please approve or reject",
        "Email sent: Dear 'cyntia@external.com', please provide invoice number!",
        "Email sent: Dear 'owner', document was COMPLETED!",
    ]


def test_reentry_reruns_entry_action_while_approvers_remain(approval, document, notifier):
    approval.activate()
    approval.fire(Trigger.COMPLETE_DRAFT)
    sent_before = len(notifier.sent)

    document.internal_approve_requests[0].is_approved = True
    approval.fire(Trigger.APPROVE)

    assert document.status == DocumentStatus.PENDING_INTERNAL_APPROVAL
    assert len(notifier.sent) == sent_before + 1
    assert "ben@internal.com" in notifier.sent[-1]


def test_last_approver_guard_beats_reentry(approval, document):
    approval.activate()
    approval.fire(Trigger.COMPLETE_DRAFT)

    for request in document.internal_approve_requests:
        request.is_approved = True
    approval.fire(Trigger.APPROVE)

    assert document.status == DocumentStatus.PENDING_EXTERNAL_APPROVAL


def test_invoice_provided_early_skips_invoice_state(approval, document):
    approval.activate()
    approval.fire(Trigger.COMPLETE_DRAFT)
    for request in document.internal_approve_requests:
        request.is_approved = True
    approval.fire(Trigger.APPROVE)

    document.invoice_number = "INV-1"
    for request in document.external_approve_requests:
        request.is_approved = True
    approval.fire(Trigger.APPROVE)

    assert document.status == DocumentStatus.COMPLETED


def test_rejection_is_terminal(approval, document, notifier):
    approval.activate()
    approval.fire(Trigger.COMPLETE_DRAFT)

    approval.fire(Trigger.REJECT)

    assert document.status == DocumentStatus.REJECTED
    assert notifier.sent[-1] == "Email sent: Dear 'owner', document was REJECTED!"
    assert not any(approval.can_fire(trigger) for trigger in Trigger)
    assert approval.get_permitted_triggers() == []
    with pytest.raises(IllegalTriggerError):
        approval.fire(Trigger.APPROVE)


def test_run_rejection(approval, document):
    run_rejection(approval, document)

    assert document.status == DocumentStatus.REJECTED


def test_reject_allowed_from_every_pending_state(document, notifier):
    for status in (DocumentStatus.PENDING_INTERNAL_APPROVAL,
                   DocumentStatus.PENDING_EXTERNAL_APPROVAL,
                   DocumentStatus.PENDING_INVOICE_NUMBER):
        document.status = status
        sm = define_state_machine(document, notifier)
        sm.activate()

        sm.fire(Trigger.REJECT)

        assert document.status == DocumentStatus.REJECTED


def test_draft_only_accepts_complete_draft(approval):
    approval.activate()

    assert approval.get_permitted_triggers() == [Trigger.COMPLETE_DRAFT]
    with pytest.raises(IllegalTriggerError):
        approval.fire(Trigger.APPROVE)


def test_invoice_number_cannot_be_skipped(approval, document):
    approval.activate()
    approval.fire(Trigger.COMPLETE_DRAFT)

    assert not approval.can_fire(Trigger.PROVIDE_INVOICE_NUMBER)


def test_approve_not_permitted_while_waiting_for_invoice(document, notifier):
    document.status = DocumentStatus.PENDING_INVOICE_NUMBER
    sm = define_state_machine(document, notifier)
    sm.activate()

    with pytest.raises(IllegalTriggerError) as exc_info:
        sm.fire(Trigger.APPROVE)

    assert exc_info.value.state == DocumentStatus.PENDING_INVOICE_NUMBER
    assert exc_info.value.failed_guards == []
    assert document.status == DocumentStatus.PENDING_INVOICE_NUMBER


def test_document_properties():
    document = Document(
        owner="o",
        internal_approve_requests=[ApproveRequest("a", True), ApproveRequest("b")],
        external_approve_requests=[ApproveRequest("c")],
    )

    assert document.need_internal_approve
    assert document.need_external_approve
    assert document.need_invoice_number
    assert document.next_approver == "b"

    for request in document.approve_requests:
        request.is_approved = True

    assert document.next_approver is None
    assert not document.need_internal_approve


def test_notifier_uses_sink():
    received = []
    notifier = Notifier(sink=received.append)

    notifier.send("hello")

    assert received == ["Email sent: hello"]
    assert notifier.sent == received
