"""
Document approval workflow built on the state machine core.

A document moves from draft through internal and external approval rounds,
then waits for an invoice number if none was provided. Any pending state can
be rejected. Each state sends a notification when it is entered.
"""

import itertools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from .actions import Transition
from .core import StateMachine

logger = logging.getLogger(__name__)


class DocumentStatus(Enum):
    DRAFT = "Draft"
    PENDING_INTERNAL_APPROVAL = "PendingInternalApproval"
    PENDING_EXTERNAL_APPROVAL = "PendingExternalApproval"
    PENDING_INVOICE_NUMBER = "PendingInvoiceNumber"
    COMPLETED = "Completed"
    REJECTED = "Rejected"


class Trigger(Enum):
    COMPLETE_DRAFT = "CompleteDraft"
    APPROVE = "Approve"
    REJECT = "Reject"
    PROVIDE_INVOICE_NUMBER = "ProvideInvoiceNumber"


@dataclass
class ApproveRequest:
    approver_email: str
    is_approved: bool = False


@dataclass
class Document:
    """The business entity; the state machine only sees its ``status`` field"""
    owner: str
    internal_approve_requests: List[ApproveRequest] = field(default_factory=list)
    external_approve_requests: List[ApproveRequest] = field(default_factory=list)
    invoice_number: Optional[str] = None
    status: DocumentStatus = DocumentStatus.DRAFT

    @property
    def need_internal_approve(self) -> bool:
        return any(not r.is_approved for r in self.internal_approve_requests)

    @property
    def need_external_approve(self) -> bool:
        return any(not r.is_approved for r in self.external_approve_requests)

    @property
    def need_invoice_number(self) -> bool:
        return self.invoice_number is None

    @property
    def approve_requests(self) -> List[ApproveRequest]:
        """Internal requests followed by external ones, in approval order"""
        return list(itertools.chain(self.internal_approve_requests, self.external_approve_requests))

    @property
    def next_approver(self) -> Optional[str]:
        for request in self.approve_requests:
            if not request.is_approved:
                return request.approver_email
        return None


class Notifier:
    """Sends approval emails; the reference sink just logs them"""

    def __init__(self, sink: Optional[Callable[[str], None]] = None):
        self.sink = sink or logger.info
        self.sent: List[str] = []

    def send(self, message: str):
        message = f"Email sent: {message}"
        self.sent.append(message)
        self.sink(message)


def create_document() -> Document:
    """Sample document with three internal and three external approvers"""
    return Document(
        owner="owner",
        internal_approve_requests=[
            ApproveRequest("adam@internal.com"),
            ApproveRequest("ben@internal.com"),
            ApproveRequest("cyan@internal.com"),
        ],
        external_approve_requests=[
            ApproveRequest("anna@external.com"),
            ApproveRequest("bella@external.com"),
            ApproveRequest("cyntia@external.com"),
        ],
    )


def define_state_machine(document: Document, notifier: Optional[Notifier] = None) -> StateMachine:
    """Configure the approval workflow over ``document.status``"""
    notifier = notifier or Notifier()

    def set_status(status: DocumentStatus):
        document.status = status

    sm = StateMachine(
        name="DocumentApproval",
        states=DocumentStatus,
        state_accessor=lambda: document.status,
        state_mutator=set_status
    )

    def send_internal_approve_notification(transition: Transition):
        notifier.send(f"Dear internal approver '{document.next_approver}', please approve or reject")

    def send_external_approve_notification(transition: Transition):
        notifier.send(f"Dear external approver '{document.next_approver}', please approve or reject")

    def send_pending_invoice_number_notification(transition: Transition):
        last = document.external_approve_requests[-1].approver_email
        notifier.send(f"Dear '{last}', please provide invoice number!")

    def send_completed_notification(transition: Transition):
        notifier.send(f"Dear '{document.owner}', document was COMPLETED!")

    def send_rejected_notification(transition: Transition):
        notifier.send(f"Dear '{document.owner}', document was REJECTED!")

    sm.configure(DocumentStatus.DRAFT) \
        .permit(Trigger.COMPLETE_DRAFT, DocumentStatus.PENDING_INTERNAL_APPROVAL)

    sm.configure(DocumentStatus.PENDING_INTERNAL_APPROVAL) \
        .permit_reentry_if(Trigger.APPROVE, lambda: document.need_internal_approve, "Not the last approver") \
        .permit_if(Trigger.APPROVE, DocumentStatus.PENDING_EXTERNAL_APPROVAL,
                   lambda: not document.need_internal_approve, "Last approver") \
        .permit(Trigger.REJECT, DocumentStatus.REJECTED) \
        .on_entry(send_internal_approve_notification)

    sm.configure(DocumentStatus.PENDING_EXTERNAL_APPROVAL) \
        .permit_reentry_if(Trigger.APPROVE, lambda: document.need_external_approve, "Not the last approver") \
        .permit_if(Trigger.APPROVE, DocumentStatus.PENDING_INVOICE_NUMBER,
                   lambda: not document.need_external_approve and document.need_invoice_number,
                   "Last approver, invoice number not provided") \
        .permit_if(Trigger.APPROVE, DocumentStatus.COMPLETED,
                   lambda: not document.need_external_approve and not document.need_invoice_number,
                   "Last approver, invoice number provided") \
        .permit(Trigger.REJECT, DocumentStatus.REJECTED) \
        .on_entry(send_external_approve_notification)

    sm.configure(DocumentStatus.PENDING_INVOICE_NUMBER) \
        .permit(Trigger.PROVIDE_INVOICE_NUMBER, DocumentStatus.COMPLETED) \
        .permit(Trigger.REJECT, DocumentStatus.REJECTED) \
        .on_entry(send_pending_invoice_number_notification)

    sm.configure(DocumentStatus.COMPLETED) \
        .on_entry(send_completed_notification)

    sm.configure(DocumentStatus.REJECTED) \
        .on_entry(send_rejected_notification)

    return sm


def run_state_machine(sm: StateMachine, document: Document, invoice_number: str = "123"):
    """Reference run: complete the draft, collect every approval, provide the invoice number"""
    sm.activate()
    sm.fire(Trigger.COMPLETE_DRAFT)

    for request in document.approve_requests:
        request.is_approved = True
        sm.fire(Trigger.APPROVE)

    document.invoice_number = invoice_number
    sm.fire(Trigger.PROVIDE_INVOICE_NUMBER)


def run_rejection(sm: StateMachine, document: Document):
    """Complete the draft, take one internal approval, then reject"""
    sm.activate()
    sm.fire(Trigger.COMPLETE_DRAFT)

    document.internal_approve_requests[0].is_approved = True
    sm.fire(Trigger.APPROVE)
    sm.fire(Trigger.REJECT)
