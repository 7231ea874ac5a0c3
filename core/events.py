"""
Domain events for invoicing and dunning.

Immutable event objects that represent state changes of an invoice. A
service publishes what happened, handlers react without the publisher
knowing who's listening.

Event Categories:
- InvoiceEvent: Invoice lifecycle (issue, due date change)
- PaymentEvent: Payments (applied, paid in full, overpayment flagged)
- ReversalEvent: Cancellation and credit note documents
- DunningEvent: Reminder escalation

Events carry the full domain object so handlers don't need to re-fetch state.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from utils.timezone import now_utc


@dataclass(frozen=True, kw_only=True)
class BillingEvent:
    """Base class for all billing domain events."""
    event_id: str = field(default_factory=lambda: str(uuid4()))
    occurred_at: datetime = field(default_factory=now_utc)


# =============================================================================
# INVOICE EVENTS
# =============================================================================


@dataclass(frozen=True)
class InvoiceEvent(BillingEvent):
    """Events related to invoice lifecycle."""
    pass


@dataclass(frozen=True)
class InvoiceIssued(InvoiceEvent):
    """A regular invoice was created."""
    invoice: Any = None  # Invoice; Any avoids a circular import

    @classmethod
    def create(cls, invoice: Any) -> "InvoiceIssued":
        return cls(invoice=invoice)


@dataclass(frozen=True)
class DueDateChanged(InvoiceEvent):
    """An invoice's due date was moved."""
    invoice: Any = None
    previous_due_date: Any = None

    @classmethod
    def create(cls, invoice: Any, previous_due_date: Any) -> "DueDateChanged":
        return cls(invoice=invoice, previous_due_date=previous_due_date)


# =============================================================================
# PAYMENT EVENTS
# =============================================================================


@dataclass(frozen=True)
class PaymentEvent(BillingEvent):
    """Events related to payments."""
    pass


@dataclass(frozen=True)
class PaymentApplied(PaymentEvent):
    """A payment was applied to an invoice."""
    invoice: Any = None
    payment: Any = None

    @classmethod
    def create(cls, invoice: Any, payment: Any) -> "PaymentApplied":
        return cls(invoice=invoice, payment=payment)


@dataclass(frozen=True)
class InvoicePaid(PaymentEvent):
    """Invoice became fully paid."""
    invoice: Any = None

    @classmethod
    def create(cls, invoice: Any) -> "InvoicePaid":
        return cls(invoice=invoice)


@dataclass(frozen=True)
class OverpaymentFlagged(PaymentEvent):
    """A payment exceeded the outstanding balance within tolerance. Needs manual review."""
    invoice: Any = None
    payment: Any = None
    excess_cents: int = 0

    @classmethod
    def create(cls, invoice: Any, payment: Any, excess_cents: int) -> "OverpaymentFlagged":
        return cls(invoice=invoice, payment=payment, excess_cents=excess_cents)


# =============================================================================
# REVERSAL EVENTS
# =============================================================================


@dataclass(frozen=True)
class ReversalEvent(BillingEvent):
    """Events related to cancellation and credit note documents."""
    pass


@dataclass(frozen=True)
class CancellationCreated(ReversalEvent):
    """A Cancellation (Storno) document was created."""
    document: Any = None
    original: Any = None

    @classmethod
    def create(cls, document: Any, original: Any) -> "CancellationCreated":
        return cls(document=document, original=original)


@dataclass(frozen=True)
class CreditNoteCreated(ReversalEvent):
    """A CreditNote (Gutschrift) document was created."""
    document: Any = None
    original: Any = None

    @classmethod
    def create(cls, document: Any, original: Any) -> "CreditNoteCreated":
        return cls(document=document, original=original)


# =============================================================================
# DUNNING EVENTS
# =============================================================================


@dataclass(frozen=True)
class DunningEvent(BillingEvent):
    """Events related to reminder escalation."""
    pass


@dataclass(frozen=True)
class ReminderIssued(DunningEvent):
    """A reminder level was recorded. Ready for rendering and delivery."""
    invoice: Any = None
    notice: Any = None  # ReminderNotice
    document: Any = None  # DocumentPayload

    @classmethod
    def create(cls, invoice: Any, notice: Any, document: Any) -> "ReminderIssued":
        return cls(invoice=invoice, notice=notice, document=document)
