"""
Cancellation (Storno) and credit note (Gutschrift) documents.

A Cancellation is a self-settled document for the full invoice amount plus
a link on the original (cancelled_by_id). The original's money fields stay
as they were; the link makes it terminal. Only one Cancellation may exist
per invoice.

A credit note is self-settled as well and adjusts the original:
- full credit on a fully paid original reopens it (paid amount back to 0)
- otherwise, if the original has payments, its paid amount drops by the
  credited amount, never below zero
"""

import logging
from datetime import date
from uuid import UUID, uuid4

from core.audit import AuditLogger, AuditAction
from core.event_bus import EventBus
from core.events import CancellationCreated, CreditNoteCreated
from core.exceptions import AlreadyReversed, InvalidStateTransition, ValidationError
from core.locks import InvoiceLocks
from core.models import Invoice, InvoiceType
from core.money import format_cents
from core.services.invoice_service import InvoiceService
from core.stores.base import InvoiceStore
from utils.timezone import now_utc, today_utc

logger = logging.getLogger(__name__)


def _check_reversible(original: Invoice) -> None:
    if original.type.is_reversal:
        raise InvalidStateTransition(
            f"{original.type.value} {original.number} cannot be reversed"
        )
    if original.is_cancelled:
        raise AlreadyReversed(original.id)


def _check_reason(reason: str) -> str:
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A reason is required", "reason")
    return reason


def _check_credit_amount(original: Invoice, amount_cents: int) -> None:
    if amount_cents <= 0:
        raise ValidationError("Credit amount must be positive", "amount_cents")
    if amount_cents > original.amount_cents:
        raise ValidationError("Credit amount cannot exceed the invoice amount", "amount_cents")
    if original.credited_amount_cents + amount_cents > original.amount_cents:
        raise ValidationError(
            f"Invoice {original.number} has {original.credited_amount_cents} cents credited already; "
            f"total credits cannot exceed {original.amount_cents} cents",
            "amount_cents",
        )


def _reversal_document(
    original: Invoice,
    invoice_type: InvoiceType,
    amount_cents: int,
    number: str,
    reason: str,
    today: date,
) -> Invoice:
    now = now_utc()
    return Invoice(
        id=uuid4(),
        number=number,
        type=invoice_type,
        customer_id=original.customer_id,
        customer_name=original.customer_name,
        project_id=original.project_id,
        amount_cents=amount_cents,
        paid_amount_cents=amount_cents,
        issue_date=today,
        due_date=today,
        related_invoice_id=original.id,
        related_amount_cents=original.amount_cents,
        reason=reason,
        created_at=now,
        updated_at=now,
    )


def build_cancellation(original: Invoice, reason: str, number: str, today: date) -> tuple[Invoice, Invoice]:
    """
    Cancellation document and the linked original, without persistence.

    Returns:
        (cancellation document, original with cancelled_by_id set)

    Raises:
        ValidationError: If reason is blank
        InvalidStateTransition: If original is itself a reversal document
        AlreadyReversed: If original already has a Cancellation
    """
    _check_reversible(original)
    reason = _check_reason(reason)

    document = _reversal_document(
        original, InvoiceType.CANCELLATION, original.amount_cents, number, reason, today,
    )
    linked = original.model_copy(update={"cancelled_by_id": document.id})
    return document, linked


def credited_paid_amount(original: Invoice, amount_cents: int) -> int:
    """
    Paid amount of the original after a credit note.

    Full credit on a fully paid invoice reopens it; a credit against an
    invoice with payments reduces them; an unpaid invoice is unchanged.
    """
    fully_paid = original.paid_amount_cents >= original.amount_cents
    if amount_cents == original.amount_cents and fully_paid:
        return 0
    if original.paid_amount_cents > 0:
        return max(0, original.paid_amount_cents - amount_cents)
    return original.paid_amount_cents


def build_credit_note(
    original: Invoice,
    amount_cents: int,
    reason: str,
    number: str,
    today: date,
) -> tuple[Invoice, Invoice]:
    """
    Credit note document and the adjusted original, without persistence.

    Returns:
        (credit note document, original with reduced paid amount)

    Raises:
        ValidationError: If amount is out of range or reason is blank
        InvalidStateTransition: If original is itself a reversal document
        AlreadyReversed: If original has been cancelled
    """
    _check_reversible(original)
    reason = _check_reason(reason)
    _check_credit_amount(original, amount_cents)

    document = _reversal_document(
        original, InvoiceType.CREDIT_NOTE, amount_cents, number, reason, today,
    )
    paid = credited_paid_amount(original, amount_cents)
    absorbed = original.paid_amount_cents - paid
    adjusted = original.model_copy(update={
        "paid_amount_cents": paid,
        "credited_amount_cents": original.credited_amount_cents + amount_cents,
        "open_credit_cents": original.open_credit_cents + max(0, amount_cents - absorbed),
    })
    return document, adjusted


class ReversalService:
    """Creates reversal documents, one writer per original invoice at a time."""

    def __init__(
        self,
        store: InvoiceStore,
        invoices: InvoiceService,
        audit: AuditLogger,
        event_bus: EventBus,
        locks: InvoiceLocks,
    ):
        self.store = store
        self.invoices = invoices
        self.audit = audit
        self.event_bus = event_bus
        self.locks = locks

    def create_cancellation(self, invoice_id: UUID, reason: str, today: date | None = None) -> Invoice:
        """
        Cancel an invoice with a Storno document.

        Args:
            invoice_id: Original invoice UUID
            reason: Why the invoice is cancelled
            today: Issue date of the document (defaults to today, UTC)

        Returns:
            The Cancellation document

        Raises:
            InvoiceNotFound: If original doesn't exist
            AlreadyReversed: If original already has a Cancellation
            InvalidStateTransition: If original is a reversal document
            ValidationError: If reason is blank
        """
        today = today or today_utc()

        with self.locks.hold(invoice_id):
            original = self.invoices.require(invoice_id)
            _check_reversible(original)
            _check_reason(reason)
            number = self.invoices.allocate_number(today, InvoiceType.CANCELLATION)
            document, linked = build_cancellation(original, reason, number, today)
            document, linked = self.store.save_reversal(document, linked, original.version)

        self._audit_reversal(document, original, linked)
        logger.info("Invoice %s cancelled by %s", original.number, document.number)

        self.event_bus.publish(CancellationCreated.create(document=document, original=linked))

        return document

    def create_credit_note(
        self,
        invoice_id: UUID,
        amount_cents: int,
        reason: str,
        today: date | None = None,
    ) -> Invoice:
        """
        Credit (part of) an invoice with a Gutschrift document.

        Args:
            invoice_id: Original invoice UUID
            amount_cents: Credited amount, 0 < amount <= original amount
            reason: Why the amount is credited
            today: Issue date of the document (defaults to today, UTC)

        Returns:
            The CreditNote document (self-settled)

        Raises:
            InvoiceNotFound: If original doesn't exist
            AlreadyReversed: If original has been cancelled
            InvalidStateTransition: If original is a reversal document
            ValidationError: If amount or reason is invalid
        """
        today = today or today_utc()

        with self.locks.hold(invoice_id):
            original = self.invoices.require(invoice_id)
            _check_reversible(original)
            _check_reason(reason)
            _check_credit_amount(original, amount_cents)
            number = self.invoices.allocate_number(today, InvoiceType.CREDIT_NOTE)
            document, adjusted = build_credit_note(original, amount_cents, reason, number, today)
            document, adjusted = self.store.save_reversal(document, adjusted, original.version)

        self._audit_reversal(document, original, adjusted)
        logger.info(
            "Credit note %s over %s for invoice %s (balance %s -> %s)",
            document.number, format_cents(amount_cents), original.number,
            format_cents(original.balance_due_cents), format_cents(adjusted.balance_due_cents),
        )

        self.event_bus.publish(CreditNoteCreated.create(document=document, original=adjusted))

        return document

    def list_reversals(self, invoice_id: UUID) -> list[Invoice]:
        """Cancellation and credit note documents issued against an invoice."""
        self.invoices.require(invoice_id)
        return self.store.list_related(invoice_id)

    def _audit_reversal(self, document: Invoice, before: Invoice, after: Invoice) -> None:
        self.audit.log_change(
            entity_type="invoice",
            entity_id=document.id,
            action=AuditAction.CREATE,
            changes={"created": document.model_dump(mode="json", exclude={"status", "dunning", "payments"})},
        )
        self.audit.log_change(
            entity_type="invoice",
            entity_id=before.id,
            action=AuditAction.UPDATE,
            changes={
                "paid_amount_cents": {"old": before.paid_amount_cents, "new": after.paid_amount_cents},
                "credited_amount_cents": {"old": before.credited_amount_cents, "new": after.credited_amount_cents},
                "open_credit_cents": {"old": before.open_credit_cents, "new": after.open_credit_cents},
                "cancelled_by_id": {
                    "old": None,
                    "new": str(after.cancelled_by_id) if after.cancelled_by_id else None,
                },
                "reversal_document": document.number,
            },
        )
