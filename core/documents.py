"""
Numeric payloads for the document-rendering collaborator.

This module decides which lines appear on an invoice, reminder or reversal
document and what they add up to. Layout, language and PDF generation live
outside this code base.
"""

from datetime import date
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, computed_field

from core.models import Invoice, InvoiceType, ReminderNotice


class DocumentKind(str, Enum):
    INVOICE = "invoice"
    DOWN_PAYMENT_INVOICE = "down_payment_invoice"
    FINAL_SETTLEMENT_INVOICE = "final_settlement_invoice"
    CANCELLATION = "cancellation"
    CREDIT_NOTE = "credit_note"
    REMINDER = "reminder"


_KIND_BY_TYPE = {
    InvoiceType.STANDARD: DocumentKind.INVOICE,
    InvoiceType.DOWN_PAYMENT: DocumentKind.DOWN_PAYMENT_INVOICE,
    InvoiceType.FINAL_SETTLEMENT: DocumentKind.FINAL_SETTLEMENT_INVOICE,
    InvoiceType.CANCELLATION: DocumentKind.CANCELLATION,
    InvoiceType.CREDIT_NOTE: DocumentKind.CREDIT_NOTE,
}


class DocumentLine(BaseModel):
    code: str
    amount_cents: int


class DocumentPayload(BaseModel):
    kind: DocumentKind
    invoice_id: UUID
    number: str
    issue_date: date
    due_date: date | None = None
    related_invoice_id: UUID | None = None
    lines: list[DocumentLine]

    @computed_field
    @property
    def total_cents(self) -> int:
        return sum(line.amount_cents for line in self.lines)


def invoice_document(invoice: Invoice, previous_down_payments: list[Invoice] | None = None) -> DocumentPayload:
    """
    Lines for an invoice or reversal document.

    Cancellations carry their amount as a negative line since they offset
    the original claim. Final settlements list the down payments already
    billed as deductions.
    """
    if invoice.type == InvoiceType.CANCELLATION:
        lines = [DocumentLine(code="cancellation", amount_cents=-invoice.amount_cents)]
    elif invoice.type == InvoiceType.CREDIT_NOTE:
        lines = [DocumentLine(code="credit", amount_cents=-invoice.amount_cents)]
    elif invoice.type == InvoiceType.FINAL_SETTLEMENT:
        lines = [DocumentLine(code="settlement_total", amount_cents=invoice.amount_cents)]
        for down_payment in previous_down_payments or []:
            lines.append(DocumentLine(
                code=f"less_down_payment:{down_payment.number}",
                amount_cents=-down_payment.amount_cents,
            ))
    else:
        lines = [DocumentLine(code="amount", amount_cents=invoice.amount_cents)]

    return DocumentPayload(
        kind=_KIND_BY_TYPE[invoice.type],
        invoice_id=invoice.id,
        number=invoice.number,
        issue_date=invoice.issue_date,
        due_date=None if invoice.type.is_reversal else invoice.due_date,
        related_invoice_id=invoice.related_invoice_id,
        lines=lines,
    )


def reminder_document(notice: ReminderNotice) -> DocumentPayload:
    """Outstanding amount, all fees and all interest accrued so far."""
    lines = [DocumentLine(code="outstanding", amount_cents=notice.outstanding_cents)]
    if notice.total_fees_cents:
        lines.append(DocumentLine(code="reminder_fees", amount_cents=notice.total_fees_cents))
    if notice.total_interest_cents:
        lines.append(DocumentLine(code="default_interest", amount_cents=notice.total_interest_cents))

    return DocumentPayload(
        kind=DocumentKind.REMINDER,
        invoice_id=notice.invoice_id,
        number=f"{notice.invoice_number}-M{notice.level.value}",
        issue_date=notice.sent_date,
        due_date=notice.reminder_due_date,
        related_invoice_id=notice.invoice_id,
        lines=lines,
    )
