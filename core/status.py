"""
Invoice status derivation.

The single place where an invoice's payment status is decided. Every read
and every mutation path goes through derive_status; nothing stores status.

Precedence: when an invoice is both partially paid and past due it is
reported OVERDUE, not PARTIALLY_PAID.
"""

from datetime import date

from core.exceptions import ValidationError
from core.models.invoice import Invoice, InvoiceStatus
from utils.timezone import days_between


def derive_status(
    amount_cents: int,
    paid_amount_cents: int,
    due_date: date,
    today: date,
) -> InvoiceStatus:
    """
    Derive status from amount, paid amount and due date.

    Pure function: no side effects, same inputs give the same output.

    Raises:
        ValidationError: If an amount is negative
    """
    if amount_cents < 0:
        raise ValidationError("amount cannot be negative", "amount_cents")
    if paid_amount_cents < 0:
        raise ValidationError("paid amount cannot be negative", "paid_amount_cents")

    if paid_amount_cents >= amount_cents:
        return InvoiceStatus.PAID
    if today > due_date:
        return InvoiceStatus.OVERDUE
    if paid_amount_cents > 0:
        return InvoiceStatus.PARTIALLY_PAID
    return InvoiceStatus.OPEN


def is_overdue(invoice: Invoice, today: date) -> bool:
    return invoice.status_on(today) == InvoiceStatus.OVERDUE


def days_overdue(due_date: date, today: date) -> int:
    """Days past the due date, 0 if not yet due."""
    return max(0, days_between(due_date, today))


def outstanding_cents(invoice: Invoice) -> int:
    """Open balance. Zero for cancelled originals and reversal documents."""
    if invoice.type.is_reversal or invoice.is_cancelled:
        return 0
    return invoice.balance_due_cents
