"""Typed exceptions for billing failures.

Every error is scoped to a single invoice operation. None of them is fatal to
the process, and a batch scan records them per invoice and moves on.
"""

from uuid import UUID


class BillingError(Exception):
    """Base class for invoice lifecycle and dunning errors."""


class ValidationError(BillingError):
    """
    Malformed input (negative amount, empty required field, ...).

    Raised before any state change. The caller can fix the input and retry.
    """

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class InvoiceNotFound(BillingError):
    """No invoice with the given ID exists."""

    def __init__(self, invoice_id: UUID):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice {invoice_id} not found")


class InvalidStateTransition(BillingError):
    """
    Operation not allowed in the invoice's current state.

    Examples: paying a Paid invoice, skipping a dunning level.
    """


class AlreadyReversed(InvalidStateTransition):
    """The invoice already has a Cancellation document."""

    def __init__(self, invoice_id: UUID):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice {invoice_id} has already been cancelled")


class OverpaymentError(BillingError):
    """Payment exceeds the outstanding balance by more than the allowed tolerance."""

    def __init__(self, amount_cents: int, limit_cents: int):
        self.amount_cents = amount_cents
        self.limit_cents = limit_cents
        super().__init__(
            f"Payment of {amount_cents} cents exceeds the accepted maximum of {limit_cents} cents"
        )


class ConcurrencyConflict(BillingError):
    """
    A concurrent writer changed the invoice between read and write.

    Retrying the whole read-modify-write is always safe.
    """

    def __init__(self, invoice_id: UUID, expected_version: int | None = None):
        self.invoice_id = invoice_id
        self.expected_version = expected_version
        if expected_version is None:
            message = f"Invoice {invoice_id} is locked by another writer"
        else:
            message = f"Invoice {invoice_id} was modified concurrently (expected version {expected_version})"
        super().__init__(message)
