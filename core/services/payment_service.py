"""
Payment application.

Overpayment policy is permissive with a warning: a payment may exceed the
outstanding balance by up to BillingConfig.payment_tolerance_percent of that
balance. Such payments succeed, carry an OverpaymentWarning and are flagged
for manual review. Anything beyond the tolerance is rejected.
"""

import logging
from decimal import Decimal
from uuid import UUID, uuid4

from pydantic import BaseModel

from core.audit import AuditLogger, AuditAction
from core.config import BillingConfig
from core.event_bus import EventBus
from core.events import InvoicePaid, OverpaymentFlagged, PaymentApplied
from core.exceptions import InvalidStateTransition, OverpaymentError, ValidationError
from core.locks import InvoiceLocks
from core.models import Invoice, InvoiceStatus, Payment, PaymentCreate
from core.money import format_cents, percent_of
from core.services.invoice_service import InvoiceService
from core.stores.base import InvoiceStore
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class OverpaymentWarning(BaseModel):
    """Soft warning attached to a successful payment above the outstanding balance."""

    excess_cents: int
    message: str


class PaymentResult(BaseModel):
    invoice: Invoice
    payment: Payment
    warning: OverpaymentWarning | None = None


def max_acceptable_payment(invoice: Invoice, tolerance_percent: Decimal) -> int:
    """Outstanding balance plus the tolerated excess."""
    balance = invoice.balance_due_cents
    return balance + percent_of(balance, tolerance_percent)


def apply_payment(invoice: Invoice, payment: Payment, tolerance_percent: Decimal) -> PaymentResult:
    """
    Apply a payment to an invoice without touching persistence.

    Returns:
        PaymentResult with the updated invoice copy; the input is not mutated

    Raises:
        ValidationError: If the payment amount is not positive or belongs to another invoice
        InvalidStateTransition: If the invoice is paid, cancelled or a reversal document
        OverpaymentError: If the payment exceeds the tolerated maximum
    """
    if payment.amount_cents <= 0:
        raise ValidationError("Payment amount must be positive", "amount_cents")
    if payment.invoice_id != invoice.id:
        raise ValidationError("Payment belongs to a different invoice", "invoice_id")

    if invoice.type.is_reversal:
        raise InvalidStateTransition(f"{invoice.type.value} {invoice.number} cannot receive payments")
    if invoice.is_cancelled:
        raise InvalidStateTransition(f"Invoice {invoice.number} is cancelled")
    if invoice.paid_amount_cents >= invoice.net_amount_cents:
        raise InvalidStateTransition(f"Invoice {invoice.number} is already paid")

    limit = max_acceptable_payment(invoice, tolerance_percent)
    if payment.amount_cents > limit:
        raise OverpaymentError(payment.amount_cents, limit)

    new_paid = invoice.paid_amount_cents + payment.amount_cents
    excess = new_paid - invoice.net_amount_cents

    warning = None
    if excess > 0:
        warning = OverpaymentWarning(
            excess_cents=excess,
            message=f"Payment exceeds the outstanding balance by {excess} cents",
        )

    updated = invoice.model_copy(update={
        "paid_amount_cents": new_paid,
        "payments": [*invoice.payments, payment],
    })
    return PaymentResult(invoice=updated, payment=payment, warning=warning)


class PaymentService:
    """Records payments against invoices, one writer per invoice at a time."""

    def __init__(
        self,
        store: InvoiceStore,
        invoices: InvoiceService,
        audit: AuditLogger,
        event_bus: EventBus,
        locks: InvoiceLocks,
        config: BillingConfig,
    ):
        self.store = store
        self.invoices = invoices
        self.audit = audit
        self.event_bus = event_bus
        self.locks = locks
        self.config = config

    def apply_payment(self, invoice_id: UUID, data: PaymentCreate) -> PaymentResult:
        """
        Record a payment on an invoice.

        Args:
            invoice_id: Invoice UUID
            data: Payment amount, date, method and reference

        Returns:
            PaymentResult; warning is set when the payment overshoots within tolerance

        Raises:
            InvoiceNotFound: If invoice doesn't exist
            InvalidStateTransition: If invoice is paid, cancelled or a reversal document
            OverpaymentError: If the payment exceeds the tolerated maximum
            ConcurrencyConflict: If another writer got in between
        """
        with self.locks.hold(invoice_id):
            current = self.invoices.require(invoice_id)
            payment = Payment(
                id=uuid4(),
                invoice_id=invoice_id,
                amount_cents=data.amount_cents,
                payment_date=data.payment_date,
                method=data.method,
                reference=data.reference,
                created_at=now_utc(),
            )
            result = apply_payment(current, payment, self.config.payment_tolerance_percent)
            stored = self.store.update(result.invoice, current.version)

        result = result.model_copy(update={"invoice": stored})

        self.audit.log_change(
            entity_type="invoice",
            entity_id=invoice_id,
            action=AuditAction.UPDATE,
            changes={
                "paid_amount_cents": {"old": current.paid_amount_cents, "new": stored.paid_amount_cents},
                "payment_recorded": payment.model_dump(mode="json"),
            },
        )
        logger.info(
            "Payment of %s applied to invoice %s (paid %s of %s)",
            format_cents(payment.amount_cents), stored.number,
            format_cents(stored.paid_amount_cents), format_cents(stored.net_amount_cents),
        )

        self.event_bus.publish(PaymentApplied.create(invoice=stored, payment=payment))

        if result.warning is not None:
            logger.warning("Overpayment on invoice %s: %s", stored.number, result.warning.message)
            self.event_bus.publish(OverpaymentFlagged.create(
                invoice=stored, payment=payment, excess_cents=result.warning.excess_cents,
            ))

        if stored.status_on(data.payment_date) == InvoiceStatus.PAID:
            self.event_bus.publish(InvoicePaid.create(invoice=stored))

        return result

    def list_payments(self, invoice_id: UUID) -> list[Payment]:
        """Payments in the order they were applied."""
        return list(self.invoices.require(invoice_id).payments)

    def max_acceptable(self, invoice_id: UUID) -> int:
        """Largest payment the invoice currently accepts, in cents."""
        invoice = self.invoices.require(invoice_id)
        return max_acceptable_payment(invoice, self.config.payment_tolerance_percent)
