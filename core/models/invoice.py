"""Invoice and payment domain models.

All amounts are stored in cents (integer) to avoid floating point issues.
EUR 10.00 = 1000 cents.

Status is never stored. It is a projection of amount, paid amount and due
date computed by core.status.derive_status on every read.
"""

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, computed_field, model_validator

from core.models.dunning import DunningState


class InvoiceType(str, Enum):
    """Kind of billing document."""

    STANDARD = "standard"
    DOWN_PAYMENT = "down_payment"  # Abschlagsrechnung
    FINAL_SETTLEMENT = "final_settlement"  # Schlussrechnung
    CANCELLATION = "cancellation"  # Storno
    CREDIT_NOTE = "credit_note"  # Gutschrift

    @property
    def is_reversal(self) -> bool:
        return self in (InvoiceType.CANCELLATION, InvoiceType.CREDIT_NOTE)


class InvoiceStatus(str, Enum):
    """Derived payment status."""

    OPEN = "open"
    PARTIALLY_PAID = "partially_paid"
    OVERDUE = "overdue"
    PAID = "paid"


class PaymentMethod(str, Enum):
    """How a payment was made."""

    BANK = "bank"
    CASH = "cash"
    CARD = "card"
    ONLINE_CARD = "online_card"
    ONLINE_PAYPAL = "online_paypal"
    ONLINE_SEPA = "online_sepa"


class PaymentCreate(BaseModel):
    """Data required to record a payment against an invoice."""

    amount_cents: int = Field(..., gt=0)
    payment_date: date
    method: PaymentMethod = PaymentMethod.BANK
    reference: str = Field("", max_length=500)


class Payment(BaseModel):
    """Recorded payment. Immutable once created."""

    id: UUID
    invoice_id: UUID
    amount_cents: int = Field(..., gt=0)
    payment_date: date
    method: PaymentMethod
    reference: str
    created_at: datetime

    model_config = {"from_attributes": True, "frozen": True}


class InvoiceCreate(BaseModel):
    """Data required to issue a regular invoice."""

    customer_id: UUID | None = None
    customer_name: str | None = Field(None, max_length=255)
    project_id: UUID | None = None
    type: InvoiceType = InvoiceType.STANDARD
    amount_cents: int = Field(..., ge=0)
    issue_date: date
    due_date: date
    notes: str | None = Field(None, max_length=2000)

    @model_validator(mode="after")
    def _due_not_before_issue(self) -> "InvoiceCreate":
        if self.due_date < self.issue_date:
            raise ValueError("due_date cannot be before issue_date")
        return self


class Invoice(BaseModel):
    """Full invoice entity as stored."""

    id: UUID
    number: str
    type: InvoiceType
    customer_id: UUID | None = None
    customer_name: str | None = None
    project_id: UUID | None = None
    amount_cents: int = Field(..., ge=0)
    paid_amount_cents: int = Field(0, ge=0)
    issue_date: date
    due_date: date
    notes: str | None = None

    # Reversal documents point at the invoice they reverse
    related_invoice_id: UUID | None = None
    related_amount_cents: int | None = None
    reason: str | None = None

    # Set on the original once a Cancellation exists
    cancelled_by_id: UUID | None = None
    credited_amount_cents: int = Field(0, ge=0)
    # Credit that lowered the claim itself rather than the paid amount
    open_credit_cents: int = Field(0, ge=0)

    payments: list[Payment] = Field(default_factory=list)
    dunning: DunningState = Field(default_factory=DunningState)

    version: int = Field(1, ge=1)
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @property
    def net_amount_cents(self) -> int:
        """Amount still claimed after credit notes."""
        return max(0, self.amount_cents - self.open_credit_cents)

    @property
    def balance_due_cents(self) -> int:
        """Remaining amount to be paid in cents. Never negative."""
        return max(0, self.net_amount_cents - self.paid_amount_cents)

    @property
    def is_cancelled(self) -> bool:
        """Whether a Cancellation document exists for this invoice."""
        return self.cancelled_by_id is not None

    def status_on(self, today: date) -> InvoiceStatus:
        """Status as of the given day."""
        from core.status import derive_status

        return derive_status(self.net_amount_cents, self.paid_amount_cents, self.due_date, today)

    def is_terminal_on(self, today: date) -> bool:
        """
        Whether the invoice is finished for dunning purposes.

        Paid invoices, reversal documents and cancelled originals never
        advance any further.
        """
        if self.type.is_reversal or self.is_cancelled:
            return True
        return self.status_on(today) == InvoiceStatus.PAID

    @computed_field
    @property
    def status(self) -> InvoiceStatus:
        """Status as of today (UTC). Recomputed on every read."""
        from utils.timezone import today_utc

        return self.status_on(today_utc())
