"""
Invoice service for issuing and reading invoices.

Regular invoices (standard, down payment, final settlement) are created
here. Reversal documents are created by ReversalService, but draw their
numbers from the same sequence.
"""

import logging
import threading
from datetime import date
from uuid import UUID, uuid4

from core.audit import AuditLogger, AuditAction, compute_changes
from core.documents import DocumentPayload, invoice_document
from core.event_bus import EventBus
from core.events import InvoiceIssued, DueDateChanged
from core.exceptions import InvalidStateTransition, InvoiceNotFound, ValidationError
from core.locks import InvoiceLocks
from core.models import Invoice, InvoiceCreate, InvoiceStatus, InvoiceType
from core.money import format_cents
from core.stores.base import InvoiceStore
from utils.timezone import now_utc, today_utc

logger = logging.getLogger(__name__)


NUMBER_SUFFIXES = {
    InvoiceType.CANCELLATION: "-S",
    InvoiceType.CREDIT_NOTE: "-G",
}


def _sequence_of(number: str) -> int:
    """Sequence part of "2024-0007" or "2024-0007-S"."""
    try:
        return int(number.split("-")[1])
    except (ValueError, IndexError):
        return 0


class InvoiceService:
    """Service for invoice creation and queries."""

    def __init__(self, store: InvoiceStore, audit: AuditLogger, event_bus: EventBus, locks: InvoiceLocks):
        self.store = store
        self.audit = audit
        self.event_bus = event_bus
        self.locks = locks
        self._numbering_lock = threading.Lock()
        self._last_allocated: dict[str, int] = {}

    def allocate_number(self, issue_date: date, invoice_type: InvoiceType = InvoiceType.STANDARD) -> str:
        """
        Next invoice number for the issue year.

        Format: YYYY-NNNN, with -S for cancellations and -G for credit notes.
        All document types share one sequence per year.
        """
        prefix = f"{issue_date.year}-"
        with self._numbering_lock:
            latest = self.store.latest_number(prefix)
            stored = _sequence_of(latest) if latest else 0
            sequence = max(stored, self._last_allocated.get(prefix, 0)) + 1
            self._last_allocated[prefix] = sequence

        return f"{prefix}{sequence:04d}{NUMBER_SUFFIXES.get(invoice_type, '')}"

    def create(self, data: InvoiceCreate) -> Invoice:
        """
        Issue a regular invoice.

        Args:
            data: Invoice data (type must not be a reversal type)

        Returns:
            Created invoice with no payments and no dunning history

        Raises:
            ValidationError: If the type is Cancellation or CreditNote
        """
        if data.type.is_reversal:
            raise ValidationError(
                f"{data.type.value} documents are created by reversing an invoice",
                "type",
            )

        now = now_utc()
        invoice = Invoice(
            id=uuid4(),
            number=self.allocate_number(data.issue_date, data.type),
            type=data.type,
            customer_id=data.customer_id,
            customer_name=data.customer_name,
            project_id=data.project_id,
            amount_cents=data.amount_cents,
            paid_amount_cents=0,
            issue_date=data.issue_date,
            due_date=data.due_date,
            notes=data.notes,
            created_at=now,
            updated_at=now,
        )
        invoice = self.store.insert(invoice)

        self.audit.log_change(
            entity_type="invoice",
            entity_id=invoice.id,
            action=AuditAction.CREATE,
            changes={"created": data.model_dump(mode="json", exclude_none=True)},
        )
        logger.info("Issued %s invoice %s over %s", invoice.type.value, invoice.number, format_cents(invoice.amount_cents))

        self.event_bus.publish(InvoiceIssued.create(invoice=invoice))

        return invoice

    def get(self, invoice_id: UUID) -> Invoice | None:
        """Invoice by ID, None if it doesn't exist."""
        return self.store.get(invoice_id)

    def require(self, invoice_id: UUID) -> Invoice:
        """
        Invoice by ID.

        Raises:
            InvoiceNotFound: If it doesn't exist
        """
        invoice = self.store.get(invoice_id)
        if invoice is None:
            raise InvoiceNotFound(invoice_id)
        return invoice

    def list_all(self) -> list[Invoice]:
        return self.store.list_all()

    def list_for_project(self, project_id: UUID) -> list[Invoice]:
        return self.store.list_for_project(project_id)

    def list_overdue(self, today: date | None = None) -> list[Invoice]:
        """
        Invoices that are overdue and still open for dunning.

        Returns:
            Overdue invoices, oldest due date first
        """
        today = today or today_utc()
        overdue = [
            invoice for invoice in self.store.list_all()
            if not invoice.is_terminal_on(today)
            and invoice.status_on(today) == InvoiceStatus.OVERDUE
        ]
        return sorted(overdue, key=lambda i: (i.due_date, i.number))

    def update_due_date(self, invoice_id: UUID, due_date: date) -> Invoice:
        """
        Move an invoice's due date.

        Status is re-derived from the new date on the next read. Dunning
        history is kept; the level never goes back.

        Raises:
            InvoiceNotFound: If invoice doesn't exist
            ValidationError: If the new date precedes the issue date
            InvalidStateTransition: If the invoice is a reversal document or cancelled
        """
        with self.locks.hold(invoice_id):
            current = self.require(invoice_id)

            if current.type.is_reversal or current.is_cancelled:
                raise InvalidStateTransition(
                    f"Invoice {current.number} is reversed; its due date is fixed"
                )
            if due_date < current.issue_date:
                raise ValidationError("due_date cannot be before issue_date", "due_date")

            updated = self.store.update(
                current.model_copy(update={"due_date": due_date}),
                current.version,
            )

        self.audit.log_change(
            entity_type="invoice",
            entity_id=invoice_id,
            action=AuditAction.UPDATE,
            changes=compute_changes(
                current.model_dump(mode="json", exclude={"status"}),
                updated.model_dump(mode="json", exclude={"status"}),
            ),
        )

        self.event_bus.publish(DueDateChanged.create(invoice=updated, previous_due_date=current.due_date))

        return updated

    def document(self, invoice_id: UUID) -> DocumentPayload:
        """Line items for rendering the invoice document."""
        invoice = self.require(invoice_id)
        previous = None
        if invoice.type == InvoiceType.FINAL_SETTLEMENT and invoice.project_id is not None:
            previous = [
                i for i in self.store.list_for_project(invoice.project_id)
                if i.type == InvoiceType.DOWN_PAYMENT and not i.is_cancelled
            ]
        return invoice_document(invoice, previous)
