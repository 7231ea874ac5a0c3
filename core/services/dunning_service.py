"""
Dunning escalation engine.

Each invoice walks None -> Friendly -> First -> Second -> Final -> Legal,
one level at a time. A level becomes due once the invoice has been overdue
for the number of days configured for that level, and at least
min_days_between_reminders have passed since the previous reminder.

The periodic scan is a command (ScanCommand) handed in by an external
scheduler. Invoices are processed in parallel; each invoice is processed
under its own lock, and a failure on one invoice never stops the others.
Re-running a scan on unchanged data records nothing new.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextvars import copy_context
from datetime import date, timedelta
from uuid import UUID

from pydantic import BaseModel, Field

from core.audit import AuditLogger, AuditAction
from core.config import BillingConfig, DunningConfig
from core.documents import reminder_document
from core.event_bus import EventBus
from core.events import ReminderIssued
from core.exceptions import ConcurrencyConflict, InvalidStateTransition, ValidationError
from core.locks import InvoiceLocks
from core.models import (
    DunningEntry, DunningLevel, DunningState, Invoice, InvoiceStatus,
    ReminderNotice, reminder_title,
)
from core.money import accrue_interest
from core.services.invoice_service import InvoiceService
from core.status import days_overdue
from core.stores.base import InvoiceStore
from utils.timezone import days_between

logger = logging.getLogger(__name__)


class ScanCommand(BaseModel):
    """Trigger for one dunning pass. Sent by the scheduler, usually once a day."""

    today: date
    invoice_ids: list[UUID] | None = Field(
        None,
        description="Restrict the pass to these invoices; all overdue invoices when omitted",
    )


class ScanReport(BaseModel):
    """Outcome of one dunning pass. Failures are keyed by invoice ID."""

    today: date
    enabled: bool = True
    scanned: int = 0
    escalated: list[ReminderNotice] = Field(default_factory=list)
    unchanged: int = 0
    failures: dict[UUID, str] = Field(default_factory=dict)


def is_dunnable(invoice: Invoice, today: date) -> bool:
    """Overdue, not paid, not cancelled, not a reversal document."""
    if invoice.is_terminal_on(today):
        return False
    return invoice.status_on(today) == InvoiceStatus.OVERDUE


def build_entry(invoice: Invoice, level: DunningLevel, config: DunningConfig, today: date) -> DunningEntry:
    """
    Fee and interest for sending the given level today.

    Interest runs on the outstanding balance from the later of the due date
    and the previous interest-bearing reminder, so summing the history never
    counts a day twice.
    """
    fee = config.fees.fee_for(level)

    interest = interest_days = principal = 0
    if config.interest.enabled and level >= config.interest.from_level:
        previous = invoice.dunning.last_interest_entry
        start = invoice.due_date
        if previous is not None and previous.sent_date > start:
            start = previous.sent_date
        interest_days = max(0, days_between(start, today))
        principal = invoice.balance_due_cents
        interest = accrue_interest(principal, config.interest.annual_rate_percent, interest_days)

    return DunningEntry(
        level=level,
        sent_date=today,
        fee_cents=fee,
        interest_cents=interest,
        interest_days=interest_days,
        principal_cents=principal,
        due_date=today + timedelta(days=config.reminder_payment_days),
    )


def plan_escalation(invoice: Invoice, config: DunningConfig, today: date) -> DunningEntry | None:
    """
    Next reminder due for an invoice today, or None.

    Pure function. Only ever proposes the level directly after the current one.
    """
    if not is_dunnable(invoice, today):
        return None

    target = invoice.dunning.level.next_level()
    if target is None or invoice.dunning.has_level(target):
        return None

    if days_overdue(invoice.due_date, today) < config.schedule.threshold_for(target):
        return None

    last = invoice.dunning.last_entry
    if last is not None and days_between(last.sent_date, today) < config.min_days_between_reminders:
        return None

    return build_entry(invoice, target, config, today)


def build_notice(invoice: Invoice, entry: DunningEntry) -> ReminderNotice:
    state = invoice.dunning
    return ReminderNotice(
        invoice_id=invoice.id,
        invoice_number=invoice.number,
        customer_id=invoice.customer_id,
        customer_name=invoice.customer_name,
        level=entry.level,
        title=reminder_title(entry.level),
        sent_date=entry.sent_date,
        reminder_due_date=entry.due_date,
        invoice_due_date=invoice.due_date,
        days_overdue=days_overdue(invoice.due_date, entry.sent_date),
        outstanding_cents=invoice.balance_due_cents,
        fee_cents=entry.fee_cents,
        interest_cents=entry.interest_cents,
        total_fees_cents=state.total_fees_cents,
        total_interest_cents=state.total_interest_cents,
    )


class DunningService:
    """Advances reminder levels and emits reminder-ready events."""

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

    @property
    def dunning_config(self) -> DunningConfig:
        return self.config.dunning

    def get_state(self, invoice_id: UUID) -> DunningState:
        return self.invoices.require(invoice_id).dunning

    def evaluate(self, invoice_id: UUID, today: date) -> ReminderNotice | None:
        """
        Re-evaluate one invoice and escalate it if the next level is due.

        Returns:
            Notice for the recorded reminder, None if nothing was due

        Raises:
            InvoiceNotFound: If invoice doesn't exist
            ConcurrencyConflict: If another writer got in between
        """
        with self.locks.hold(invoice_id):
            invoice = self.invoices.require(invoice_id)
            entry = plan_escalation(invoice, self.dunning_config, today)
            if entry is None:
                return None
            stored = self._record(invoice, entry)

        return self._announce(stored, entry, source="schedule")

    def issue_reminder(self, invoice_id: UUID, level: DunningLevel, today: date) -> ReminderNotice | None:
        """
        Send a specific reminder level now, regardless of the schedule.

        Still requires an overdue invoice and strict sequence. Asking for a
        level that was already sent is a no-op and returns None.

        Raises:
            InvoiceNotFound: If invoice doesn't exist
            ValidationError: If level is NONE
            InvalidStateTransition: If the invoice isn't dunnable or the level skips one
        """
        if level == DunningLevel.NONE:
            raise ValidationError("Cannot issue a reminder of level NONE", "level")

        with self.locks.hold(invoice_id):
            invoice = self.invoices.require(invoice_id)

            if invoice.dunning.has_level(level):
                logger.info("Invoice %s already has a %s reminder", invoice.number, level.name)
                return None

            if not is_dunnable(invoice, today):
                raise InvalidStateTransition(
                    f"Invoice {invoice.number} is {invoice.status_on(today).value} "
                    f"and cannot receive reminders"
                )

            expected = invoice.dunning.level.next_level()
            if level != expected:
                raise InvalidStateTransition(
                    f"Invoice {invoice.number} is at {invoice.dunning.level.name}; "
                    f"next reminder must be {expected.name if expected else 'none'}, not {level.name}"
                )

            entry = build_entry(invoice, level, self.dunning_config, today)
            stored = self._record(invoice, entry)

        return self._announce(stored, entry, source="manual")

    def run_scan(self, command: ScanCommand) -> ScanReport:
        """
        One dunning pass over all overdue invoices (or the given subset).

        Per-invoice errors are collected in the report; the pass always
        completes.
        """
        today = command.today
        if not self.dunning_config.enabled:
            logger.info("Dunning disabled, scan for %s skipped", today)
            return ScanReport(today=today, enabled=False)

        if command.invoice_ids is None:
            candidates = [invoice.id for invoice in self.invoices.list_overdue(today)]
        else:
            candidates = list(dict.fromkeys(command.invoice_ids))

        report = ScanReport(today=today, scanned=len(candidates))
        if not candidates:
            return report

        # Workers run in a copy of the caller's context so audit records keep the actor
        with ThreadPoolExecutor(max_workers=self.config.scan_max_workers) as executor:
            futures = {
                executor.submit(copy_context().run, self._evaluate_with_retry, invoice_id, today): invoice_id
                for invoice_id in candidates
            }
            for future in as_completed(futures):
                invoice_id = futures[future]
                try:
                    notice = future.result()
                except Exception as e:
                    logger.exception("Dunning evaluation failed for invoice %s", invoice_id)
                    report.failures[invoice_id] = str(e)
                    continue

                if notice is None:
                    report.unchanged += 1
                else:
                    report.escalated.append(notice)

        report.escalated.sort(key=lambda n: n.invoice_number)
        logger.info(
            "Dunning scan %s: %s scanned, %s escalated, %s unchanged, %s failed",
            today, report.scanned, len(report.escalated), report.unchanged, len(report.failures),
        )
        return report

    def _evaluate_with_retry(self, invoice_id: UUID, today: date) -> ReminderNotice | None:
        attempts = self.config.scan_conflict_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return self.evaluate(invoice_id, today)
            except ConcurrencyConflict:
                if attempt == attempts:
                    raise
                logger.info("Retrying invoice %s after conflict (attempt %s)", invoice_id, attempt)
        return None

    def _record(self, invoice: Invoice, entry: DunningEntry) -> Invoice:
        if entry.level != invoice.dunning.level.next_level():
            raise InvalidStateTransition(
                f"Cannot move invoice {invoice.number} from {invoice.dunning.level.name} to {entry.level.name}"
            )
        updated = invoice.model_copy(update={"dunning": invoice.dunning.appended(entry)})
        stored = self.store.update(updated, invoice.version)

        self.audit.log_change(
            entity_type="invoice",
            entity_id=invoice.id,
            action=AuditAction.UPDATE,
            changes={
                "dunning_level": {"old": invoice.dunning.level.name, "new": entry.level.name},
                "reminder": entry.model_dump(mode="json"),
            },
        )
        return stored

    def _announce(self, invoice: Invoice, entry: DunningEntry, source: str) -> ReminderNotice:
        notice = build_notice(invoice, entry)
        logger.info(
            "Invoice %s escalated to %s (%s): fee %s, interest %s cents",
            invoice.number, entry.level.name, source, entry.fee_cents, entry.interest_cents,
        )
        self.event_bus.publish(ReminderIssued.create(
            invoice=invoice,
            notice=notice,
            document=reminder_document(notice),
        ))
        return notice
