"""Tests for cancellation (Storno) and credit note (Gutschrift) documents."""

import threading
from datetime import timedelta

import pytest

from core.events import CancellationCreated, CreditNoteCreated
from core.exceptions import AlreadyReversed, InvalidStateTransition, ValidationError
from core.models import InvoiceStatus, InvoiceType, PaymentCreate
from core.services.reversal_service import credited_paid_amount
from tests.helpers import DUE_DATE, days_after_due


def _pay(payment_service, invoice_id, cents):
    payment_service.apply_payment(invoice_id, PaymentCreate(amount_cents=cents, payment_date=DUE_DATE))


class TestCancellation:

    def test_creates_self_settled_document(self, invoice, reversal_service):
        storno = reversal_service.create_cancellation(invoice.id, "Wrong customer", today=DUE_DATE)

        assert storno.type == InvoiceType.CANCELLATION
        assert storno.amount_cents == invoice.amount_cents
        assert storno.paid_amount_cents == invoice.amount_cents
        assert storno.status_on(days_after_due(100)) == InvoiceStatus.PAID
        assert storno.related_invoice_id == invoice.id
        assert storno.related_amount_cents == invoice.amount_cents
        assert storno.reason == "Wrong customer"
        assert storno.customer_id == invoice.customer_id
        assert storno.number.endswith("-S")

    def test_original_is_linked_with_money_unchanged(self, invoice, reversal_service, invoice_service):
        storno = reversal_service.create_cancellation(invoice.id, "Wrong customer", today=DUE_DATE)
        original = invoice_service.require(invoice.id)

        assert original.cancelled_by_id == storno.id
        assert original.amount_cents == invoice.amount_cents
        assert original.paid_amount_cents == 0
        assert original.is_terminal_on(days_after_due(30))

    def test_second_cancellation_rejected(self, invoice, reversal_service):
        reversal_service.create_cancellation(invoice.id, "First", today=DUE_DATE)

        with pytest.raises(AlreadyReversed):
            reversal_service.create_cancellation(invoice.id, "Second", today=DUE_DATE)

        assert len(reversal_service.list_reversals(invoice.id)) == 1

    def test_concurrent_cancellations_produce_one_document(self, invoice, reversal_service):
        barrier = threading.Barrier(3)
        errors = []

        def cancel():
            barrier.wait()
            try:
                reversal_service.create_cancellation(invoice.id, "Race", today=DUE_DATE)
            except AlreadyReversed as e:
                errors.append(e)

        threads = [threading.Thread(target=cancel) for _ in range(3)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(errors) == 2
        assert len(reversal_service.list_reversals(invoice.id)) == 1

    def test_cancellation_of_reversal_document_rejected(self, invoice, reversal_service):
        storno = reversal_service.create_cancellation(invoice.id, "Wrong customer", today=DUE_DATE)

        with pytest.raises(InvalidStateTransition):
            reversal_service.create_cancellation(storno.id, "Undo", today=DUE_DATE)

    @pytest.mark.parametrize("reason", ["", "   "])
    def test_reason_required(self, invoice, reversal_service, invoice_service, reason):
        with pytest.raises(ValidationError):
            reversal_service.create_cancellation(invoice.id, reason, today=DUE_DATE)

        assert invoice_service.require(invoice.id).cancelled_by_id is None

    def test_publishes_event(self, invoice, reversal_service, event_bus):
        received = []
        event_bus.subscribe("CancellationCreated", received.append)

        storno = reversal_service.create_cancellation(invoice.id, "Wrong customer", today=DUE_DATE)

        assert isinstance(received[0], CancellationCreated)
        assert received[0].document.id == storno.id
        assert received[0].original.cancelled_by_id == storno.id


class TestCreditNote:

    def test_full_credit_on_paid_invoice_reopens_it(self, invoice, payment_service, reversal_service, invoice_service):
        _pay(payment_service, invoice.id, 100000)

        credit = reversal_service.create_credit_note(invoice.id, 100000, "Returned goods", today=DUE_DATE)
        original = invoice_service.require(invoice.id)

        assert original.paid_amount_cents == 0
        assert original.status_on(DUE_DATE) == InvoiceStatus.OPEN
        assert credit.type == InvoiceType.CREDIT_NOTE
        assert credit.amount_cents == 100000
        assert credit.paid_amount_cents == 100000
        assert credit.status_on(DUE_DATE) == InvoiceStatus.PAID
        assert credit.number.endswith("-G")

    def test_reopened_invoice_past_due_is_overdue(self, invoice, payment_service, reversal_service, invoice_service):
        _pay(payment_service, invoice.id, 100000)
        reversal_service.create_credit_note(invoice.id, 100000, "Returned goods", today=days_after_due(5))

        assert invoice_service.require(invoice.id).status_on(days_after_due(5)) == InvoiceStatus.OVERDUE

    def test_partial_credit_reduces_paid_amount(self, invoice, payment_service, reversal_service, invoice_service):
        _pay(payment_service, invoice.id, 40000)

        reversal_service.create_credit_note(invoice.id, 30000, "Discount", today=DUE_DATE)

        original = invoice_service.require(invoice.id)
        assert original.paid_amount_cents == 10000
        assert original.credited_amount_cents == 30000

    def test_partial_credit_never_below_zero(self, invoice, payment_service, reversal_service, invoice_service):
        _pay(payment_service, invoice.id, 40000)

        reversal_service.create_credit_note(invoice.id, 50000, "Discount", today=DUE_DATE)

        assert invoice_service.require(invoice.id).paid_amount_cents == 0

    def test_credit_on_unpaid_invoice_leaves_paid_amount(self, invoice, reversal_service, invoice_service):
        reversal_service.create_credit_note(invoice.id, 25000, "Discount", today=DUE_DATE)

        assert invoice_service.require(invoice.id).paid_amount_cents == 0

    def test_credit_on_unpaid_invoice_lowers_balance(self, invoice, reversal_service, invoice_service):
        reversal_service.create_credit_note(invoice.id, 30000, "Discount", today=DUE_DATE)

        original = invoice_service.require(invoice.id)
        assert original.open_credit_cents == 30000
        assert original.balance_due_cents == 70000
        assert original.status_on(days_after_due(5)) == InvoiceStatus.OVERDUE

    def test_paying_net_amount_settles_credited_invoice(self, invoice, payment_service, reversal_service, invoice_service):
        reversal_service.create_credit_note(invoice.id, 30000, "Discount", today=DUE_DATE)

        result = payment_service.apply_payment(
            invoice.id, PaymentCreate(amount_cents=70000, payment_date=DUE_DATE),
        )

        assert result.warning is None
        assert result.invoice.status_on(days_after_due(5)) == InvoiceStatus.PAID

    def test_full_credit_on_unpaid_invoice_settles_it(self, invoice, reversal_service, invoice_service):
        reversal_service.create_credit_note(invoice.id, 100000, "Order withdrawn", today=DUE_DATE)

        original = invoice_service.require(invoice.id)
        assert original.balance_due_cents == 0
        assert original.status_on(days_after_due(30)) == InvoiceStatus.PAID
        assert original.is_terminal_on(days_after_due(30))

    def test_credit_beyond_payments_lowers_balance_by_remainder(self, invoice, payment_service, reversal_service, invoice_service):
        _pay(payment_service, invoice.id, 20000)

        reversal_service.create_credit_note(invoice.id, 50000, "Discount", today=DUE_DATE)

        original = invoice_service.require(invoice.id)
        assert original.paid_amount_cents == 0
        assert original.open_credit_cents == 30000
        assert original.balance_due_cents == 70000

    def test_credit_absorbed_by_payments_leaves_claim(self, invoice, payment_service, reversal_service, invoice_service):
        _pay(payment_service, invoice.id, 100000)

        reversal_service.create_credit_note(invoice.id, 100000, "Returned goods", today=DUE_DATE)

        assert invoice_service.require(invoice.id).open_credit_cents == 0

    @pytest.mark.parametrize("amount", [0, -100, 100001])
    def test_amount_bounds(self, invoice, reversal_service, amount):
        with pytest.raises(ValidationError):
            reversal_service.create_credit_note(invoice.id, amount, "Discount", today=DUE_DATE)

    def test_cumulative_credits_capped_at_invoice_amount(self, invoice, reversal_service):
        reversal_service.create_credit_note(invoice.id, 70000, "First", today=DUE_DATE)

        with pytest.raises(ValidationError, match="credited already"):
            reversal_service.create_credit_note(invoice.id, 30001, "Second", today=DUE_DATE)

        reversal_service.create_credit_note(invoice.id, 30000, "Second", today=DUE_DATE)
        assert len(reversal_service.list_reversals(invoice.id)) == 2

    def test_rejected_credit_leaves_no_gap_in_numbering(self, invoice, reversal_service):
        """Invalid requests don't consume a document number."""
        with pytest.raises(ValidationError):
            reversal_service.create_credit_note(invoice.id, 100001, "Too much", today=DUE_DATE)
        with pytest.raises(ValidationError):
            reversal_service.create_cancellation(invoice.id, "  ", today=DUE_DATE)

        credit = reversal_service.create_credit_note(invoice.id, 1000, "Discount", today=DUE_DATE)

        assert credit.number == "2024-0002-G"

    def test_credit_on_cancelled_invoice_rejected(self, invoice, reversal_service):
        reversal_service.create_cancellation(invoice.id, "Wrong customer", today=DUE_DATE)

        with pytest.raises(AlreadyReversed):
            reversal_service.create_credit_note(invoice.id, 1000, "Discount", today=DUE_DATE)

    def test_credit_on_credit_note_rejected(self, invoice, reversal_service):
        credit = reversal_service.create_credit_note(invoice.id, 1000, "Discount", today=DUE_DATE)

        with pytest.raises(InvalidStateTransition):
            reversal_service.create_credit_note(credit.id, 500, "Again", today=DUE_DATE)

    def test_publishes_event_and_audits_both_sides(self, invoice, reversal_service, event_bus, audit):
        received = []
        event_bus.subscribe("CreditNoteCreated", received.append)

        credit = reversal_service.create_credit_note(invoice.id, 1000, "Discount", today=DUE_DATE)

        assert isinstance(received[0], CreditNoteCreated)
        assert audit.get_entity_history("invoice", credit.id)[0]["action"] == "create"
        latest = audit.get_entity_history("invoice", invoice.id)[0]
        assert latest["changes"]["credited_amount_cents"] == {"old": 0, "new": 1000}
        assert latest["changes"]["reversal_document"] == credit.number


class TestCreditedPaidAmount:

    def test_full_credit_fully_paid(self, invoice):
        paid = invoice.model_copy(update={"paid_amount_cents": 100000})
        assert credited_paid_amount(paid, 100000) == 0

    def test_full_credit_overpaid_still_reopens(self, invoice):
        overpaid = invoice.model_copy(update={"paid_amount_cents": 105000})
        assert credited_paid_amount(overpaid, 100000) == 0

    def test_partial_credit_on_paid_invoice(self, invoice):
        paid = invoice.model_copy(update={"paid_amount_cents": 100000})
        assert credited_paid_amount(paid, 30000) == 70000


def test_reversal_dates_default_to_today(invoice, reversal_service):
    storno = reversal_service.create_cancellation(invoice.id, "Wrong customer")
    assert storno.issue_date == storno.due_date
    assert storno.issue_date - invoice.issue_date > timedelta(0)
