"""Tests for the audit trail."""

from datetime import timedelta
from uuid import uuid4

from core.audit import AuditAction, AuditLogger, compute_changes
from core.models import PaymentCreate
from core.stores import InMemoryInvoiceStore
from utils.actor_context import acting_as


class TestComputeChanges:

    def test_detects_changed_fields(self):
        changes = compute_changes({"a": 1, "b": 2}, {"a": 1, "b": 3})
        assert changes == {"b": {"old": 2, "new": 3}}

    def test_excludes_bookkeeping_fields_by_default(self):
        changes = compute_changes(
            {"version": 1, "updated_at": "x", "due_date": "2024-03-01"},
            {"version": 2, "updated_at": "y", "due_date": "2024-03-01"},
        )
        assert changes == {}

    def test_added_and_removed_keys(self):
        changes = compute_changes({"a": 1}, {"b": 2})
        assert changes == {"a": {"old": 1, "new": None}, "b": {"old": None, "new": 2}}


class TestAuditLogger:

    def test_log_change_records_actor(self):
        audit = AuditLogger(InMemoryInvoiceStore())
        entity_id = uuid4()

        with acting_as("user:7"):
            audit.log_change("invoice", entity_id, AuditAction.UPDATE, {"x": {"old": 1, "new": 2}})

        [record] = audit.get_entity_history("invoice", entity_id)
        assert record["actor"] == "user:7"
        assert record["action"] == "update"
        assert record["changes"] == {"x": {"old": 1, "new": 2}}

    def test_explicit_actor_wins(self):
        audit = AuditLogger(InMemoryInvoiceStore())
        entity_id = uuid4()

        audit.log_change("invoice", entity_id, AuditAction.CREATE, {}, actor="job:import")

        assert audit.get_entity_history("invoice", entity_id)[0]["actor"] == "job:import"

    def test_history_is_newest_first(self, invoice, invoice_service, payment_service, audit):
        payment_service.apply_payment(invoice.id, PaymentCreate(
            amount_cents=40000, payment_date=invoice.due_date,
        ))
        invoice_service.update_due_date(invoice.id, invoice.due_date + timedelta(days=10))

        history = audit.get_entity_history("invoice", invoice.id)

        assert [r["action"] for r in history] == ["update", "update", "create"]
        assert set(history[0]["changes"]) == {"due_date"}
        assert history[1]["changes"]["paid_amount_cents"] == {"old": 0, "new": 40000}

    def test_system_actor_without_context(self, invoice, audit):
        [record] = audit.get_entity_history("invoice", invoice.id)
        assert record["actor"] == "system"
