"""Tests for POST /api/actions."""

from uuid import uuid4

from core.models import InvoiceType
from tests.helpers import DUE_DATE, PROJECT_ID, days_after_due


class TestInvoiceActions:

    def test_create_invoice(self, act):
        response = act("invoice", "create", {
            "customer_name": "Muster GmbH",
            "amount_cents": 250000,
            "issue_date": "2024-02-01",
            "due_date": "2024-03-01",
        })

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["number"] == "2024-0001"
        assert body["data"]["paid_amount_cents"] == 0

    def test_create_rejects_reversal_type(self, act):
        response = act("invoice", "create", {
            "type": InvoiceType.CANCELLATION.value,
            "amount_cents": 1000,
            "issue_date": "2024-02-01",
            "due_date": "2024-03-01",
        })

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_create_rejects_due_before_issue(self, act):
        response = act("invoice", "create", {
            "amount_cents": 1000,
            "issue_date": "2024-03-01",
            "due_date": "2024-02-01",
        })

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_REQUEST"

    def test_update_due_date(self, act, invoice):
        response = act("invoice", "update_due_date", {"id": str(invoice.id), "due_date": "2024-04-01"})

        assert response.status_code == 200
        assert response.json()["data"]["due_date"] == "2024-04-01"


class TestPaymentActions:

    def test_partial_payment(self, act, invoice):
        response = act("payment", "apply", {
            "invoice_id": str(invoice.id),
            "amount_cents": 40000,
            "payment_date": "2024-02-20",
        })

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["invoice"]["paid_amount_cents"] == 40000
        assert data["warning"] is None

    def test_tolerated_overpayment_carries_warning(self, act, invoice):
        response = act("payment", "apply", {
            "invoice_id": str(invoice.id),
            "amount_cents": 105000,
            "payment_date": "2024-02-20",
        })

        assert response.status_code == 200
        assert response.json()["data"]["warning"]["excess_cents"] == 5000

    def test_overpayment_beyond_tolerance(self, act, invoice):
        response = act("payment", "apply", {
            "invoice_id": str(invoice.id),
            "amount_cents": 120000,
            "payment_date": "2024-02-20",
        })

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "OVERPAYMENT"

    def test_payment_on_paid_invoice(self, act, invoice):
        payment = {"invoice_id": str(invoice.id), "amount_cents": 100000, "payment_date": "2024-02-20"}
        act("payment", "apply", payment)

        response = act("payment", "apply", {**payment, "amount_cents": 100})

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INVALID_STATUS_TRANSITION"

    def test_major_unit_amount_converted_to_cents(self, act, invoice):
        response = act("payment", "apply", {
            "invoice_id": str(invoice.id),
            "amount": "400.005",
            "payment_date": "2024-02-20",
        })

        assert response.status_code == 200
        assert response.json()["data"]["payment"]["amount_cents"] == 40001

    def test_float_amount_rejected(self, act, invoice):
        response = act("payment", "apply", {
            "invoice_id": str(invoice.id),
            "amount": 400.5,
            "payment_date": "2024-02-20",
        })

        assert response.status_code == 400
        assert "decimal string" in response.json()["error"]["message"]

    def test_amount_and_cents_together_rejected(self, act, invoice):
        response = act("payment", "apply", {
            "invoice_id": str(invoice.id),
            "amount": "400.00",
            "amount_cents": 40000,
            "payment_date": "2024-02-20",
        })

        assert response.status_code == 400

    def test_missing_invoice_id(self, act):
        response = act("payment", "apply", {"amount_cents": 100, "payment_date": "2024-02-20"})

        assert response.status_code == 400
        assert "invoice_id" in response.json()["error"]["message"]


class TestReversalActions:

    def test_cancel_twice(self, act, invoice):
        data = {"invoice_id": str(invoice.id), "reason": "Falsche Adresse", "today": "2024-02-10"}

        first = act("reversal", "cancel", data)
        second = act("reversal", "cancel", data)

        assert first.status_code == 200
        assert first.json()["data"]["number"] == "2024-0002-S"
        assert first.json()["data"]["related_invoice_id"] == str(invoice.id)
        assert second.status_code == 409
        assert second.json()["error"]["code"] == "ALREADY_REVERSED"

    def test_credit_note(self, act, invoice):
        response = act("reversal", "credit", {
            "invoice_id": str(invoice.id),
            "amount_cents": 30000,
            "reason": "Mangel",
            "today": "2024-02-10",
        })

        assert response.status_code == 200
        assert response.json()["data"]["number"].endswith("-G")
        assert response.json()["data"]["amount_cents"] == 30000

    def test_credit_in_major_units(self, act, invoice, invoice_service):
        response = act("reversal", "credit", {
            "invoice_id": str(invoice.id),
            "amount": "300.00",
            "reason": "Mangel",
            "today": "2024-02-10",
        })

        assert response.status_code == 200
        assert invoice_service.require(invoice.id).balance_due_cents == 70000

    def test_malformed_amount_rejected(self, act, invoice):
        response = act("reversal", "credit", {"invoice_id": str(invoice.id), "amount": "drei", "reason": "x"})

        assert response.status_code == 400
        assert "not a valid decimal" in response.json()["error"]["message"]

    def test_credit_amount_must_be_integer(self, act, invoice):
        response = act("reversal", "credit", {
            "invoice_id": str(invoice.id),
            "amount_cents": "300.00",
            "reason": "Mangel",
        })

        assert response.status_code == 400


class TestDunningActions:

    def test_evaluate_escalates(self, act, invoice):
        response = act("dunning", "evaluate", {
            "invoice_id": str(invoice.id),
            "today": days_after_due(10).isoformat(),
        })

        assert response.status_code == 200
        assert response.json()["data"]["level"] == 1

    def test_evaluate_before_due_returns_none(self, act, invoice):
        response = act("dunning", "evaluate", {
            "invoice_id": str(invoice.id),
            "today": DUE_DATE.isoformat(),
        })

        assert response.status_code == 200
        assert response.json()["data"] is None

    def test_issue_by_name(self, act, invoice):
        response = act("dunning", "issue", {
            "invoice_id": str(invoice.id),
            "level": "friendly",
            "today": days_after_due(3).isoformat(),
        })

        assert response.status_code == 200
        assert response.json()["data"]["fee_cents"] == 0

    def test_issue_skipping_a_level(self, act, invoice):
        response = act("dunning", "issue", {
            "invoice_id": str(invoice.id),
            "level": "first",
            "today": days_after_due(20).isoformat(),
        })

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INVALID_STATUS_TRANSITION"

    def test_unknown_level(self, act, invoice):
        response = act("dunning", "issue", {"invoice_id": str(invoice.id), "level": "urgent"})

        assert response.status_code == 400
        assert "Unknown dunning level" in response.json()["error"]["message"]


class TestRequestValidation:

    def test_unknown_domain(self, act):
        response = act("customer", "create", {})

        assert response.status_code == 400
        assert "Unknown domain" in response.json()["error"]["message"]

    def test_action_not_allowed(self, act):
        response = act("payment", "refund", {})

        assert response.status_code == 400
        assert "not allowed" in response.json()["error"]["message"]

    def test_missing_domain(self, api_client):
        response = api_client.post("/api/actions", json={"action": "create", "data": {}})

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_unknown_invoice(self, act):
        response = act("reversal", "cancel", {"invoice_id": str(uuid4()), "reason": "x"})

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"


class TestActorAttribution:

    def test_mutation_attributed_to_header_actor(self, act, api_client, invoice):
        act(
            "payment", "apply",
            {"invoice_id": str(invoice.id), "amount_cents": 1000, "payment_date": "2024-02-20"},
            headers={"X-Actor": "user:anna"},
        )

        history = api_client.get("/api/data", params={"type": "history", "id": str(invoice.id)}).json()["data"]

        assert history[0]["actor"] == "user:anna"
        assert history[-1]["actor"] == "system"

    def test_project_invoice_keeps_project(self, act):
        response = act("invoice", "create", {
            "type": InvoiceType.DOWN_PAYMENT.value,
            "project_id": str(PROJECT_ID),
            "amount_cents": 50000,
            "issue_date": "2024-02-01",
            "due_date": "2024-02-15",
        })

        assert response.json()["data"]["project_id"] == str(PROJECT_ID)
