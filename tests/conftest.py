"""Shared test fixtures for the billing test suite."""

from datetime import date
from uuid import UUID

import pytest
from fastapi.testclient import TestClient

import clients.vault_client as vault_module

from bootstrap import build_services, create_app
from core.config import BillingConfig
from core.models import InvoiceCreate, InvoiceType
from core.stores import InMemoryInvoiceStore
from tests.helpers import CUSTOMER_ID, DUE_DATE, ISSUE_DATE
from utils.actor_context import clear_current_actor


# =============================================================================
# CONTEXT FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def reset_actor_context():
    """Ensure clean actor context before and after each test."""
    clear_current_actor()
    yield
    clear_current_actor()


@pytest.fixture(autouse=True)
def reset_vault_singleton():
    """No test may reuse a Vault client or secret from another test."""
    vault_module.reset_vault_cache()
    yield
    vault_module.reset_vault_cache()


# =============================================================================
# SERVICE FIXTURES: in-memory store, in-process locks
# =============================================================================


@pytest.fixture
def config() -> BillingConfig:
    return BillingConfig()


@pytest.fixture
def store() -> InMemoryInvoiceStore:
    return InMemoryInvoiceStore()


@pytest.fixture
def billing(config, store):
    return build_services(config=config, store=store)


@pytest.fixture
def event_bus(billing):
    return billing.event_bus


@pytest.fixture
def audit(billing):
    return billing.audit


@pytest.fixture
def invoice_service(billing):
    return billing.invoice


@pytest.fixture
def payment_service(billing):
    return billing.payment


@pytest.fixture
def reversal_service(billing):
    return billing.reversal


@pytest.fixture
def dunning_service(billing):
    return billing.dunning


@pytest.fixture
def project_service(billing):
    return billing.project


@pytest.fixture
def statistics_service(billing):
    return billing.statistics


# =============================================================================
# INVOICE FACTORY
# =============================================================================


@pytest.fixture
def make_invoice(invoice_service):
    """Issue an invoice; defaults to EUR 1000.00 due on DUE_DATE."""

    def _make(
        amount_cents: int = 100000,
        due_date: date = DUE_DATE,
        invoice_type: InvoiceType = InvoiceType.STANDARD,
        project_id: UUID | None = None,
        issue_date: date = ISSUE_DATE,
    ):
        return invoice_service.create(InvoiceCreate(
            customer_id=CUSTOMER_ID,
            customer_name="Muster GmbH",
            project_id=project_id,
            type=invoice_type,
            amount_cents=amount_cents,
            issue_date=issue_date,
            due_date=due_date,
        ))

    return _make


@pytest.fixture
def invoice(make_invoice):
    """Standard EUR 1000.00 invoice, due DUE_DATE, no payments."""
    return make_invoice()


# =============================================================================
# API FIXTURES
# =============================================================================


@pytest.fixture
def api_client(billing):
    """TestClient against the full app; errors come back as envelopes."""
    return TestClient(create_app(billing), raise_server_exceptions=False)


@pytest.fixture
def act(api_client):
    """POST an action and return the response."""

    def _act(domain: str, action: str, data: dict, headers: dict | None = None):
        return api_client.post(
            "/api/actions",
            json={"domain": domain, "action": action, "data": data},
            headers=headers or {},
        )

    return _act
