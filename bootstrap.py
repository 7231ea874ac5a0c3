"""
Application wiring.

build_services() assembles store, locks, bus, services and handlers.
Tests and embedded use pass in-memory collaborators; build_production_services()
pulls every infrastructure secret from Vault and fails fast if one is missing.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable
from uuid import UUID

from dotenv import load_dotenv
from fastapi import FastAPI

from api.actions import create_actions_router
from api.data import create_data_router
from api.errors import register_error_handlers
from api.middleware import ActorMiddleware, RequestIDMiddleware
from core.audit import AuditLogger
from core.config import BillingConfig
from core.event_bus import EventBus
from core.handlers.reminder_notification_handler import ReminderNotifier, handle_reminder_issued
from core.locks import InvoiceLocks, LocalInvoiceLocks
from core.services.dunning_service import DunningService
from core.services.invoice_service import InvoiceService
from core.services.payment_service import PaymentService
from core.services.project_billing_service import ProjectBillingService
from core.services.reversal_service import ReversalService
from core.services.statistics_service import StatisticsService
from core.stores import InMemoryInvoiceStore, InvoiceStore

logger = logging.getLogger(__name__)


@dataclass
class BillingServices:
    config: BillingConfig
    store: InvoiceStore
    event_bus: EventBus
    audit: AuditLogger
    invoice: InvoiceService
    payment: PaymentService
    reversal: ReversalService
    dunning: DunningService
    project: ProjectBillingService
    statistics: StatisticsService

    def as_dict(self) -> dict:
        """Services keyed the way the API routers expect them."""
        return {
            "invoice": self.invoice,
            "payment": self.payment,
            "reversal": self.reversal,
            "dunning": self.dunning,
            "project": self.project,
            "statistics": self.statistics,
        }


def _no_recipient(customer_id: UUID | None) -> str | None:
    return None


def build_services(
    config: BillingConfig | None = None,
    store: InvoiceStore | None = None,
    locks: InvoiceLocks | None = None,
    notifier: ReminderNotifier | None = None,
    recipient_lookup: Callable[[UUID | None], str | None] = _no_recipient,
) -> BillingServices:
    """
    Wire the billing services.

    Args:
        config: Billing configuration (defaults apply when omitted)
        store: Invoice store (in-memory when omitted)
        locks: Per-invoice locks (in-process when omitted)
        notifier: Reminder delivery; without one, reminders are only recorded
        recipient_lookup: Customer ID -> email address
    """
    config = config or BillingConfig()
    store = store or InMemoryInvoiceStore()
    locks = locks or LocalInvoiceLocks()

    event_bus = EventBus()
    audit = AuditLogger(store)

    invoice = InvoiceService(store, audit, event_bus, locks)
    services = BillingServices(
        config=config,
        store=store,
        event_bus=event_bus,
        audit=audit,
        invoice=invoice,
        payment=PaymentService(store, invoice, audit, event_bus, locks, config),
        reversal=ReversalService(store, invoice, audit, event_bus, locks),
        dunning=DunningService(store, invoice, audit, event_bus, locks, config),
        project=ProjectBillingService(store),
        statistics=StatisticsService(invoice),
    )

    if notifier is not None:
        event_bus.subscribe(
            "ReminderIssued",
            handle_reminder_issued(notifier, config.dunning, recipient_lookup),
        )

    return services


def build_production_services(
    config: BillingConfig | None = None,
    recipient_lookup: Callable[[UUID | None], str | None] = _no_recipient,
) -> BillingServices:
    """
    Wire against PostgreSQL, Valkey and the email gateway.

    Vault credentials are read from the environment (or a .env file next to
    this module).
    """
    from clients.email_client import EmailGatewayClient
    from clients.postgres_client import PostgresClient
    from clients.valkey_client import ValkeyClient
    from clients.vault_client import get_database_url, get_email_config, get_valkey_url
    from core.locks import ValkeyInvoiceLocks
    from core.stores.postgres import PostgresInvoiceStore

    load_dotenv(Path(__file__).parent / ".env")

    store = PostgresInvoiceStore(PostgresClient(get_database_url()))
    store.create_schema()

    services = build_services(
        config=config,
        store=store,
        locks=ValkeyInvoiceLocks(ValkeyClient(get_valkey_url())),
        notifier=EmailGatewayClient(**get_email_config()),
        recipient_lookup=recipient_lookup,
    )
    logger.info("Billing services wired against PostgreSQL and Valkey")
    return services


def create_app(services: BillingServices) -> FastAPI:
    """FastAPI app with error handlers, middleware and the data/actions routes."""
    app = FastAPI(title="Invoice lifecycle and dunning")
    app.add_middleware(ActorMiddleware)
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    app.include_router(create_data_router(services.as_dict()), prefix="/api")
    app.include_router(create_actions_router(services.as_dict()), prefix="/api")

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app
