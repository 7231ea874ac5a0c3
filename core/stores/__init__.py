"""Persistence adapters for invoices, payments, dunning state and the audit trail."""

from core.stores.base import InvoiceStore
from core.stores.memory import InMemoryInvoiceStore
