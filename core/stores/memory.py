"""
In-process invoice store.

Keeps deep copies so callers can never mutate stored state by accident.
A single re-entrant lock makes every operation atomic within the process.
"""

import logging
import threading
from typing import Any
from uuid import UUID

from core.exceptions import ConcurrencyConflict, InvoiceNotFound
from core.models import Invoice
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class InMemoryInvoiceStore:
    """Dict-backed InvoiceStore for tests, demos and single-process deployments."""

    def __init__(self):
        self._invoices: dict[UUID, Invoice] = {}
        self._audit: list[dict[str, Any]] = []
        self._lock = threading.RLock()

    def get(self, invoice_id: UUID) -> Invoice | None:
        with self._lock:
            invoice = self._invoices.get(invoice_id)
            return invoice.model_copy(deep=True) if invoice else None

    def list_all(self) -> list[Invoice]:
        with self._lock:
            invoices = sorted(self._invoices.values(), key=lambda i: i.created_at)
            return [i.model_copy(deep=True) for i in invoices]

    def list_for_project(self, project_id: UUID) -> list[Invoice]:
        return [i for i in self.list_all() if i.project_id == project_id]

    def list_related(self, invoice_id: UUID) -> list[Invoice]:
        return [i for i in self.list_all() if i.related_invoice_id == invoice_id]

    def latest_number(self, prefix: str) -> str | None:
        with self._lock:
            numbers = [i.number for i in self._invoices.values() if i.number.startswith(prefix)]
        return max(numbers) if numbers else None

    def insert(self, invoice: Invoice) -> Invoice:
        with self._lock:
            if invoice.id in self._invoices:
                raise ValueError(f"Invoice {invoice.id} already exists")
            self._invoices[invoice.id] = invoice.model_copy(deep=True)
            return invoice.model_copy(deep=True)

    def update(self, invoice: Invoice, expected_version: int) -> Invoice:
        with self._lock:
            stored = self._check_version(invoice.id, expected_version)
            updated = invoice.model_copy(
                update={"version": stored.version + 1, "updated_at": now_utc()},
                deep=True,
            )
            self._invoices[invoice.id] = updated
            return updated.model_copy(deep=True)

    def save_reversal(self, document: Invoice, original: Invoice, expected_version: int) -> tuple[Invoice, Invoice]:
        with self._lock:
            self._check_version(original.id, expected_version)
            stored_original = self.update(original, expected_version)
            stored_document = self.insert(document)
            return stored_document, stored_original

    def _check_version(self, invoice_id: UUID, expected_version: int) -> Invoice:
        stored = self._invoices.get(invoice_id)
        if stored is None:
            raise InvoiceNotFound(invoice_id)
        if stored.version != expected_version:
            logger.warning(
                "Version conflict on invoice %s: stored=%s expected=%s",
                invoice_id, stored.version, expected_version,
            )
            raise ConcurrencyConflict(invoice_id, expected_version)
        return stored

    def append_audit(self, record: dict[str, Any]) -> None:
        with self._lock:
            self._audit.append(dict(record))

    def audit_history(self, entity_type: str, entity_id: UUID) -> list[dict[str, Any]]:
        with self._lock:
            matching = [
                dict(r) for r in self._audit
                if r["entity_type"] == entity_type and r["entity_id"] == entity_id
            ]
        return list(reversed(matching))
