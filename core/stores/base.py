"""
Persistence contract.

Stores hold invoices together with their payments and dunning state. The
only write primitives are insert, a version-checked update and the paired
write used for reversal documents, so a read-modify-write can never lose a
concurrent update silently.
"""

from typing import Any, Protocol
from uuid import UUID

from core.models import Invoice


class InvoiceStore(Protocol):
    """What the billing services need from persistence."""

    def get(self, invoice_id: UUID) -> Invoice | None:
        """Invoice by ID, None if missing."""
        ...

    def list_all(self) -> list[Invoice]:
        """Every invoice, oldest first."""
        ...

    def list_for_project(self, project_id: UUID) -> list[Invoice]:
        ...

    def list_related(self, invoice_id: UUID) -> list[Invoice]:
        """Reversal documents pointing at the given invoice."""
        ...

    def latest_number(self, prefix: str) -> str | None:
        """Highest invoice number starting with prefix, None if there is none."""
        ...

    def insert(self, invoice: Invoice) -> Invoice:
        ...

    def update(self, invoice: Invoice, expected_version: int) -> Invoice:
        """
        Replace the stored invoice if its version still equals expected_version.

        Returns the stored invoice with version incremented.

        Raises:
            ConcurrencyConflict: If the stored version differs
            InvoiceNotFound: If the invoice does not exist
        """
        ...

    def save_reversal(self, document: Invoice, original: Invoice, expected_version: int) -> tuple[Invoice, Invoice]:
        """
        Atomically insert a reversal document and update its original.

        Returns (stored document, stored original).

        Raises:
            ConcurrencyConflict: If the original's version differs
        """
        ...

    def append_audit(self, record: dict[str, Any]) -> None:
        ...

    def audit_history(self, entity_type: str, entity_id: UUID) -> list[dict[str, Any]]:
        """Audit records for an entity, newest first."""
        ...
