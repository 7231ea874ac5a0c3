"""
PostgreSQL-backed invoice store.

Payments and dunning state travel with their invoice as JSONB columns so
that one row update is one atomic invoice update. Optimistic locking uses
the version column: UPDATE ... WHERE id = %s AND version = %s.
"""

import logging
from typing import Any
from uuid import UUID, uuid4

from psycopg2.extras import Json

from clients.postgres_client import PostgresClient
from core.exceptions import ConcurrencyConflict, InvoiceNotFound
from core.models import Invoice
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS invoices (
    id UUID PRIMARY KEY,
    number TEXT NOT NULL UNIQUE,
    type TEXT NOT NULL,
    customer_id UUID,
    customer_name TEXT,
    project_id UUID,
    amount_cents BIGINT NOT NULL CHECK (amount_cents >= 0),
    paid_amount_cents BIGINT NOT NULL DEFAULT 0 CHECK (paid_amount_cents >= 0),
    issue_date DATE NOT NULL,
    due_date DATE NOT NULL,
    notes TEXT,
    related_invoice_id UUID REFERENCES invoices (id),
    related_amount_cents BIGINT,
    reason TEXT,
    cancelled_by_id UUID,
    credited_amount_cents BIGINT NOT NULL DEFAULT 0,
    open_credit_cents BIGINT NOT NULL DEFAULT 0,
    payments JSONB NOT NULL DEFAULT '[]',
    dunning JSONB NOT NULL DEFAULT '{}',
    version INTEGER NOT NULL DEFAULT 1,
    created_at TIMESTAMPTZ NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS invoices_one_cancellation
    ON invoices (related_invoice_id) WHERE type = 'cancellation';
CREATE INDEX IF NOT EXISTS invoices_project ON invoices (project_id);
ALTER TABLE invoices ADD COLUMN IF NOT EXISTS open_credit_cents BIGINT NOT NULL DEFAULT 0;

CREATE TABLE IF NOT EXISTS audit_log (
    id UUID PRIMARY KEY,
    actor TEXT NOT NULL,
    entity_type TEXT NOT NULL,
    entity_id UUID NOT NULL,
    action TEXT NOT NULL,
    changes JSONB NOT NULL,
    created_at TIMESTAMPTZ NOT NULL
);
"""

_INSERT_SQL = """
INSERT INTO invoices (
    id, number, type, customer_id, customer_name, project_id,
    amount_cents, paid_amount_cents, issue_date, due_date, notes,
    related_invoice_id, related_amount_cents, reason,
    cancelled_by_id, credited_amount_cents, open_credit_cents, payments, dunning,
    version, created_at, updated_at
) VALUES (
    %(id)s, %(number)s, %(type)s, %(customer_id)s, %(customer_name)s, %(project_id)s,
    %(amount_cents)s, %(paid_amount_cents)s, %(issue_date)s, %(due_date)s, %(notes)s,
    %(related_invoice_id)s, %(related_amount_cents)s, %(reason)s,
    %(cancelled_by_id)s, %(credited_amount_cents)s, %(open_credit_cents)s, %(payments)s, %(dunning)s,
    %(version)s, %(created_at)s, %(updated_at)s
)
RETURNING *
"""

_UPDATE_SQL = """
UPDATE invoices
SET paid_amount_cents = %(paid_amount_cents)s,
    due_date = %(due_date)s,
    notes = %(notes)s,
    cancelled_by_id = %(cancelled_by_id)s,
    credited_amount_cents = %(credited_amount_cents)s,
    open_credit_cents = %(open_credit_cents)s,
    payments = %(payments)s,
    dunning = %(dunning)s,
    version = version + 1,
    updated_at = %(updated_at)s
WHERE id = %(id)s AND version = %(expected_version)s
RETURNING *
"""


def _to_params(invoice: Invoice) -> dict[str, Any]:
    data = invoice.model_dump(mode="json", exclude={"status"})
    data["payments"] = Json(data["payments"])
    dunning = data["dunning"]
    dunning.pop("total_fees_cents", None)
    dunning.pop("total_interest_cents", None)
    data["dunning"] = Json(dunning)
    return data


class PostgresInvoiceStore:
    """InvoiceStore on top of PostgresClient."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def create_schema(self) -> None:
        """Create tables and indexes if they don't exist."""
        self.postgres.execute(SCHEMA_SQL)
        logger.info("Invoice schema ensured")

    def get(self, invoice_id: UUID) -> Invoice | None:
        row = self.postgres.execute_single(
            "SELECT * FROM invoices WHERE id = %s",
            (invoice_id,)
        )
        if row is None:
            return None
        return Invoice.model_validate(row)

    def list_all(self) -> list[Invoice]:
        rows = self.postgres.execute("SELECT * FROM invoices ORDER BY created_at ASC")
        return [Invoice.model_validate(row) for row in rows]

    def list_for_project(self, project_id: UUID) -> list[Invoice]:
        rows = self.postgres.execute(
            "SELECT * FROM invoices WHERE project_id = %s ORDER BY created_at ASC",
            (project_id,)
        )
        return [Invoice.model_validate(row) for row in rows]

    def list_related(self, invoice_id: UUID) -> list[Invoice]:
        rows = self.postgres.execute(
            "SELECT * FROM invoices WHERE related_invoice_id = %s ORDER BY created_at ASC",
            (invoice_id,)
        )
        return [Invoice.model_validate(row) for row in rows]

    def latest_number(self, prefix: str) -> str | None:
        row = self.postgres.execute_single(
            """
            SELECT number FROM invoices
            WHERE number LIKE %s
            ORDER BY number DESC
            LIMIT 1
            """,
            (f"{prefix}%",)
        )
        return row["number"] if row else None

    def insert(self, invoice: Invoice) -> Invoice:
        row = self.postgres.execute_returning(_INSERT_SQL, _to_params(invoice))[0]
        return Invoice.model_validate(row)

    def update(self, invoice: Invoice, expected_version: int) -> Invoice:
        params = _to_params(invoice)
        params["expected_version"] = expected_version
        params["updated_at"] = now_utc()

        rows = self.postgres.execute_returning(_UPDATE_SQL, params)
        if not rows:
            self._raise_missing_or_conflict(invoice.id, expected_version)
        return Invoice.model_validate(rows[0])

    def save_reversal(self, document: Invoice, original: Invoice, expected_version: int) -> tuple[Invoice, Invoice]:
        params = _to_params(original)
        params["expected_version"] = expected_version
        params["updated_at"] = now_utc()

        with self.postgres.transaction() as cur:
            updated = cur.execute(_UPDATE_SQL, params)
            if not updated:
                # Raising inside the block rolls the transaction back
                raise ConcurrencyConflict(original.id, expected_version)
            inserted = cur.execute(_INSERT_SQL, _to_params(document))

        return Invoice.model_validate(inserted[0]), Invoice.model_validate(updated[0])

    def _raise_missing_or_conflict(self, invoice_id: UUID, expected_version: int) -> None:
        exists = self.postgres.execute_single(
            "SELECT version FROM invoices WHERE id = %s",
            (invoice_id,)
        )
        if exists is None:
            raise InvoiceNotFound(invoice_id)
        logger.warning(
            "Version conflict on invoice %s: stored=%s expected=%s",
            invoice_id, exists["version"], expected_version,
        )
        raise ConcurrencyConflict(invoice_id, expected_version)

    def append_audit(self, record: dict[str, Any]) -> None:
        self.postgres.execute(
            """
            INSERT INTO audit_log (id, actor, entity_type, entity_id, action, changes, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            """,
            (
                record.get("id", uuid4()),
                record["actor"],
                record["entity_type"],
                record["entity_id"],
                record["action"],
                Json(record["changes"]),
                record["created_at"],
            )
        )

    def audit_history(self, entity_type: str, entity_id: UUID) -> list[dict[str, Any]]:
        return self.postgres.execute(
            """
            SELECT id, actor, entity_type, entity_id, action, changes, created_at
            FROM audit_log
            WHERE entity_type = %s AND entity_id = %s
            ORDER BY created_at DESC
            """,
            (entity_type, entity_id)
        )
