"""
Append-only audit trail for invoice mutations.

Every payment, reversal, due date change and reminder is recorded with the
acting party and the old/new values. Entries are never modified or deleted.
"""

from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from core.stores.base import InvoiceStore
from utils.actor_context import get_current_actor
from utils.timezone import now_utc


class AuditAction(Enum):
    """Type of change made to an entity."""

    CREATE = "create"
    UPDATE = "update"


def compute_changes(
    old: dict[str, Any],
    new: dict[str, Any],
    exclude_fields: set[str] | None = None
) -> dict[str, dict[str, Any]]:
    """
    Compute changes between two entity states.

    Args:
        old: Previous state of entity
        new: New state of entity
        exclude_fields: Fields to ignore (defaults to {"updated_at", "version"})

    Returns:
        Dict of {field: {"old": old_val, "new": new_val}} for changed fields.
        Empty dict if no changes.
    """
    exclude = exclude_fields or {"updated_at", "version"}
    changes = {}

    for key in set(old.keys()) | set(new.keys()):
        if key in exclude:
            continue

        old_val = old.get(key)
        new_val = new.get(key)

        if old_val != new_val:
            changes[key] = {"old": old_val, "new": new_val}

    return changes


class AuditLogger:
    """
    Audit trail writer.

    Always pass JSON-compatible values (model_dump(mode="json")).

    Usage:
        audit = AuditLogger(store)
        audit.log_change(
            entity_type="invoice",
            entity_id=invoice.id,
            action=AuditAction.UPDATE,
            changes={"paid_amount_cents": {"old": 0, "new": 40000}},
        )
        history = audit.get_entity_history("invoice", invoice.id)
    """

    def __init__(self, store: InvoiceStore):
        self.store = store

    def log_change(
        self,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        changes: dict[str, Any],
        actor: str | None = None
    ) -> None:
        """
        Log an entity change.

        Changes format by action:
        - CREATE: {"created": {full entity data}}
        - UPDATE: {"field": {"old": old_val, "new": new_val}, ...}
        """
        self.store.append_audit({
            "id": uuid4(),
            "actor": actor or get_current_actor(),
            "entity_type": entity_type,
            "entity_id": entity_id,
            "action": action.value,
            "changes": changes,
            "created_at": now_utc(),
        })

    def get_entity_history(self, entity_type: str, entity_id: UUID) -> list[dict[str, Any]]:
        """Full audit history for an entity, newest first."""
        return self.store.audit_history(entity_type, entity_id)
