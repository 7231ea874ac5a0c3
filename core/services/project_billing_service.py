"""
Project billing rollup.

Compares the down payments (Abschlagsrechnungen) billed on a project with
its final settlement (Schlussrechnung). Read-only: nothing is written back,
and down payments exceeding the settlement are reported, not prevented.
"""

import logging
from uuid import UUID

from core.documents import DocumentPayload, invoice_document
from core.exceptions import ValidationError
from core.models import Invoice, InvoiceType, ProjectBillingSummary
from core.stores.base import InvoiceStore

logger = logging.getLogger(__name__)


def summarize_project(project_id: UUID, invoices: list[Invoice]) -> ProjectBillingSummary:
    """
    Rollup over a project's invoices.

    Cancelled down payments and settlements don't count. When several
    settlements exist the most recently issued one is used.
    """
    active = [i for i in invoices if i.project_id == project_id and not i.is_cancelled]
    down_payments = [i for i in active if i.type == InvoiceType.DOWN_PAYMENT]
    settlements = sorted(
        (i for i in active if i.type == InvoiceType.FINAL_SETTLEMENT),
        key=lambda i: (i.issue_date, i.created_at),
    )
    settlement = settlements[-1] if settlements else None

    return ProjectBillingSummary(
        project_id=project_id,
        down_payment_ids=[i.id for i in down_payments],
        total_down_payments_cents=sum(i.amount_cents for i in down_payments),
        down_payments_paid_cents=sum(min(i.paid_amount_cents, i.amount_cents) for i in down_payments),
        final_settlement_id=settlement.id if settlement else None,
        final_settlement_total_cents=settlement.amount_cents if settlement else None,
    )


class ProjectBillingService:
    """Read-only project billing views."""

    def __init__(self, store: InvoiceStore):
        self.store = store

    def summarize(self, project_id: UUID) -> ProjectBillingSummary:
        invoices = self.store.list_for_project(project_id)
        summary = summarize_project(project_id, invoices)

        settlements = [
            i for i in invoices
            if i.type == InvoiceType.FINAL_SETTLEMENT and not i.is_cancelled
        ]
        if len(settlements) > 1:
            logger.warning("Project %s has %s active final settlements", project_id, len(settlements))

        if summary.exceeds_settlement:
            logger.warning(
                "Project %s: down payments (%s cents) exceed final settlement (%s cents)",
                project_id, summary.total_down_payments_cents, summary.final_settlement_total_cents,
            )
        return summary

    def settlement_document(self, project_id: UUID) -> DocumentPayload:
        """
        Final settlement document with the down payments listed as deductions.

        Raises:
            ValidationError: If the project has no active final settlement
        """
        invoices = self.store.list_for_project(project_id)
        summary = summarize_project(project_id, invoices)
        if summary.final_settlement_id is None:
            raise ValidationError(f"Project {project_id} has no final settlement", "project_id")

        by_id = {i.id: i for i in invoices}
        return invoice_document(
            by_id[summary.final_settlement_id],
            [by_id[i] for i in summary.down_payment_ids],
        )
