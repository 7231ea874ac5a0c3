"""Project billing rollup models."""

from uuid import UUID

from pydantic import BaseModel, computed_field


class ProjectBillingSummary(BaseModel):
    """
    Down payments versus the final settlement of one project.

    Read-only view. exceeds_settlement is advisory and never enforced.
    """

    project_id: UUID
    down_payment_ids: list[UUID]
    total_down_payments_cents: int
    down_payments_paid_cents: int
    final_settlement_id: UUID | None
    final_settlement_total_cents: int | None

    @computed_field
    @property
    def difference_cents(self) -> int | None:
        """Settlement total minus down payments billed. None without a settlement."""
        if self.final_settlement_total_cents is None:
            return None
        return self.final_settlement_total_cents - self.total_down_payments_cents

    @computed_field
    @property
    def exceeds_settlement(self) -> bool:
        return self.difference_cents is not None and self.difference_cents < 0
