"""Dunning portfolio statistics."""

from datetime import date

from core.models import (
    AgeBucket, DunningLevel, DunningStatistics, InvoiceStatus, LevelBucket,
)
from core.services.invoice_service import InvoiceService
from core.status import days_overdue
from utils.timezone import today_utc

AGE_RANGES = [
    ("0-30", 0, 30),
    ("31-60", 31, 60),
    ("61-90", 61, 90),
    ("90+", 91, None),
]


class StatisticsService:
    """Read-only portfolio figures over overdue and dunned invoices."""

    def __init__(self, invoices: InvoiceService):
        self.invoices = invoices

    def dunning_statistics(self, today: date | None = None) -> DunningStatistics:
        """
        Overdue invoices by current reminder level and by age, plus the
        share of invoices that were dunned and are now paid.
        """
        today = today or today_utc()
        overdue = self.invoices.list_overdue(today)
        ages = {invoice.id: days_overdue(invoice.due_date, today) for invoice in overdue}

        by_level = [
            LevelBucket(
                level=level,
                count=sum(1 for i in overdue if i.dunning.level == level),
                outstanding_cents=sum(i.balance_due_cents for i in overdue if i.dunning.level == level),
            )
            for level in DunningLevel
        ]

        by_age = []
        for label, low, high in AGE_RANGES:
            in_range = [
                i for i in overdue
                if ages[i.id] >= low and (high is None or ages[i.id] <= high)
            ]
            by_age.append(AgeBucket(
                label=label,
                min_days=low,
                max_days=high,
                count=len(in_range),
                outstanding_cents=sum(i.balance_due_cents for i in in_range),
            ))

        dunned = [
            i for i in self.invoices.list_all()
            if not i.type.is_reversal and i.dunning.history
        ]
        collected = [i for i in dunned if i.status_on(today) == InvoiceStatus.PAID]

        return DunningStatistics(
            total_overdue=len(overdue),
            total_outstanding_cents=sum(i.balance_due_cents for i in overdue),
            by_level=by_level,
            by_age=by_age,
            average_days_overdue=sum(ages.values()) / len(overdue) if overdue else 0.0,
            collection_rate=len(collected) / len(dunned) if dunned else 0.0,
        )
