"""Dunning statistics models."""

from pydantic import BaseModel

from core.models.dunning import DunningLevel


class LevelBucket(BaseModel):
    level: DunningLevel
    count: int
    outstanding_cents: int


class AgeBucket(BaseModel):
    label: str  # "0-30", "31-60", "61-90", "90+"
    min_days: int
    max_days: int | None
    count: int
    outstanding_cents: int


class DunningStatistics(BaseModel):
    """Portfolio view over overdue invoices and the reminders sent for them."""

    total_overdue: int
    total_outstanding_cents: int
    by_level: list[LevelBucket]
    by_age: list[AgeBucket]
    average_days_overdue: float
    collection_rate: float  # Share of dunned invoices that are now paid, 0..1
