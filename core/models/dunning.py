"""Dunning (Mahnwesen) domain models.

One DunningState per invoice. The level only moves forward, one step at a
time, and the history is append-only for audit purposes.
"""

from datetime import date
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, computed_field


class DunningLevel(int, Enum):
    """Reminder escalation levels, ordered."""

    NONE = 0
    FRIENDLY = 1  # Zahlungserinnerung
    FIRST = 2  # 1. Mahnung
    SECOND = 3  # 2. Mahnung
    FINAL = 4  # Letzte Mahnung
    LEGAL = 5  # Rechtliche Schritte

    @property
    def is_terminal(self) -> bool:
        return self == DunningLevel.LEGAL

    def next_level(self) -> "DunningLevel | None":
        """The only level this one may escalate to, or None after LEGAL."""
        if self.is_terminal:
            return None
        return DunningLevel(self.value + 1)


_REMINDER_TITLES = {
    DunningLevel.NONE: "No reminder",
    DunningLevel.FRIENDLY: "Payment reminder",
    DunningLevel.FIRST: "First dunning notice",
    DunningLevel.SECOND: "Second dunning notice",
    DunningLevel.FINAL: "Final notice before legal action",
    DunningLevel.LEGAL: "Handover to collection",
}


def reminder_title(level: DunningLevel) -> str:
    """Document title for a reminder level. Total over DunningLevel."""
    return _REMINDER_TITLES[level]


class DunningEntry(BaseModel):
    """One reminder sent for an invoice."""

    level: DunningLevel
    sent_date: date
    fee_cents: int = Field(0, ge=0)
    interest_cents: int = Field(0, ge=0)
    interest_days: int = Field(0, ge=0)
    principal_cents: int = Field(0, ge=0)
    due_date: date

    model_config = {"frozen": True}


class DunningState(BaseModel):
    """Escalation state of one invoice."""

    level: DunningLevel = DunningLevel.NONE
    history: list[DunningEntry] = Field(default_factory=list)

    @computed_field
    @property
    def total_fees_cents(self) -> int:
        return sum(entry.fee_cents for entry in self.history)

    @computed_field
    @property
    def total_interest_cents(self) -> int:
        return sum(entry.interest_cents for entry in self.history)

    @property
    def last_entry(self) -> DunningEntry | None:
        return self.history[-1] if self.history else None

    @property
    def last_interest_entry(self) -> DunningEntry | None:
        for entry in reversed(self.history):
            if entry.interest_days > 0:
                return entry
        return None

    def has_level(self, level: DunningLevel) -> bool:
        return any(entry.level == level for entry in self.history)

    def appended(self, entry: DunningEntry) -> "DunningState":
        """New state with the entry appended and the level advanced."""
        return DunningState(level=entry.level, history=[*self.history, entry])


class ReminderNotice(BaseModel):
    """Everything the notification collaborator needs for one reminder."""

    invoice_id: UUID
    invoice_number: str
    customer_id: UUID | None
    customer_name: str | None
    level: DunningLevel
    title: str
    sent_date: date
    reminder_due_date: date
    invoice_due_date: date
    days_overdue: int
    outstanding_cents: int
    fee_cents: int
    interest_cents: int
    total_fees_cents: int
    total_interest_cents: int

    @computed_field
    @property
    def total_claim_cents(self) -> int:
        """Outstanding principal plus all fees and interest to date."""
        return self.outstanding_cents + self.total_fees_cents + self.total_interest_cents
