"""Billing and dunning configuration.

All durations are in days, all money in cents, all rates in percent.
Defaults follow common German practice (Zahlungserinnerung after a week,
statutory default interest of base rate + 5 points).
"""

from decimal import Decimal

from pydantic import BaseModel, Field, model_validator

from core.models.dunning import DunningLevel


class ReminderSchedule(BaseModel):
    """Days after the due date at which each reminder level becomes due."""

    friendly: int = Field(default=7, ge=1, description="Zahlungserinnerung")
    first_reminder: int = Field(default=14, ge=1, description="1. Mahnung")
    second_reminder: int = Field(default=21, ge=1, description="2. Mahnung")
    final_notice: int = Field(default=30, ge=1, description="Letzte Mahnung")
    legal_action: int = Field(default=45, ge=1, description="Übergabe an Inkasso")

    @model_validator(mode="after")
    def _strictly_increasing(self) -> "ReminderSchedule":
        days = [
            self.friendly, self.first_reminder, self.second_reminder,
            self.final_notice, self.legal_action,
        ]
        if any(later <= earlier for earlier, later in zip(days, days[1:])):
            raise ValueError("Reminder thresholds must strictly increase per level")
        return self

    def threshold_for(self, level: DunningLevel) -> int:
        thresholds = {
            DunningLevel.FRIENDLY: self.friendly,
            DunningLevel.FIRST: self.first_reminder,
            DunningLevel.SECOND: self.second_reminder,
            DunningLevel.FINAL: self.final_notice,
            DunningLevel.LEGAL: self.legal_action,
        }
        if level not in thresholds:
            raise ValueError(f"Level {level.name} has no threshold")
        return thresholds[level]


class ReminderFees(BaseModel):
    """Flat fee in cents charged with each reminder level. Friendly reminders are free."""

    first_reminder_cents: int = Field(default=500, ge=0)
    second_reminder_cents: int = Field(default=1000, ge=0)
    final_notice_cents: int = Field(default=1500, ge=0)
    legal_action_cents: int = Field(default=1500, ge=0)

    def fee_for(self, level: DunningLevel) -> int:
        fees = {
            DunningLevel.NONE: 0,
            DunningLevel.FRIENDLY: 0,
            DunningLevel.FIRST: self.first_reminder_cents,
            DunningLevel.SECOND: self.second_reminder_cents,
            DunningLevel.FINAL: self.final_notice_cents,
            DunningLevel.LEGAL: self.legal_action_cents,
        }
        return fees[level]


class InterestSettings(BaseModel):
    """Default interest (Verzugszinsen) accrued on the outstanding balance."""

    enabled: bool = True
    annual_rate_percent: Decimal = Field(default=Decimal("8.17"), ge=0, le=100)
    from_level: DunningLevel = Field(
        default=DunningLevel.SECOND,
        description="First reminder level that carries interest",
    )


class DunningConfig(BaseModel):
    """Reminder schedule, fees and interest. Read-only value object."""

    enabled: bool = Field(default=True, description="Whether scans escalate at all")
    automatic_sending: bool = Field(
        default=False,
        description="Dispatch reminders to the notification gateway without manual review",
    )
    schedule: ReminderSchedule = Field(default_factory=ReminderSchedule)
    fees: ReminderFees = Field(default_factory=ReminderFees)
    interest: InterestSettings = Field(default_factory=InterestSettings)
    min_days_between_reminders: int = Field(
        default=1,
        ge=1,
        description="Minimum gap between two reminders for the same invoice",
    )
    reminder_payment_days: int = Field(
        default=14,
        ge=1,
        description="Payment period granted by each reminder",
    )


class BillingConfig(BaseModel):
    """Top-level billing configuration."""

    payment_tolerance_percent: Decimal = Field(
        default=Decimal("10"),
        ge=0,
        le=100,
        description="How far a payment may exceed the outstanding balance before it is rejected",
    )
    scan_max_workers: int = Field(default=4, ge=1, le=64)
    scan_conflict_retries: int = Field(default=3, ge=0, le=10)
    dunning: DunningConfig = Field(default_factory=DunningConfig)
