"""Core domain models."""

from core.models.dunning import (
    DunningLevel, DunningEntry, DunningState, ReminderNotice, reminder_title,
)
from core.models.invoice import (
    Invoice, InvoiceCreate, InvoiceStatus, InvoiceType,
    Payment, PaymentCreate, PaymentMethod,
)
from core.models.project import ProjectBillingSummary
from core.models.statistics import DunningStatistics, LevelBucket, AgeBucket

__all__ = [
    # Dunning
    "DunningLevel", "DunningEntry", "DunningState", "ReminderNotice", "reminder_title",
    # Invoice
    "Invoice", "InvoiceCreate", "InvoiceStatus", "InvoiceType",
    # Payment
    "Payment", "PaymentCreate", "PaymentMethod",
    # Project
    "ProjectBillingSummary",
    # Statistics
    "DunningStatistics", "LevelBucket", "AgeBucket",
]
