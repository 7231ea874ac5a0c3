"""Dates and IDs shared by the test modules."""

from datetime import date, timedelta
from uuid import UUID

# Due date "T" of the standard test invoice
ISSUE_DATE = date(2024, 2, 1)
DUE_DATE = date(2024, 3, 1)

CUSTOMER_ID = UUID("00000000-0000-0000-0000-0000000000c1")
PROJECT_ID = UUID("00000000-0000-0000-0000-0000000000a1")


def days_after_due(days: int) -> date:
    return DUE_DATE + timedelta(days=days)
