"""Utility modules for cross-cutting concerns."""

from utils.timezone import now_utc, today_utc, to_utc, days_between, parse_date
from utils.actor_context import (
    SYSTEM_ACTOR,
    get_current_actor,
    set_current_actor,
    clear_current_actor,
    acting_as,
)
