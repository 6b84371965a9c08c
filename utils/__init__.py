"""Utility modules for cross-cutting concerns."""

from utils.timezone import now_utc, today_utc, to_utc, parse_iso, add_years
from utils.user_context import (
    get_current_actor_id,
    get_optional_actor_id,
    set_current_actor_id,
    clear_current_actor_id,
    actor_context,
)
