"""Pure rules for the daily step ledger: deltas, totals, streaks and calories."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Optional

from psychiki.core.errors import ValidationError

CALORIES_PER_STEP_PER_KG = 0.0005
# largest value a 32-bit INTEGER column stores
MAX_STEPS = 2**31 - 1


@dataclass(frozen=True)
class LedgerState:
    total_steps: int
    streak: int
    last_active_date: Optional[date]


@dataclass(frozen=True)
class SyncOutcome:
    total_steps: int
    streak: int
    last_active_date: Optional[date]
    delta: int


def calories_burned(steps: int, weight_kg: float) -> float:
    return round(steps * weight_kg * CALORIES_PER_STEP_PER_KG, 2)


def next_streak(streak: int, last_active: Optional[date], day: date) -> tuple[int, Optional[date]]:
    """
    Syncing the same day again changes nothing. A sync exactly one day after
    the last active day extends the streak; any other gap (including a first
    sync or a backfilled earlier day) restarts it at 1.
    """
    if day == last_active:
        return streak, last_active
    gap = (day - last_active).days if last_active is not None else None
    if gap == 1:
        return streak + 1, day
    return 1, day


def apply_sync(state: LedgerState, day: date, steps: int, previous_day_steps: Optional[int]) -> SyncOutcome:
    """
    The day-ledger keeps the last submitted value for a day; the lifetime total
    only ever moves up by the positive part of the change.
    """
    delta = steps - previous_day_steps if previous_day_steps is not None else steps
    total = state.total_steps + delta if delta > 0 else state.total_steps
    streak, last_active = next_streak(state.streak, state.last_active_date, day)
    return SyncOutcome(total_steps=total, streak=streak, last_active_date=last_active, delta=delta)


# -------------------------------------- input parsing --------------------------------------
def parse_day(value: Any) -> date:
    if value is None or value == "":
        raise ValidationError("date is required")
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        raise ValidationError("date must use the YYYY-MM-DD format") from None


def parse_steps(value: Any) -> int:
    if value is None or value == "":
        raise ValidationError("steps is required")
    if isinstance(value, bool):
        raise ValidationError("steps must be a whole number")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError("steps must be a whole number")
        value = int(value)
    elif isinstance(value, str):
        text = value.strip()
        if not (text.isascii() and text.isdigit()):
            raise ValidationError("steps must be a whole number")
        value = int(text)
    elif not isinstance(value, int):
        raise ValidationError("steps must be a whole number")
    if value < 0:
        raise ValidationError("steps cannot be negative")
    if value > MAX_STEPS:
        raise ValidationError(f"steps cannot exceed {MAX_STEPS}")
    return value
