"""Step syncing and the dashboard snapshot."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional
from zoneinfo import ZoneInfo

from psychiki.core.clock import Clock, SystemClock
from psychiki.core.config import Settings, get_settings
from psychiki.core.errors import NotFoundError, store_errors
from psychiki.db.models import DEFAULT_DAILY_GOAL, Account, ActivityRecord
from psychiki.domain.activity import LedgerState, apply_sync, calories_burned, parse_day, parse_steps
from psychiki.repositories.sql_repository import SQLRepository

logger = logging.getLogger(__name__)

# Shown on the dashboard until peer comparison is computed for real.
PEER_PERCENT_PLACEHOLDER = 80


@dataclass
class SyncResult:
    record: dict
    calories_burned: float


@dataclass
class DashboardSnapshot:
    name: str
    avatar: Optional[str]
    today_steps: int
    daily_goal: int
    streak: int
    calories_burned: float
    percent_ahead: int


def record_to_dict(record: ActivityRecord) -> dict:
    return {
        "total_steps": record.total_steps,
        "daily_goal": record.daily_goal,
        "streak": record.streak,
        "last_active_date": record.last_active_date.isoformat() if record.last_active_date else None,
        "history": [{"date": entry.day.isoformat(), "steps": entry.steps} for entry in record.days],
    }


@dataclass
class ActivityService:
    settings: Optional[Settings] = None
    repository: Optional[SQLRepository] = None
    clock: Clock = field(default_factory=SystemClock)

    def __post_init__(self):
        self.settings = self.settings or get_settings()
        self.repository = self.repository or SQLRepository()
        self._tz = ZoneInfo(self.settings.activity_timezone)

    def today(self) -> date:
        return self.clock.now().astimezone(self._tz).date()

    def _require_account(self, account_id: int) -> Account:
        account = self.repository.get_account(account_id)
        if not account:
            raise NotFoundError("User not found")
        return account

    def sync_steps(self, account_id: int, day: Any, steps: Any) -> SyncResult:
        day_value = parse_day(day)
        steps_value = parse_steps(steps)

        with store_errors("sync_steps"):
            account = self._require_account(account_id)
            record = self.repository.ensure_activity(account_id)
            previous = self.repository.get_day_steps(account_id, day_value)
            outcome = apply_sync(
                LedgerState(
                    total_steps=record.total_steps,
                    streak=record.streak,
                    last_active_date=record.last_active_date,
                ),
                day_value,
                steps_value,
                previous,
            )
            record = self.repository.apply_sync(
                account_id,
                expected_version=record.version,
                day=day_value,
                steps=steps_value,
                total_steps=outcome.total_steps,
                streak=outcome.streak,
                last_active_date=outcome.last_active_date,
            )

        logger.info(
            "Synced %s steps for account %s on %s (delta %s, streak %s)",
            steps_value,
            account_id,
            day_value.isoformat(),
            outcome.delta,
            outcome.streak,
        )
        return SyncResult(record=record_to_dict(record), calories_burned=calories_burned(steps_value, account.weight_kg))

    def dashboard(self, account_id: int) -> DashboardSnapshot:
        with store_errors("dashboard"):
            account = self._require_account(account_id)
            record = self.repository.get_activity(account_id)
            today_steps = self.repository.get_day_steps(account_id, self.today()) or 0

        return DashboardSnapshot(
            name=account.display_name or account.username,
            avatar=account.avatar_url,
            today_steps=today_steps,
            daily_goal=record.daily_goal if record else DEFAULT_DAILY_GOAL,
            streak=record.streak if record else 0,
            calories_burned=calories_burned(today_steps, account.weight_kg),
            percent_ahead=PEER_PERCENT_PLACEHOLDER,
        )
