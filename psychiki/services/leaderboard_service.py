"""Ranked view over lifetime step totals."""

from __future__ import annotations

from typing import Any, Optional

from psychiki.core.errors import ValidationError, store_errors
from psychiki.repositories.sql_repository import SQLRepository

DEFAULT_LIMIT = 10
MAX_LIMIT = 100


class LeaderboardService:
    def __init__(self, repository: Optional[SQLRepository] = None) -> None:
        self.repository = repository or SQLRepository()

    def top(self, limit: Any = DEFAULT_LIMIT) -> list[dict]:
        """Highest total steps first; equal totals keep sign-up order."""
        if isinstance(limit, bool):
            raise ValidationError("limit must be a whole number")
        try:
            limit_value = int(limit)
        except (TypeError, ValueError):
            raise ValidationError("limit must be a whole number") from None
        if not 1 <= limit_value <= MAX_LIMIT:
            raise ValidationError(f"limit must be between 1 and {MAX_LIMIT}")

        with store_errors("leaderboard"):
            rows = self.repository.top_activity(limit_value)
        return [
            {
                "name": account.display_name or account.username,
                "total_steps": record.total_steps,
                "daily_goal": record.daily_goal,
            }
            for account, record in rows
        ]
