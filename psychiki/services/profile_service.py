"""Profile reads and partial updates for the signed-in account."""

from __future__ import annotations

import logging
from typing import Any, Optional

from psychiki.core.errors import NotFoundError, ValidationError, store_errors
from psychiki.db.models import DEFAULT_DAILY_GOAL, Account
from psychiki.repositories.sql_repository import SQLRepository

logger = logging.getLogger(__name__)

ACCOUNT_FIELDS = {"display_name", "avatar_url", "weight_kg"}
ACTIVITY_FIELDS = {"daily_goal"}


def _text(name: str, value: Any, max_len: int) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be text")
    value = value.strip()
    if len(value) > max_len:
        raise ValidationError(f"{name} must be at most {max_len} characters")
    return value or None


def _positive_number(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ValidationError(f"{name} must be a positive number")
    return float(value)


def _positive_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{name} must be a positive whole number")
    return value


class ProfileService:
    def __init__(self, repository: Optional[SQLRepository] = None) -> None:
        self.repository = repository or SQLRepository()

    def _profile(self, account: Account) -> dict:
        record = self.repository.get_activity(account.id)
        return {
            "id": account.id,
            "username": account.username,
            "email": account.email,
            "display_name": account.display_name,
            "avatar_url": account.avatar_url,
            "weight_kg": account.weight_kg,
            "daily_goal": record.daily_goal if record else DEFAULT_DAILY_GOAL,
            "is_verified": bool(account.is_verified),
        }

    def get_profile(self, account_id: int) -> dict:
        with store_errors("get_profile"):
            account = self.repository.get_account(account_id)
            if not account:
                raise NotFoundError("User not found")
            return self._profile(account)

    def update_profile(self, account_id: int, patch: dict) -> dict:
        if not isinstance(patch, dict):
            raise ValidationError("profile update must be an object")
        unknown = set(patch) - ACCOUNT_FIELDS - ACTIVITY_FIELDS
        if unknown:
            raise ValidationError(f"unsupported fields: {', '.join(sorted(unknown))}")

        account_values: dict = {}
        if "display_name" in patch:
            account_values["display_name"] = _text("display_name", patch["display_name"], 100)
        if "avatar_url" in patch:
            account_values["avatar_url"] = _text("avatar_url", patch["avatar_url"], 500)
        if "weight_kg" in patch:
            account_values["weight_kg"] = _positive_number("weight_kg", patch["weight_kg"])
        activity_values: dict = {}
        if "daily_goal" in patch:
            activity_values["daily_goal"] = _positive_int("daily_goal", patch["daily_goal"])

        with store_errors("update_profile"):
            account = self.repository.get_account(account_id)
            if not account:
                raise NotFoundError("User not found")
            if account_values:
                account = self.repository.update_account(account_id, **account_values)
            if activity_values:
                self.repository.ensure_activity(account_id)
                self.repository.update_activity(account_id, **activity_values)
            logger.info("Profile updated for account %s (%s)", account_id, ", ".join(sorted(patch)) or "no fields")
            return self._profile(account)
