"""
Account verification lifecycle.

    NO_ACCOUNT --issue_code--> PENDING_VERIFICATION --complete--> VERIFIED
                                  |        ^
                                  +--------+  issue_code (re-registration, login while pending)

Guards raise the service error for a forbidden transition; transitions return
the column values the repository should write.
"""
from __future__ import annotations

import secrets
from datetime import datetime
from enum import Enum

from psychiki.core.clock import as_utc
from psychiki.core.errors import (
    AlreadyVerifiedError,
    ConflictError,
    ExpiredCodeError,
    InvalidCodeError,
    NotFoundError,
)
from psychiki.db.models import Account
from psychiki.domain.codes import VerificationCode


class AccountState(str, Enum):
    NO_ACCOUNT = "no_account"
    PENDING_VERIFICATION = "pending_verification"
    VERIFIED = "verified"


def state_of(account: Account | None) -> AccountState:
    if account is None:
        return AccountState.NO_ACCOUNT
    if account.is_verified:
        return AccountState.VERIFIED
    return AccountState.PENDING_VERIFICATION


# -------------------------------------- guards --------------------------------------
def guard_register(account: Account | None) -> AccountState:
    state = state_of(account)
    if state is AccountState.VERIFIED:
        raise ConflictError("User already exists")
    return state


def guard_verify(account: Account | None, code: str, now: datetime) -> None:
    state = state_of(account)
    if state is AccountState.NO_ACCOUNT:
        raise NotFoundError("User not found")
    if state is AccountState.VERIFIED:
        raise AlreadyVerifiedError("Account already verified")
    stored = account.verification_code or ""
    if not stored or not secrets.compare_digest(stored.encode(), code.encode()):
        raise InvalidCodeError("Invalid code")
    expires_at = account.verification_expires_at
    if expires_at is None or as_utc(now) >= as_utc(expires_at):
        raise ExpiredCodeError("Code expired")


# -------------------------------------- transitions --------------------------------------
def issue_code(code: VerificationCode) -> dict:
    """Enter (or re-enter) PENDING_VERIFICATION; any earlier code is overwritten."""
    return {
        "is_verified": False,
        "verification_code": code.code,
        "verification_expires_at": code.expires_at,
    }


def complete_verification() -> dict:
    return {
        "is_verified": True,
        "verification_code": None,
        "verification_expires_at": None,
    }
