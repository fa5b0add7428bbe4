"""One-time verification code generation."""
from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

CODE_MIN = 100000
CODE_MAX = 999999
DEFAULT_CODE_TTL = timedelta(minutes=10)


@dataclass(frozen=True)
class VerificationCode:
    code: str
    expires_at: datetime


def _secure_randint(low: int, high: int) -> int:
    return low + secrets.randbelow(high - low + 1)


def generate_code(
    now: datetime,
    ttl: timedelta = DEFAULT_CODE_TTL,
    randint: Callable[[int, int], int] = _secure_randint,
) -> VerificationCode:
    """Return a six digit code (never zero padded) and its expiry."""
    value = randint(CODE_MIN, CODE_MAX)
    if not CODE_MIN <= value <= CODE_MAX:
        raise ValueError(f"random source produced {value} outside {CODE_MIN}..{CODE_MAX}")
    return VerificationCode(code=str(value), expires_at=now + ttl)
