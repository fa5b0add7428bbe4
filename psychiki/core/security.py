"""Security helpers (password hashing and verification)."""

from __future__ import annotations

from argon2 import PasswordHasher, exceptions as argon_exc

from .config import Settings


class PasswordGuard:
    """Argon2id hashing with a per-call random salt and a fixed work factor."""

    def __init__(self, time_cost: int = 3, memory_cost: int = 65536) -> None:
        self._ph = PasswordHasher(time_cost=time_cost, memory_cost=memory_cost)
        self._decoy: str | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "PasswordGuard":
        return cls(time_cost=settings.password_time_cost, memory_cost=settings.password_memory_cost)

    def hash(self, password: str) -> str:
        return self._ph.hash(password)

    def verify(self, password: str, digest: str | None) -> bool:
        if not digest:
            return False
        try:
            return self._ph.verify(digest, password)
        except (argon_exc.VerifyMismatchError, argon_exc.VerificationError, argon_exc.InvalidHashError):
            return False

    def needs_rehash(self, digest: str) -> bool:
        try:
            return self._ph.check_needs_rehash(digest)
        except argon_exc.InvalidHashError:
            return True

    def burn(self, password: str) -> None:
        """Spend one verification worth of work, for lookups that found no account."""
        if self._decoy is None:
            self._decoy = self._ph.hash("decoy-password")
        self.verify(password, self._decoy)
