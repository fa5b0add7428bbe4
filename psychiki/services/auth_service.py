"""
Authentication and identity related use cases.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError

from psychiki.core.clock import Clock, SystemClock
from psychiki.core.config import Settings, get_settings
from psychiki.core.errors import (
    ConflictError,
    InvalidCredentialsError,
    ValidationError,
    VerificationRequiredError,
    store_errors,
)
from psychiki.core.mailer import SMTPMailer
from psychiki.core.security import PasswordGuard
from psychiki.db.models import Account
from psychiki.domain.codes import VerificationCode, generate_code
from psychiki.domain.verification import (
    AccountState,
    complete_verification,
    guard_register,
    guard_verify,
    issue_code,
    state_of,
)
from psychiki.repositories.sql_repository import SQLRepository
from psychiki.services.notification_service import CodeNotifier
from psychiki.services.session_service import SessionIssuer

logger = logging.getLogger(__name__)


@dataclass
class RegisterResult:
    message: str
    email: str
    is_verified: bool = False


@dataclass
class AuthResult:
    token: str
    user: dict


def normalize_email(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def public_user(account: Account) -> dict:
    return {"id": account.id, "username": account.username, "email": account.email}


@dataclass
class AuthService:
    """Handles registration, code verification and login."""

    settings: Optional[Settings] = None
    repository: Optional[SQLRepository] = None
    notifier: Optional[CodeNotifier] = None
    sessions: Optional[SessionIssuer] = None
    passwords: Optional[PasswordGuard] = None
    clock: Clock = field(default_factory=SystemClock)
    randint: Optional[Callable[[int, int], int]] = None

    def __post_init__(self):
        self.settings = self.settings or get_settings()
        self.repository = self.repository or SQLRepository()
        self.notifier = self.notifier or CodeNotifier(SMTPMailer(self.settings), self.settings)
        self.sessions = self.sessions or SessionIssuer(self.settings, self.clock)
        self.passwords = self.passwords or PasswordGuard.from_settings(self.settings)

    # -------------------------------------- helpers --------------------------------------
    def _now(self) -> datetime:
        return self.clock.now()

    def _new_code(self) -> VerificationCode:
        ttl = timedelta(seconds=self.settings.verification_code_ttl_seconds)
        if self.randint is None:
            return generate_code(self._now(), ttl)
        return generate_code(self._now(), ttl, self.randint)

    def _session_result(self, account: Account) -> AuthResult:
        token = self.sessions.issue_session(account.id, account.username)
        return AuthResult(token=token, user=public_user(account))

    # -------------------------------------- register --------------------------------------
    def register(self, username: str, email: str, password: str) -> RegisterResult:
        username_value = (username or "").strip()
        email_value = normalize_email(email)
        password_value = password or ""  # passwords are never stripped
        if not username_value or not email_value or not password_value:
            raise ValidationError("Please enter all fields")

        with store_errors("register"):
            existing = self.repository.find_account(username=username_value, email=email_value)
            state = guard_register(existing)
            code = self._new_code()
            password_hash = self.passwords.hash(password_value)
            if state is AccountState.NO_ACCOUNT:
                try:
                    account = self.repository.insert_account(
                        username_value,
                        email_value,
                        password_hash,
                        display_name=username_value,
                        **issue_code(code),
                    )
                except IntegrityError:
                    raise ConflictError("User already exists") from None
                logger.info("Registered account %s, pending verification", account.id)
            else:
                account = self.repository.update_account(existing.id, password_hash=password_hash, **issue_code(code))
                logger.info("Re-registration of pending account %s, code reissued", account.id)

        self.notifier.send_code(account.email, code.code)
        return RegisterResult(message="Verification code sent", email=email_value)

    # -------------------------------------- verification --------------------------------------
    def verify_code(self, email: str, code: str) -> AuthResult:
        email_value = normalize_email(email)
        code_value = str(code or "").strip()
        if not email_value or not code_value:
            raise ValidationError("email and code are required")

        with store_errors("verify_code"):
            account = self.repository.get_account_by_email(email_value)
            guard_verify(account, code_value, self._now())
            account = self.repository.update_account(account.id, **complete_verification())

        logger.info("Account %s verified", account.id)
        return self._session_result(account)

    # -------------------------------------- login --------------------------------------
    def login(self, email: str, password: str) -> AuthResult:
        email_value = normalize_email(email)
        password_value = password or ""
        if not email_value:
            raise ValidationError("email is required")

        with store_errors("login"):
            account = self.repository.get_account_by_email(email_value)
            state = state_of(account)

            if state is AccountState.NO_ACCOUNT:
                self.passwords.burn(password_value)
                raise InvalidCredentialsError()

            if state is AccountState.PENDING_VERIFICATION:
                code = self._new_code()
                self.repository.update_account(account.id, **issue_code(code))
                self.notifier.send_code(account.email, code.code, subject="Verify your account")
                logger.info("Login blocked for unverified account %s, code reissued", account.id)
                raise VerificationRequiredError(account.email)

            if not self.passwords.verify(password_value, account.password_hash):
                logger.info("Failed login for account %s", account.id)
                raise InvalidCredentialsError()

            if self.passwords.needs_rehash(account.password_hash):
                self.repository.update_account(account.id, password_hash=self.passwords.hash(password_value))

        return self._session_result(account)
