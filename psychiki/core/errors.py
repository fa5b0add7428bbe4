"""
Error taxonomy shared by every service.

Each error carries a machine-checkable ``kind`` and a human readable message.
The HTTP layer maps them to responses; nothing else about the failure leaks.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base class for every failure surfaced to callers."""

    kind = "internal_error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message}


class ValidationError(ServiceError):
    kind = "validation_error"
    status_code = 400


class ConflictError(ServiceError):
    kind = "conflict"
    status_code = 409


class NotFoundError(ServiceError):
    kind = "not_found"
    status_code = 404


class InvalidCredentialsError(ServiceError):
    kind = "invalid_credentials"
    status_code = 401

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message)


class VerificationRequiredError(ServiceError):
    kind = "verification_required"
    status_code = 403

    def __init__(self, email: str, message: str = "Account not verified. Code resent."):
        super().__init__(message)
        self.email = email

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload.update({"requires_verification": True, "email": self.email})
        return payload


class InvalidCodeError(ServiceError):
    kind = "invalid_code"
    status_code = 400


class ExpiredCodeError(ServiceError):
    kind = "expired_code"
    status_code = 400


class AlreadyVerifiedError(ServiceError):
    kind = "already_verified"
    status_code = 409


class AuthError(ServiceError):
    """Session credential missing, malformed, badly signed or expired."""

    kind = "auth_error"
    status_code = 401


class StoreError(ServiceError):
    kind = "store_error"
    status_code = 500

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)


@contextmanager
def store_errors(operation: str) -> Iterator[None]:
    """Translate persistence failures into an opaque StoreError."""
    try:
        yield
    except SQLAlchemyError as exc:
        logger.exception("Store failure during %s", operation)
        raise StoreError() from exc
