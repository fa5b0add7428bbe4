"""Session helpers (issue signed tokens, validate them at the boundary)."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from fastapi import Request
from jose import JWTError, jwt

from psychiki.core.clock import Clock, SystemClock
from psychiki.core.config import Settings
from psychiki.core.errors import AuthError

ALGORITHM = "HS256"


@dataclass(frozen=True)
class SessionClaims:
    account_id: int
    username: str


class SessionIssuer:
    """Stateless sessions: nothing is persisted and there is no revocation."""

    def __init__(self, settings: Settings, clock: Clock | None = None) -> None:
        self._secret = settings.jwt_secret
        self._ttl = timedelta(seconds=settings.session_ttl_seconds)
        self._clock = clock or SystemClock()

    def issue_session(self, account_id: int, username: str) -> str:
        issued_at = self._clock.now()
        claims = {
            "sub": str(account_id),
            "id": account_id,
            "username": username,
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + self._ttl).timestamp()),
        }
        return jwt.encode(claims, self._secret, algorithm=ALGORITHM)

    def decode_session(self, token: str | None) -> SessionClaims:
        if not token:
            raise AuthError("Missing auth token")
        try:
            # expiry is checked against the service clock below, not wall time
            payload = jwt.decode(token, self._secret, algorithms=[ALGORITHM], options={"verify_exp": False})
        except JWTError:
            raise AuthError("Invalid auth token") from None
        try:
            expires_at = int(payload["exp"])
            claims = SessionClaims(account_id=int(payload["sub"]), username=str(payload.get("username") or ""))
        except (KeyError, TypeError, ValueError):
            raise AuthError("Invalid auth token") from None
        if int(self._clock.now().timestamp()) >= expires_at:
            raise AuthError("Token has expired")
        return claims


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("authorization") or ""
    scheme, _, value = header.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return (request.headers.get("x-auth-token") or "").strip() or None


def current_session(request: Request) -> SessionClaims:
    """FastAPI dependency: claims of the caller's session token."""
    issuer: SessionIssuer = request.app.state.sessions
    return issuer.decode_session(_bearer_token(request))


def current_account_id(request: Request) -> int:
    return current_session(request).account_id
