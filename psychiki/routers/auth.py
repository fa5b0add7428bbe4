from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, Request

from psychiki.core.errors import ValidationError
from psychiki.core.rate_limiter import rate_limit_ip
from psychiki.services.auth_service import AuthService
from psychiki.services.profile_service import ProfileService
from psychiki.services.session_service import current_account_id

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def _field(payload: dict, name: str) -> str | None:
    value = payload.get(name)
    if value is None or isinstance(value, str):
        return value
    if name == "otp" and isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    raise ValidationError(f"{name} must be a string")


def _limit(request: Request, scope: str, limit: int) -> None:
    settings = request.app.state.settings
    rate_limit_ip(request, scope, limit=limit, window_seconds=settings.rate_limit_window_seconds)


@router.post("/register", status_code=201)
def register(request: Request, payload: dict):
    _limit(request, "auth:register", request.app.state.settings.rate_limit_register)
    result = _auth_service(request).register(
        _field(payload, "username"),
        _field(payload, "email"),
        _field(payload, "password"),
    )
    return asdict(result)


@router.post("/verify-otp")
def verify_otp(request: Request, payload: dict):
    _limit(request, "auth:verify", request.app.state.settings.rate_limit_verify)
    result = _auth_service(request).verify_code(_field(payload, "email"), _field(payload, "otp"))
    return asdict(result)


@router.post("/login")
def login(request: Request, payload: dict):
    _limit(request, "auth:login", request.app.state.settings.rate_limit_login)
    result = _auth_service(request).login(_field(payload, "email"), _field(payload, "password"))
    return asdict(result)


@router.get("/me")
def me(request: Request, account_id: int = Depends(current_account_id)):
    profiles: ProfileService = request.app.state.profile_service
    return profiles.get_profile(account_id)
