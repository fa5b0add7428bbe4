"""FastAPI application factory for the Psychiki backend."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from psychiki.core.clock import Clock, SystemClock
from psychiki.core.config import Settings, get_settings
from psychiki.core.errors import ServiceError
from psychiki.core.logging import setup_logging
from psychiki.core.mailer import Mailer, SMTPMailer
from psychiki.core.rate_limiter import RateLimiter
from psychiki.core.security import PasswordGuard
from psychiki.db import create_all
from psychiki.repositories.sql_repository import SQLRepository
from psychiki.routers import activity as activity_router
from psychiki.routers import auth as auth_router
from psychiki.routers import profile as profile_router
from psychiki.services.activity_service import ActivityService
from psychiki.services.auth_service import AuthService
from psychiki.services.leaderboard_service import LeaderboardService
from psychiki.services.notification_service import CodeNotifier, Dispatcher, ThreadedDispatcher
from psychiki.services.profile_service import ProfileService
from psychiki.services.session_service import SessionIssuer

logger = logging.getLogger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Baseline headers for a JSON-only API."""

    def __init__(self, app, *, enforce_hsts: bool) -> None:
        super().__init__(app)
        self._enforce_hsts = enforce_hsts

    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers.setdefault("Content-Security-Policy", "default-src 'none'; frame-ancestors 'none'")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        if self._enforce_hsts:
            response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
        return response


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ServiceError)
    async def service_error(request: Request, exc: ServiceError):
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse({"error": "validation_error", "message": "Request body must be a JSON object"}, status_code=400)

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse({"error": "internal_error", "message": "Server error"}, status_code=500)


def create_app(
    settings: Settings | None = None,
    *,
    repository: SQLRepository | None = None,
    mailer: Mailer | None = None,
    dispatcher: Dispatcher | None = None,
    clock: Clock | None = None,
) -> FastAPI:
    """Build every component once and wire it into a FastAPI app (uvicorn --factory compatible)."""
    settings = settings or get_settings()
    setup_logging(settings)
    if settings.uses_insecure_secret and settings.app_env == "prod":
        logger.warning("JWT_SECRET is not set; sessions are signed with the insecure development key")

    clock = clock or SystemClock()
    repository = repository or SQLRepository()
    dispatcher = dispatcher or ThreadedDispatcher(settings.mail_workers)
    notifier = CodeNotifier(mailer or SMTPMailer(settings), settings, dispatcher)
    sessions = SessionIssuer(settings, clock)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        create_all()
        yield
        if isinstance(dispatcher, ThreadedDispatcher):
            dispatcher.shutdown()

    app = FastAPI(title="Psychiki API", lifespan=lifespan)
    app.state.settings = settings
    app.state.sessions = sessions
    app.state.rate_limiter = RateLimiter()
    app.state.auth_service = AuthService(
        settings=settings,
        repository=repository,
        notifier=notifier,
        sessions=sessions,
        passwords=PasswordGuard.from_settings(settings),
        clock=clock,
    )
    app.state.activity_service = ActivityService(settings=settings, repository=repository, clock=clock)
    app.state.leaderboard_service = LeaderboardService(repository)
    app.state.profile_service = ProfileService(repository)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "x-auth-token"],
    )
    app.add_middleware(SecurityHeadersMiddleware, enforce_hsts=settings.app_env == "prod")
    _register_error_handlers(app)

    @app.get("/")
    def root():
        return {"status": "success", "message": "Backend is running"}

    @app.get("/api/status")
    def status():
        return {"status": "success", "message": "API is operational"}

    app.include_router(auth_router.router)
    app.include_router(activity_router.router)
    app.include_router(profile_router.router)
    return app
