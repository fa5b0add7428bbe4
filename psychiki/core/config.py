"""
Configuration helpers for the Psychiki backend.

Settings are read once from the environment and handed to the components that
need them, so routers and services never fetch os.environ directly.
"""

from dataclasses import dataclass
from functools import lru_cache
import os

INSECURE_JWT_SECRET = "dev_secret"


@dataclass(frozen=True)
class Settings:
    """Typed view of environment variables."""

    app_env: str
    database_url: str
    jwt_secret: str
    session_ttl_seconds: int
    verification_code_ttl_seconds: int
    smtp_host: str
    smtp_port: int
    smtp_user: str
    smtp_password: str
    smtp_from: str
    smtp_timeout_seconds: float
    mail_workers: int
    password_time_cost: int
    password_memory_cost: int
    activity_timezone: str
    cors_origins: tuple[str, ...]
    log_level: str
    log_format: str
    rate_limit_register: int
    rate_limit_login: int
    rate_limit_verify: int
    rate_limit_window_seconds: int

    @property
    def uses_insecure_secret(self) -> bool:
        return self.jwt_secret == INSECURE_JWT_SECRET


def _int(value: str | None, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _float(value: str | None, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _csv(value: str | None, default: tuple[str, ...]) -> tuple[str, ...]:
    if value is None:
        return default
    return tuple(item.strip() for item in value.split(",") if item.strip())


@lru_cache
def get_settings() -> Settings:
    """Read the current environment and build a Settings instance."""
    return Settings(
        app_env=(os.getenv("APP_ENV") or "dev").lower(),
        database_url=os.getenv("DATABASE_URL", "sqlite:///./psychiki.db"),
        jwt_secret=os.getenv("JWT_SECRET") or INSECURE_JWT_SECRET,
        session_ttl_seconds=_int(os.getenv("SESSION_TTL_SECONDS", "604800"), 604800),
        verification_code_ttl_seconds=_int(os.getenv("VERIFICATION_CODE_TTL_SECONDS", "600"), 600),
        smtp_host=os.getenv("SMTP_HOST", ""),
        smtp_port=_int(os.getenv("SMTP_PORT", "465"), 465),
        smtp_user=os.getenv("SMTP_USER", ""),
        smtp_password=os.getenv("SMTP_PASSWORD", ""),
        smtp_from=os.getenv("SMTP_FROM", os.getenv("SMTP_USER", "")),
        smtp_timeout_seconds=_float(os.getenv("SMTP_TIMEOUT_SECONDS", "10"), 10.0),
        mail_workers=max(1, _int(os.getenv("MAIL_WORKERS", "2"), 2)),
        password_time_cost=_int(os.getenv("PASSWORD_TIME_COST", "3"), 3),
        password_memory_cost=_int(os.getenv("PASSWORD_MEMORY_COST", "65536"), 65536),
        activity_timezone=os.getenv("ACTIVITY_TIMEZONE", "UTC"),
        cors_origins=_csv(os.getenv("CORS_ORIGINS"), ("*",)),
        log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
        log_format=(os.getenv("LOG_FORMAT") or "text").lower(),
        rate_limit_register=_int(os.getenv("RATE_LIMIT_REGISTER", "5"), 5),
        rate_limit_login=_int(os.getenv("RATE_LIMIT_LOGIN", "10"), 10),
        rate_limit_verify=_int(os.getenv("RATE_LIMIT_VERIFY", "10"), 10),
        rate_limit_window_seconds=_int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "300"), 300),
    )
