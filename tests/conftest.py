from __future__ import annotations

import itertools
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Make the package importable when running from a checkout
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from psychiki.core import config as core_config  # noqa: E402
from psychiki.db import models  # noqa: E402
from psychiki.db import session as db_session  # noqa: E402
from psychiki.repositories.sql_repository import SQLRepository  # noqa: E402
from psychiki.services.auth_service import AuthService  # noqa: E402
from psychiki.services.notification_service import CodeNotifier, InlineDispatcher  # noqa: E402

START = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class FixedClock:
    def __init__(self, start: datetime = START) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class RecordingMailer:
    def __init__(self, ok: bool = True) -> None:
        self.ok = ok
        self.sent: list[tuple[str, str, str]] = []

    def send(self, to, subject, body, html_body=None) -> bool:
        self.sent.append((to, subject, body))
        return self.ok


@pytest.fixture()
def db_env(tmp_path, monkeypatch):
    """Point the app at a throwaway SQLite file and reset the settings/engine caches."""
    db_file = tmp_path / "test.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_file}")
    monkeypatch.setenv("JWT_SECRET", "test-secret-key-for-the-suite")
    monkeypatch.setenv("PASSWORD_TIME_COST", "1")
    monkeypatch.setenv("PASSWORD_MEMORY_COST", "1024")
    monkeypatch.setenv("APP_ENV", "test")
    core_config.get_settings.cache_clear()
    db_session.get_engine.cache_clear()
    db_session._get_sessionmaker.cache_clear()  # type: ignore[attr-defined]

    engine = db_session.get_engine()
    models.Base.metadata.drop_all(bind=engine)
    models.Base.metadata.create_all(bind=engine)

    yield core_config.get_settings()

    try:
        models.Base.metadata.drop_all(bind=engine)
    except Exception:
        pass
    try:
        engine.dispose()
    except Exception:
        pass
    core_config.get_settings.cache_clear()
    db_session.get_engine.cache_clear()
    db_session._get_sessionmaker.cache_clear()  # type: ignore[attr-defined]
    if db_file.exists():
        try:
            db_file.unlink()
        except Exception:
            pass


@pytest.fixture()
def settings(db_env):
    return db_env


@pytest.fixture()
def clock():
    return FixedClock()


@pytest.fixture()
def mailer():
    return RecordingMailer()


@pytest.fixture()
def repo(db_env):
    return SQLRepository()


@pytest.fixture()
def auth(settings, repo, mailer, clock):
    notifier = CodeNotifier(mailer, settings, InlineDispatcher())
    codes = itertools.count(123456, 1111)
    return AuthService(
        settings=settings,
        repository=repo,
        notifier=notifier,
        clock=clock,
        randint=lambda low, high: next(codes),
    )


@pytest.fixture()
def verified_account(auth, repo):
    """A verified account created through the real register/verify flow."""
    auth.register("alice", "alice@example.com", "s3cret-pass")
    code = repo.get_account_by_email("alice@example.com").verification_code
    auth.verify_code("alice@example.com", code)
    return repo.get_account_by_email("alice@example.com")
