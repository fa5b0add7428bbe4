"""
Verification code delivery.

Delivery is best effort: it runs off the request path, its outcome only shows
up in the logs, and a failed send falls back to logging the code so accounts
can still be verified while the mail relay is down.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Protocol

from psychiki.core.config import Settings
from psychiki.core.mailer import Mailer

logger = logging.getLogger(__name__)


class Dispatcher(Protocol):
    def submit(self, fn: Callable[..., object], *args: object) -> None: ...


class InlineDispatcher:
    """Runs the job immediately in the caller's thread."""

    def submit(self, fn: Callable[..., object], *args: object) -> None:
        fn(*args)


class ThreadedDispatcher:
    """Hands jobs to a small worker pool so responses never wait on SMTP."""

    def __init__(self, max_workers: int = 2) -> None:
        self._max_workers = max_workers
        self._lock = threading.Lock()
        self._pool: ThreadPoolExecutor | None = None

    def _executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._pool is None:
                self._pool = ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="mail")
            return self._pool

    def submit(self, fn: Callable[..., object], *args: object) -> None:
        try:
            self._executor().submit(fn, *args)
        except RuntimeError:
            # the pool refuses jobs once the interpreter is exiting
            logger.exception("Mail worker pool rejected a job; running it inline")
            fn(*args)

    def shutdown(self) -> None:
        """Drain pending jobs; a later submit starts a fresh pool."""
        with self._lock:
            pool, self._pool = self._pool, None
        if pool is not None:
            pool.shutdown(wait=True)


class CodeNotifier:
    def __init__(self, mailer: Mailer, settings: Settings, dispatcher: Dispatcher | None = None) -> None:
        self.mailer = mailer
        self.settings = settings
        self.dispatcher = dispatcher or InlineDispatcher()

    def _body(self, code: str) -> tuple[str, str]:
        minutes = max(1, self.settings.verification_code_ttl_seconds // 60)
        text = f"Your verification code is {code}. It will expire in {minutes} minutes."
        html = f"<b>Your verification code is {code}</b>. It will expire in {minutes} minutes."
        return text, html

    def deliver(self, email: str, code: str, subject: str) -> bool:
        text, html = self._body(code)
        try:
            sent = self.mailer.send(email, subject, text, html)
        except Exception:
            logger.exception("Mailer raised while delivering a code to %s", email)
            sent = False
        if not sent:
            if self.settings.app_env == "prod":
                logger.warning("Verification code for %s could not be delivered", email)
            else:
                logger.warning("[VERIFICATION CODE FOR %s]: %s", email, code)
        return sent

    def send_code(self, email: str, code: str, subject: str = "Your Verification Code") -> None:
        """Queue delivery and return immediately."""
        self.dispatcher.submit(self.deliver, email, code, subject)
