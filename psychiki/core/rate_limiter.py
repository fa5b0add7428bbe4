from __future__ import annotations

import threading
import time
from typing import Callable, Dict, Tuple

from fastapi import Request

from .errors import ServiceError


class RateLimitedError(ServiceError):
    kind = "rate_limited"
    status_code = 429

    def __init__(self, message: str = "Too many requests. Try again shortly."):
        super().__init__(message)


class RateLimiter:
    """Fixed-window hit counter keyed by scope and client address."""

    def __init__(self, timer: Callable[[], float] = time.monotonic) -> None:
        self._hits: Dict[str, Tuple[int, float]] = {}
        self._lock = threading.Lock()
        self._timer = timer

    def check(self, key: str, limit: int, window_seconds: int) -> None:
        if limit <= 0:
            return
        now = self._timer()
        with self._lock:
            count, reset = self._hits.get(key, (0, now + window_seconds))
            if now > reset:
                count = 0
                reset = now + window_seconds
            count += 1
            self._hits[key] = (count, reset)
        if count > limit:
            raise RateLimitedError()


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def rate_limit_ip(request: Request, scope: str, *, limit: int, window_seconds: int) -> None:
    limiter: RateLimiter = request.app.state.rate_limiter
    limiter.check(f"{scope}:{_client_ip(request)}", limit, window_seconds)
