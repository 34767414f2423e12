"""
API Gateway Rate Limiting - per user, falling back to per IP.

Scopes:
- write: quiz start, submit and integrity reports, 30/min per user
- api: everything else under /api/v1, 100/min per user (or IP)

The counter store is passed to the middleware, so tests and multi-worker
deployments can swap it.
"""

import re
import time
from typing import Callable, Dict, Optional, Protocol, Tuple

from fastapi import Request, Response, status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from learnpath.config import Settings, get_settings
from learnpath.kernel.identity.jwt import verify_access_token

WINDOW_SECONDS = 60

# Paths under the API prefix that change attempt state
_WRITE_PATHS = (
    re.compile(r"^/quizzes/[^/]+/attempts/?$"),
    re.compile(r"^/attempts/[^/]+/(submit|integrity)/?$"),
)


def _get_client_ip(request: Request) -> str:
    """Get client IP from request (X-Forwarded-For or direct)."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _get_user_id_from_jwt(request: Request) -> Optional[str]:
    """User id from a valid Bearer token, if any. Authentication proper runs later."""
    auth = request.headers.get("authorization")
    if not auth or not auth.lower().startswith("bearer "):
        return None
    token = auth[7:].strip()
    if not token:
        return None
    payload = verify_access_token(token)
    return payload.sub if payload else None


class RateLimitStore(Protocol):
    def check_and_incr(self, scope: str, identifier: str, limit: int, window_seconds: int) -> bool:
        ...

    def cleanup_old(self, max_age_seconds: int = 3600) -> None:
        ...


class InMemoryRateLimitStore:
    """Fixed-window in-memory store. Key -> (count, window_start_ts)."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._data: Dict[str, Tuple[int, float]] = {}
        self._window_sec: Dict[str, int] = {}

    def _key(self, scope: str, identifier: str) -> str:
        return f"{scope}:{identifier}"

    def check_and_incr(
        self,
        scope: str,
        identifier: str,
        limit: int,
        window_seconds: int,
    ) -> bool:
        """Returns True if under limit (and increments). False if over limit (no increment)."""
        key = self._key(scope, identifier)
        now = self._clock()
        if key not in self._data:
            self._data[key] = (1, now)
            self._window_sec[key] = window_seconds
            return True
        count, start = self._data[key]
        win = self._window_sec.get(key, window_seconds)
        if now - start >= win:
            self._data[key] = (1, now)
            self._window_sec[key] = window_seconds
            return True
        if count >= limit:
            return False
        self._data[key] = (count + 1, start)
        return True

    def cleanup_old(self, max_age_seconds: int = 3600) -> None:
        """Remove entries older than max_age_seconds to avoid unbounded growth."""
        now = self._clock()
        to_remove = [k for k, (_, start) in self._data.items() if now - start > max_age_seconds]
        for k in to_remove:
            self._data.pop(k, None)
            self._window_sec.pop(k, None)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Fixed-window rate limit by scope; 429 once a window's budget is spent."""

    def __init__(
        self,
        app: ASGIApp,
        store: Optional[RateLimitStore] = None,
        settings: Optional[Settings] = None,
    ):
        super().__init__(app)
        self.store = store if store is not None else InMemoryRateLimitStore()
        self.settings = settings or get_settings()

    def _scope_for(self, request: Request) -> Tuple[str, int]:
        path = request.url.path[len(self.settings.api_v1_prefix):]
        if request.method == "POST" and any(p.match(path) for p in _WRITE_PATHS):
            return "write", self.settings.rate_limit_write_per_minute
        return "api", self.settings.rate_limit_api_per_minute

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not self.settings.rate_limit_enabled:
            return await call_next(request)

        path = request.url.path or ""
        if not path.startswith(self.settings.api_v1_prefix):
            return await call_next(request)

        self.store.cleanup_old(max_age_seconds=7200)

        scope, limit = self._scope_for(request)
        user_id = _get_user_id_from_jwt(request)
        identifier = user_id if user_id else _get_client_ip(request)

        if not self.store.check_and_incr(scope, identifier, limit, WINDOW_SECONDS):
            return Response(
                content='{"detail":"Too many requests. Please try again later.","code":"rate_limited"}',
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                media_type="application/json",
            )
        return await call_next(request)
