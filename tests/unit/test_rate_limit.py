"""Unit tests for the fixed-window rate limiter."""

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from learnpath.api.middleware.rate_limit import InMemoryRateLimitStore, RateLimitMiddleware
from learnpath.config import Settings


class ManualClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestInMemoryRateLimitStore:
    def test_limit_within_window(self):
        store = InMemoryRateLimitStore(clock=ManualClock())
        assert [store.check_and_incr("api", "u1", 2, 60) for _ in range(3)] == [True, True, False]

    def test_window_resets(self):
        clock = ManualClock()
        store = InMemoryRateLimitStore(clock=clock)
        store.check_and_incr("api", "u1", 1, 60)
        assert store.check_and_incr("api", "u1", 1, 60) is False
        clock.now += 60
        assert store.check_and_incr("api", "u1", 1, 60) is True

    def test_scopes_and_identifiers_are_independent(self):
        store = InMemoryRateLimitStore(clock=ManualClock())
        assert store.check_and_incr("api", "u1", 1, 60) is True
        assert store.check_and_incr("write", "u1", 1, 60) is True
        assert store.check_and_incr("api", "u2", 1, 60) is True

    def test_stores_do_not_share_state(self):
        a, b = InMemoryRateLimitStore(), InMemoryRateLimitStore()
        a.check_and_incr("api", "u1", 1, 60)
        assert b.check_and_incr("api", "u1", 1, 60) is True

    def test_cleanup_drops_old_windows(self):
        clock = ManualClock()
        store = InMemoryRateLimitStore(clock=clock)
        store.check_and_incr("api", "u1", 1, 60)
        clock.now += 7201
        store.cleanup_old(max_age_seconds=7200)
        assert store.check_and_incr("api", "u1", 1, 60) is True


def _app(store: InMemoryRateLimitStore, write_limit: int = 1, api_limit: int = 100) -> FastAPI:
    settings = Settings(
        rate_limit_enabled=True,
        rate_limit_write_per_minute=write_limit,
        rate_limit_api_per_minute=api_limit,
    )
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, store=store, settings=settings)

    @app.post("/api/v1/attempts/{attempt_id}/submit")
    async def submit(attempt_id: str):
        return {"ok": True}

    @app.get("/api/v1/quizzes/{quiz_id}")
    async def overview(quiz_id: str):
        return {"ok": True}

    @app.get("/health")
    async def health():
        return {"ok": True}

    return app


@pytest.mark.asyncio
async def test_write_scope_limited_separately():
    store = InMemoryRateLimitStore()
    app = _app(store, write_limit=1)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        assert (await client.post("/api/v1/attempts/a1/submit")).status_code == 200
        limited = await client.post("/api/v1/attempts/a1/submit")
        assert limited.status_code == 429
        assert limited.json()["code"] == "rate_limited"
        # Reads draw from the general budget
        assert (await client.get("/api/v1/quizzes/q1")).status_code == 200


@pytest.mark.asyncio
async def test_paths_outside_api_are_not_limited():
    store = InMemoryRateLimitStore()
    app = _app(store, api_limit=1)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        for _ in range(3):
            assert (await client.get("/health")).status_code == 200
