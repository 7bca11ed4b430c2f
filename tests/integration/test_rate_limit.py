"""Tests for per-client rate limiting."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient
from pyrate_limiter import AbstractClock

from filedepot.api.app import create_app
from filedepot.api.deps import build_depot, init_depot, reset_depot
from filedepot.api.middleware import RateLimiter
from filedepot.settings import Settings


class ManualClock(AbstractClock):
    def __init__(self) -> None:
        self.ms = 1_000_000

    def now(self) -> int:
        return self.ms


@pytest.fixture
def app(tmp_path: Path):
    settings = Settings(
        upload_root=tmp_path / "uploads",
        upload_rate_limit=1,
        download_rate_limit=2,
        rate_limit_window_seconds=900,
    )
    application = create_app(settings=settings)
    init_depot(build_depot(settings))
    yield application
    reset_depot()


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


class TestRateLimiter:
    def test_allows_up_to_limit(self) -> None:
        limiter = RateLimiter({"upload": 2}, window_seconds=60)
        assert limiter.allow("upload", "1.2.3.4")
        assert limiter.allow("upload", "1.2.3.4")
        assert not limiter.allow("upload", "1.2.3.4")

    def test_clients_are_independent(self) -> None:
        limiter = RateLimiter({"upload": 1}, window_seconds=60)
        assert limiter.allow("upload", "1.1.1.1")
        assert limiter.allow("upload", "2.2.2.2")
        assert not limiter.allow("upload", "1.1.1.1")

    def test_unknown_group_is_unlimited(self) -> None:
        limiter = RateLimiter({}, window_seconds=60)
        assert all(limiter.allow("other", "1.1.1.1") for _ in range(10))

    def test_many_clients_share_one_leak_thread_per_group(self) -> None:
        before = threading.active_count()
        limiter = RateLimiter({"upload": 5, "download": 5}, window_seconds=60)
        for i in range(200):
            client = f"10.0.{i // 256}.{i % 256}"
            assert limiter.allow("upload", client)
            assert limiter.allow("download", client)
        assert threading.active_count() <= before + 2
        assert limiter.tracked_clients("upload") == 200

    def test_idle_clients_are_evicted_after_window(self) -> None:
        clock = ManualClock()
        limiter = RateLimiter({"upload": 1}, window_seconds=60, clock=clock)
        for i in range(50):
            assert limiter.allow("upload", f"10.0.0.{i}")
        assert limiter.tracked_clients("upload") == 50

        clock.ms += 61_000
        assert limiter.allow("upload", "10.0.1.1")
        assert limiter.tracked_clients("upload") == 1
        assert limiter.allow("upload", "10.0.0.0")

    def test_active_clients_survive_eviction(self) -> None:
        clock = ManualClock()
        limiter = RateLimiter({"upload": 1}, window_seconds=60, clock=clock)
        assert limiter.allow("upload", "10.0.0.1")
        clock.ms += 59_000
        assert limiter.allow("upload", "10.0.0.2")
        clock.ms += 2_000
        assert limiter.allow("upload", "10.0.0.3")
        assert limiter.tracked_clients("upload") == 2
        assert not limiter.allow("upload", "10.0.0.2")


class TestRateLimitMiddleware:
    async def test_upload_limit(self, client: AsyncClient) -> None:
        files = [("files", ("a.txt", b"a", "text/plain"))]
        first = await client.post("/api/add-files", files=files)
        assert first.status_code == 200
        second = await client.post("/api/add-files", files=files)
        assert second.status_code == 429
        assert second.json()["error"]["statusCode"] == 429
        assert "Too many upload requests" in second.json()["error"]["message"]

    async def test_download_limit(self, client: AsyncClient) -> None:
        for _ in range(2):
            response = await client.post("/api/load-files", json={"uris": ["/uploads/x/y.txt"]})
            assert response.status_code == 404
        response = await client.post("/api/load-files", json={"uris": ["/uploads/x/y.txt"]})
        assert response.status_code == 429

    async def test_health_not_limited(self, client: AsyncClient) -> None:
        for _ in range(5):
            assert (await client.get("/health")).status_code == 200
