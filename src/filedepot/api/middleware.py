"""Middleware: request timing, body size limits, per-client rate limiting."""

from __future__ import annotations

import logging
import time

from pyrate_limiter import (
    AbstractBucket,
    AbstractClock,
    BucketFactory,
    BucketFullException,
    InMemoryBucket,
    Leaker,
    Limiter,
    Rate,
    RateItem,
    TimeClock,
)
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from filedepot.api.errors import error_response

logger = logging.getLogger(__name__)

UPLOAD_PATH = "/api/add-files"
DOWNLOAD_PATHS = ("/api/load-files", "/uploads/")

_MAX_BODY_DEFAULT = 1 * 1024 * 1024  # 1 MB for everything but uploads
_MULTIPART_OVERHEAD = 1 * 1024 * 1024


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """Add X-Request-Duration-Ms header with processing time."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start = time.monotonic()
        response = await call_next(request)
        duration_ms = (time.monotonic() - start) * 1000
        response.headers["X-Request-Duration-Ms"] = f"{duration_ms:.1f}"
        return response


def _format_limit(limit: int) -> str:
    if limit >= 1024 * 1024:
        return f"{limit // (1024 * 1024)} MB"
    return f"{limit} bytes"


class RequestBodyLimitMiddleware(BaseHTTPMiddleware):
    """Reject request bodies that exceed size limits.

    The upload endpoint accepts ``max_file_size * max_files`` plus multipart
    overhead; every other endpoint is capped at 1 MB.

    Two checks are performed:
    1. **Content-Length header** — cheap early rejection.
    2. **Streaming byte count** — reads the body via ``request.stream()``
       and aborts as soon as the limit is exceeded.  The consumed bytes are
       cached on ``request._body`` so downstream handlers can still read the
       body.
    """

    def __init__(self, app: ASGIApp, *, max_file_size: int, max_files: int) -> None:
        super().__init__(app)
        self._upload_limit = max_file_size * max_files + _MULTIPART_OVERHEAD

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        limit = self._upload_limit if request.url.path == UPLOAD_PATH else _MAX_BODY_DEFAULT
        too_large = f"Request body too large (max {_format_limit(limit)})"

        # Fast path: check Content-Length header first
        content_length = request.headers.get("content-length")
        if content_length is not None:
            try:
                declared = int(content_length)
            except ValueError:
                declared = None
            if declared is not None and declared > limit:
                return error_response(413, too_large)

        # Stream actual bytes — abort early if limit exceeded
        if request.method in ("POST", "PUT", "PATCH"):
            chunks: list[bytes] = []
            total = 0
            async for chunk in request.stream():
                total += len(chunk)
                if total > limit:
                    return error_response(413, too_large)
                chunks.append(chunk)
            # Cache consumed body so downstream can call request.body()
            request._body = b"".join(chunks)  # noqa: SLF001

        return await call_next(request)


class _ClientBucketFactory(BucketFactory):
    """Routes each client to its own in-memory bucket.

    All buckets of a factory share one leak thread.  Buckets that have fully
    drained are evicted when a new client shows up, at most once per window.
    """

    def __init__(self, rate: Rate, clock: AbstractClock) -> None:
        self.rates = [rate]
        self.clock = clock
        self._window_ms = rate.interval
        self._buckets: dict[str, AbstractBucket] = {}
        self._last_sweep = clock.now()
        self._leaker = Leaker(self._leak_interval)
        self._leaker.daemon = True

    def __len__(self) -> int:
        return len(self._buckets)

    def wrap_item(self, name: str, weight: int = 1) -> RateItem:
        return RateItem(name, self.clock.now(), weight=weight)

    def get(self, item: RateItem) -> AbstractBucket:
        bucket = self._buckets.get(item.name)
        if bucket is None:
            bucket = self.create(self.clock, InMemoryBucket, self.rates)
            self._buckets[item.name] = bucket
            if item.timestamp - self._last_sweep >= self._window_ms:
                self._evict_idle(item.timestamp, keep=item.name)
        return bucket

    def _evict_idle(self, now: int, *, keep: str) -> None:
        # the bucket just created stays, so the leak thread never runs dry
        self._last_sweep = now
        evicted = 0
        for name, bucket in list(self._buckets.items()):
            if name == keep:
                continue
            bucket.leak(now)
            if bucket.count() == 0:
                del self._buckets[name]
                self.dispose(bucket)
                evicted += 1
        if evicted:
            logger.debug("Evicted %d idle rate-limit bucket(s)", evicted)


class RateLimiter:
    """Sliding-window limits per ``(group, client)``, backed by pyrate-limiter.

    One :class:`Limiter` per group; clients get their own bucket inside it.
    Thread-safe.
    """

    def __init__(
        self,
        limits: dict[str, int],
        window_seconds: int,
        *,
        clock: AbstractClock | None = None,
    ) -> None:
        clock = clock or TimeClock()
        self._factories: dict[str, _ClientBucketFactory] = {}
        self._limiters: dict[str, Limiter] = {}
        for group, limit in limits.items():
            factory = _ClientBucketFactory(Rate(limit, window_seconds * 1000), clock)
            self._factories[group] = factory
            self._limiters[group] = Limiter(factory, raise_when_fail=True)

    def tracked_clients(self, group: str) -> int:
        """Number of clients currently holding a bucket in *group*."""
        factory = self._factories.get(group)
        return len(factory) if factory is not None else 0

    def allow(self, group: str, client: str) -> bool:
        """Consume one slot for *client* in *group*; False when exhausted."""
        limiter = self._limiters.get(group)
        if limiter is None:
            return True
        try:
            return bool(limiter.try_acquire(client))
        except BucketFullException:
            logger.warning("Rate limit exceeded", extra={"group": group, "client": client})
            return False


def _rate_group(request: Request) -> str | None:
    path = request.url.path
    if request.method == "POST" and path == UPLOAD_PATH:
        return "upload"
    if path.startswith(DOWNLOAD_PATHS):
        return "download"
    return None


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Answer 429 once a client exhausts its upload or download budget."""

    def __init__(self, app: ASGIApp, *, limiter: RateLimiter, window_seconds: int) -> None:
        super().__init__(app)
        self._limiter = limiter
        self._window_minutes = max(1, window_seconds // 60)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        group = _rate_group(request)
        client = request.client.host if request.client else "unknown"
        if group is not None and not self._limiter.allow(group, client):
            noun = "upload" if group == "upload" else "download"
            return error_response(
                429,
                f"Too many {noun} requests from this address, "
                f"try again in {self._window_minutes} minutes",
            )
        return await call_next(request)
