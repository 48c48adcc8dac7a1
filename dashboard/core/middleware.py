from collections import deque
from collections.abc import Awaitable
from collections.abc import Callable
from collections.abc import Iterable
from math import ceil
from threading import Lock
from time import monotonic

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from dashboard.core.session import session_key


FAN_OUT_PREFIXES = ("/stats", "/calendar")


class SlidingWindowLimiter:
    """Admit at most `max_hits` per key within any `window_seconds` span."""

    def __init__(
        self,
        max_hits: int,
        window_seconds: float,
        clock: Callable[[], float] = monotonic,
    ) -> None:
        self.max_hits = max(1, max_hits)
        self.window_seconds = max(1.0, float(window_seconds))
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._lock = Lock()

    def acquire(self, key: str) -> int | None:
        """Record a hit for `key`.

        Returns `None` when admitted, otherwise whole seconds until the oldest
        hit leaves the window.
        """

        now = self._clock()
        with self._lock:
            hits = self._hits.setdefault(key, deque())
            while hits and now - hits[0] >= self.window_seconds:
                hits.popleft()

            if len(hits) >= self.max_hits:
                return max(1, ceil(self.window_seconds - (now - hits[0])))

            hits.append(now)
            return None


def matches_prefix(path: str, prefixes: Iterable[str]) -> bool:
    """`/stats` matches `/stats` and `/stats/...`, never `/statsfoo`."""

    return any(path == prefix or path.startswith(f"{prefix}/") for prefix in prefixes)


def fan_out_key(request: Request) -> str:
    """Limit per signed-in token when one is sent, else per client address."""

    authorization = request.headers.get("authorization", "")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return f"token:{session_key(token.strip())}"

    forwarded_for = request.headers.get("x-forwarded-for", "")
    address = forwarded_for.split(",")[0].strip()
    if not address and request.client:
        address = request.client.host
    return f"addr:{address or 'unknown'}"


class FanOutRateLimitMiddleware(BaseHTTPMiddleware):
    """Throttle GET requests to endpoints that fan out to many GitHub calls."""

    def __init__(
        self,
        app,
        requests_per_window: int = 30,
        window_seconds: int = 60,
        path_prefixes: Iterable[str] = FAN_OUT_PREFIXES,
        limiter: SlidingWindowLimiter | None = None,
    ) -> None:
        super().__init__(app)
        self.path_prefixes = tuple(path_prefixes)
        self.limiter = limiter or SlidingWindowLimiter(requests_per_window, window_seconds)

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        if request.method != "GET" or not matches_prefix(
            request.url.path, self.path_prefixes
        ):
            return await call_next(request)

        retry_after = self.limiter.acquire(fan_out_key(request))
        if retry_after is not None:
            return JSONResponse(
                status_code=429,
                content={"detail": "Too Many Requests"},
                headers={"Retry-After": str(retry_after)},
            )
        return await call_next(request)
