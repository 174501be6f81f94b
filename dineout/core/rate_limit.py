from __future__ import annotations

import time
from collections import deque
from collections.abc import Callable
from threading import Lock

from fastapi import Depends, HTTPException, Request, status

from dineout.core.config import Settings


class SlidingWindowLimiter:
    """In-process sliding-window limiter keyed by arbitrary strings.

    Single-process only; several workers each keep their own windows.
    """

    def __init__(self, *, max_keys: int = 20_000, clock: Callable[[], float] = time.monotonic) -> None:
        self._max_keys = max_keys
        self._clock = clock
        self._lock = Lock()
        self._hits: dict[str, deque[float]] = {}

    def hit(self, key: str, *, limit: int, window_seconds: int) -> int:
        """Record a hit. Returns 0 if allowed, else the seconds to wait before retrying."""
        now = self._clock()
        window_start = now - float(window_seconds)

        with self._lock:
            hits = self._hits.setdefault(key, deque())
            while hits and hits[0] <= window_start:
                hits.popleft()

            if len(hits) >= limit:
                return max(1, int(window_seconds - (now - hits[0])) + 1)

            hits.append(now)
            if len(self._hits) > self._max_keys:
                self._evict_idle(window_start)
            return 0

    def _evict_idle(self, window_start: float) -> None:
        for key in [k for k, hits in self._hits.items() if not hits or hits[-1] <= window_start]:
            del self._hits[key]

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


limiter = SlidingWindowLimiter()


def _client_ip(request: Request, trusted_proxies: set[str]) -> str:
    """Throttling key. X-Forwarded-For is only believed when the peer is a trusted proxy."""
    peer = request.client.host if request.client else "unknown"
    if peer not in trusted_proxies:
        return peer
    # Walk back from the nearest hop; the first untrusted address is the client.
    hops = [h.strip() for h in request.headers.get("x-forwarded-for", "").split(",") if h.strip()]
    for hop in reversed(hops):
        if hop not in trusted_proxies:
            return hop
    return peer


def rate_limit(scope: str, *, limit: Callable[[Settings], int], window_seconds: Callable[[Settings], int]):
    """Dependency factory. Limits come from the settings the running app was built with."""

    def _dep(request: Request) -> None:
        app_settings: Settings = request.app.state.settings
        retry_after = limiter.hit(
            f"{scope}:{_client_ip(request, app_settings.trusted_proxy_hosts())}",
            limit=limit(app_settings),
            window_seconds=window_seconds(app_settings),
        )
        if retry_after:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests",
                headers={"Retry-After": str(retry_after)},
            )

    return Depends(_dep)


def signal_rate_limit(scope: str):
    """Throttle for the open review signals (helpful, report)."""
    return rate_limit(
        scope,
        limit=lambda s: s.signal_rate_limit,
        window_seconds=lambda s: s.signal_rate_window_seconds,
    )


def login_rate_limit():
    return rate_limit("login", limit=lambda s: s.login_rate_limit, window_seconds=lambda s: 60)
