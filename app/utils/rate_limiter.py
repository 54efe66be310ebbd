"""In-memory sliding-window rate limiter, keyed by client IP."""
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

from fastapi import HTTPException, Request, status

from app.config import TRUSTED_PROXIES


class InMemoryRateLimiter:
    """
    Counts requests per key inside a rolling window.
    State is per process; a multi-worker deployment gets one window per worker.
    """

    def __init__(self, max_requests: int, window: timedelta = timedelta(minutes=1)):
        self.max_requests = max_requests
        self.window = window
        self.requests: Dict[str, List[datetime]] = {}

    def _prune(self, now: datetime) -> None:
        cutoff = now - self.window
        for key in list(self.requests):
            recent = [t for t in self.requests[key] if t > cutoff]
            if recent:
                self.requests[key] = recent
            else:
                del self.requests[key]

    def is_allowed(self, key: str) -> bool:
        """
        Record a request for `key` and report whether it fits in the window.

        Keys whose window has emptied are dropped on every call, so the table
        only holds clients seen within the last window.

        Args:
            key: Client identifier, usually the remote IP

        Returns:
            True if allowed, False if the limit is exceeded
        """
        now = datetime.now()
        self._prune(now)

        recent = self.requests.get(key, [])
        if len(recent) >= self.max_requests:
            return False

        self.requests[key] = recent + [now]
        return True

    def get_remaining(self, key: str) -> int:
        cutoff = datetime.now() - self.window
        recent = [t for t in self.requests.get(key, []) if t > cutoff]
        return max(0, self.max_requests - len(recent))

    def reset(self) -> None:
        self.requests.clear()


def client_ip(request: Request, trusted_proxies: Optional[Sequence[str]] = None) -> str:
    """
    Address used as the rate-limit key.

    The socket peer is used unless it is a trusted proxy. Behind a trusted
    proxy the rightmost X-Forwarded-For hop that is not itself a trusted proxy
    is the client; anything left of it was supplied by the caller.
    """
    trusted = TRUSTED_PROXIES if trusted_proxies is None else trusted_proxies
    peer = request.client.host if request.client else "unknown"
    if peer not in trusted:
        return peer

    forwarded = request.headers.get("x-forwarded-for", "")
    hops = [h.strip() for h in forwarded.split(",") if h.strip()]
    for hop in reversed(hops):
        if hop not in trusted:
            return hop
    return peer


def rate_limit(limiter: InMemoryRateLimiter, detail: str = "Too many requests. Please try again later."):
    """Build a FastAPI dependency that rejects the request with 429 once `limiter` is exhausted."""

    async def dependency(request: Request) -> None:
        if not limiter.is_allowed(client_ip(request)):
            raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=detail)

    return dependency
