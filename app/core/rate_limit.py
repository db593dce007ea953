"""
Fixed-window rate limiting for the auth endpoints.

Each (scope, client ip) pair gets a counter in the HybridCacheManager that
lives for one window. Once the counter passes the limit the request is
rejected with 429 until the window expires.

Usage:
    auth_limit = RateLimiter("auth", requests=10, window_seconds=60)

    @router.post("/challenge", dependencies=[Depends(auth_limit)])
    def request_challenge(...): ...
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status

from app.core.cache import HybridCacheManager, get_cache
from app.core.config import settings

logger = logging.getLogger(__name__)


def client_ip(request: Request) -> str:
    """First X-Forwarded-For hop if present, else the socket peer."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client is not None:
        return request.client.host
    return "unknown"


class RateLimiter:
    def __init__(
        self,
        scope: str,
        requests: int,
        window_seconds: int,
        enabled: Optional[bool] = None,
    ):
        self.scope = scope
        self.requests = requests
        self.window_seconds = window_seconds
        self.enabled = enabled

    def hit(self, cache: HybridCacheManager, identifier: str) -> Optional[int]:
        """
        Count one request.

        Returns:
            None if allowed, otherwise the seconds to wait before retrying
        """
        key = f"ratelimit:{self.scope}:{identifier}"
        count = cache.incr(key, self.window_seconds)
        if count <= self.requests:
            return None
        retry_after = cache.ttl(key)
        return retry_after if retry_after else self.window_seconds

    def __call__(self, request: Request, cache: HybridCacheManager = Depends(get_cache)) -> None:
        enabled = settings.RATE_LIMIT_ENABLED if self.enabled is None else self.enabled
        if not enabled:
            return

        ip = client_ip(request)
        retry_after = self.hit(cache, ip)
        if retry_after is not None:
            logger.warning("Rate limit exceeded for %s on %s", ip, request.url.path)
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=f"Rate limit exceeded. Try again in {retry_after} seconds.",
                headers={"Retry-After": str(retry_after)},
            )


auth_rate_limit = RateLimiter(
    "auth",
    requests=settings.AUTH_RATE_LIMIT_REQUESTS,
    window_seconds=settings.AUTH_RATE_LIMIT_WINDOW_SECONDS,
)
