"""
Transport-level rate limiting: one coarse fixed window per client IP across
every API call. Per-procedure limits live in the RPC middleware chain.
"""

import json
from typing import Callable, Iterable

from fastapi import Request, Response, status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from userhub.api.deps import get_client_ip
from userhub.kernel.errors import TooManyRequestsError
from userhub.kernel.rate_limit import FixedWindowStore
from userhub.logging_config import get_logger

logger = get_logger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Reject callers that exceed ``max_requests`` per window with a 429."""

    def __init__(
        self,
        app: ASGIApp,
        max_requests: int,
        window_seconds: int,
        path_prefixes: Iterable[str] = ("/api",),
        enabled: bool = True,
    ):
        super().__init__(app)
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.path_prefixes = tuple(path_prefixes)
        self.enabled = enabled
        self.store = FixedWindowStore()

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not self.enabled or not request.url.path.startswith(self.path_prefixes):
            return await call_next(request)

        identifier = get_client_ip(request) or "unknown"
        decision = await self.store.hit(identifier, self.max_requests, self.window_seconds)
        if not decision.allowed:
            logger.warning("Transport rate limit exceeded", extra={"client_ip": identifier})
            error = TooManyRequestsError(
                "Too many requests. Please try again later.",
                retry_after=decision.retry_after,
            )
            return Response(
                content=json.dumps({"error": error.to_payload()}),
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                media_type="application/json",
                headers={"Retry-After": str(decision.retry_after)},
            )
        return await call_next(request)
