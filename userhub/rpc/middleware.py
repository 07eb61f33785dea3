"""
Procedure middleware.

A middleware is ``async (ctx, path, kind, call_next) -> result``. It may run
code before ``call_next()``, inspect the result or error afterwards, or
raise without calling ``call_next`` at all. Chains are listed outermost
first and run as an onion.
"""

import time
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, Sequence

from userhub.kernel.errors import AppError, InternalServerError, TooManyRequestsError
from userhub.kernel.rate_limit import FixedWindowStore
from userhub.logging_config import get_logger
from userhub.rpc.context import RpcContext

if TYPE_CHECKING:
    from userhub.rpc.router import ProcedureKind

logger = get_logger(__name__)

NextFn = Callable[[], Awaitable[Any]]
Middleware = Callable[[RpcContext, str, "ProcedureKind", NextFn], Awaitable[Any]]

ANONYMOUS_CLIENT = "anonymous"


def _elapsed_ms(start: float) -> int:
    return round((time.perf_counter() - start) * 1000)


async def logging_middleware(ctx: RpcContext, path: str, kind: "ProcedureKind", call_next: NextFn) -> Any:
    """Log start, success and failure of every call with its duration."""
    label = f"{kind.value.upper()} {path}"
    start = time.perf_counter()
    logger.info("[rpc] %s - Started", label)
    try:
        result = await call_next()
    except Exception as exc:
        logger.warning(
            "[rpc] %s - Error (%dms): %r",
            label,
            _elapsed_ms(start),
            exc,
            extra={"rpc_path": path, "duration_ms": _elapsed_ms(start)},
        )
        raise
    logger.info(
        "[rpc] %s - Success (%dms)",
        label,
        _elapsed_ms(start),
        extra={"rpc_path": path, "duration_ms": _elapsed_ms(start)},
    )
    return result


async def error_handling_middleware(ctx: RpcContext, path: str, kind: "ProcedureKind", call_next: NextFn) -> Any:
    """Let typed errors through; wrap anything else in InternalServerError."""
    try:
        return await call_next()
    except AppError:
        raise
    except Exception as exc:
        logger.exception("[rpc] Unhandled error in %s", path, extra={"rpc_path": path})
        raise InternalServerError(cause=exc) from exc


def client_identifier(ctx: RpcContext) -> str:
    """Network address first, then the authenticated user id, then a sentinel."""
    if ctx.client_ip:
        return ctx.client_ip
    if ctx.user is not None:
        return ctx.user.id
    return ANONYMOUS_CLIENT


class RateLimitMiddleware:
    """Fixed-window limit per ``(client, path)``; each instance owns its table."""

    def __init__(
        self,
        max_requests: int = 60,
        window_seconds: float = 60,
        store: Optional[FixedWindowStore] = None,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.store = store or FixedWindowStore()

    async def __call__(self, ctx: RpcContext, path: str, kind: "ProcedureKind", call_next: NextFn) -> Any:
        key = (client_identifier(ctx), path)
        decision = await self.store.hit(key, self.max_requests, self.window_seconds)
        if not decision.allowed:
            raise TooManyRequestsError(
                f"Rate limit exceeded for {path}. Try again in {decision.retry_after} seconds.",
                retry_after=decision.retry_after,
            )
        return await call_next()


def compose(middlewares: Sequence[Middleware], handler: Callable[[], Awaitable[Any]]) -> Callable[
    [RpcContext, str, "ProcedureKind"], Awaitable[Any]
]:
    """Wrap ``handler`` so ``middlewares[0]`` runs outermost."""

    async def run(ctx: RpcContext, path: str, kind: "ProcedureKind") -> Any:
        async def call(index: int) -> Any:
            if index == len(middlewares):
                return await handler()
            return await middlewares[index](ctx, path, kind, lambda: call(index + 1))

        return await call(0)

    return run
