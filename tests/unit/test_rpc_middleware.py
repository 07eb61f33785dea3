"""Unit tests for procedure middleware."""

import logging

import pytest

from userhub.kernel.errors import (
    ErrorCode,
    InternalServerError,
    NotFoundError,
    TooManyRequestsError,
)
from userhub.kernel.rate_limit import FixedWindowStore
from userhub.rpc.context import ContextUser, RpcContext
from userhub.rpc.middleware import (
    ANONYMOUS_CLIENT,
    RateLimitMiddleware,
    client_identifier,
    compose,
    error_handling_middleware,
    logging_middleware,
)
from userhub.rpc.router import ProcedureKind


async def _ok():
    return {"ok": True}


async def _boom():
    raise ValueError("db password is hunter2")


class TestLoggingMiddleware:
    @pytest.mark.asyncio
    async def test_logs_start_and_success(self, anonymous_ctx, caplog):
        caplog.set_level(logging.INFO, logger="userhub.rpc.middleware")

        result = await logging_middleware(anonymous_ctx, "health.check", ProcedureKind.QUERY, _ok)

        assert result == {"ok": True}
        messages = [r.getMessage() for r in caplog.records]
        assert "[rpc] QUERY health.check - Started" in messages
        assert any(m.startswith("[rpc] QUERY health.check - Success (") for m in messages)

    @pytest.mark.asyncio
    async def test_logs_error_and_reraises(self, anonymous_ctx, caplog):
        caplog.set_level(logging.INFO, logger="userhub.rpc.middleware")

        with pytest.raises(ValueError):
            await logging_middleware(anonymous_ctx, "users.create", ProcedureKind.MUTATION, _boom)

        assert any(
            r.getMessage().startswith("[rpc] MUTATION users.create - Error (") for r in caplog.records
        )


class TestErrorHandlingMiddleware:
    @pytest.mark.asyncio
    async def test_typed_errors_pass_through(self, anonymous_ctx):
        async def missing():
            raise NotFoundError("nope")

        with pytest.raises(NotFoundError):
            await error_handling_middleware(anonymous_ctx, "x.y", ProcedureKind.QUERY, missing)

    @pytest.mark.asyncio
    async def test_unknown_errors_wrapped(self, anonymous_ctx):
        """The original message never reaches the error payload."""
        with pytest.raises(InternalServerError) as exc_info:
            await error_handling_middleware(anonymous_ctx, "x.y", ProcedureKind.QUERY, _boom)

        error = exc_info.value
        assert error.code == ErrorCode.INTERNAL_SERVER_ERROR
        assert isinstance(error.__cause__, ValueError)
        assert "hunter2" not in str(error.to_payload("x.y"))

    @pytest.mark.asyncio
    async def test_success_untouched(self, anonymous_ctx):
        assert await error_handling_middleware(anonymous_ctx, "x.y", ProcedureKind.QUERY, _ok) == {"ok": True}


class TestClientIdentifier:
    def test_prefers_network_address(self):
        ctx = RpcContext(client_ip="10.0.0.1", user=ContextUser(id="u1"))
        assert client_identifier(ctx) == "10.0.0.1"

    def test_falls_back_to_user(self):
        assert client_identifier(RpcContext(user=ContextUser(id="u1"))) == "u1"

    def test_anonymous(self):
        assert client_identifier(RpcContext()) == ANONYMOUS_CLIENT


class TestRateLimitMiddleware:
    @pytest.mark.asyncio
    async def test_limit_then_reject(self, anonymous_ctx):
        now = [0.0]
        limiter = RateLimitMiddleware(max_requests=2, window_seconds=60, store=FixedWindowStore(lambda: now[0]))

        for _ in range(2):
            assert await limiter(anonymous_ctx, "health.ping", ProcedureKind.QUERY, _ok) == {"ok": True}

        now[0] = 20.0
        with pytest.raises(TooManyRequestsError) as exc_info:
            await limiter(anonymous_ctx, "health.ping", ProcedureKind.QUERY, _ok)

        error = exc_info.value
        assert error.retry_after == 40
        assert "health.ping" in error.message
        assert "40 seconds" in error.message
        assert error.to_payload("health.ping")["data"]["retryAfter"] == 40

    @pytest.mark.asyncio
    async def test_rejected_call_does_not_reach_handler(self, anonymous_ctx):
        calls = []

        async def handler():
            calls.append(1)

        limiter = RateLimitMiddleware(max_requests=1, window_seconds=60)
        await limiter(anonymous_ctx, "p.q", ProcedureKind.QUERY, handler)
        with pytest.raises(TooManyRequestsError):
            await limiter(anonymous_ctx, "p.q", ProcedureKind.QUERY, handler)
        assert calls == [1]

    @pytest.mark.asyncio
    async def test_paths_counted_separately(self, anonymous_ctx):
        limiter = RateLimitMiddleware(max_requests=1, window_seconds=60)
        await limiter(anonymous_ctx, "a.b", ProcedureKind.QUERY, _ok)
        assert await limiter(anonymous_ctx, "a.c", ProcedureKind.QUERY, _ok) == {"ok": True}

    @pytest.mark.asyncio
    async def test_table_stays_bounded_across_many_clients(self):
        now = [0.0]
        store = FixedWindowStore(lambda: now[0], sweep_every=100)
        limiter = RateLimitMiddleware(max_requests=30, window_seconds=60, store=store)

        for i in range(5000):
            ctx = RpcContext(client_ip=f"10.{i // 256}.{i % 256}.1")
            await limiter(ctx, "health.ping", ProcedureKind.QUERY, _ok)
        now[0] += 10_000
        for i in range(100):
            ctx = RpcContext(client_ip=f"192.168.0.{i}")
            await limiter(ctx, "health.ping", ProcedureKind.QUERY, _ok)

        assert len(store) <= 100

    def test_invalid_limit(self):
        with pytest.raises(ValueError):
            RateLimitMiddleware(max_requests=0)


class TestCompose:
    @pytest.mark.asyncio
    async def test_onion_order(self, anonymous_ctx):
        trace = []

        def tracer(name):
            async def middleware(ctx, path, kind, call_next):
                trace.append(f"{name}:before")
                result = await call_next()
                trace.append(f"{name}:after")
                return result

            return middleware

        async def handler():
            trace.append("handler")
            return "done"

        run = compose([tracer("outer"), tracer("inner")], handler)
        assert await run(anonymous_ctx, "a.b", ProcedureKind.QUERY) == "done"
        assert trace == ["outer:before", "inner:before", "handler", "inner:after", "outer:after"]

    @pytest.mark.asyncio
    async def test_short_circuit(self, anonymous_ctx):
        async def deny(ctx, path, kind, call_next):
            return "denied"

        async def handler():
            raise AssertionError("handler must not run")

        run = compose([deny], handler)
        assert await run(anonymous_ctx, "a.b", ProcedureKind.QUERY) == "denied"

    @pytest.mark.asyncio
    async def test_empty_chain_calls_handler(self, anonymous_ctx):
        run = compose([], _ok)
        assert await run(anonymous_ctx, "a.b", ProcedureKind.QUERY) == {"ok": True}
