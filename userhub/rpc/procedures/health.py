"""
Health procedures: system status and connectivity checks. All public.
"""

import asyncio
import os
import platform
import time
from datetime import datetime, timezone
from typing import Any, Dict

from userhub.rpc.context import RpcContext
from userhub.rpc.router import ProcedureBuilder, Router
from userhub.schemas.health import EchoInput, PingInput

PONG_MESSAGE = "Pong from RPC server!"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _resident_bytes(statm_path: str = "/proc/self/statm") -> int:
    """Current resident set size; 0 where /proc is unavailable."""
    try:
        with open(statm_path) as f:
            resident_pages = int(f.read().split()[1])
    except (OSError, IndexError, ValueError):
        return 0
    return resident_pages * os.sysconf("SC_PAGE_SIZE")


def _memory_mb() -> Dict[str, int]:
    # used is current RSS; total is physical memory
    used = _resident_bytes() // (1024 * 1024)
    try:
        total = os.sysconf("SC_PAGE_SIZE") * os.sysconf("SC_PHYS_PAGES") // (1024 * 1024)
    except (ValueError, OSError):
        total = 0
    return {"used": int(used), "total": int(total)}


def create_health_router(
    public: ProcedureBuilder,
    rate_limited: ProcedureBuilder,
    environment: str,
) -> Router:
    router = Router()
    started = time.monotonic()

    @router.query("check", public)
    async def check(ctx: RpcContext, _: Any) -> Dict[str, Any]:
        return {
            "status": "ok",
            "timestamp": _now_iso(),
            "uptime": int(time.monotonic() - started),
            "environment": environment,
            "memory": _memory_mb(),
            "version": platform.python_version(),
        }

    @router.query("echo", public, input=EchoInput)
    async def echo(ctx: RpcContext, data: EchoInput) -> Dict[str, Any]:
        return {
            "echo": data.message,
            "timestamp": _now_iso(),
        }

    @router.query("ping", rate_limited, input=PingInput)
    async def ping(ctx: RpcContext, data: PingInput) -> Dict[str, Any]:
        """Answer after an optional delay (ms) to simulate latency."""
        if data.delay:
            await asyncio.sleep(data.delay / 1000)
        return {
            "pong": True,
            "timestamp": _now_iso(),
            "delay": data.delay or 0,
            "message": PONG_MESSAGE,
        }

    return router
