"""
FastAPI dependencies for database sessions, caller identity and RPC wiring.
"""

from typing import Annotated, Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from userhub.config import get_settings
from userhub.database import get_db, get_session_maker
from userhub.rpc.context import ContextBuilder
from userhub.rpc.router import Router

DbSession = Annotated[AsyncSession, Depends(get_db)]
SessionMaker = Annotated[async_sessionmaker, Depends(get_session_maker)]


def get_client_ip(request: Request) -> Optional[str]:
    """Extract client IP from request (X-Forwarded-For or direct)."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def get_request_id(request: Request) -> Optional[str]:
    """Get request correlation ID (set by RequestIdMiddleware)."""
    return getattr(request.state, "request_id", None)


def get_rpc_router(request: Request) -> Router:
    return request.app.state.rpc_router


def get_context_builder(request: Request) -> ContextBuilder:
    return request.app.state.context_builder


def get_rpc_timeout() -> Optional[float]:
    return get_settings().rpc_timeout_seconds


RpcRouter = Annotated[Router, Depends(get_rpc_router)]
RpcContextBuilder = Annotated[ContextBuilder, Depends(get_context_builder)]
RpcTimeout = Annotated[Optional[float], Depends(get_rpc_timeout)]
