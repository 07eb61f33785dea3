"""
HTTP binding for the RPC router.

    GET  {rpc_prefix}/{path}?input=<json>   -> query
    POST {rpc_prefix}/{path}   body=<json>  -> mutation

Success: ``200 {"result": {"data": ...}}``.
Failure: the error's HTTP status with ``{"error": {...}}``.
"""

import json
from typing import Any, Optional

from fastapi import APIRouter, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import async_sessionmaker

from userhub.api.deps import (
    RpcContextBuilder,
    RpcRouter,
    RpcTimeout,
    SessionMaker,
    get_client_ip,
)
from userhub.database import session_scope
from userhub.kernel.errors import AppError, BadRequestError, InternalServerError
from userhub.logging_config import get_logger
from userhub.rpc.context import ContextBuilder
from userhub.rpc.router import ProcedureKind, Router, run_with_timeout

logger = get_logger(__name__)

router = APIRouter()


def _error_response(error: AppError, path: str) -> JSONResponse:
    headers = {}
    retry_after = getattr(error, "retry_after", None)
    if retry_after is not None:
        headers["Retry-After"] = str(retry_after)
    return JSONResponse(
        status_code=error.http_status,
        content={"error": error.to_payload(path)},
        headers=headers,
    )


async def _dispatch(
    request: Request,
    rpc_router: Router,
    builder: ContextBuilder,
    session_maker: async_sessionmaker,
    timeout: Optional[float],
    path: str,
    kind: ProcedureKind,
    raw_input: Any,
) -> JSONResponse:
    async def execute() -> Any:
        # Session spans the whole call, including past a timeout
        async with session_scope(session_maker) as db:
            ctx = await builder.build(
                req=request,
                client_ip=get_client_ip(request),
                authorization=request.headers.get("authorization"),
                db=db,
            )
            return await rpc_router.dispatch(path, kind, raw_input, ctx)

    try:
        data = await run_with_timeout(execute(), path, timeout)
    except AppError as exc:
        return _error_response(exc, path)
    except Exception as exc:
        # Procedures registered without the error middleware end up here
        logger.exception("Unhandled error dispatching %s", path)
        return _error_response(InternalServerError(cause=exc), path)
    return JSONResponse(content={"result": {"data": jsonable_encoder(data)}})


def _decode_json(raw: Optional[str]) -> Any:
    if raw is None or raw == "":
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise BadRequestError(
            "Input is not valid JSON",
            issues=[{"path": ["input"], "message": exc.msg, "type": "json_invalid"}],
        ) from exc


@router.get("/{path}")
async def rpc_query(
    path: str,
    request: Request,
    rpc_router: RpcRouter,
    builder: RpcContextBuilder,
    session_maker: SessionMaker,
    timeout: RpcTimeout,
):
    """Dispatch a query; input travels JSON-encoded in the ``input`` query parameter."""
    try:
        raw_input = _decode_json(request.query_params.get("input"))
    except BadRequestError as exc:
        return _error_response(exc, path)
    return await _dispatch(
        request, rpc_router, builder, session_maker, timeout, path, ProcedureKind.QUERY, raw_input
    )


@router.post("/{path}")
async def rpc_mutation(
    path: str,
    request: Request,
    rpc_router: RpcRouter,
    builder: RpcContextBuilder,
    session_maker: SessionMaker,
    timeout: RpcTimeout,
):
    """Dispatch a mutation; input is the JSON request body."""
    try:
        raw_input = _decode_json((await request.body()).decode("utf-8", errors="replace"))
    except BadRequestError as exc:
        return _error_response(exc, path)
    return await _dispatch(
        request, rpc_router, builder, session_maker, timeout, path, ProcedureKind.MUTATION, raw_input
    )
