"""
Procedure registry and dispatcher.

Procedures are registered under dotted paths (``health.check``). Dispatch
order is fixed: lookup, kind check, auth gate, input validation, then the
procedure's middleware chain around its handler.
"""

import asyncio
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Set, Tuple, Type

from pydantic import BaseModel

from userhub.kernel.errors import (
    BadRequestError,
    NotFoundError,
    RequestTimeoutError,
    UnauthorizedError,
)
from userhub.logging_config import get_logger
from userhub.rpc.context import RpcContext
from userhub.rpc.middleware import Middleware, compose
from userhub.rpc.validation import parse_input

logger = get_logger(__name__)

Handler = Callable[[RpcContext, Any], Awaitable[Any]]


class ProcedureKind(str, Enum):
    QUERY = "query"
    MUTATION = "mutation"


class RouterConfigurationError(Exception):
    """Raised at startup for an invalid registry (duplicate or malformed path)."""


@dataclass(frozen=True)
class Procedure:
    path: str
    kind: ProcedureKind
    handler: Handler
    input_schema: Optional[Type[BaseModel]] = None
    requires_auth: bool = False
    middlewares: Tuple[Middleware, ...] = ()


@dataclass(frozen=True)
class ProcedureBuilder:
    """
    Reusable procedure options, extended immutably.

    Usage:
        public = ProcedureBuilder().use(error_handling_middleware).use(logging_middleware)
        protected = public.authed()

        @router.query("auth.me", protected)
        async def me(ctx, _):
            ...
    """

    middlewares: Tuple[Middleware, ...] = ()
    requires_auth: bool = False

    def use(self, middleware: Middleware) -> "ProcedureBuilder":
        return replace(self, middlewares=self.middlewares + (middleware,))

    def authed(self) -> "ProcedureBuilder":
        return replace(self, requires_auth=True)


def _check_path(path: str) -> None:
    if not path or any(not part for part in path.split(".")):
        raise RouterConfigurationError(f"Invalid procedure path: {path!r}")


class Router:
    """Registry of procedures keyed by dotted path."""

    def __init__(self) -> None:
        self._procedures: Dict[str, Procedure] = {}

    def register(
        self,
        path: str,
        kind: ProcedureKind,
        handler: Handler,
        *,
        input_schema: Optional[Type[BaseModel]] = None,
        requires_auth: bool = False,
        middlewares: Sequence[Middleware] = (),
    ) -> Procedure:
        _check_path(path)
        if path in self._procedures:
            raise RouterConfigurationError(f"Procedure already registered: {path}")
        procedure = Procedure(
            path=path,
            kind=ProcedureKind(kind),
            handler=handler,
            input_schema=input_schema,
            requires_auth=requires_auth,
            middlewares=tuple(middlewares),
        )
        self._procedures[path] = procedure
        return procedure

    def _decorator(
        self,
        kind: ProcedureKind,
        path: str,
        builder: Optional[ProcedureBuilder],
        input: Optional[Type[BaseModel]],
    ) -> Callable[[Handler], Handler]:
        builder = builder or ProcedureBuilder()

        def decorate(handler: Handler) -> Handler:
            self.register(
                path,
                kind,
                handler,
                input_schema=input,
                requires_auth=builder.requires_auth,
                middlewares=builder.middlewares,
            )
            return handler

        return decorate

    def query(
        self,
        path: str,
        builder: Optional[ProcedureBuilder] = None,
        input: Optional[Type[BaseModel]] = None,
    ) -> Callable[[Handler], Handler]:
        return self._decorator(ProcedureKind.QUERY, path, builder, input)

    def mutation(
        self,
        path: str,
        builder: Optional[ProcedureBuilder] = None,
        input: Optional[Type[BaseModel]] = None,
    ) -> Callable[[Handler], Handler]:
        return self._decorator(ProcedureKind.MUTATION, path, builder, input)

    def merge(self, prefix: str, other: "Router") -> "Router":
        """Mount every procedure of ``other`` under ``prefix.``."""
        for procedure in other.procedures:
            path = f"{prefix}.{procedure.path}" if prefix else procedure.path
            self.register(
                path,
                procedure.kind,
                procedure.handler,
                input_schema=procedure.input_schema,
                requires_auth=procedure.requires_auth,
                middlewares=procedure.middlewares,
            )
        return self

    @property
    def procedures(self) -> List[Procedure]:
        return list(self._procedures.values())

    def get(self, path: str) -> Optional[Procedure]:
        return self._procedures.get(path)

    def __contains__(self, path: str) -> bool:
        return path in self._procedures

    async def dispatch(
        self,
        path: str,
        kind: ProcedureKind,
        raw_input: Any,
        ctx: RpcContext,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Run one call.

        Raises:
            NotFoundError: no procedure at ``path``
            BadRequestError: wrong kind, or input failed validation
            UnauthorizedError: procedure needs a user and ctx has none
            RequestTimeoutError: ``timeout`` seconds elapsed first
            AppError: anything the chain or handler raised
        """
        procedure = self._procedures.get(path)
        if procedure is None:
            raise NotFoundError(f'No procedure on path "{path}"')
        try:
            kind = ProcedureKind(kind)
        except ValueError:
            raise BadRequestError(f"Unknown procedure kind: {kind!r}") from None
        if procedure.kind != kind:
            raise BadRequestError(
                f'Procedure "{path}" is a {procedure.kind.value}, not a {kind.value}'
            )
        if procedure.requires_auth and ctx.user is None:
            raise UnauthorizedError()

        parsed: Any = raw_input
        if procedure.input_schema is not None:
            result = parse_input(procedure.input_schema, raw_input)
            if not result.ok:
                raise BadRequestError("Input validation failed", issues=result.issues)
            parsed = result.value

        async def invoke() -> Any:
            return await procedure.handler(ctx, parsed)

        run = compose(procedure.middlewares, invoke)
        return await run_with_timeout(run(ctx, path, procedure.kind), path, timeout)


# Calls whose caller timed out; held until they finish
_orphaned: Set["asyncio.Future[Any]"] = set()


async def run_with_timeout(call: Awaitable[Any], path: str, timeout: Optional[float]) -> Any:
    """
    Await ``call`` for at most ``timeout`` seconds; ``None`` waits as long as it takes.

    On timeout the caller gets RequestTimeoutError while ``call`` runs on to
    completion. Anything ``call`` holds open, such as a database session, has
    to be acquired and released inside ``call`` itself.
    """
    if timeout is None:
        return await call
    task = asyncio.ensure_future(call)
    try:
        return await asyncio.wait_for(asyncio.shield(task), timeout)
    except asyncio.TimeoutError:
        _orphaned.add(task)
        task.add_done_callback(lambda t: _finish_orphaned(t, path))
        raise RequestTimeoutError(f"Procedure {path} did not complete within {timeout:g}s") from None


def _finish_orphaned(task: "asyncio.Future[Any]", path: str) -> None:
    _orphaned.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.warning("[rpc] %s failed after its caller timed out: %r", path, exc)
    else:
        logger.info("[rpc] %s completed after its caller timed out", path)
