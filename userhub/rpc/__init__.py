"""
Typed RPC layer: procedure registry, middleware chain, input validation and
per-call context.
"""

from userhub.rpc.context import ContextBuilder, ContextUser, RpcContext
from userhub.rpc.middleware import (
    RateLimitMiddleware,
    compose,
    error_handling_middleware,
    logging_middleware,
)
from userhub.rpc.router import (
    Procedure,
    ProcedureBuilder,
    ProcedureKind,
    Router,
    RouterConfigurationError,
    run_with_timeout,
)
from userhub.rpc.validation import ParseResult, parse_input

__all__ = [
    "ContextBuilder",
    "ContextUser",
    "RpcContext",
    "RateLimitMiddleware",
    "compose",
    "error_handling_middleware",
    "logging_middleware",
    "Procedure",
    "ProcedureBuilder",
    "ProcedureKind",
    "Router",
    "RouterConfigurationError",
    "run_with_timeout",
    "ParseResult",
    "parse_input",
]
