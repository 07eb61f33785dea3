"""
Application router: every namespace mounted on one registry, with the
standard procedure builders.
"""

from dataclasses import dataclass
from typing import Optional

from userhub.config import Settings, get_settings
from userhub.kernel.repositories.sqlalchemy_user_repository import SqlAlchemyUserRepository
from userhub.kernel.services.user_service import UserService
from userhub.rpc.context import RpcContext
from userhub.rpc.middleware import (
    RateLimitMiddleware,
    error_handling_middleware,
    logging_middleware,
)
from userhub.rpc.procedures import create_auth_router, create_health_router, create_users_router
from userhub.rpc.procedures.users import ServiceProvider
from userhub.rpc.router import ProcedureBuilder, Router


@dataclass(frozen=True)
class ProcedureBuilders:
    public: ProcedureBuilder
    rate_limited: ProcedureBuilder
    protected: ProcedureBuilder


def build_procedure_builders(rate_limiter: RateLimitMiddleware) -> ProcedureBuilders:
    """Error handling outermost, then logging, then (optionally) rate limiting."""
    public = ProcedureBuilder().use(error_handling_middleware).use(logging_middleware)
    return ProcedureBuilders(
        public=public,
        rate_limited=public.use(rate_limiter),
        protected=public.authed(),
    )


def sqlalchemy_service_provider(ctx: RpcContext) -> UserService:
    """UserService bound to the session carried by the context."""
    if ctx.db is None:
        raise RuntimeError("RpcContext has no database session")
    return UserService(SqlAlchemyUserRepository(ctx.db))


def build_app_router(
    settings: Optional[Settings] = None,
    service_provider: ServiceProvider = sqlalchemy_service_provider,
    rate_limiter: Optional[RateLimitMiddleware] = None,
) -> Router:
    settings = settings or get_settings()
    rate_limiter = rate_limiter or RateLimitMiddleware(
        max_requests=settings.rpc_rate_limit_max,
        window_seconds=settings.rpc_rate_limit_window_seconds,
    )
    builders = build_procedure_builders(rate_limiter)

    router = Router()
    router.merge("health", create_health_router(builders.public, builders.rate_limited, settings.environment))
    router.merge("auth", create_auth_router(builders.protected))
    router.merge("users", create_users_router(builders.protected, service_provider))
    return router
