"""
UserHub

FastAPI application entry point.
"""

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from userhub.api import trpc
from userhub.api.deps import DbSession, get_request_id
from userhub.api.middleware.rate_limit import RateLimitMiddleware
from userhub.api.middleware.request_id import RequestIdMiddleware
from userhub.config import get_settings
from userhub.database import close_db, init_db, ping_db
from userhub.kernel.identity.jwt import TokenVerifier
from userhub.logging_config import configure_logging, get_logger
from userhub.rpc.app_router import build_app_router
from userhub.rpc.context import ContextBuilder
from userhub.schemas.common import DatabaseHealth, HealthResponse

settings = get_settings()
logger = get_logger(__name__)

_STARTED_AT = time.monotonic()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan handler.

    Runs startup and shutdown tasks.
    """
    configure_logging(
        log_level=settings.log_level,
        environment=settings.environment,
        debug=settings.debug,
    )

    logger.info("Starting %s v%s", settings.project_name, settings.version)
    if not settings.identity_secret_key:
        logger.warning("IDENTITY_SECRET_KEY is not set; authenticated procedures will reject every caller")
    await init_db()
    logger.info("Database initialized")

    yield

    logger.info("Shutting down...")
    await close_db()
    logger.info("Database connections closed")


app = FastAPI(
    title=settings.project_name,
    description="""
    UserHub

    User management behind a typed RPC layer.

    ## Procedures

    - **health.***: status, echo and rate-limited ping
    - **auth.***: identity of the bearer-token holder
    - **users.***: create, read, update, soft delete, restore and hard delete users
    """,
    version=settings.version,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# Wiring: one RPC registry and one context builder per application
app.state.rpc_router = build_app_router(settings)
app.state.context_builder = ContextBuilder(TokenVerifier())


_cors_origins = settings.cors_origins_list or [
    "http://localhost:3000",
    "http://localhost:4200",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:4200",
]

# add_middleware stacks innermost-first: last added = outermost
app.add_middleware(
    RateLimitMiddleware,
    max_requests=settings.effective_transport_rate_limit,
    window_seconds=settings.transport_rate_limit_window_seconds,
    path_prefixes=("/api",),
    enabled=settings.rate_limit_enabled,
)
app.add_middleware(RequestIdMiddleware, slow_request_ms=settings.slow_request_ms)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


def _request_id_headers(request: Request) -> dict:
    req_id = get_request_id(request)
    return {"X-Request-ID": req_id} if req_id else {}


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    content = {"detail": exc.detail}
    req_id = get_request_id(request)
    if req_id and exc.status_code >= 500:
        content["request_id"] = req_id
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers={**(exc.headers or {}), **_request_id_headers(request)},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors."""
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": "Validation error", "errors": errors},
        headers=_request_id_headers(request),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Unexpected exceptions never leak details unless debug is on."""
    logger.exception("Unhandled exception: %s", exc)
    req_id = get_request_id(request)
    if settings.debug:
        content = {"detail": str(exc), "type": type(exc).__name__, "request_id": req_id}
    else:
        content = {"detail": "Internal server error", "request_id": req_id}
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=content,
        headers=_request_id_headers(request),
    )


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check(db: DbSession):
    """Check application and database health."""
    database = DatabaseHealth()
    start = time.perf_counter()
    try:
        await ping_db(db)
        database.latency_ms = round((time.perf_counter() - start) * 1000, 2)
    except Exception:
        logger.exception("Database health check failed")
        database.status = "error"

    return HealthResponse(
        status="ok" if database.status == "connected" else "degraded",
        version=settings.version,
        environment=settings.environment,
        uptime=int(time.monotonic() - _STARTED_AT),
        database=database,
    )


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.project_name,
        "version": settings.version,
        "docs": "/docs" if settings.debug else "disabled",
        "rpc": settings.rpc_prefix,
        "procedures": sorted(p.path for p in app.state.rpc_router.procedures),
    }


app.include_router(trpc.router, prefix=settings.rpc_prefix, tags=["RPC"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "userhub.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
