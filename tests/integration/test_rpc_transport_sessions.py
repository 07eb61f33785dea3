"""
RPC calls over HTTP own their database session, including calls that outlive
their caller's timeout. Runs against a file-backed SQLite database where every
session gets its own connection, so uncommitted writes are not visible.
"""

import asyncio

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from userhub.api import trpc
from userhub.api.deps import get_rpc_timeout
from userhub.database import create_engine_for, get_session_maker
from userhub.kernel.errors import ConflictError
from userhub.kernel.models import Base, UserRecord
from userhub.kernel.repositories.sqlalchemy_user_repository import SqlAlchemyUserRepository
from userhub.kernel.services.user_service import UserService
from userhub.rpc.context import ContextBuilder
from userhub.rpc.router import Router
from userhub.schemas.user import CreateUserInput

RPC = "/api/trpc"


@pytest_asyncio.fixture
async def file_engine(tmp_path):
    engine = create_engine_for(f"sqlite+aiosqlite:///{tmp_path / 'userhub.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def file_sessions(file_engine):
    return async_sessionmaker(
        file_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
def release() -> asyncio.Event:
    return asyncio.Event()


@pytest.fixture
def rpc_router(release) -> Router:
    router = Router()

    @router.mutation("users.slowCreate")
    async def slow_create(ctx, data):
        await release.wait()
        user = await UserService(SqlAlchemyUserRepository(ctx.db)).create(
            CreateUserInput(email=data["email"])
        )
        return {"id": user.id}

    @router.mutation("users.createThenFail")
    async def create_then_fail(ctx, data):
        await UserService(SqlAlchemyUserRepository(ctx.db)).create(
            CreateUserInput(email=data["email"])
        )
        raise ConflictError("Refused after writing")

    return router


@pytest.fixture
def rpc_timeout() -> float:
    return 0.05


@pytest_asyncio.fixture
async def client(rpc_router, file_sessions, verifier, rpc_timeout):
    app = FastAPI()
    app.state.rpc_router = rpc_router
    app.state.context_builder = ContextBuilder(verifier)
    app.include_router(trpc.router, prefix=RPC)
    app.dependency_overrides[get_session_maker] = lambda: file_sessions
    app.dependency_overrides[get_rpc_timeout] = lambda: rpc_timeout

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


async def _user_count(sessions) -> int:
    async with sessions() as session:
        return (await session.execute(select(func.count()).select_from(UserRecord))).scalar_one()


async def _wait_for_count(sessions, expected: int, attempts: int = 100) -> int:
    count = await _user_count(sessions)
    for _ in range(attempts):
        if count == expected:
            break
        await asyncio.sleep(0.02)
        count = await _user_count(sessions)
    return count


@pytest.mark.asyncio
async def test_write_after_timeout_is_committed(client, file_sessions, release):
    r = await client.post(f"{RPC}/users.slowCreate", json={"email": "late@example.com"})

    assert r.status_code == 408
    assert r.json()["error"]["code"] == "TIMEOUT"
    assert await _user_count(file_sessions) == 0

    release.set()

    assert await _wait_for_count(file_sessions, 1) == 1


@pytest.mark.parametrize("rpc_timeout", [10.0])
@pytest.mark.asyncio
async def test_call_within_timeout_is_committed(client, file_sessions, release):
    release.set()

    r = await client.post(f"{RPC}/users.slowCreate", json={"email": "ada@example.com"})

    assert r.status_code == 200
    assert "id" in r.json()["result"]["data"]
    assert await _user_count(file_sessions) == 1


@pytest.mark.parametrize("rpc_timeout", [10.0])
@pytest.mark.asyncio
async def test_failed_call_is_rolled_back(client, file_sessions):
    r = await client.post(f"{RPC}/users.createThenFail", json={"email": "ada@example.com"})

    assert r.status_code == 409
    assert await _user_count(file_sessions) == 0
