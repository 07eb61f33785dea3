"""
Pytest fixtures for UserHub tests.
"""

import os

# Settings are read once and cached; pin test values before any userhub import
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("IDENTITY_SECRET_KEY", "test-secret-key-for-testing-only")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "test")

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from userhub.kernel.identity.jwt import TokenVerifier
from userhub.kernel.models import Base
from userhub.kernel.repositories.sqlalchemy_user_repository import SqlAlchemyUserRepository
from userhub.rpc.context import ContextUser, RpcContext

from factories import UserFactory

TEST_DATABASE_URL = "sqlite+aiosqlite://"
TEST_SECRET = "test-secret-key-for-testing-only"


@pytest_asyncio.fixture
async def db_engine():
    """In-memory SQLite engine; StaticPool keeps a single shared connection."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def user_repository(db_session: AsyncSession) -> SqlAlchemyUserRepository:
    return SqlAlchemyUserRepository(db_session)


@pytest.fixture
def verifier() -> TokenVerifier:
    return TokenVerifier(secret_key=TEST_SECRET, algorithm="HS256")


@pytest.fixture
def users() -> UserFactory:
    """Fresh factory per test, so sequence numbers restart at 1."""
    return UserFactory()


@pytest.fixture
def anonymous_ctx() -> RpcContext:
    return RpcContext(client_ip="127.0.0.1")


@pytest.fixture
def authed_ctx() -> RpcContext:
    return RpcContext(
        client_ip="127.0.0.1",
        user=ContextUser(id="user_123", email="caller@example.com"),
    )


@pytest.fixture
def auth_headers(verifier: TokenVerifier) -> dict:
    token = verifier.issue("user_123", email="caller@example.com")
    return {"Authorization": f"Bearer {token}"}
