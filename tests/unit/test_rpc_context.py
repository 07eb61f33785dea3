"""Unit tests for per-call context construction."""

from datetime import timedelta

import pytest

from userhub.kernel.identity.jwt import TokenVerifier, extract_bearer_token
from userhub.rpc.context import ContextBuilder


@pytest.fixture
def builder(verifier) -> ContextBuilder:
    return ContextBuilder(verifier)


class TestContextBuilder:
    @pytest.mark.asyncio
    async def test_valid_token_resolves_user(self, builder, verifier):
        token = verifier.issue("user_42", email="u42@example.com")

        ctx = await builder.build(client_ip="10.1.1.1", authorization=f"Bearer {token}")

        assert ctx.is_authenticated
        assert ctx.user.id == "user_42"
        assert ctx.user.email == "u42@example.com"
        assert ctx.client_ip == "10.1.1.1"

    @pytest.mark.asyncio
    async def test_no_header_is_anonymous(self, builder):
        ctx = await builder.build(client_ip="10.1.1.1")
        assert ctx.user is None
        assert not ctx.is_authenticated

    @pytest.mark.asyncio
    async def test_garbage_token_is_anonymous(self, builder):
        """A bad credential does not fail context construction."""
        ctx = await builder.build(authorization="Bearer not.a.jwt")
        assert ctx.user is None

    @pytest.mark.asyncio
    async def test_expired_token_is_anonymous(self, builder, verifier):
        token = verifier.issue("user_42", expires_delta=timedelta(seconds=-10))
        ctx = await builder.build(authorization=f"Bearer {token}")
        assert ctx.user is None

    @pytest.mark.asyncio
    async def test_token_signed_with_other_key(self, builder):
        foreign = TokenVerifier(secret_key="some-other-secret", algorithm="HS256")
        ctx = await builder.build(authorization=f"Bearer {foreign.issue('user_42')}")
        assert ctx.user is None

    @pytest.mark.asyncio
    async def test_unconfigured_verifier_rejects(self, verifier):
        token = verifier.issue("user_42")
        builder = ContextBuilder(TokenVerifier(secret_key="", algorithm="HS256"))
        ctx = await builder.build(authorization=f"Bearer {token}")
        assert ctx.user is None

    @pytest.mark.asyncio
    async def test_transport_handles_passed_through(self, builder):
        req, res, db = object(), object(), object()
        ctx = await builder.build(req=req, res=res, db=db)
        assert ctx.req is req
        assert ctx.res is res
        assert ctx.db is db


class TestExtractBearerToken:
    @pytest.mark.parametrize(
        "header,expected",
        [
            ("Bearer abc", "abc"),
            ("bearer abc", "abc"),
            ("Basic abc", None),
            ("Bearer", None),
            ("", None),
            (None, None),
        ],
    )
    def test_extract(self, header, expected):
        assert extract_bearer_token(header) == expected
