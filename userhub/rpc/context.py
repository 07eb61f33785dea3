"""
Per-call context.

Built once per inbound call and handed by reference through the middleware
chain into the handler.
"""

from dataclasses import dataclass
from typing import Any, Optional

from userhub.kernel.identity.jwt import (
    TokenVerificationError,
    TokenVerifier,
    extract_bearer_token,
)
from userhub.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ContextUser:
    id: str
    email: Optional[str] = None


@dataclass
class RpcContext:
    """Resolved caller identity plus opaque transport handles."""

    req: Any = None
    res: Any = None
    client_ip: Optional[str] = None
    user: Optional[ContextUser] = None
    db: Any = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None


class ContextBuilder:
    """Turns the identifying material of a raw call into an RpcContext."""

    def __init__(self, verifier: TokenVerifier):
        self.verifier = verifier

    async def build(
        self,
        req: Any = None,
        res: Any = None,
        client_ip: Optional[str] = None,
        authorization: Optional[str] = None,
        db: Any = None,
    ) -> RpcContext:
        return RpcContext(
            req=req,
            res=res,
            client_ip=client_ip,
            user=await self._resolve_user(authorization),
            db=db,
        )

    async def _resolve_user(self, authorization: Optional[str]) -> Optional[ContextUser]:
        token = extract_bearer_token(authorization)
        if token is None:
            return None
        try:
            principal = await self.verifier.verify(token)
        except TokenVerificationError as exc:
            # Public procedures must stay callable; protected ones fail later in the router
            logger.debug("Bearer credential rejected: %s", exc)
            return None
        return ContextUser(id=principal.sub, email=principal.email)
