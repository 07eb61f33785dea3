"""
Auth procedures. Every procedure here requires an authenticated caller.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from userhub.rpc.context import RpcContext
from userhub.rpc.router import ProcedureBuilder, Router


def create_auth_router(protected: ProcedureBuilder) -> Router:
    router = Router()

    @router.query("me", protected)
    async def me(ctx: RpcContext, _: Any) -> Dict[str, Any]:
        return {
            "id": ctx.user.id,
            "email": ctx.user.email,
            "message": "Successfully authenticated!",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @router.query("ping", protected)
    async def ping(ctx: RpcContext, _: Any) -> Dict[str, Any]:
        return {
            "pong": True,
            "message": "Authenticated pong!",
            "userId": ctx.user.id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    return router
