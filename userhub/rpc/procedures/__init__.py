"""
Procedure catalog, grouped by namespace.
"""

from userhub.rpc.procedures.auth import create_auth_router
from userhub.rpc.procedures.health import create_health_router
from userhub.rpc.procedures.users import create_users_router

__all__ = [
    "create_auth_router",
    "create_health_router",
    "create_users_router",
]
