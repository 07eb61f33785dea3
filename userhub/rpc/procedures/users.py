"""
User management procedures.

Handlers obtain a UserService from ``service_provider`` so the router stays
independent of how sessions and repositories are wired.
"""

from typing import Any, Callable, Dict, List, Optional

from userhub.kernel.domain.user import User
from userhub.kernel.services.user_service import UserService
from userhub.rpc.context import RpcContext
from userhub.rpc.router import ProcedureBuilder, Router
from userhub.schemas.user import (
    CreateUserInput,
    UpdateUserRequest,
    UpdateUserRoleRequest,
    UserEmailInput,
    UserIdInput,
    UserResponse,
    UserRoleInput,
)

ServiceProvider = Callable[[RpcContext], UserService]


def _one(user: User) -> UserResponse:
    return UserResponse.from_entity(user)


def _many(users: List[User]) -> List[UserResponse]:
    return [UserResponse.from_entity(u) for u in users]


def create_users_router(protected: ProcedureBuilder, service_provider: ServiceProvider) -> Router:
    router = Router()

    # Queries

    @router.query("list", protected)
    async def list_users(ctx: RpcContext, _: Any) -> List[UserResponse]:
        return _many(await service_provider(ctx).list_all())

    @router.query("byId", protected, input=UserIdInput)
    async def by_id(ctx: RpcContext, data: UserIdInput) -> UserResponse:
        return _one(await service_provider(ctx).get_by_id(data.id))

    @router.query("byEmail", protected, input=UserEmailInput)
    async def by_email(ctx: RpcContext, data: UserEmailInput) -> Optional[UserResponse]:
        user = await service_provider(ctx).get_by_email(data.email)
        return _one(user) if user else None

    @router.query("byRole", protected, input=UserRoleInput)
    async def by_role(ctx: RpcContext, data: UserRoleInput) -> List[UserResponse]:
        return _many(await service_provider(ctx).list_by_role(data.role))

    @router.query("admins", protected)
    async def admins(ctx: RpcContext, _: Any) -> List[UserResponse]:
        return _many(await service_provider(ctx).get_admins())

    @router.query("moderators", protected)
    async def moderators(ctx: RpcContext, _: Any) -> List[UserResponse]:
        return _many(await service_provider(ctx).get_moderators())

    @router.query("count", protected)
    async def count(ctx: RpcContext, _: Any) -> Dict[str, int]:
        return {"count": await service_provider(ctx).count()}

    # Mutations

    @router.mutation("create", protected, input=CreateUserInput)
    async def create(ctx: RpcContext, data: CreateUserInput) -> UserResponse:
        return _one(await service_provider(ctx).create(data))

    @router.mutation("update", protected, input=UpdateUserRequest)
    async def update(ctx: RpcContext, data: UpdateUserRequest) -> UserResponse:
        return _one(await service_provider(ctx).update(data.id, data.to_update()))

    @router.mutation("updateRole", protected, input=UpdateUserRoleRequest)
    async def update_role(ctx: RpcContext, data: UpdateUserRoleRequest) -> UserResponse:
        return _one(await service_provider(ctx).update_role(data.id, data.role))

    @router.mutation("softDelete", protected, input=UserIdInput)
    async def soft_delete(ctx: RpcContext, data: UserIdInput) -> UserResponse:
        return _one(await service_provider(ctx).soft_delete(data.id))

    @router.mutation("restore", protected, input=UserIdInput)
    async def restore(ctx: RpcContext, data: UserIdInput) -> UserResponse:
        return _one(await service_provider(ctx).restore(data.id))

    @router.mutation("hardDelete", protected, input=UserIdInput)
    async def hard_delete(ctx: RpcContext, data: UserIdInput) -> Dict[str, Any]:
        await service_provider(ctx).hard_delete(data.id)
        return {"id": data.id, "deleted": True}

    return router
