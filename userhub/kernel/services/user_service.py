"""
User service: create/read/update/delete use cases over the repository
contract.
"""

from typing import List, Optional

from userhub.kernel.domain.user import User, UserRole
from userhub.kernel.errors import (
    UniqueViolationError,
    UserAlreadyExistsError,
    UserNotFoundError,
)
from userhub.kernel.repositories.user_repository import UserRepository
from userhub.logging_config import get_logger
from userhub.schemas.user import CreateUserInput, UpdateUserInput

logger = get_logger(__name__)


class UserService:
    """
    Orchestrates User entities and their repository.

    Domain failures (not found, conflicts, invalid data) propagate to the
    caller unchanged.
    """

    def __init__(self, repository: UserRepository):
        self.repository = repository

    async def create(self, data: CreateUserInput) -> User:
        """
        Create a user.

        Raises:
            UserAlreadyExistsError: an active user already has this email
            InvalidUserDataError: email or name fails entity validation
        """
        existing = await self.repository.find_by_email(data.email)
        if existing:
            raise UserAlreadyExistsError(data.email)

        user = User.create(data.email, data.name, data.role or UserRole.USER)
        saved = await self._save(user)
        logger.info("User created", extra={"user_id": saved.id, "role": saved.role.value})
        return saved

    async def get_by_id(self, user_id: str) -> User:
        user = await self.repository.find_by_id(user_id)
        if not user:
            raise UserNotFoundError(user_id)
        return user

    async def get_by_email(self, email: str) -> Optional[User]:
        """Email lookup doubles as an existence check, so absence is not an error."""
        return await self.repository.find_by_email(email)

    async def list_all(self) -> List[User]:
        return await self.repository.find_all()

    async def list_by_role(self, role: UserRole) -> List[User]:
        return await self.repository.find_by_role(role)

    async def update(self, user_id: str, data: UpdateUserInput) -> User:
        """
        Apply a partial update. Fields absent from ``data`` are untouched.

        Raises:
            UserNotFoundError: no active user has this id
            UserAlreadyExistsError: the new email belongs to another user
            InvalidUserDataError: a field fails entity validation
        """
        user = await self.get_by_id(user_id)
        fields = data.model_fields_set

        if "email" in fields:
            if data.email and data.email != user.email:
                existing = await self.repository.find_by_email(data.email)
                if existing and existing.id != user.id:
                    raise UserAlreadyExistsError(data.email)
            user.update_email(data.email)
        if "name" in fields:
            user.update_name(data.name)
        if "role" in fields:
            user.update_role(data.role)

        return await self._save(user)

    async def update_role(self, user_id: str, role: UserRole) -> User:
        user = await self.get_by_id(user_id)
        user.update_role(role)
        return await self._save(user)

    async def soft_delete(self, user_id: str) -> User:
        user = await self._get_including_deleted(user_id)
        user.soft_delete()
        saved = await self._save(user)
        logger.info("User soft-deleted", extra={"user_id": user_id})
        return saved

    async def restore(self, user_id: str) -> User:
        user = await self._get_including_deleted(user_id)
        user.restore()
        saved = await self._save(user)
        logger.info("User restored", extra={"user_id": user_id})
        return saved

    async def hard_delete(self, user_id: str) -> None:
        user = await self._get_including_deleted(user_id)
        await self.repository.delete(user.id)
        logger.info("User hard-deleted", extra={"user_id": user_id})

    async def get_admins(self) -> List[User]:
        return await self.repository.find_by_role(UserRole.ADMIN)

    async def get_moderators(self) -> List[User]:
        return await self.repository.find_by_role(UserRole.MODERATOR)

    async def count(self) -> int:
        return await self.repository.count()

    async def _get_including_deleted(self, user_id: str) -> User:
        # Lifecycle transitions apply to soft-deleted users too
        user = await self.repository.find_by_id(user_id, include_deleted=True)
        if not user:
            raise UserNotFoundError(user_id)
        return user

    async def _save(self, user: User) -> User:
        try:
            return await self.repository.save(user)
        except UniqueViolationError as exc:
            raise UserAlreadyExistsError(user.email) from exc
