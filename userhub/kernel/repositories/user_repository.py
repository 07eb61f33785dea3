"""
Storage-agnostic contract for persisting User entities.
"""

from typing import List, Optional, Protocol

from userhub.kernel.domain.user import User, UserRole


class UserRepository(Protocol):
    """User repository contract.

    Finders exclude soft-deleted records unless stated otherwise and report
    "nothing found" as ``None`` or an empty list, never as an error. Lists
    are ordered newest-created first.
    """

    async def find_by_id(self, user_id: str, include_deleted: bool = False) -> Optional[User]:
        """Return the user with this id, or None."""

    async def find_by_email(self, email: str) -> Optional[User]:
        """Return the active user with this email, or None."""

    async def find_all(self) -> List[User]:
        """Return every active user."""

    async def find_by_role(self, role: UserRole) -> List[User]:
        """Return active users holding exactly this role."""

    async def save(self, user: User) -> User:
        """Insert or update by id.

        Raises:
            UniqueViolationError: the email is already taken in storage
        """

    async def delete(self, user_id: str) -> None:
        """Physically remove the record.

        Raises:
            UserNotFoundError: no record has this id
        """

    async def count(self) -> int:
        """Number of active users."""
