"""
User aggregate root.

The entity holds no persistence code. It is mutated only through named
operations, each of which validates its input before touching state and
bumps ``updated_at`` on success. Soft deletion is a two-state machine:

    Active --soft_delete--> Deleted --restore--> Active
"""

import re
import uuid
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional

from userhub.kernel.errors import (
    InvalidUserDataError,
    UserAlreadyDeletedError,
    UserNotDeletedError,
)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_TICK = timedelta(microseconds=1)


class UserRole(str, Enum):
    """User roles, lowest privilege first."""
    USER = "USER"
    MODERATOR = "MODERATOR"
    ADMIN = "ADMIN"

    @property
    def rank(self) -> int:
        return _ROLE_RANK[self]

    def includes(self, other: "UserRole") -> bool:
        """ADMIN includes MODERATOR includes USER."""
        return self.rank >= other.rank


_ROLE_RANK = {
    UserRole.USER: 0,
    UserRole.MODERATOR: 1,
    UserRole.ADMIN: 2,
}


def is_valid_email(email: Any) -> bool:
    return isinstance(email, str) and EMAIL_PATTERN.match(email) is not None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User:
    """User account with soft-delete lifecycle."""

    def __init__(
        self,
        id: str,
        email: str,
        name: Optional[str],
        role: UserRole,
        created_at: datetime,
        updated_at: datetime,
        deleted_at: Optional[datetime] = None,
    ):
        self._id = id
        self._email = email
        self._name = name
        self._role = UserRole(role)
        self._created_at = created_at
        self._updated_at = updated_at
        self._deleted_at = deleted_at

    @classmethod
    def create(
        cls,
        email: str,
        name: Optional[str] = None,
        role: Optional[UserRole] = None,
    ) -> "User":
        """Factory for new users; validates input and defaults the role to USER."""
        if not is_valid_email(email):
            raise InvalidUserDataError("email", "Invalid email format")
        _check_name(name)
        now = _utcnow()
        return cls(
            id=str(uuid.uuid4()),
            email=email,
            name=name,
            role=_coerce_role(role) if role is not None else UserRole.USER,
            created_at=now,
            updated_at=now,
            deleted_at=None,
        )

    # Read-only attributes

    @property
    def id(self) -> str:
        return self._id

    @property
    def email(self) -> str:
        return self._email

    @property
    def name(self) -> Optional[str]:
        return self._name

    @property
    def role(self) -> UserRole:
        return self._role

    @property
    def created_at(self) -> datetime:
        return self._created_at

    @property
    def updated_at(self) -> datetime:
        return self._updated_at

    @property
    def deleted_at(self) -> Optional[datetime]:
        return self._deleted_at

    # Mutations

    def update_email(self, new_email: str) -> None:
        if not is_valid_email(new_email):
            raise InvalidUserDataError("email", "Invalid email format")
        self._email = new_email
        self._touch()

    def update_name(self, new_name: Optional[str]) -> None:
        _check_name(new_name)
        self._name = new_name
        self._touch()

    def update_role(self, new_role: UserRole) -> None:
        self._role = _coerce_role(new_role)
        self._touch()

    def soft_delete(self) -> None:
        if self._deleted_at is not None:
            raise UserAlreadyDeletedError()
        now = self._next_timestamp()
        self._deleted_at = now
        self._updated_at = now

    def restore(self) -> None:
        if self._deleted_at is None:
            raise UserNotDeletedError()
        self._deleted_at = None
        self._touch()

    # Queries

    def is_deleted(self) -> bool:
        return self._deleted_at is not None

    def is_admin(self) -> bool:
        return self._role is UserRole.ADMIN

    def is_moderator(self) -> bool:
        return self._role.includes(UserRole.MODERATOR)

    def to_dict(self) -> Dict[str, Any]:
        """Plain-data snapshot used by storage adapters and serializers."""
        return {
            "id": self._id,
            "email": self._email,
            "name": self._name,
            "role": self._role,
            "created_at": self._created_at,
            "updated_at": self._updated_at,
            "deleted_at": self._deleted_at,
        }

    def _next_timestamp(self) -> datetime:
        # updated_at strictly increases, even if the wall clock stalls or rewinds
        now = _utcnow()
        return now if now > self._updated_at else self._updated_at + _TICK

    def _touch(self) -> None:
        self._updated_at = self._next_timestamp()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, User):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        state = "deleted" if self.is_deleted() else "active"
        return f"<User {self._email} {self._role.value} {state}>"


def _check_name(name: Optional[str]) -> None:
    if name is None:
        return
    if not isinstance(name, str) or not name.strip():
        raise InvalidUserDataError("name", "Name cannot be empty string")


def _coerce_role(role: Any) -> UserRole:
    try:
        return UserRole(role)
    except ValueError:
        raise InvalidUserDataError("role", "Invalid user role") from None
