"""
SQLAlchemy adapter for the user repository contract.
"""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from userhub.kernel.domain.user import User, UserRole
from userhub.kernel.errors import UniqueViolationError, UserNotFoundError
from userhub.kernel.models.user import UserRecord
from userhub.logging_config import get_logger

logger = get_logger(__name__)

_UPDATABLE_FIELDS = ("email", "name", "role", "updated_at", "deleted_at")


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes even for timezone=True columns
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _is_unique_violation(exc: IntegrityError) -> bool:
    orig = exc.orig
    if getattr(orig, "sqlstate", None) == "23505":  # asyncpg / PostgreSQL
        return True
    return "unique" in str(orig).lower()


class SqlAlchemyUserRepository:
    """UserRepository backed by the ``users`` table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_by_id(self, user_id: str, include_deleted: bool = False) -> Optional[User]:
        query = select(UserRecord).where(UserRecord.id == user_id)
        if not include_deleted:
            query = query.where(UserRecord.deleted_at.is_(None))
        result = await self.session.execute(query)
        record = result.scalar_one_or_none()
        return self._to_entity(record) if record else None

    async def find_by_email(self, email: str) -> Optional[User]:
        query = select(UserRecord).where(
            UserRecord.email == email,
            UserRecord.deleted_at.is_(None),
        )
        result = await self.session.execute(query)
        record = result.scalar_one_or_none()
        return self._to_entity(record) if record else None

    async def find_all(self) -> List[User]:
        query = (
            select(UserRecord)
            .where(UserRecord.deleted_at.is_(None))
            .order_by(UserRecord.created_at.desc())
        )
        result = await self.session.execute(query)
        return [self._to_entity(r) for r in result.scalars().all()]

    async def find_by_role(self, role: UserRole) -> List[User]:
        query = (
            select(UserRecord)
            .where(
                UserRecord.role == UserRole(role).value,
                UserRecord.deleted_at.is_(None),
            )
            .order_by(UserRecord.created_at.desc())
        )
        result = await self.session.execute(query)
        return [self._to_entity(r) for r in result.scalars().all()]

    async def save(self, user: User) -> User:
        snapshot = user.to_dict()
        snapshot["role"] = snapshot["role"].value

        record = await self.session.get(UserRecord, user.id)
        if record is None:
            record = UserRecord(**snapshot)
            self.session.add(record)
        else:
            for field in _UPDATABLE_FIELDS:
                setattr(record, field, snapshot[field])

        try:
            await self.session.flush()
        except IntegrityError as exc:
            await self.session.rollback()
            if _is_unique_violation(exc):
                logger.info("Email uniqueness rejected write", extra={"user_id": user.id})
                raise UniqueViolationError("email", user.email) from exc
            raise

        return self._to_entity(record)

    async def delete(self, user_id: str) -> None:
        record = await self.session.get(UserRecord, user_id)
        if record is None:
            raise UserNotFoundError(user_id)
        await self.session.delete(record)
        await self.session.flush()

    async def count(self) -> int:
        query = select(func.count()).select_from(UserRecord).where(UserRecord.deleted_at.is_(None))
        result = await self.session.execute(query)
        return result.scalar_one()

    @staticmethod
    def _to_entity(record: UserRecord) -> User:
        return User(
            id=record.id,
            email=record.email,
            name=record.name,
            role=UserRole(record.role),
            created_at=_as_utc(record.created_at),
            updated_at=_as_utc(record.updated_at),
            deleted_at=_as_utc(record.deleted_at),
        )
