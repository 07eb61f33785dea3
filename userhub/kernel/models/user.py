"""
User table. Columns mirror the User entity 1:1.
"""

from typing import Optional

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from userhub.kernel.models.base import Base, SoftDeleteMixin, TimestampMixin


class UserRecord(Base, TimestampMixin, SoftDeleteMixin):
    """Persisted shape of a user account."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )
    name: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
    )
    role: Mapped[str] = mapped_column(
        String(20),
        default="USER",
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<UserRecord {self.email}>"
