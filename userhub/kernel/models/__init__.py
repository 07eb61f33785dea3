"""
Kernel Data Models

SQLAlchemy tables backing the domain entities. Only storage adapters
import these.
"""

from userhub.kernel.models.base import Base, TimestampMixin, SoftDeleteMixin
from userhub.kernel.models.user import UserRecord

__all__ = [
    "Base",
    "TimestampMixin",
    "SoftDeleteMixin",
    "UserRecord",
]
