"""
Repository contracts and their storage adapters.
"""

from userhub.kernel.repositories.user_repository import UserRepository
from userhub.kernel.repositories.sqlalchemy_user_repository import SqlAlchemyUserRepository

__all__ = [
    "UserRepository",
    "SqlAlchemyUserRepository",
]
