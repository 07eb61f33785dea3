"""
Domain entities. Pure Python, no persistence or transport concerns.
"""

from userhub.kernel.domain.user import EMAIL_PATTERN, User, UserRole, is_valid_email

__all__ = [
    "EMAIL_PATTERN",
    "User",
    "UserRole",
    "is_valid_email",
]
