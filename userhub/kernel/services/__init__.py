"""
Application services.
"""

from userhub.kernel.services.user_service import UserService

__all__ = ["UserService"]
