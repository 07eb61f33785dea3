"""
Pydantic schemas for RPC inputs and API responses.
"""

from userhub.schemas.common import DatabaseHealth, HealthResponse
from userhub.schemas.health import EchoInput, PingInput
from userhub.schemas.user import (
    CreateUserInput,
    UpdateUserInput,
    UpdateUserRequest,
    UpdateUserRoleRequest,
    UserEmailInput,
    UserIdInput,
    UserResponse,
    UserRoleInput,
)

__all__ = [
    # Common
    "DatabaseHealth",
    "HealthResponse",
    # Health
    "EchoInput",
    "PingInput",
    # User
    "CreateUserInput",
    "UpdateUserInput",
    "UpdateUserRequest",
    "UpdateUserRoleRequest",
    "UserEmailInput",
    "UserIdInput",
    "UserResponse",
    "UserRoleInput",
]
