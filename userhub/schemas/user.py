"""
User schemas.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from userhub.kernel.domain.user import User, UserRole


class CreateUserInput(BaseModel):
    """User creation request."""

    email: str = Field(..., min_length=3, max_length=255)
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    role: Optional[UserRole] = None


class UpdateUserInput(BaseModel):
    """Partial update. Only fields present in the payload are applied;
    an explicit ``name: null`` clears the name."""

    email: Optional[str] = Field(None, min_length=3, max_length=255)
    name: Optional[str] = Field(None, max_length=255)
    role: Optional[UserRole] = None


class UserIdInput(BaseModel):
    id: str = Field(..., min_length=1, max_length=64)


class UserEmailInput(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)


class UserRoleInput(BaseModel):
    role: UserRole


class UpdateUserRequest(UpdateUserInput):
    """``users.update`` payload: target id plus the partial update."""

    id: str = Field(..., min_length=1, max_length=64)

    def to_update(self) -> UpdateUserInput:
        fields = self.model_dump(exclude_unset=True, exclude={"id"})
        return UpdateUserInput(**fields)


class UpdateUserRoleRequest(BaseModel):
    id: str = Field(..., min_length=1, max_length=64)
    role: UserRole


class UserResponse(BaseModel):
    """User as seen by callers (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    email: str
    name: Optional[str] = None
    role: UserRole
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, user: User) -> "UserResponse":
        return cls(**user.to_dict())
