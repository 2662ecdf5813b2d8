# app/schemas/user.py

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, constr, field_serializer
from typing import List, Literal
from datetime import datetime, timezone

Role = Literal["USER", "ADMIN", "PROJECT_MANAGER"]


# Request body for POST /users
class UserCreate(BaseModel):
    name: constr(strip_whitespace=True, min_length=1, max_length=120) = Field(..., description="Display name") # pyright: ignore[reportInvalidTypeForm]
    email: EmailStr = Field(..., description="Unique email address")
    role: Role = Field("USER", description="Role assigned at creation")


# Request body for PATCH /users/{id}/role
class UserRoleUpdate(BaseModel):
    role: Role


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    role: str
    createdAt: datetime = Field(validation_alias=AliasChoices("created_at", "createdAt"))

    # Emit timestamps in UTC ISO8601 with 'Z'
    @field_serializer("createdAt")
    def _ser_created_at(self, dt: datetime) -> str:
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    totalPages: int


# Response body of GET /users; also the payload cached per page
class UserPage(BaseModel):
    success: bool = True
    data: List[UserRead]
    pagination: Pagination
