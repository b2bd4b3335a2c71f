from __future__ import annotations

from pydantic import BaseModel, EmailStr, Field


class PermissionOut(BaseModel):
    module: str
    action: str
    code: str


class RoleOut(BaseModel):
    name: str
    description: str | None = None
    permissions: list[str]


class RoleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=64, pattern=r"^[A-Za-z0-9_]+$")
    description: str | None = None
    permissions: list[str] = Field(default_factory=list)


class PermissionChange(BaseModel):
    permission: str = Field(..., pattern=r"^[a-z_]+\.[a-z_]+$", description="module.action")


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    full_name: str | None = Field(None, max_length=128)
    roles: list[str] = Field(default_factory=list)


class RoleChange(BaseModel):
    role: str = Field(..., min_length=1)


class AccountOut(BaseModel):
    id: str
    email: str
    full_name: str | None = None
    is_active: bool
    roles: list[str]
