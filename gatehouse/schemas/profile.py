# gatehouse/schemas/profile.py
"""
Authenticated user + profile, as handed out by the profile provider.
Legacy profile rows store allowed_pages / allowed_tenants either as a single
string or as a list; both are coerced to a list here so callers never
branch on the shape.
"""

from enum import Enum
from pydantic import BaseModel, field_validator
from typing import Optional


class Role(str, Enum):
    ADMIN = "admin"
    OPERATOR = "operator"
    VIEWER = "viewer"


class AuthUser(BaseModel):
    id: str
    email: Optional[str] = None


class UserProfile(BaseModel):
    user_id: str
    email: Optional[str] = None
    role: Role = Role.OPERATOR
    tenant_id: Optional[str] = None
    allowed_tenants: list[str] = []
    allowed_pages: list[str] = []

    class Config:
        from_attributes = True

    @field_validator("allowed_tenants", "allowed_pages", mode="before")
    @classmethod
    def scalar_or_list(cls, v):
        if v is None or v == "":
            return []
        if isinstance(v, str):
            return [v]
        return [item for item in v if item]

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN
