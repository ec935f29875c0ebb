from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.models.common import Role

# ---------------------------------------------------------------------------
# Workspace
# ---------------------------------------------------------------------------


class WorkspaceCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    slug: str | None = Field(default=None, max_length=255)
    is_public: bool = False
    metadata_: dict[str, Any] | None = Field(default=None, alias="metadata")


class WorkspaceUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    slug: str | None = Field(default=None, max_length=255)
    is_public: bool | None = None
    metadata_: dict[str, Any] | None = Field(default=None, alias="metadata")


# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------


class WorkspaceMemberCreate(BaseModel):
    user_id: UUID
    role: Role = Role.member


class WorkspaceMemberUpdate(BaseModel):
    role: Role


# ---------------------------------------------------------------------------
# Invitations
# ---------------------------------------------------------------------------


class InvitationCreate(BaseModel):
    workspace_id: UUID
    team_id: UUID | None = None
    email: str = Field(min_length=3, max_length=255)
    role: Role = Role.member
    expires_at: datetime | None = None
    metadata_: dict[str, Any] | None = Field(default=None, alias="metadata")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        value = value.strip().lower()
        local, _, domain = value.partition("@")
        if not local or "." not in domain:
            raise ValueError("email must be a valid address")
        return value

    @field_validator("role")
    @classmethod
    def reject_owner(cls, value: Role) -> Role:
        if value == Role.owner:
            raise ValueError("invitations cannot grant ownership")
        return value


class InvitationUpdate(BaseModel):
    role: Role | None = None
    expires_at: datetime | None = None

    @field_validator("role")
    @classmethod
    def reject_owner(cls, value: Role | None) -> Role | None:
        if value == Role.owner:
            raise ValueError("invitations cannot grant ownership")
        return value
