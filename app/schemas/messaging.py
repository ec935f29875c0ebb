from __future__ import annotations

from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from app.models.common import Role
from app.models.messaging import ConversationType


class ConversationCreate(BaseModel):
    workspace_id: UUID
    name: str | None = Field(default=None, max_length=255)
    type: ConversationType = ConversationType.group
    is_private: bool = False
    user_ids: list[UUID] = Field(default_factory=list)


class ConversationUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=255)
    is_private: bool | None = None


class ConversationMemberCreate(BaseModel):
    user_id: UUID
    role: Role = Role.member


class ConversationMemberUpdate(BaseModel):
    role: Role


class MessageCreate(BaseModel):
    content: str = Field(min_length=1)
    metadata_: dict[str, Any] | None = Field(default=None, alias="metadata")


class MessageUpdate(BaseModel):
    content: str = Field(min_length=1)
