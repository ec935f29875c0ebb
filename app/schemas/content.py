from __future__ import annotations

from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from app.models.common import EntityKind

# ---------------------------------------------------------------------------
# Wiki
# ---------------------------------------------------------------------------


class WikiCreate(BaseModel):
    workspace_id: UUID
    parent_id: UUID | None = None
    title: str = Field(min_length=1, max_length=255)
    slug: str | None = Field(default=None, max_length=255)
    content: str | None = None
    is_published: bool = False
    metadata_: dict[str, Any] | None = Field(default=None, alias="metadata")


class WikiUpdate(BaseModel):
    parent_id: UUID | None = None
    title: str | None = Field(default=None, min_length=1, max_length=255)
    slug: str | None = Field(default=None, max_length=255)
    content: str | None = None
    is_published: bool | None = None
    metadata_: dict[str, Any] | None = Field(default=None, alias="metadata")
    # stored on the revision, not on the wiki
    summary: str | None = Field(default=None, max_length=500)


# ---------------------------------------------------------------------------
# Comment
# ---------------------------------------------------------------------------


class CommentCreate(BaseModel):
    commentable_type: EntityKind
    commentable_id: UUID
    parent_id: UUID | None = None
    content: str = Field(min_length=1)
    is_internal: bool = False


class CommentUpdate(BaseModel):
    content: str | None = Field(default=None, min_length=1)
    is_internal: bool | None = None
