from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from app.models.common import EntityKind
from app.models.engagement import CustomFieldType, ReminderType

# ---------------------------------------------------------------------------
# Reminders
# ---------------------------------------------------------------------------


class ReminderCreate(BaseModel):
    remindable_type: EntityKind
    remindable_id: UUID
    remind_at: datetime
    type: ReminderType = ReminderType.in_app


class ReminderUpdate(BaseModel):
    remind_at: datetime | None = None
    type: ReminderType | None = None


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


class NotificationCreate(BaseModel):
    user_id: UUID
    type: str = Field(min_length=1, max_length=120)
    notifiable_type: EntityKind | None = None
    notifiable_id: UUID | None = None
    data: dict[str, Any] | None = None

    @model_validator(mode="after")
    def check_target(self) -> NotificationCreate:
        if (self.notifiable_type is None) != (self.notifiable_id is None):
            raise ValueError("notifiable_type and notifiable_id go together")
        return self


# ---------------------------------------------------------------------------
# Custom fields
# ---------------------------------------------------------------------------

_SELECT_TYPES = (CustomFieldType.select, CustomFieldType.multiselect)


class CustomFieldCreate(BaseModel):
    workspace_id: UUID
    name: str = Field(min_length=1, max_length=255)
    key: str = Field(min_length=1, max_length=120, pattern=r"^[a-z][a-z0-9_]*$")
    type: CustomFieldType = CustomFieldType.text
    applies_to: EntityKind
    options: list[str] | None = None
    is_required: bool = False
    order: int = 0

    @model_validator(mode="after")
    def check_options(self) -> CustomFieldCreate:
        if self.type in _SELECT_TYPES and not self.options:
            raise ValueError("select fields need at least one option")
        return self


class CustomFieldUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    options: list[str] | None = None
    is_required: bool | None = None
    order: int | None = None


class CustomFieldValueSet(BaseModel):
    entity_type: EntityKind
    entity_id: UUID
    value: Any = None
