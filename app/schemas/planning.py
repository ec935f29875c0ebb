from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from app.models.planning import (
    DependencyType,
    Frequency,
    GoalStatus,
    Priority,
    TaskType,
)

# ---------------------------------------------------------------------------
# Task
# ---------------------------------------------------------------------------


class TaskCreate(BaseModel):
    workspace_id: UUID
    project_id: UUID | None = None
    status_id: UUID | None = None
    assignee_id: UUID | None = None
    parent_id: UUID | None = None
    title: str = Field(min_length=1, max_length=500)
    description: str | None = None
    priority: Priority = Priority.medium
    type: TaskType = TaskType.task
    due_date: datetime | None = None
    start_date: datetime | None = None
    estimated_hours: Decimal | None = Field(default=None, ge=0)
    story_points: int | None = Field(default=None, ge=0)
    order: int = 0
    metadata_: dict[str, Any] | None = Field(default=None, alias="metadata")


class TaskUpdate(BaseModel):
    project_id: UUID | None = None
    status_id: UUID | None = None
    assignee_id: UUID | None = None
    parent_id: UUID | None = None
    title: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = None
    priority: Priority | None = None
    type: TaskType | None = None
    due_date: datetime | None = None
    start_date: datetime | None = None
    estimated_hours: Decimal | None = Field(default=None, ge=0)
    actual_hours: Decimal | None = Field(default=None, ge=0)
    story_points: int | None = Field(default=None, ge=0)
    order: int | None = None
    metadata_: dict[str, Any] | None = Field(default=None, alias="metadata")


class TaskPipelineCreate(BaseModel):
    pipeline_id: UUID
    status_id: UUID | None = None
    order: int = 0


class TaskDependencyCreate(BaseModel):
    depends_on_id: UUID
    type: DependencyType = DependencyType.blocks


class TaskTagCreate(BaseModel):
    tag_id: UUID


# ---------------------------------------------------------------------------
# Goal
# ---------------------------------------------------------------------------


class GoalCreate(BaseModel):
    workspace_id: UUID
    team_id: UUID | None = None
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    status: GoalStatus = GoalStatus.draft
    start_date: date | None = None
    end_date: date | None = None
    progress: int = Field(default=0, ge=0, le=100)
    metadata_: dict[str, Any] | None = Field(default=None, alias="metadata")

    @model_validator(mode="after")
    def check_dates(self) -> "GoalCreate":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class GoalUpdate(BaseModel):
    team_id: UUID | None = None
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    status: GoalStatus | None = None
    start_date: date | None = None
    end_date: date | None = None
    progress: int | None = Field(default=None, ge=0, le=100)
    metadata_: dict[str, Any] | None = Field(default=None, alias="metadata")


class GoalTaskCreate(BaseModel):
    task_id: UUID


# ---------------------------------------------------------------------------
# RecurringTask
# ---------------------------------------------------------------------------


def _check_days(value: list[int] | None) -> list[int] | None:
    if value is None:
        return None
    if any(day < 1 or day > 7 for day in value):
        raise ValueError("days_of_week entries must be between 1 and 7")
    return sorted(set(value))


class RecurringTaskCreate(BaseModel):
    task_id: UUID
    frequency: Frequency
    interval: int = Field(default=1, ge=1)
    days_of_week: list[int] | None = None
    day_of_month: int | None = Field(default=None, ge=1, le=31)
    next_due_date: datetime
    end_date: datetime | None = None
    is_active: bool = True

    @field_validator("days_of_week")
    @classmethod
    def validate_days(cls, value: list[int] | None) -> list[int] | None:
        return _check_days(value)


class RecurringTaskUpdate(BaseModel):
    frequency: Frequency | None = None
    interval: int | None = Field(default=None, ge=1)
    days_of_week: list[int] | None = None
    day_of_month: int | None = Field(default=None, ge=1, le=31)
    next_due_date: datetime | None = None
    end_date: datetime | None = None
    is_active: bool | None = None

    @field_validator("days_of_week")
    @classmethod
    def validate_days(cls, value: list[int] | None) -> list[int] | None:
        return _check_days(value)
