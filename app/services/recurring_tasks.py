from __future__ import annotations

import logging
from datetime import datetime

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.planning import RecurringTask, Task
from app.schemas.planning import RecurringTaskCreate, RecurringTaskUpdate
from app.services import recurrence
from app.services.common import (
    apply_pagination,
    coerce_uuid,
    ensure_utc,
    get_or_404,
    utcnow,
)
from app.services.event import EventType, publish_event
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)

# template fields copied onto every spawned task
SPAWN_FIELDS = (
    "workspace_id",
    "project_id",
    "status_id",
    "assignee_id",
    "reporter_id",
    "parent_id",
    "title",
    "description",
    "priority",
    "type",
    "estimated_hours",
    "story_points",
    "metadata_",
)


class RecurringTasks(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: RecurringTaskCreate) -> RecurringTask:
        task = get_or_404(db, Task, payload.task_id, "Task")
        if payload.end_date and ensure_utc(payload.end_date) < ensure_utc(
            payload.next_due_date
        ):
            raise HTTPException(
                status_code=400, detail="end_date must not be before next_due_date"
            )
        recurring = RecurringTask(**payload.model_dump())
        task.is_recurring = True
        db.add(recurring)
        db.flush()
        db.refresh(recurring)
        logger.info("Created recurring task %s", recurring.id)
        return recurring

    @staticmethod
    def get(db: Session, recurring_id: str) -> RecurringTask:
        return get_or_404(db, RecurringTask, recurring_id, "Recurring task")

    @staticmethod
    def list(
        db: Session,
        task_id: str | None,
        is_active: bool | None,
        limit: int,
        offset: int,
    ) -> list[RecurringTask]:
        stmt = select(RecurringTask)
        if task_id is not None:
            stmt = stmt.where(RecurringTask.task_id == coerce_uuid(task_id))
        if is_active is not None:
            stmt = stmt.where(RecurringTask.is_active == is_active)
        stmt = stmt.order_by(RecurringTask.next_due_date.asc())
        return db.scalars(apply_pagination(stmt, limit, offset)).all()

    @staticmethod
    def update(
        db: Session, recurring_id: str, payload: RecurringTaskUpdate
    ) -> RecurringTask:
        recurring = get_or_404(db, RecurringTask, recurring_id, "Recurring task")
        for key, value in payload.model_dump(exclude_unset=True).items():
            setattr(recurring, key, value)
        db.flush()
        db.refresh(recurring)
        logger.info("Updated recurring task %s", recurring.id)
        return recurring

    @staticmethod
    def delete(db: Session, recurring_id: str) -> None:
        recurring = get_or_404(db, RecurringTask, recurring_id, "Recurring task")
        task_id = recurring.task_id
        db.delete(recurring)
        db.flush()
        remaining = db.scalars(
            select(RecurringTask.id).where(RecurringTask.task_id == task_id)
        ).first()
        if remaining is None:
            task = db.get(Task, task_id)
            if task is not None:
                task.is_recurring = False
                db.flush()
        logger.info("Deleted recurring task %s", recurring_id)

    @staticmethod
    def due(db: Session, now: datetime | None = None) -> list[RecurringTask]:
        now = ensure_utc(now) if now is not None else utcnow()
        stmt = (
            select(RecurringTask)
            .where(RecurringTask.is_active.is_(True))
            .where(RecurringTask.next_due_date <= now)
            .order_by(RecurringTask.next_due_date.asc())
        )
        return [item for item in db.scalars(stmt).all() if recurrence.is_due(item, now)]

    @staticmethod
    def spawn(
        db: Session, recurring: RecurringTask, now: datetime | None = None
    ) -> Task | None:
        """Clone the template task for the current due date and advance it.

        Returns ``None`` when the template task no longer exists; the
        recurrence is deactivated in that case. A recurrence whose next due
        date passes ``end_date`` is deactivated after spawning.
        """
        now = ensure_utc(now) if now is not None else utcnow()
        template = recurring.task
        if template is None:
            recurring.is_active = False
            db.flush()
            logger.warning("Recurring task %s has no template task", recurring.id)
            return None
        due_at = ensure_utc(recurring.next_due_date)
        spawned = Task(
            **{field: getattr(template, field) for field in SPAWN_FIELDS},
            due_date=due_at,
            is_recurring=False,
        )
        db.add(spawned)
        recurring.last_spawned_at = now
        recurrence.advance(recurring)
        if recurring.end_date and ensure_utc(recurring.next_due_date) > ensure_utc(
            recurring.end_date
        ):
            recurring.is_active = False
        db.flush()
        logger.info("Spawned task %s from recurring task %s", spawned.id, recurring.id)
        publish_event(
            EventType.task_spawned,
            "task",
            spawned.id,
            workspace_id=spawned.workspace_id,
            payload={"recurring_task_id": str(recurring.id)},
        )
        return spawned


recurring_tasks = RecurringTasks()
