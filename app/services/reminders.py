from __future__ import annotations

import logging
from datetime import datetime

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.engagement import Reminder, ReminderType
from app.schemas.engagement import ReminderCreate, ReminderUpdate
from app.services.common import (
    apply_pagination,
    coerce_uuid,
    ensure_utc,
    get_or_404,
    utcnow,
)
from app.services.entity_kinds import load
from app.services.event import EventType, publish_event
from app.services.notifications import notifications
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


def _label(entity) -> str | None:
    for attr in ("title", "name"):
        value = getattr(entity, attr, None)
        if value:
            return str(value)
    return None


class Reminders(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: ReminderCreate, user_id) -> Reminder:
        if load(db, payload.remindable_type, payload.remindable_id) is None:
            raise HTTPException(status_code=404, detail="Reminded entity not found")
        reminder = Reminder(user_id=coerce_uuid(user_id), **payload.model_dump())
        reminder.remind_at = ensure_utc(reminder.remind_at)
        db.add(reminder)
        db.flush()
        db.refresh(reminder)
        logger.info(
            "Created reminder %s on %s %s",
            reminder.id,
            reminder.remindable_type.value,
            reminder.remindable_id,
        )
        return reminder

    @staticmethod
    def get(db: Session, reminder_id: str) -> Reminder:
        return get_or_404(db, Reminder, reminder_id, "Reminder")

    @staticmethod
    def list(
        db: Session,
        user_id,
        is_sent: bool | None,
        limit: int,
        offset: int,
    ) -> list[Reminder]:
        stmt = select(Reminder).where(Reminder.user_id == coerce_uuid(user_id))
        if is_sent is not None:
            stmt = stmt.where(Reminder.is_sent == is_sent)
        stmt = stmt.order_by(Reminder.remind_at.asc())
        return db.scalars(apply_pagination(stmt, limit, offset)).all()

    @staticmethod
    def update(db: Session, reminder_id: str, payload: ReminderUpdate) -> Reminder:
        reminder = get_or_404(db, Reminder, reminder_id, "Reminder")
        data = payload.model_dump(exclude_unset=True)
        if data.get("remind_at") is not None:
            data["remind_at"] = ensure_utc(data["remind_at"])
            # rescheduling re-arms a reminder that already fired
            reminder.is_sent = False
            reminder.sent_at = None
        for key, value in data.items():
            if value is not None:
                setattr(reminder, key, value)
        db.flush()
        db.refresh(reminder)
        logger.info("Updated reminder %s", reminder.id)
        return reminder

    @staticmethod
    def delete(db: Session, reminder_id: str) -> None:
        reminder = get_or_404(db, Reminder, reminder_id, "Reminder")
        db.delete(reminder)
        db.flush()
        logger.info("Deleted reminder %s", reminder_id)

    @staticmethod
    def due(db: Session, now: datetime | None = None) -> list[Reminder]:
        now = ensure_utc(now) if now is not None else utcnow()
        stmt = (
            select(Reminder)
            .where(Reminder.is_sent.is_(False))
            .where(Reminder.remind_at <= now)
            .order_by(Reminder.remind_at.asc())
        )
        return db.scalars(stmt).all()

    @staticmethod
    def dispatch(db: Session, reminder: Reminder, now: datetime | None = None):
        """Mark ``reminder`` sent; in-app reminders become a notification.

        A reminder whose target has since been deleted is marked sent
        without notifying anyone.
        """
        now = ensure_utc(now) if now is not None else utcnow()
        target = load(db, reminder.remindable_type, reminder.remindable_id)
        notification = None
        if target is None:
            logger.warning("Reminder %s points at a deleted entity", reminder.id)
        elif reminder.type == ReminderType.in_app:
            notification = notifications.notify(
                db,
                reminder.user_id,
                "reminder",
                target,
                data={
                    "reminder_id": str(reminder.id),
                    "title": _label(target),
                    "remind_at": ensure_utc(reminder.remind_at).isoformat(),
                },
            )
        reminder.is_sent = True
        reminder.sent_at = now
        db.flush()
        if target is not None:
            publish_event(
                EventType.reminder_sent,
                "reminder",
                reminder.id,
                workspace_id=getattr(target, "workspace_id", None),
                payload={
                    "user_id": str(reminder.user_id),
                    "channel": reminder.type.value,
                    "remindable_type": reminder.remindable_type.value,
                    "remindable_id": str(reminder.remindable_id),
                },
            )
        return notification


reminders = Reminders()
