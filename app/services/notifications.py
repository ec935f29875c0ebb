from __future__ import annotations

import logging

from fastapi import HTTPException
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from app.models.engagement import Notification
from app.models.workspace import User
from app.schemas.engagement import NotificationCreate
from app.services.common import apply_pagination, coerce_uuid, get_or_404, utcnow
from app.services.entity_kinds import kind_of, load
from app.services.event import EventType, publish_event
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


class Notifications(ListResponseMixin):
    @staticmethod
    def notify(
        db: Session,
        user_id,
        notification_type: str,
        subject=None,
        data: dict | None = None,
    ) -> Notification:
        """Store an in-app notification for ``user_id`` about ``subject``."""
        notification = Notification(
            user_id=coerce_uuid(user_id),
            type=notification_type,
            notifiable_type=kind_of(subject) if subject is not None else None,
            notifiable_id=subject.id if subject is not None else None,
            data=data,
        )
        db.add(notification)
        db.flush()
        db.refresh(notification)
        logger.info("Notified user %s (%s)", notification.user_id, notification_type)
        publish_event(
            EventType.notification_created,
            "notification",
            notification.id,
            payload={"user_id": str(notification.user_id), "type": notification_type},
        )
        return notification

    @staticmethod
    def create(db: Session, payload: NotificationCreate) -> Notification:
        get_or_404(db, User, payload.user_id, "User")
        subject = None
        if payload.notifiable_type is not None:
            subject = load(db, payload.notifiable_type, payload.notifiable_id)
            if subject is None:
                raise HTTPException(
                    status_code=404, detail="Notified entity not found"
                )
        return Notifications.notify(
            db, payload.user_id, payload.type, subject, payload.data
        )

    @staticmethod
    def get(db: Session, notification_id: str) -> Notification:
        return get_or_404(db, Notification, notification_id, "Notification")

    @staticmethod
    def list(
        db: Session,
        user_id,
        unread_only: bool,
        limit: int,
        offset: int,
    ) -> list[Notification]:
        stmt = select(Notification).where(Notification.user_id == coerce_uuid(user_id))
        if unread_only:
            stmt = stmt.where(Notification.read_at.is_(None))
        stmt = stmt.order_by(Notification.created_at.desc())
        return db.scalars(apply_pagination(stmt, limit, offset)).all()

    @staticmethod
    def unread_count(db: Session, user_id) -> int:
        return db.scalar(
            select(func.count(Notification.id))
            .where(Notification.user_id == coerce_uuid(user_id))
            .where(Notification.read_at.is_(None))
        )

    @staticmethod
    def mark_read(db: Session, notification_id: str) -> Notification:
        notification = get_or_404(db, Notification, notification_id, "Notification")
        if notification.read_at is None:
            notification.read_at = utcnow()
            db.flush()
        return notification

    @staticmethod
    def mark_unread(db: Session, notification_id: str) -> Notification:
        notification = get_or_404(db, Notification, notification_id, "Notification")
        notification.read_at = None
        db.flush()
        return notification

    @staticmethod
    def mark_all_read(db: Session, user_id) -> int:
        result = db.execute(
            update(Notification)
            .where(Notification.user_id == coerce_uuid(user_id))
            .where(Notification.read_at.is_(None))
            .values(read_at=utcnow())
            .execution_options(synchronize_session="fetch")
        )
        db.flush()
        logger.info("Marked %d notifications read for %s", result.rowcount, user_id)
        return result.rowcount

    @staticmethod
    def delete(db: Session, notification_id: str) -> None:
        notification = get_or_404(db, Notification, notification_id, "Notification")
        db.delete(notification)
        db.flush()
        logger.info("Deleted notification %s", notification_id)


notifications = Notifications()
