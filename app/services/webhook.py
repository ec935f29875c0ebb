from __future__ import annotations

import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.models.webhook import Webhook, WebhookDelivery, WebhookDeliveryStatus
from app.models.workspace import Workspace
from app.schemas.webhook import WebhookCreate, WebhookUpdate
from app.services.authorization import can_retry_delivery
from app.services.common import apply_ordering, apply_pagination, coerce_uuid
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


def event_matches(subscribed: list[str] | None, event: str) -> bool:
    """``*`` matches everything, ``task`` matches every ``task.*`` event."""
    if not subscribed:
        return False
    prefix = event.split(".")[0]
    return any(item in ("*", event, prefix) for item in subscribed)


class Webhooks(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: WebhookCreate, creator_id) -> Webhook:
        if payload.workspace_id is not None and not db.get(
            Workspace, payload.workspace_id
        ):
            raise HTTPException(status_code=404, detail="Workspace not found")
        data = payload.model_dump()
        webhook = Webhook(created_by_id=coerce_uuid(creator_id), **data)
        db.add(webhook)
        db.flush()
        db.refresh(webhook)
        logger.info("Created webhook %s", webhook.id)
        return webhook

    @staticmethod
    def get(db: Session, webhook_id: str) -> Webhook:
        webhook = db.get(Webhook, coerce_uuid(webhook_id))
        if not webhook:
            raise HTTPException(status_code=404, detail="Webhook not found")
        return webhook

    @staticmethod
    def list(
        db: Session,
        workspace_id: str | None,
        is_active: bool | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[Webhook]:
        query = db.query(Webhook)
        if workspace_id is not None:
            query = query.filter(Webhook.workspace_id == coerce_uuid(workspace_id))
        if is_active is not None:
            query = query.filter(Webhook.is_active == is_active)
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {"name": Webhook.name, "created_at": Webhook.created_at},
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def update(db: Session, webhook_id: str, payload: WebhookUpdate) -> Webhook:
        webhook = Webhooks.get(db, webhook_id)
        data = payload.model_dump(exclude_unset=True)
        for key, value in data.items():
            setattr(webhook, key, value)
        db.flush()
        db.refresh(webhook)
        logger.info("Updated webhook %s", webhook.id)
        return webhook

    @staticmethod
    def delete(db: Session, webhook_id: str) -> None:
        webhook = Webhooks.get(db, webhook_id)
        db.delete(webhook)
        db.flush()
        logger.info("Deleted webhook %s", webhook_id)

    @staticmethod
    def subscribed(db: Session, event: str, workspace_id=None) -> list[Webhook]:
        """Active webhooks of ``workspace_id`` (plus global ones) for ``event``."""
        query = db.query(Webhook).filter(Webhook.is_active.is_(True))
        if workspace_id is not None:
            query = query.filter(
                (Webhook.workspace_id == coerce_uuid(workspace_id))
                | Webhook.workspace_id.is_(None)
            )
        else:
            query = query.filter(Webhook.workspace_id.is_(None))
        return [hook for hook in query.all() if event_matches(hook.events, event)]


class WebhookDeliveries(ListResponseMixin):
    @staticmethod
    def get(db: Session, delivery_id: str) -> WebhookDelivery:
        delivery = db.get(WebhookDelivery, coerce_uuid(delivery_id))
        if not delivery:
            raise HTTPException(status_code=404, detail="Webhook delivery not found")
        return delivery

    @staticmethod
    def list(
        db: Session,
        webhook_id: str | None,
        event: str | None,
        status: str | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[WebhookDelivery]:
        query = db.query(WebhookDelivery)
        if webhook_id is not None:
            query = query.filter(WebhookDelivery.webhook_id == coerce_uuid(webhook_id))
        if event is not None:
            query = query.filter(WebhookDelivery.event == event)
        if status is not None:
            query = query.filter(
                WebhookDelivery.status == WebhookDeliveryStatus(status)
            )
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {"created_at": WebhookDelivery.created_at},
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def retry(db: Session, delivery_id: str) -> WebhookDelivery:
        delivery = WebhookDeliveries.get(db, delivery_id)
        if not can_retry_delivery(delivery):
            raise HTTPException(
                status_code=400, detail="Only failed deliveries can be retried"
            )
        delivery.status = WebhookDeliveryStatus.pending
        delivery.next_attempt_at = None
        db.flush()
        db.refresh(delivery)
        logger.info("Queued retry of webhook delivery %s", delivery.id)

        from app.tasks.webhooks import deliver_single_webhook

        deliver_single_webhook.delay(delivery_id=str(delivery.id))
        return delivery

    @staticmethod
    def delete(db: Session, delivery_id: str) -> None:
        delivery = WebhookDeliveries.get(db, delivery_id)
        db.delete(delivery)
        db.flush()
        logger.info("Deleted webhook delivery %s", delivery_id)


webhooks = Webhooks()
webhook_deliveries = WebhookDeliveries()
