import hashlib
import hmac
import json
import logging
from datetime import timedelta

from app.celery_app import celery_app
from app.config import settings

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Webhook-Signature"
EVENT_HEADER = "X-Webhook-Event"


def sign_payload(secret: str, body: str) -> str:
    return hmac.new(secret.encode(), body.encode(), hashlib.sha256).hexdigest()


def retry_delay_seconds(attempts: int) -> int:
    return settings.webhook_retry_base_seconds * (2 ** max(attempts - 1, 0))


@celery_app.task(name="app.tasks.webhooks.deliver_webhooks", ignore_result=True)
def deliver_webhooks(
    event_type: str,
    entity_type: str,
    entity_id: str,
    actor_id: str | None = None,
    workspace_id: str | None = None,
    payload: dict | None = None,
) -> None:
    """Find matching webhooks and queue individual deliveries."""
    from app.db import SessionLocal

    db = SessionLocal()
    try:
        _find_and_queue(
            db, event_type, entity_type, entity_id, actor_id, workspace_id, payload
        )
    except Exception as e:
        db.rollback()
        logger.exception("Failed to deliver webhooks for %s: %s", event_type, e)
    finally:
        db.close()


def _find_and_queue(
    db: "Session",  # type: ignore[name-defined]  # noqa: F821
    event_type: str,
    entity_type: str,
    entity_id: str,
    actor_id: str | None,
    workspace_id: str | None,
    payload: dict | None,
) -> list[str]:
    from app.models.webhook import WebhookDelivery, WebhookDeliveryStatus
    from app.services.common import utcnow
    from app.services.webhook import webhooks

    event_data = {
        "event": event_type,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "actor_id": actor_id,
        "workspace_id": workspace_id,
        "payload": payload or {},
        "timestamp": utcnow().isoformat(),
    }

    delivery_ids = []
    for hook in webhooks.subscribed(db, event_type, workspace_id):
        delivery = WebhookDelivery(
            webhook_id=hook.id,
            event=event_type,
            payload=event_data,
            status=WebhookDeliveryStatus.pending,
        )
        db.add(delivery)
        db.flush()
        delivery_ids.append(str(delivery.id))

    db.commit()
    for delivery_id in delivery_ids:
        deliver_single_webhook.delay(delivery_id=delivery_id)
    logger.info(
        "Queued %d webhook deliveries for event %s", len(delivery_ids), event_type
    )
    return delivery_ids


@celery_app.task(name="app.tasks.webhooks.deliver_single_webhook", ignore_result=True)
def deliver_single_webhook(delivery_id: str) -> None:
    """Deliver one webhook via HTTP POST with HMAC signing.

    A non-2xx answer or a transport error marks the delivery failed and
    schedules ``next_attempt_at`` with exponential backoff; the beat job
    ``retry_failed_webhooks`` picks it up from there.
    """
    from app.db import SessionLocal

    db = SessionLocal()
    try:
        attempt_delivery(db, delivery_id)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.exception("Webhook delivery %s crashed: %s", delivery_id, e)
    finally:
        db.close()


def attempt_delivery(db, delivery_id: str):
    import httpx

    from app.models.webhook import WebhookDelivery, WebhookDeliveryStatus
    from app.services.common import coerce_uuid, utcnow

    delivery = db.get(WebhookDelivery, coerce_uuid(delivery_id))
    if not delivery:
        logger.error("WebhookDelivery %s not found", delivery_id)
        return None
    webhook = delivery.webhook
    if webhook is None or not webhook.is_active:
        logger.info("Skipping delivery %s: webhook inactive", delivery_id)
        delivery.status = WebhookDeliveryStatus.failed
        delivery.response_body = "Webhook inactive"
        delivery.next_attempt_at = None
        db.flush()
        return delivery

    body = json.dumps(delivery.payload, default=str)
    headers: dict[str, str] = {
        "Content-Type": "application/json",
        EVENT_HEADER: delivery.event,
    }
    if webhook.secret:
        headers[SIGNATURE_HEADER] = sign_payload(webhook.secret, body)

    delivery.attempts = (delivery.attempts or 0) + 1
    try:
        with httpx.Client(timeout=settings.webhook_timeout_seconds) as client:
            resp = client.post(webhook.url, content=body, headers=headers)
        delivery.response_code = resp.status_code
        delivery.response_body = resp.text[:4000]
        if 200 <= resp.status_code < 300:
            delivery.status = WebhookDeliveryStatus.delivered
        else:
            delivery.status = WebhookDeliveryStatus.failed
    except (httpx.HTTPError, OSError) as e:
        logger.warning("Webhook delivery %s failed: %s", delivery_id, e)
        delivery.status = WebhookDeliveryStatus.failed
        delivery.response_body = str(e)[:4000]

    if delivery.status == WebhookDeliveryStatus.delivered:
        delivery.next_attempt_at = None
    elif delivery.attempts < settings.webhook_max_attempts:
        delivery.next_attempt_at = utcnow() + timedelta(
            seconds=retry_delay_seconds(delivery.attempts)
        )
    else:
        delivery.next_attempt_at = None
        logger.error("Webhook delivery %s exhausted retries", delivery_id)
    db.flush()
    return delivery


@celery_app.task(name="app.tasks.webhooks.retry_failed_webhooks", ignore_result=True)
def retry_failed_webhooks() -> None:
    from app.db import SessionLocal

    db = SessionLocal()
    try:
        queue_retries(db)
    except Exception as e:
        db.rollback()
        logger.exception("Failed to queue webhook retries: %s", e)
    finally:
        db.close()


def queue_retries(db, now=None) -> list[str]:
    from sqlalchemy import select

    from app.models.webhook import WebhookDelivery, WebhookDeliveryStatus
    from app.services.common import utcnow

    now = now or utcnow()
    due = db.scalars(
        select(WebhookDelivery)
        .where(WebhookDelivery.status == WebhookDeliveryStatus.failed)
        .where(WebhookDelivery.attempts < settings.webhook_max_attempts)
        .where(WebhookDelivery.next_attempt_at.is_not(None))
        .where(WebhookDelivery.next_attempt_at <= now)
    ).all()
    delivery_ids = []
    for delivery in due:
        delivery.status = WebhookDeliveryStatus.pending
        delivery.next_attempt_at = None
        delivery_ids.append(str(delivery.id))
    db.commit()
    for delivery_id in delivery_ids:
        deliver_single_webhook.delay(delivery_id=delivery_id)
    if delivery_ids:
        logger.info("Queued %d webhook retries", len(delivery_ids))
    return delivery_ids
