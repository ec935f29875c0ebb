import logging

from app.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="app.tasks.events.process_event", ignore_result=True)
def process_event(
    event_type: str,
    entity_type: str,
    entity_id: str,
    actor_id: str | None = None,
    workspace_id: str | None = None,
    payload: dict | None = None,
) -> None:
    """Central fan-out task for domain events.

    Webhooks are the only subscriber; the fan-out is wrapped so a broker
    failure is logged instead of failing the event.
    """
    event_data = {
        "event_type": event_type,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "actor_id": actor_id,
        "workspace_id": workspace_id,
        "payload": payload or {},
    }
    logger.info("Processing event %s for %s/%s", event_type, entity_type, entity_id)

    _fanout_webhooks(event_data)


def _fanout_webhooks(event_data: dict) -> None:
    try:
        from app.tasks.webhooks import deliver_webhooks

        deliver_webhooks.delay(**event_data)
    except Exception as e:
        logger.exception("Failed to fan-out webhooks: %s", e)
