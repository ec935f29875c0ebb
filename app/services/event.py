import enum
import logging
import uuid

logger = logging.getLogger(__name__)


class EventType(enum.Enum):
    workspace_created = "workspace.created"
    workspace_updated = "workspace.updated"
    workspace_deleted = "workspace.deleted"
    workspace_member_added = "workspace.member_added"
    workspace_member_removed = "workspace.member_removed"
    workspace_member_left = "workspace.member_left"

    invitation_created = "invitation.created"
    invitation_accepted = "invitation.accepted"

    task_created = "task.created"
    task_updated = "task.updated"
    task_deleted = "task.deleted"
    task_spawned = "task.spawned"

    goal_created = "goal.created"
    goal_updated = "goal.updated"
    goal_deleted = "goal.deleted"

    wiki_created = "wiki.created"
    wiki_updated = "wiki.updated"
    wiki_deleted = "wiki.deleted"

    comment_created = "comment.created"
    comment_updated = "comment.updated"
    comment_deleted = "comment.deleted"

    conversation_created = "conversation.created"
    message_created = "message.created"

    reminder_sent = "reminder.sent"
    notification_created = "notification.created"


def publish_event(
    event_type: EventType,
    entity_type: str,
    entity_id: str | uuid.UUID,
    actor_id: str | uuid.UUID | None = None,
    workspace_id: str | uuid.UUID | None = None,
    payload: dict | None = None,
) -> None:
    """Fire-and-forget event publishing.

    Queues a Celery task that fans the event out to webhooks.
    Never raises; logs failures and continues.
    """
    try:
        from app.tasks.events import process_event

        process_event.delay(
            event_type=event_type.value,
            entity_type=entity_type,
            entity_id=str(entity_id),
            actor_id=str(actor_id) if actor_id else None,
            workspace_id=str(workspace_id) if workspace_id else None,
            payload=payload or {},
        )
        logger.debug(
            "Published event %s for %s/%s", event_type.value, entity_type, entity_id
        )
    except Exception as e:
        logger.exception("Failed to publish event %s: %s", event_type.value, e)
