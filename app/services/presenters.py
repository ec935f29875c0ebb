"""Presentation mapper.

``present`` turns an entity plus whatever relations were loaded for it into
a plain dict: scalar columns first, then computed fields, then relation
sub-records. A relation key only appears when the relation was loaded.
Sensitive keys are removed, not nulled, when the actor may not see them.
"""

import enum
import json
import re
import uuid
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, Mapping

from sqlalchemy import inspect as sa_inspect

from app.config import settings
from app.models.audit import SettingType
from app.models.billing import BackupStatus, InvoiceStatus
from app.models.common import EntityKind
from app.models.engagement import CustomFieldType
from app.models.messaging import ConversationType, MessageType
from app.models.planning import GoalStatus
from app.models.webhook import WebhookDeliveryStatus
from app.models.workspace import InvitationStatus
from app.services import formatting, recurrence
from app.services.actor import ActorContext
from app.services.authorization import Action, can, can_retry_delivery
from app.services.common import ensure_utc, utcnow
from app.services.custom_fields import decode_value, format_value
from app.services.entity_kinds import kind_of
from app.services.relations import (
    NOT_LOADED,
    Linked,
    Morph,
    ancestors,
    full_path,
    relation_spec,
)

# kind -> (gate action, keys removed when the gate denies)
SENSITIVE_FIELDS: dict[EntityKind, tuple[Action, tuple[str, ...]]] = {
    EntityKind.activity_log: (Action.view_sensitive, ("ip_address", "user_agent")),
    EntityKind.audit_log: (
        Action.view_sensitive,
        ("old_values", "new_values", "ip_address", "user_agent", "changes"),
    ),
    EntityKind.setting: (Action.view_value, ("value", "typed_value", "display_value")),
    EntityKind.webhook: (Action.view_secret, ("secret",)),
    EntityKind.webhook_delivery: (Action.view_response, ("response_body",)),
    EntityKind.invitation: (Action.view_token, ("token",)),
}

# kind -> actions reported under "actions" when an actor is known
ACTION_FLAGS: dict[EntityKind, tuple[Action, ...]] = {
    EntityKind.wiki: (Action.update, Action.delete),
    EntityKind.setting: (Action.update, Action.delete),
    EntityKind.webhook_delivery: (Action.update, Action.delete, Action.retry),
    EntityKind.invitation: (Action.accept, Action.decline, Action.resend),
}

# fields kept in relation sub-records, per related kind
SUMMARY_FIELDS: dict[EntityKind, tuple[str, ...]] = {
    EntityKind.user: ("name", "email", "avatar"),
    EntityKind.workspace: ("name", "slug"),
    EntityKind.team: ("name",),
    EntityKind.project: ("name", "slug", "status"),
    EntityKind.status: ("name", "color", "type", "order"),
    EntityKind.pipeline: ("name", "slug", "is_default"),
    EntityKind.task: ("title", "status_id", "priority", "due_date", "parent_id"),
    EntityKind.tag: ("name", "color"),
    EntityKind.goal: ("name", "status", "progress"),
    EntityKind.recurring_task: ("frequency", "interval", "next_due_date", "is_active"),
    EntityKind.time_log: ("user_id", "started_at", "ended_at", "duration"),
    EntityKind.wiki: ("title", "slug", "parent_id", "is_published"),
    EntityKind.wiki_revision: ("title", "summary", "user_id", "created_at"),
    EntityKind.comment: ("user_id", "content", "parent_id", "created_at"),
    EntityKind.attachment: ("original_name", "mime_type", "size"),
    EntityKind.mention: ("user_id", "is_read"),
    EntityKind.reaction: ("user_id", "type"),
    EntityKind.conversation: ("name", "type"),
    EntityKind.message: ("user_id", "content", "type", "created_at"),
    EntityKind.event: ("title", "start_date", "end_date"),
    EntityKind.event_participant: ("user_id", "status"),
    EntityKind.activity_log: ("action", "created_at"),
    EntityKind.audit_log: ("event", "created_at"),
    EntityKind.setting: ("key", "type"),
    EntityKind.user_preference: ("key",),
    EntityKind.invoice: ("number", "status", "amount", "currency"),
    EntityKind.backup: ("name", "status"),
    EntityKind.webhook: ("name", "url"),
    EntityKind.webhook_delivery: ("event", "status", "attempts"),
    EntityKind.invitation: ("email", "role", "status", "expires_at"),
    EntityKind.reminder: ("remind_at", "type", "is_sent"),
    EntityKind.notification: ("type", "read_at", "created_at"),
    EntityKind.custom_field: ("name", "key", "type"),
    EntityKind.custom_field_value: ("custom_field_id", "value"),
}


def serialize(value):
    if value is None:
        return None
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (datetime, date)):
        return formatting.isoformat(value)
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dict):
        return {key: serialize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize(item) for item in value]
    return value


def _columns(entity) -> dict[str, Any]:
    data = {}
    for attr in sa_inspect(type(entity)).column_attrs:
        # metadata_ is mapped to the "metadata" column
        name = attr.columns[0].name
        data[name] = serialize(getattr(entity, attr.key))
    return data


def summarize(entity, with_kind: bool = False) -> dict:
    kind = kind_of(entity)
    data = {"id": serialize(entity.id)}
    if with_kind:
        data["type"] = kind.value
    for name in SUMMARY_FIELDS.get(kind, ()):
        data[name] = serialize(getattr(entity, name, None))
    return data


def _visible(item, actor: ActorContext | None) -> bool:
    entity = item.entity if isinstance(item, Linked) else item
    # user summaries carry profile fields only
    if kind_of(entity) == EntityKind.user:
        return True
    return can(actor, Action.view, entity)


def _authorized(value, actor: ActorContext | None):
    """Drop related records the actor may not view on their own."""
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return [item for item in value if _visible(item, actor)]
    return value if _visible(value, actor) else None


def _render_relation(value, with_kind: bool):
    if value is None:
        return None
    if isinstance(value, Linked):
        record = summarize(value.entity, with_kind)
        record["pivot"] = {key: serialize(item) for key, item in value.pivot.items()}
        return record
    if isinstance(value, (list, tuple)):
        return [_render_relation(item, with_kind) for item in value]
    return summarize(value, with_kind)


# ---------------------------------------------------------------------------
# Computed fields per kind
# ---------------------------------------------------------------------------


def _is_past(value, now: datetime) -> bool:
    if value is None:
        return False
    if isinstance(value, datetime):
        return ensure_utc(value) < now
    return value < now.date()


def _hierarchy_fields(entity) -> dict:
    chain = ancestors(entity)
    return {"is_root": entity.parent_id is None, "depth": len(chain)}


def _task(task, now, relations, actor) -> dict:
    return {**_hierarchy_fields(task), "is_overdue": _is_past(task.due_date, now)}


def _wiki(wiki, now, relations, actor) -> dict:
    data = {
        "is_root": wiki.parent_id is None,
        "full_path": full_path(wiki),
        "content_preview": _preview(wiki.content),
    }
    collaborators = (wiki.metadata_ or {}).get("collaborators")
    if collaborators:
        data["collaborative_users"] = [
            {
                "user_id": item.get("user_id"),
                "role": item.get("role"),
                "assigned_at": item.get("assigned_at"),
            }
            for item in collaborators
        ]
    return data


def _preview(content: str | None) -> str:
    text = re.sub(r"<[^>]+>", "", content or "")
    limit = settings.content_preview_length
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + "..."


def _comment(comment, now, relations, actor) -> dict:
    return {
        "is_root": comment.parent_id is None,
        "is_reply": comment.parent_id is not None,
        "time_ago": formatting.time_ago(comment.created_at, now),
    }


def _time_log(log, now, relations, actor) -> dict:
    earnings = None
    if log.is_billable and log.hourly_rate is not None and log.duration:
        earnings = round(float(log.hourly_rate) * log.duration / 60, 2)
    return {
        "duration_formatted": formatting.format_minutes(log.duration),
        "is_running": log.ended_at is None,
        "total_earnings": earnings,
    }


_BACKUP_LABELS = {
    BackupStatus.pending: "Pending",
    BackupStatus.in_progress: "In Progress",
    BackupStatus.completed: "Completed",
    BackupStatus.failed: "Failed",
}


def _backup(backup, now, relations, actor) -> dict:
    return {
        "size_formatted": formatting.format_bytes(backup.size),
        "status_label": _BACKUP_LABELS.get(backup.status, "Unknown"),
        "duration": formatting.format_duration(
            backup.started_at, backup.completed_at or now
        ),
        "is_completed": backup.status == BackupStatus.completed,
        "is_in_progress": backup.status == BackupStatus.in_progress,
        "has_failed": backup.status == BackupStatus.failed,
    }


def _attachment(attachment, now, relations, actor) -> dict:
    return {
        "size_formatted": formatting.format_bytes(attachment.size),
        "is_image": (attachment.mime_type or "").startswith("image/"),
    }


def _activity_log(log, now, relations, actor) -> dict:
    created = ensure_utc(log.created_at)
    recent_since = now - timedelta(hours=settings.recent_activity_hours)
    return {
        "time_ago": formatting.time_ago(created, now),
        "is_recent": created is not None and created > recent_since,
    }


_AUDIT_LABELS = {
    "created": "Created",
    "updated": "Updated",
    "deleted": "Deleted",
    "restored": "Restored",
}


def _audit_log(log, now, relations, actor) -> dict:
    return {
        "changes": serialize(log.changes),
        "time_ago": formatting.time_ago(log.created_at, now),
        "event_label": _AUDIT_LABELS.get(log.event, (log.event or "").capitalize()),
    }


def _setting(setting, now, relations, actor) -> dict:
    typed = setting.typed_value
    if setting.type == SettingType.boolean:
        display = "Yes" if typed else "No"
    elif setting.type == SettingType.json:
        display = json.dumps(typed, indent=4)
    else:
        display = "" if typed is None else str(typed)
    return {
        "is_global": setting.is_global,
        "typed_value": serialize(typed),
        "display_value": display,
    }


def _webhook_delivery(delivery, now, relations, actor) -> dict:
    return {
        "is_pending": delivery.status == WebhookDeliveryStatus.pending,
        "is_delivered": delivery.status == WebhookDeliveryStatus.delivered,
        "is_failed": delivery.status == WebhookDeliveryStatus.failed,
        "can_retry": can_retry_delivery(delivery),
    }


def _recurring_task(recurring, now, relations, actor) -> dict:
    next_due = ensure_utc(recurring.next_due_date)
    return {
        "frequency_label": recurring.frequency.value.capitalize(),
        "days_of_week_labels": recurrence.days_of_week_labels(recurring.days_of_week),
        "next_due_date_formatted": (
            next_due.strftime("%Y-%m-%d %H:%M:%S") if next_due else None
        ),
        "is_due": recurrence.is_due(recurring, now),
        "recurrence_summary": recurrence.recurrence_summary(
            recurring.frequency,
            recurring.interval or 1,
            recurring.days_of_week,
            recurring.day_of_month,
        ),
    }


def _goal(goal, now, relations, actor) -> dict:
    data = {
        "progress_percentage": formatting.progress_percentage(goal.progress, 100),
        "is_active": goal.status == GoalStatus.active,
        "is_completed": goal.status == GoalStatus.completed,
        "is_cancelled": goal.status == GoalStatus.cancelled,
    }
    if goal.end_date is not None:
        data["days_remaining"] = (goal.end_date - now.date()).days
    if goal.start_date is not None and goal.end_date is not None:
        data["duration_days"] = (goal.end_date - goal.start_date).days
    tasks = relations.get("tasks", NOT_LOADED)
    if tasks is not NOT_LOADED:
        data["tasks_count"] = len(tasks)
    return data


def _project(project, now, relations, actor) -> dict:
    return {
        "progress_percentage": formatting.progress_percentage(project.progress, 100),
        "is_overdue": _is_past(project.end_date, now),
    }


def _invoice(invoice, now, relations, actor) -> dict:
    return {
        "is_paid": invoice.status == InvoiceStatus.paid,
        "is_overdue": invoice.status == InvoiceStatus.open
        and _is_past(invoice.due_date, now),
    }


def _conversation(conversation, now, relations, actor) -> dict:
    data = {
        "name": (
            None if conversation.type == ConversationType.direct else conversation.name
        ),
        "display_name": conversation.name or "Unnamed Conversation",
    }
    users = relations.get("users", NOT_LOADED)
    if users is NOT_LOADED:
        return data
    me = next(
        (link for link in users if actor and link.entity.id == actor.user_id), None
    )
    if conversation.type == ConversationType.direct:
        other = next(
            (
                link.entity
                for link in users
                if not actor or link.entity.id != actor.user_id
            ),
            None,
        )
        data["display_name"] = other.name if other else "Unknown User"
    data["users_count"] = len(users)
    data["current_user_role"] = serialize(me.pivot.get("role")) if me else None
    messages = relations.get("messages", NOT_LOADED)
    if me is not None and messages is not NOT_LOADED:
        last_read = ensure_utc(me.pivot.get("last_read_at"))
        data["unread_count"] = sum(
            1
            for message in messages
            if message.user_id != actor.user_id
            and (last_read is None or ensure_utc(message.created_at) > last_read)
        )
    return data


def _message(message, now, relations, actor) -> dict:
    return {
        "is_system": message.type == MessageType.system,
        "time_ago": formatting.time_ago(message.created_at, now),
    }


def _event(event, now, relations, actor) -> dict:
    return {
        "is_past": _is_past(event.end_date or event.start_date, now),
        "duration": formatting.format_duration(event.start_date, event.end_date)
        if event.end_date
        else None,
    }


def _invitation(invitation, now, relations, actor) -> dict:
    pending = invitation.status == InvitationStatus.pending
    expired = ensure_utc(invitation.expires_at) <= now
    return {
        "is_pending": pending,
        "is_expired": expired,
        "can_be_accepted": pending and not expired,
    }


def _reminder(reminder, now, relations, actor) -> dict:
    return {
        "is_due": not reminder.is_sent and ensure_utc(reminder.remind_at) <= now
    }


def _notification(notification, now, relations, actor) -> dict:
    return {
        "is_read": notification.read_at is not None,
        "time_ago": formatting.time_ago(notification.created_at, now),
    }


def _custom_field(field, now, relations, actor) -> dict:
    if field.type in (CustomFieldType.select, CustomFieldType.multiselect):
        return {"available_options": list(field.options or [])}
    return {"available_options": []}


def _custom_field_value(value, now, relations, actor) -> dict:
    field_type = value.custom_field.type
    return {
        "typed_value": serialize(decode_value(field_type, value.value)),
        "formatted_value": format_value(field_type, value.value),
    }


ComputedFn = Callable[[Any, datetime, Mapping[str, Any], ActorContext | None], dict]

COMPUTED: dict[EntityKind, ComputedFn] = {
    EntityKind.task: _task,
    EntityKind.wiki: _wiki,
    EntityKind.comment: _comment,
    EntityKind.time_log: _time_log,
    EntityKind.backup: _backup,
    EntityKind.attachment: _attachment,
    EntityKind.activity_log: _activity_log,
    EntityKind.audit_log: _audit_log,
    EntityKind.setting: _setting,
    EntityKind.webhook_delivery: _webhook_delivery,
    EntityKind.recurring_task: _recurring_task,
    EntityKind.goal: _goal,
    EntityKind.project: _project,
    EntityKind.invoice: _invoice,
    EntityKind.conversation: _conversation,
    EntityKind.message: _message,
    EntityKind.event: _event,
    EntityKind.invitation: _invitation,
    EntityKind.reminder: _reminder,
    EntityKind.notification: _notification,
    EntityKind.custom_field: _custom_field,
    EntityKind.custom_field_value: _custom_field_value,
}


def present(
    entity,
    relations: Mapping[str, Any] | None = None,
    actor: ActorContext | None = None,
    now: datetime | None = None,
) -> dict:
    kind = kind_of(entity)
    relations = relations or {}
    now = ensure_utc(now) if now is not None else utcnow()

    data = _columns(entity)
    computed = COMPUTED.get(kind)
    if computed is not None:
        data.update(computed(entity, now, relations, actor))

    for name, value in relations.items():
        if value is NOT_LOADED:
            continue
        spec = relation_spec(kind, name)
        data[name] = _render_relation(
            _authorized(value, actor), isinstance(spec, Morph)
        )

    gate = SENSITIVE_FIELDS.get(kind)
    if gate is not None:
        action, keys = gate
        if not can(actor, action, entity):
            for key in keys:
                data.pop(key, None)

    flags = ACTION_FLAGS.get(kind)
    if flags and actor is not None:
        data["actions"] = {
            f"can_{action.value}": can(actor, action, entity) for action in flags
        }
    return data
