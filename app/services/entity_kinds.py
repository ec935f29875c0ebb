"""Type-indexed lookup between ``EntityKind`` tags and model classes.

Polymorphic columns store an ``EntityKind`` rather than a class name, so
every ``(kind, id)`` pair resolves through this table.
"""

import uuid
from dataclasses import dataclass

from sqlalchemy.orm import Session

from app.models.audit import ActivityLog, AuditLog, Setting, UserPreference
from app.models.billing import Backup, Invoice
from app.models.common import EntityKind
from app.models.content import (
    Attachment,
    Comment,
    Mention,
    Reaction,
    Wiki,
    WikiRevision,
)
from app.models.engagement import (
    CustomField,
    CustomFieldValue,
    Notification,
    Reminder,
)
from app.models.messaging import (
    Conversation,
    Event,
    EventParticipant,
    Message,
)
from app.models.planning import (
    Goal,
    Pipeline,
    Project,
    RecurringTask,
    Status,
    Tag,
    Task,
    TimeLog,
)
from app.models.webhook import Webhook, WebhookDelivery
from app.models.workspace import Invitation, Team, User, Workspace

MODEL_BY_KIND: dict[EntityKind, type] = {
    EntityKind.user: User,
    EntityKind.workspace: Workspace,
    EntityKind.team: Team,
    EntityKind.project: Project,
    EntityKind.status: Status,
    EntityKind.pipeline: Pipeline,
    EntityKind.task: Task,
    EntityKind.tag: Tag,
    EntityKind.goal: Goal,
    EntityKind.recurring_task: RecurringTask,
    EntityKind.time_log: TimeLog,
    EntityKind.wiki: Wiki,
    EntityKind.wiki_revision: WikiRevision,
    EntityKind.comment: Comment,
    EntityKind.attachment: Attachment,
    EntityKind.mention: Mention,
    EntityKind.reaction: Reaction,
    EntityKind.conversation: Conversation,
    EntityKind.message: Message,
    EntityKind.event: Event,
    EntityKind.event_participant: EventParticipant,
    EntityKind.activity_log: ActivityLog,
    EntityKind.audit_log: AuditLog,
    EntityKind.setting: Setting,
    EntityKind.user_preference: UserPreference,
    EntityKind.invoice: Invoice,
    EntityKind.backup: Backup,
    EntityKind.webhook: Webhook,
    EntityKind.webhook_delivery: WebhookDelivery,
    EntityKind.invitation: Invitation,
    EntityKind.reminder: Reminder,
    EntityKind.notification: Notification,
    EntityKind.custom_field: CustomField,
    EntityKind.custom_field_value: CustomFieldValue,
}

KIND_BY_MODEL: dict[type, EntityKind] = {
    model: kind for kind, model in MODEL_BY_KIND.items()
}


@dataclass(frozen=True)
class EntityRef:
    kind: EntityKind
    id: uuid.UUID

    @classmethod
    def of(cls, entity) -> "EntityRef":
        return cls(kind_of(entity), entity.id)


def parse_kind(value) -> EntityKind | None:
    if isinstance(value, EntityKind):
        return value
    try:
        return EntityKind(str(value))
    except ValueError:
        return None


def model_for(kind: EntityKind) -> type:
    return MODEL_BY_KIND[kind]


def kind_of(entity) -> EntityKind:
    try:
        return KIND_BY_MODEL[type(entity)]
    except KeyError:
        raise TypeError(f"{type(entity).__name__} is not a registered entity") from None


def load(db: Session, kind: EntityKind, entity_id) -> object | None:
    if entity_id is None:
        return None
    if not isinstance(entity_id, uuid.UUID):
        try:
            entity_id = uuid.UUID(str(entity_id))
        except ValueError:
            return None
    return db.get(MODEL_BY_KIND[kind], entity_id)
