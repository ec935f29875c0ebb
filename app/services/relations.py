"""Relationship resolver.

Each entity kind declares the relations a caller may request by name.
``resolve`` loads the entity and only the requested relations; anything
not requested stays ``NOT_LOADED`` so the presenter can tell "not asked
for" apart from "loaded but empty".
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Iterable, Union

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.common import EntityKind
from app.models.content import Attachment, Comment, Reaction
from app.models.engagement import CustomFieldValue, Reminder
from app.models.messaging import ConversationUser, EventParticipant
from app.models.planning import (
    GoalTask,
    PipelineStatus,
    ProjectUser,
    TaskDependency,
    TaskPipeline,
    TaskTag,
)
from app.models.workspace import TeamUser, WorkspaceUser
from app.services.entity_kinds import kind_of, load, model_for

logger = logging.getLogger(__name__)


class _NotLoaded:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NOT_LOADED"

    def __bool__(self) -> bool:
        return False


NOT_LOADED = _NotLoaded()


class HierarchyCycleError(Exception):
    def __init__(self, kind: EntityKind, entity_id):
        super().__init__(f"Cycle detected in {kind.value} hierarchy at {entity_id}")
        self.kind = kind
        self.entity_id = entity_id


# ---------------------------------------------------------------------------
# Relation specs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Direct:
    """Many-to-one through a foreign key column on the entity."""

    kind: EntityKind
    fk: str


@dataclass(frozen=True)
class Children:
    """One-to-many rows of ``kind`` pointing back via ``fk``."""

    kind: EntityKind
    fk: str
    order_by: str | None = None


@dataclass(frozen=True)
class Pivot:
    """Many-to-many through a join model carrying extra columns."""

    kind: EntityKind
    through: type
    left_fk: str
    right_fk: str
    extra: tuple[str, ...] = ()
    order_by: str | None = None


@dataclass(frozen=True)
class Morph:
    """Polymorphic ``(kind, id)`` target stored on the entity."""

    type_attr: str
    id_attr: str


@dataclass(frozen=True)
class MorphMany:
    """Rows of ``model`` whose polymorphic columns point at the entity."""

    model: type
    type_attr: str
    id_attr: str
    order_by: str | None = "created_at"


RelationSpec = Union[Direct, Children, Pivot, Morph, MorphMany]


@dataclass(frozen=True)
class Linked:
    entity: Any
    pivot: dict


@dataclass
class Resolved:
    kind: EntityKind
    entity: Any
    relations: dict[str, Any] = field(default_factory=dict)

    def get(self, name: str):
        return self.relations.get(name, NOT_LOADED)


@dataclass(frozen=True)
class NotFound:
    kind: EntityKind
    id: Any


_COMMENTS = MorphMany(Comment, "commentable_type", "commentable_id")
_ATTACHMENTS = MorphMany(Attachment, "attachable_type", "attachable_id")
_REACTIONS = MorphMany(Reaction, "reactable_type", "reactable_id")
_REMINDERS = MorphMany(Reminder, "remindable_type", "remindable_id", "remind_at")
_FIELD_VALUES = MorphMany(CustomFieldValue, "entity_type", "entity_id")

RELATIONS: dict[EntityKind, dict[str, RelationSpec]] = {
    EntityKind.user: {
        "workspaces": Pivot(
            EntityKind.workspace,
            WorkspaceUser,
            "user_id",
            "workspace_id",
            ("role", "joined_at"),
        ),
        "teams": Pivot(
            EntityKind.team, TeamUser, "user_id", "team_id", ("role", "joined_at")
        ),
        "notifications": Children(EntityKind.notification, "user_id", "-created_at"),
        "reminders": Children(EntityKind.reminder, "user_id", "remind_at"),
    },
    EntityKind.workspace: {
        "owner": Direct(EntityKind.user, "owner_id"),
        "users": Pivot(
            EntityKind.user,
            WorkspaceUser,
            "workspace_id",
            "user_id",
            ("role", "joined_at"),
            order_by="joined_at",
        ),
        "teams": Children(EntityKind.team, "workspace_id", "name"),
        "projects": Children(EntityKind.project, "workspace_id", "name"),
        "invitations": Children(EntityKind.invitation, "workspace_id", "-created_at"),
        "custom_fields": Children(EntityKind.custom_field, "workspace_id", "order"),
    },
    EntityKind.team: {
        "workspace": Direct(EntityKind.workspace, "workspace_id"),
        "users": Pivot(
            EntityKind.user,
            TeamUser,
            "team_id",
            "user_id",
            ("role", "joined_at"),
            order_by="joined_at",
        ),
    },
    EntityKind.project: {
        "workspace": Direct(EntityKind.workspace, "workspace_id"),
        "team": Direct(EntityKind.team, "team_id"),
        "owner": Direct(EntityKind.user, "owner_id"),
        "users": Pivot(
            EntityKind.user, ProjectUser, "project_id", "user_id", ("role",)
        ),
        "pipelines": Children(EntityKind.pipeline, "project_id", "name"),
        "tasks": Children(EntityKind.task, "project_id", "order"),
        "custom_field_values": _FIELD_VALUES,
    },
    EntityKind.status: {
        "workspace": Direct(EntityKind.workspace, "workspace_id"),
    },
    EntityKind.pipeline: {
        "workspace": Direct(EntityKind.workspace, "workspace_id"),
        "project": Direct(EntityKind.project, "project_id"),
        "statuses": Pivot(
            EntityKind.status,
            PipelineStatus,
            "pipeline_id",
            "status_id",
            ("order",),
            order_by="order",
        ),
    },
    EntityKind.task: {
        "workspace": Direct(EntityKind.workspace, "workspace_id"),
        "project": Direct(EntityKind.project, "project_id"),
        "status": Direct(EntityKind.status, "status_id"),
        "assignee": Direct(EntityKind.user, "assignee_id"),
        "reporter": Direct(EntityKind.user, "reporter_id"),
        "parent": Direct(EntityKind.task, "parent_id"),
        "children": Children(EntityKind.task, "parent_id", "order"),
        "pipelines": Pivot(
            EntityKind.pipeline,
            TaskPipeline,
            "task_id",
            "pipeline_id",
            ("status_id", "order"),
            order_by="order",
        ),
        "dependencies": Pivot(
            EntityKind.task, TaskDependency, "task_id", "depends_on_id", ("type",)
        ),
        "dependents": Pivot(
            EntityKind.task, TaskDependency, "depends_on_id", "task_id", ("type",)
        ),
        "tags": Pivot(EntityKind.tag, TaskTag, "task_id", "tag_id"),
        "goals": Pivot(
            EntityKind.goal, GoalTask, "task_id", "goal_id", ("created_at",)
        ),
        "time_logs": Children(EntityKind.time_log, "task_id", "started_at"),
        "recurrences": Children(EntityKind.recurring_task, "task_id"),
        "comments": _COMMENTS,
        "attachments": _ATTACHMENTS,
        "reactions": _REACTIONS,
        "reminders": _REMINDERS,
        "custom_field_values": _FIELD_VALUES,
    },
    EntityKind.tag: {
        "workspace": Direct(EntityKind.workspace, "workspace_id"),
        "tasks": Pivot(EntityKind.task, TaskTag, "tag_id", "task_id"),
    },
    EntityKind.goal: {
        "workspace": Direct(EntityKind.workspace, "workspace_id"),
        "team": Direct(EntityKind.team, "team_id"),
        "owner": Direct(EntityKind.user, "owner_id"),
        "tasks": Pivot(
            EntityKind.task,
            GoalTask,
            "goal_id",
            "task_id",
            ("created_at",),
            order_by="created_at",
        ),
        "reminders": _REMINDERS,
        "custom_field_values": _FIELD_VALUES,
    },
    EntityKind.recurring_task: {
        "task": Direct(EntityKind.task, "task_id"),
    },
    EntityKind.time_log: {
        "user": Direct(EntityKind.user, "user_id"),
        "task": Direct(EntityKind.task, "task_id"),
    },
    EntityKind.wiki: {
        "workspace": Direct(EntityKind.workspace, "workspace_id"),
        "created_by": Direct(EntityKind.user, "created_by_id"),
        "parent": Direct(EntityKind.wiki, "parent_id"),
        "children": Children(EntityKind.wiki, "parent_id", "title"),
        "revisions": Children(EntityKind.wiki_revision, "wiki_id", "-created_at"),
        "comments": _COMMENTS,
        "attachments": _ATTACHMENTS,
    },
    EntityKind.wiki_revision: {
        "wiki": Direct(EntityKind.wiki, "wiki_id"),
        "user": Direct(EntityKind.user, "user_id"),
    },
    EntityKind.comment: {
        "user": Direct(EntityKind.user, "user_id"),
        "parent": Direct(EntityKind.comment, "parent_id"),
        "replies": Children(EntityKind.comment, "parent_id", "created_at"),
        "commentable": Morph("commentable_type", "commentable_id"),
        "attachments": _ATTACHMENTS,
        "reactions": _REACTIONS,
    },
    EntityKind.attachment: {
        "user": Direct(EntityKind.user, "user_id"),
        "attachable": Morph("attachable_type", "attachable_id"),
    },
    EntityKind.mention: {
        "user": Direct(EntityKind.user, "user_id"),
        "mentioned_by": Direct(EntityKind.user, "mentioned_by_id"),
        "mentionable": Morph("mentionable_type", "mentionable_id"),
    },
    EntityKind.reaction: {
        "user": Direct(EntityKind.user, "user_id"),
        "reactable": Morph("reactable_type", "reactable_id"),
    },
    EntityKind.conversation: {
        "workspace": Direct(EntityKind.workspace, "workspace_id"),
        "users": Pivot(
            EntityKind.user,
            ConversationUser,
            "conversation_id",
            "user_id",
            ("role", "joined_at", "last_read_at"),
            order_by="joined_at",
        ),
        "messages": Children(EntityKind.message, "conversation_id", "created_at"),
    },
    EntityKind.message: {
        "conversation": Direct(EntityKind.conversation, "conversation_id"),
        "user": Direct(EntityKind.user, "user_id"),
        "attachments": _ATTACHMENTS,
        "reactions": _REACTIONS,
    },
    EntityKind.event: {
        "workspace": Direct(EntityKind.workspace, "workspace_id"),
        "created_by": Direct(EntityKind.user, "created_by_id"),
        "participants": Pivot(
            EntityKind.user, EventParticipant, "event_id", "user_id", ("status",)
        ),
        "comments": _COMMENTS,
        "reminders": _REMINDERS,
    },
    EntityKind.event_participant: {
        "event": Direct(EntityKind.event, "event_id"),
        "user": Direct(EntityKind.user, "user_id"),
    },
    EntityKind.activity_log: {
        "user": Direct(EntityKind.user, "user_id"),
        "workspace": Direct(EntityKind.workspace, "workspace_id"),
        "subject": Morph("subject_type", "subject_id"),
    },
    EntityKind.audit_log: {
        "user": Direct(EntityKind.user, "user_id"),
        "auditable": Morph("auditable_type", "auditable_id"),
    },
    EntityKind.setting: {
        "workspace": Direct(EntityKind.workspace, "workspace_id"),
    },
    EntityKind.user_preference: {
        "user": Direct(EntityKind.user, "user_id"),
    },
    EntityKind.invoice: {
        "workspace": Direct(EntityKind.workspace, "workspace_id"),
    },
    EntityKind.backup: {
        "workspace": Direct(EntityKind.workspace, "workspace_id"),
    },
    EntityKind.webhook: {
        "workspace": Direct(EntityKind.workspace, "workspace_id"),
        "created_by": Direct(EntityKind.user, "created_by_id"),
        "deliveries": Children(
            EntityKind.webhook_delivery, "webhook_id", "-created_at"
        ),
    },
    EntityKind.webhook_delivery: {
        "webhook": Direct(EntityKind.webhook, "webhook_id"),
    },
    EntityKind.invitation: {
        "workspace": Direct(EntityKind.workspace, "workspace_id"),
        "team": Direct(EntityKind.team, "team_id"),
        "invited_by": Direct(EntityKind.user, "invited_by_id"),
    },
    EntityKind.reminder: {
        "user": Direct(EntityKind.user, "user_id"),
        "remindable": Morph("remindable_type", "remindable_id"),
    },
    EntityKind.notification: {
        "user": Direct(EntityKind.user, "user_id"),
        "notifiable": Morph("notifiable_type", "notifiable_id"),
    },
    EntityKind.custom_field: {
        "workspace": Direct(EntityKind.workspace, "workspace_id"),
        "values": Children(EntityKind.custom_field_value, "custom_field_id"),
    },
    EntityKind.custom_field_value: {
        "custom_field": Direct(EntityKind.custom_field, "custom_field_id"),
        "entity": Morph("entity_type", "entity_id"),
    },
}


def relation_spec(kind: EntityKind, name: str) -> RelationSpec | None:
    return RELATIONS.get(kind, {}).get(name)


def parse_relations(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def _ordered(stmt, model, order_by: str | None):
    if not order_by:
        return stmt
    descending = order_by.startswith("-")
    column = getattr(model, order_by.lstrip("-"))
    return stmt.order_by(column.desc() if descending else column.asc())


def _load_relation(db: Session, kind: EntityKind, entity, spec: RelationSpec):
    if isinstance(spec, Direct):
        return load(db, spec.kind, getattr(entity, spec.fk))

    if isinstance(spec, Children):
        model = model_for(spec.kind)
        stmt = select(model).where(getattr(model, spec.fk) == entity.id)
        return list(db.scalars(_ordered(stmt, model, spec.order_by)).all())

    if isinstance(spec, Pivot):
        model = model_for(spec.kind)
        through = spec.through
        stmt = (
            select(model, through)
            .join(through, getattr(through, spec.right_fk) == model.id)
            .where(getattr(through, spec.left_fk) == entity.id)
        )
        stmt = _ordered(stmt, through, spec.order_by)
        return [
            Linked(target, {col: getattr(row, col) for col in spec.extra})
            for target, row in db.execute(stmt).all()
        ]

    if isinstance(spec, Morph):
        target_kind = getattr(entity, spec.type_attr)
        if target_kind is None:
            return None
        return load(db, target_kind, getattr(entity, spec.id_attr))

    if isinstance(spec, MorphMany):
        model = spec.model
        stmt = select(model).where(
            getattr(model, spec.type_attr) == kind,
            getattr(model, spec.id_attr) == entity.id,
        )
        return list(db.scalars(_ordered(stmt, model, spec.order_by)).all())

    raise TypeError(f"Unsupported relation spec {spec!r}")


def load_relations(
    db: Session, entity, relations: Iterable[str]
) -> dict[str, Any]:
    kind = kind_of(entity)
    loaded: dict[str, Any] = {}
    for name in relations:
        spec = relation_spec(kind, name)
        if spec is None:
            logger.debug("Ignoring unknown relation %s on %s", name, kind.value)
            continue
        if name in loaded:
            continue
        loaded[name] = _load_relation(db, kind, entity, spec)
    return loaded


def resolve(
    db: Session, kind: EntityKind, entity_id, relations: Iterable[str] = ()
) -> Resolved | NotFound:
    entity = load(db, kind, entity_id)
    if entity is None:
        return NotFound(kind, entity_id)
    return Resolved(kind, entity, load_relations(db, entity, relations))


# ---------------------------------------------------------------------------
# Self-referential hierarchies
# ---------------------------------------------------------------------------


def is_root(entity) -> bool:
    return getattr(entity, "parent_id", None) is None


def ancestors(entity) -> list:
    """Parents of ``entity`` ordered from the root down to its direct parent."""
    chain = []
    seen = {entity.id}
    parent = entity.parent
    while parent is not None:
        if parent.id in seen:
            raise HierarchyCycleError(kind_of(entity), parent.id)
        seen.add(parent.id)
        chain.append(parent)
        parent = parent.parent
    chain.reverse()
    return chain


def _label(entity) -> str:
    for attr in ("title", "name", "content"):
        value = getattr(entity, attr, None)
        if value:
            return str(value)
    return f"#{entity.id}"


def full_path(entity, separator: str = " > ") -> str:
    return separator.join(_label(node) for node in [*ancestors(entity), entity])


def descendant_ids(db: Session, model, entity_id: uuid.UUID) -> set[uuid.UUID]:
    found: set[uuid.UUID] = set()
    frontier = {entity_id}
    while frontier:
        children = set(
            db.scalars(select(model.id).where(model.parent_id.in_(frontier))).all()
        )
        # a pre-existing cycle would otherwise spin forever
        children -= found | {entity_id}
        found |= children
        frontier = children
    return found
