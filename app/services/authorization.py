"""Authorization evaluator.

Every entity kind has a ``Policy``: deny ``guards`` checked first, then an
ordered list of allow ``rules`` per action. The first rule that matches
allows the action; when none matches the answer is no. ``can`` never
raises and never writes; ``authorize`` is the HTTP-facing wrapper.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from fastapi import HTTPException

from app.config import settings
from app.models.billing import InvoiceStatus
from app.models.common import EntityKind, Role
from app.models.messaging import MessageType
from app.models.webhook import WebhookDeliveryStatus
from app.models.workspace import InvitationStatus
from app.services.actor import ActorContext
from app.services.entity_kinds import kind_of
from app.services.permissions import ADMIN_ROLES, Permission

logger = logging.getLogger(__name__)

Rule = Callable[[ActorContext, Any], bool]

PROTECTED_SETTING_KEYS = frozenset(
    {
        "app.name",
        "app.version",
        "system.maintenance_mode",
        "security.encryption_key",
    }
)


class Action(enum.Enum):
    view = "view"
    create = "create"
    update = "update"
    delete = "delete"
    restore = "restore"
    force_delete = "force_delete"
    view_sensitive = "view_sensitive"
    view_value = "view_value"
    view_secret = "view_secret"
    view_response = "view_response"
    retry = "retry"
    toggle_internal = "toggle_internal"
    add_users = "add_users"
    remove_users = "remove_users"
    update_user_role = "update_user_role"
    send_message = "send_message"
    update_participation = "update_participation"
    accept = "accept"
    decline = "decline"
    resend = "resend"
    view_token = "view_token"


@dataclass(frozen=True)
class Policy:
    rules: Mapping[Action, tuple[Rule, ...]]
    guards: Mapping[Action, tuple[Rule, ...]] = field(default_factory=dict)

    def allows(self, actor: ActorContext, action: Action, entity) -> bool:
        for guard in self.guards.get(action, ()):
            if guard(actor, entity):
                return False
        for rule in self.rules.get(action, ()):
            if rule(actor, entity):
                return True
        return False


# ---------------------------------------------------------------------------
# Rule building blocks
# ---------------------------------------------------------------------------


def all_of(*rules: Rule) -> Rule:
    return lambda actor, entity: all(rule(actor, entity) for rule in rules)


def is_self(attr: str) -> Rule:
    return lambda actor, entity: getattr(entity, attr, None) == actor.user_id


def is_global_admin(actor: ActorContext, entity) -> bool:
    return actor.is_admin


def workspace_member(actor: ActorContext, entity) -> bool:
    return actor.is_member(entity.workspace_id)


def workspace_admin(actor: ActorContext, entity) -> bool:
    return actor.is_workspace_admin(entity.workspace_id)


def workspace_owner(actor: ActorContext, entity) -> bool:
    return actor.workspace_role(entity.workspace_id) == Role.owner


def has_permission(permission: Permission) -> Rule:
    return lambda actor, entity: actor.has(
        permission, getattr(entity, "workspace_id", None)
    )


def _attr_is(attr: str, value) -> Rule:
    return lambda actor, entity: getattr(entity, attr) == value


# ---------------------------------------------------------------------------
# Tenancy
# ---------------------------------------------------------------------------


def _workspace_id_member(actor, workspace) -> bool:
    return actor.is_member(workspace.id)


def _workspace_id_admin(actor, workspace) -> bool:
    return actor.is_workspace_admin(workspace.id)


def _workspace_id_owner(actor, workspace) -> bool:
    return actor.workspace_role(workspace.id) == Role.owner


_workspace_manage = (is_self("owner_id"), _workspace_id_admin)

WORKSPACE_POLICY = Policy(
    rules={
        Action.view: (is_self("owner_id"), _workspace_id_member),
        Action.update: _workspace_manage,
        Action.delete: (is_self("owner_id"), _workspace_id_owner),
        Action.add_users: _workspace_manage,
        Action.remove_users: _workspace_manage,
        Action.update_user_role: _workspace_manage,
    }
)


def _team_manager(actor, team) -> bool:
    return actor.team_role(team.id) in ADMIN_ROLES


def _team_owner(actor, team) -> bool:
    return actor.team_role(team.id) == Role.owner


TEAM_POLICY = Policy(
    rules={
        Action.view: (workspace_member,),
        Action.update: (_team_manager, workspace_admin),
        Action.delete: (_team_owner, workspace_owner),
        Action.add_users: (_team_manager, workspace_admin),
        Action.remove_users: (_team_manager, workspace_admin),
    }
)

USER_POLICY = Policy(
    rules={
        Action.view: (is_self("id"), is_global_admin),
        Action.update: (is_self("id"), is_global_admin),
        Action.delete: (is_global_admin,),
    }
)


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------


def _project_member(actor, project) -> bool:
    return actor.project_role(project.id) is not None


def _project_team_member(actor, project) -> bool:
    return actor.team_role(project.team_id) is not None


def _project_manager(actor, project) -> bool:
    return actor.project_role(project.id) in (Role.manager, Role.owner, Role.admin)


PROJECT_POLICY = Policy(
    rules={
        Action.view: (
            is_self("owner_id"),
            _project_member,
            workspace_admin,
            _project_team_member,
        ),
        Action.update: (is_self("owner_id"), _project_manager, workspace_admin),
        Action.delete: (is_self("owner_id"), workspace_admin),
        Action.add_users: (is_self("owner_id"), _project_manager, workspace_admin),
        Action.remove_users: (is_self("owner_id"), _project_manager, workspace_admin),
    }
)

STATUS_POLICY = Policy(
    rules={
        Action.view: (workspace_member,),
        Action.update: (workspace_admin,),
        Action.delete: (workspace_admin,),
    },
    guards={Action.delete: (_attr_is("is_default", True),)},
)


def _pipeline_project_access(actor, pipeline) -> bool:
    return actor.can_access_project(pipeline.project_id)


PIPELINE_POLICY = Policy(
    rules={
        Action.view: (all_of(workspace_member, _pipeline_project_access),),
        Action.update: (all_of(workspace_admin, _pipeline_project_access),),
        Action.delete: (all_of(workspace_admin, _pipeline_project_access),),
    },
    guards={Action.delete: (_attr_is("is_default", True),)},
)

TASK_POLICY = Policy(
    rules={
        Action.view: (workspace_member,),
        Action.update: (
            all_of(workspace_member, is_self("assignee_id")),
            all_of(workspace_member, is_self("reporter_id")),
            all_of(workspace_member, has_permission(Permission.tasks_edit)),
        ),
        Action.delete: (
            all_of(workspace_member, is_self("reporter_id")),
            all_of(workspace_member, has_permission(Permission.tasks_delete)),
        ),
    }
)

TAG_POLICY = Policy(
    rules={
        Action.view: (workspace_member,),
        Action.update: (workspace_member,),
        Action.delete: (workspace_member,),
    }
)


def _goal_team_member(actor, goal) -> bool:
    return actor.team_role(goal.team_id) is not None


def _goal_team_lead(actor, goal) -> bool:
    return actor.team_role(goal.team_id) == Role.lead


GOAL_POLICY = Policy(
    rules={
        Action.view: (is_self("owner_id"), workspace_member, _goal_team_member),
        Action.update: (is_self("owner_id"), workspace_admin, _goal_team_lead),
        Action.delete: (is_self("owner_id"), workspace_admin),
        Action.restore: (is_self("owner_id"), workspace_admin),
        Action.force_delete: (workspace_admin,),
    }
)


def _task_access(actor, recurring) -> bool:
    task = recurring.task
    if task is None:
        return False
    if actor.user_id in (task.reporter_id, task.assignee_id):
        return True
    return task.project_id is not None and actor.can_access_project(task.project_id)


def _global_permission(permission: Permission) -> Rule:
    return lambda actor, entity: actor.has(permission)


RECURRING_TASK_POLICY = Policy(
    rules={
        Action.view: (
            _task_access,
            _global_permission(Permission.recurring_tasks_view_all),
            is_global_admin,
        ),
        Action.update: (
            _task_access,
            _global_permission(Permission.recurring_tasks_update_all),
            is_global_admin,
        ),
        Action.delete: (
            _task_access,
            _global_permission(Permission.recurring_tasks_delete_all),
            is_global_admin,
        ),
    }
)

TIME_LOG_POLICY = Policy(
    rules={
        Action.view: (
            is_self("user_id"),
            _global_permission(Permission.time_logs_view_all),
            is_global_admin,
        ),
        Action.update: (
            is_self("user_id"),
            _global_permission(Permission.time_logs_update_all),
            is_global_admin,
        ),
        Action.delete: (
            is_self("user_id"),
            _global_permission(Permission.time_logs_delete_all),
            is_global_admin,
        ),
    }
)


# ---------------------------------------------------------------------------
# Knowledge & collaboration
# ---------------------------------------------------------------------------


def _collaborator_role(actor, wiki) -> str | None:
    collaborators = (wiki.metadata_ or {}).get("collaborators") or []
    for collaborator in collaborators:
        if str(collaborator.get("user_id")) == str(actor.user_id):
            return collaborator.get("role")
    return None


def _wiki_collaborator(actor, wiki) -> bool:
    return _collaborator_role(actor, wiki) is not None


def _wiki_editor(actor, wiki) -> bool:
    return _collaborator_role(actor, wiki) in ("editor", "collaborator")


def _wiki_public(actor, wiki) -> bool:
    if not wiki.is_published:
        return False
    workspace = wiki.workspace
    return bool(workspace is not None and workspace.is_public)


WIKI_POLICY = Policy(
    rules={
        Action.view: (workspace_member, _wiki_collaborator, _wiki_public),
        Action.update: (is_self("created_by_id"), workspace_admin, _wiki_editor),
        Action.delete: (is_self("created_by_id"), workspace_admin),
    }
)


def _revision_wiki_viewable(actor, revision) -> bool:
    return revision.wiki is not None and WIKI_POLICY.allows(
        actor, Action.view, revision.wiki
    )


WIKI_REVISION_POLICY = Policy(
    rules={Action.view: (_revision_wiki_viewable,)},
)


def _hidden_internal(actor, comment) -> bool:
    return bool(comment.is_internal) and not actor.has(
        Permission.comments_view_internal, comment.workspace_id
    )


def _comment_scope(actor, comment) -> bool:
    return comment.workspace_id is None or actor.is_member(comment.workspace_id)


COMMENT_POLICY = Policy(
    rules={
        Action.view: (is_self("user_id"), _comment_scope),
        Action.update: (is_self("user_id"), has_permission(Permission.comments_edit)),
        Action.delete: (
            is_self("user_id"),
            has_permission(Permission.comments_delete),
        ),
        Action.toggle_internal: (has_permission(Permission.comments_manage),),
    },
    guards={Action.view: (_hidden_internal,)},
)

ATTACHMENT_POLICY = Policy(
    rules={
        action: (is_self("user_id"),)
        for action in (
            Action.view,
            Action.update,
            Action.delete,
            Action.restore,
            Action.force_delete,
        )
    }
)

MENTION_POLICY = Policy(
    rules={
        Action.view: (is_self("user_id"), is_self("mentioned_by_id")),
        Action.update: (is_self("user_id"),),
        Action.delete: (is_self("user_id"), is_self("mentioned_by_id")),
    }
)


def _authenticated(actor, entity) -> bool:
    return actor.user_id is not None


REACTION_POLICY = Policy(
    rules={
        Action.view: (_authenticated,),
        Action.update: (is_self("user_id"),),
        Action.delete: (
            is_self("user_id"),
            is_global_admin,
            _global_permission(Permission.reactions_manage),
        ),
    }
)


# ---------------------------------------------------------------------------
# Messaging & calendar
# ---------------------------------------------------------------------------


def _conversation_member(actor, conversation) -> bool:
    return actor.conversation_role(conversation.id) is not None


def _conversation_manager(actor, conversation) -> bool:
    return actor.conversation_role(conversation.id) in ADMIN_ROLES


def _conversation_owner(actor, conversation) -> bool:
    return actor.conversation_role(conversation.id) == Role.owner


CONVERSATION_POLICY = Policy(
    rules={
        Action.view: (_conversation_member,),
        Action.send_message: (_conversation_member,),
        Action.update: (_conversation_manager,),
        Action.add_users: (_conversation_manager,),
        Action.remove_users: (_conversation_manager,),
        Action.delete: (_conversation_owner,),
        Action.update_user_role: (_conversation_owner,),
    }
)


def _message_in_member_conversation(actor, message) -> bool:
    return actor.conversation_role(message.conversation_id) is not None


def _message_conversation_manager(actor, message) -> bool:
    return actor.conversation_role(message.conversation_id) in ADMIN_ROLES


MESSAGE_POLICY = Policy(
    rules={
        Action.view: (_message_in_member_conversation,),
        Action.update: (is_self("user_id"),),
        Action.delete: (is_self("user_id"), _message_conversation_manager),
    },
    guards={Action.update: (_attr_is("type", MessageType.system),)},
)


def _event_participant(actor, event) -> bool:
    return event.id in actor.event_ids


EVENT_POLICY = Policy(
    rules={
        Action.view: (is_self("created_by_id"), _event_participant),
        Action.update: (is_self("created_by_id"),),
        Action.delete: (is_self("created_by_id"),),
        Action.update_participation: (_event_participant,),
    }
)


def _event_creator(actor, participant) -> bool:
    event = participant.event
    return event is not None and event.created_by_id == actor.user_id


def _fellow_participant(actor, participant) -> bool:
    return participant.event_id in actor.event_ids


EVENT_PARTICIPANT_POLICY = Policy(
    rules={
        Action.view: (is_self("user_id"), _event_creator, _fellow_participant),
        Action.update: (_event_creator, is_self("user_id")),
        Action.delete: (_event_creator, is_self("user_id")),
    }
)


# ---------------------------------------------------------------------------
# Audit trail, settings & billing
# ---------------------------------------------------------------------------


ACTIVITY_LOG_POLICY = Policy(
    rules={
        Action.view: (
            has_permission(Permission.activity_logs_view),
            has_permission(Permission.activity_logs_manage),
        ),
        Action.update: (has_permission(Permission.activity_logs_manage),),
        Action.delete: (has_permission(Permission.activity_logs_manage),),
        Action.view_sensitive: (
            is_global_admin,
            has_permission(Permission.activity_logs_view_sensitive),
        ),
    }
)

AUDIT_LOG_POLICY = Policy(
    rules={
        Action.view: (
            is_global_admin,
            has_permission(Permission.audit_logs_view),
            has_permission(Permission.audit_logs_manage),
        ),
        Action.delete: (is_global_admin, has_permission(Permission.audit_logs_manage)),
        Action.view_sensitive: (
            is_global_admin,
            has_permission(Permission.audit_logs_view_sensitive),
        ),
    }
)


def _setting_scope(actor, setting) -> bool:
    """Global settings need ``manage_global``; workspace ones need membership."""
    if setting.workspace_id is None:
        return actor.has(Permission.settings_manage_global)
    return actor.is_member(setting.workspace_id)


def _setting_access(permission: Permission) -> tuple[Rule, ...]:
    return (
        is_global_admin,
        all_of(has_permission(permission), _setting_scope),
    )


def _protected_setting(actor, setting) -> bool:
    return setting.key in PROTECTED_SETTING_KEYS


SETTING_POLICY = Policy(
    rules={
        Action.view: _setting_access(Permission.settings_view),
        Action.update: _setting_access(Permission.settings_update),
        Action.delete: _setting_access(Permission.settings_delete),
        Action.view_value: _setting_access(Permission.settings_view_values),
    },
    guards={Action.delete: (_protected_setting,)},
)

USER_PREFERENCE_POLICY = Policy(
    rules={
        Action.view: (is_self("user_id"), is_global_admin),
        Action.update: (is_self("user_id"), is_global_admin),
        Action.delete: (is_self("user_id"), is_global_admin),
    }
)


def _is_paid(actor, invoice) -> bool:
    return invoice.status == InvoiceStatus.paid


def _invoice_access(permission: Permission) -> tuple[Rule, ...]:
    return (all_of(has_permission(permission), workspace_member),)


INVOICE_POLICY = Policy(
    rules={
        Action.view: _invoice_access(Permission.invoices_view),
        Action.update: _invoice_access(Permission.invoices_update),
        Action.delete: _invoice_access(Permission.invoices_delete),
        Action.restore: (has_permission(Permission.invoices_restore),),
        Action.force_delete: (has_permission(Permission.invoices_force_delete),),
    },
    guards={
        Action.update: (_is_paid,),
        Action.delete: (_is_paid,),
    },
)


def _backup_scope(permission: Permission) -> Rule:
    def rule(actor, backup) -> bool:
        if backup.workspace_id is None:
            return False
        return actor.is_member(backup.workspace_id) and actor.has(
            permission, backup.workspace_id
        )

    return rule


BACKUP_POLICY = Policy(
    rules={
        Action.view: (is_global_admin, _backup_scope(Permission.backups_view)),
        Action.update: (is_global_admin, _backup_scope(Permission.backups_manage)),
        Action.delete: (is_global_admin, _backup_scope(Permission.backups_manage)),
    }
)


# ---------------------------------------------------------------------------
# Webhooks
# ---------------------------------------------------------------------------


def _webhook_member(actor, webhook) -> bool:
    if webhook.workspace_id is None:
        return actor.is_admin
    return actor.is_member(webhook.workspace_id)


def _webhook_admin(actor, webhook) -> bool:
    if webhook.workspace_id is None:
        return actor.is_admin
    return actor.is_workspace_admin(webhook.workspace_id)


WEBHOOK_POLICY = Policy(
    rules={
        Action.view: (_webhook_member,),
        Action.update: (_webhook_admin,),
        Action.delete: (_webhook_admin,),
        Action.view_secret: (_webhook_admin,),
    }
)


def _delivery_webhook_access(actor, delivery) -> bool:
    webhook = delivery.webhook
    if webhook is None:
        return False
    if actor.is_admin or webhook.workspace_id is None:
        return True
    return actor.is_member(webhook.workspace_id)


def _delivery_permission(permission: Permission) -> Rule:
    def rule(actor, delivery) -> bool:
        webhook = delivery.webhook
        workspace_id = webhook.workspace_id if webhook is not None else None
        return actor.has(permission, workspace_id)

    return rule


def _delivery_rule(permission: Permission) -> tuple[Rule, ...]:
    return (all_of(_delivery_permission(permission), _delivery_webhook_access),)


def _not_failed(actor, delivery) -> bool:
    return delivery.status != WebhookDeliveryStatus.failed


WEBHOOK_DELIVERY_POLICY = Policy(
    rules={
        Action.view: _delivery_rule(Permission.webhook_deliveries_view),
        Action.update: _delivery_rule(Permission.webhook_deliveries_update),
        Action.delete: _delivery_rule(Permission.webhook_deliveries_delete),
        Action.retry: _delivery_rule(Permission.webhook_deliveries_retry),
        Action.view_response: _delivery_rule(
            Permission.webhook_deliveries_view_response
        ),
    },
    guards={Action.retry: (_not_failed,)},
)


# ---------------------------------------------------------------------------
# Invitations, reminders, notifications & custom fields
# ---------------------------------------------------------------------------


def _is_invitee(actor, invitation) -> bool:
    return bool(actor.email) and actor.email.lower() == invitation.email.lower()


def _invitation_pending(actor, invitation) -> bool:
    return invitation.status == InvitationStatus.pending


def _invitation_closed(actor, invitation) -> bool:
    return invitation.status != InvitationStatus.pending


_invitation_manage = (is_self("invited_by_id"), workspace_admin)

INVITATION_POLICY = Policy(
    rules={
        Action.view: (*_invitation_manage, _is_invitee),
        Action.update: _invitation_manage,
        Action.delete: _invitation_manage,
        Action.accept: (all_of(_is_invitee, _invitation_pending),),
        Action.decline: (all_of(_is_invitee, _invitation_pending),),
        Action.resend: _invitation_manage,
        Action.view_token: _invitation_manage,
    },
    guards={Action.resend: (_invitation_closed,)},
)


def _owned_by_actor(
    view: Permission, update: Permission, delete: Permission
) -> Mapping[Action, tuple[Rule, ...]]:
    return {
        Action.view: (is_self("user_id"), is_global_admin, _global_permission(view)),
        Action.update: (
            is_self("user_id"),
            is_global_admin,
            _global_permission(update),
        ),
        Action.delete: (
            is_self("user_id"),
            is_global_admin,
            _global_permission(delete),
        ),
        Action.restore: (is_global_admin,),
        Action.force_delete: (is_global_admin,),
    }


REMINDER_POLICY = Policy(
    rules=_owned_by_actor(
        Permission.reminders_view_all,
        Permission.reminders_update_all,
        Permission.reminders_delete_all,
    )
)

NOTIFICATION_POLICY = Policy(
    rules=_owned_by_actor(
        Permission.notifications_view_all,
        Permission.notifications_manage,
        Permission.notifications_manage,
    )
)

CUSTOM_FIELD_POLICY = Policy(
    rules={
        Action.view: (workspace_member, is_global_admin),
        Action.update: (
            all_of(workspace_member, has_permission(Permission.custom_fields_manage)),
            is_global_admin,
        ),
        Action.delete: (
            all_of(workspace_member, has_permission(Permission.custom_fields_manage)),
            is_global_admin,
        ),
    }
)


def _field_workspace(rule: Rule) -> Rule:
    def check(actor, value) -> bool:
        field_ = value.custom_field
        return field_ is not None and rule(actor, field_)

    return check


_value_edit = (
    _field_workspace(
        all_of(workspace_member, has_permission(Permission.custom_field_values_edit))
    ),
    is_global_admin,
)

CUSTOM_FIELD_VALUE_POLICY = Policy(
    rules={
        Action.view: (_field_workspace(workspace_member), is_global_admin),
        Action.update: _value_edit,
        Action.delete: _value_edit,
    }
)


POLICIES: dict[EntityKind, Policy] = {
    EntityKind.user: USER_POLICY,
    EntityKind.workspace: WORKSPACE_POLICY,
    EntityKind.team: TEAM_POLICY,
    EntityKind.project: PROJECT_POLICY,
    EntityKind.status: STATUS_POLICY,
    EntityKind.pipeline: PIPELINE_POLICY,
    EntityKind.task: TASK_POLICY,
    EntityKind.tag: TAG_POLICY,
    EntityKind.goal: GOAL_POLICY,
    EntityKind.recurring_task: RECURRING_TASK_POLICY,
    EntityKind.time_log: TIME_LOG_POLICY,
    EntityKind.wiki: WIKI_POLICY,
    EntityKind.wiki_revision: WIKI_REVISION_POLICY,
    EntityKind.comment: COMMENT_POLICY,
    EntityKind.attachment: ATTACHMENT_POLICY,
    EntityKind.mention: MENTION_POLICY,
    EntityKind.reaction: REACTION_POLICY,
    EntityKind.conversation: CONVERSATION_POLICY,
    EntityKind.message: MESSAGE_POLICY,
    EntityKind.event: EVENT_POLICY,
    EntityKind.event_participant: EVENT_PARTICIPANT_POLICY,
    EntityKind.activity_log: ACTIVITY_LOG_POLICY,
    EntityKind.audit_log: AUDIT_LOG_POLICY,
    EntityKind.setting: SETTING_POLICY,
    EntityKind.user_preference: USER_PREFERENCE_POLICY,
    EntityKind.invoice: INVOICE_POLICY,
    EntityKind.backup: BACKUP_POLICY,
    EntityKind.webhook: WEBHOOK_POLICY,
    EntityKind.webhook_delivery: WEBHOOK_DELIVERY_POLICY,
    EntityKind.invitation: INVITATION_POLICY,
    EntityKind.reminder: REMINDER_POLICY,
    EntityKind.notification: NOTIFICATION_POLICY,
    EntityKind.custom_field: CUSTOM_FIELD_POLICY,
    EntityKind.custom_field_value: CUSTOM_FIELD_VALUE_POLICY,
}


def _as_action(action) -> Action | None:
    if isinstance(action, Action):
        return action
    try:
        return Action(str(action))
    except ValueError:
        return None


def can(actor: ActorContext | None, action, entity) -> bool:
    if actor is None or entity is None:
        return False
    resolved = _as_action(action)
    if resolved is None:
        return False
    policy = POLICIES.get(kind_of(entity))
    if policy is None:
        return False
    return policy.allows(actor, resolved, entity)


def can_create(actor: ActorContext | None, kind: EntityKind, workspace_id=None) -> bool:
    """Creation rights depend on the target scope, not on an existing entity."""
    if actor is None:
        return False
    if kind == EntityKind.workspace:
        return True
    if kind in (
        EntityKind.user_preference,
        EntityKind.reaction,
        EntityKind.mention,
        EntityKind.reminder,
    ):
        return True
    if kind == EntityKind.notification:
        return actor.is_admin
    if kind == EntityKind.invitation:
        return actor.is_workspace_admin(workspace_id)
    if kind == EntityKind.custom_field:
        return actor.is_member(workspace_id) and actor.has(
            Permission.custom_fields_manage, workspace_id
        )
    if kind == EntityKind.custom_field_value:
        return actor.is_admin or (
            actor.is_member(workspace_id)
            and actor.has(Permission.custom_field_values_edit, workspace_id)
        )
    if kind == EntityKind.setting:
        if workspace_id is None:
            return actor.is_admin or actor.has(Permission.settings_manage_global)
        return actor.is_admin or (
            actor.is_member(workspace_id)
            and actor.has(Permission.settings_create, workspace_id)
        )
    if kind == EntityKind.invoice:
        return actor.is_member(workspace_id) and actor.has(
            Permission.invoices_create, workspace_id
        )
    if kind in (
        EntityKind.status,
        EntityKind.pipeline,
        EntityKind.team,
        EntityKind.webhook,
    ):
        if workspace_id is None:
            return actor.is_admin
        return actor.is_workspace_admin(workspace_id)
    if kind in (EntityKind.activity_log, EntityKind.audit_log, EntityKind.backup):
        return actor.is_admin
    role = actor.workspace_role(workspace_id)
    if role is None or role == Role.viewer:
        return False
    if kind == EntityKind.project:
        return actor.has(Permission.projects_create, workspace_id)
    return True


def can_retry_delivery(delivery) -> bool:
    return (
        delivery.status == WebhookDeliveryStatus.failed
        and (delivery.attempts or 0) < settings.webhook_max_attempts
    )


def authorize(actor: ActorContext | None, action, entity) -> None:
    if not can(actor, action, entity):
        logger.info(
            "Denied %s on %s %s for %s",
            action,
            kind_of(entity).value,
            getattr(entity, "id", None),
            getattr(actor, "user_id", None),
        )
        raise HTTPException(status_code=403, detail="Forbidden")


def authorize_create(
    actor: ActorContext | None, kind: EntityKind, workspace_id=None
) -> None:
    if not can_create(actor, kind, workspace_id):
        raise HTTPException(status_code=403, detail="Forbidden")
