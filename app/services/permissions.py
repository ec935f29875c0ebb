import enum

from app.models.common import Role


class Permission(enum.Enum):
    projects_create = "projects.create"
    tasks_edit = "tasks.edit"
    tasks_delete = "tasks.delete"
    comments_view_internal = "comments.view_internal"
    comments_edit = "comments.edit"
    comments_delete = "comments.delete"
    comments_manage = "comments.manage"
    reactions_manage = "reactions.manage"
    time_logs_view_all = "time_logs.view_all"
    time_logs_update_all = "time_logs.update_all"
    time_logs_delete_all = "time_logs.delete_all"
    recurring_tasks_view_all = "recurring_tasks.view_all"
    recurring_tasks_update_all = "recurring_tasks.update_all"
    recurring_tasks_delete_all = "recurring_tasks.delete_all"
    invoices_view = "invoices.view"
    invoices_create = "invoices.create"
    invoices_update = "invoices.update"
    invoices_delete = "invoices.delete"
    invoices_restore = "invoices.restore"
    invoices_force_delete = "invoices.force_delete"
    backups_view = "backups.view"
    backups_manage = "backups.manage"
    activity_logs_view = "activity_logs.view"
    activity_logs_manage = "activity_logs.manage"
    activity_logs_view_sensitive = "activity_logs.view_sensitive"
    audit_logs_view = "audit_logs.view"
    audit_logs_manage = "audit_logs.manage"
    audit_logs_view_sensitive = "audit_logs.view_sensitive"
    settings_view = "settings.view"
    settings_create = "settings.create"
    settings_update = "settings.update"
    settings_delete = "settings.delete"
    settings_view_values = "settings.view_values"
    settings_manage_global = "settings.manage_global"
    reminders_view_all = "reminders.view_all"
    reminders_update_all = "reminders.update_all"
    reminders_delete_all = "reminders.delete_all"
    notifications_view_all = "notifications.view_all"
    notifications_manage = "notifications.manage"
    custom_fields_manage = "custom_fields.manage"
    custom_field_values_edit = "custom_field_values.edit"
    webhook_deliveries_view = "webhook_deliveries.view"
    webhook_deliveries_update = "webhook_deliveries.update"
    webhook_deliveries_delete = "webhook_deliveries.delete"
    webhook_deliveries_retry = "webhook_deliveries.retry"
    webhook_deliveries_view_response = "webhook_deliveries.view_response"


_ALL = frozenset(Permission)

_MEMBER = frozenset(
    {
        Permission.projects_create,
        Permission.settings_view,
        Permission.custom_field_values_edit,
    }
)

_CONTRIBUTOR = _MEMBER | {Permission.tasks_edit}

_LEAD = _CONTRIBUTOR | {
    Permission.comments_view_internal,
    Permission.activity_logs_view,
    Permission.recurring_tasks_view_all,
    Permission.time_logs_view_all,
    Permission.reminders_view_all,
}

_MANAGER = _LEAD | {
    Permission.tasks_delete,
    Permission.comments_edit,
    Permission.comments_manage,
    Permission.recurring_tasks_update_all,
    Permission.audit_logs_view,
    Permission.invoices_view,
    Permission.backups_view,
    Permission.webhook_deliveries_view,
    Permission.custom_fields_manage,
}

ROLE_PERMISSIONS: dict[Role, frozenset[Permission]] = {
    Role.owner: _ALL,
    Role.admin: _ALL - {Permission.settings_manage_global},
    Role.manager: frozenset(_MANAGER),
    Role.lead: frozenset(_LEAD),
    Role.contributor: frozenset(_CONTRIBUTOR),
    Role.member: _MEMBER,
    Role.viewer: frozenset({Permission.settings_view}),
}

ADMIN_ROLES = frozenset({Role.owner, Role.admin})


def permissions_for(role: Role | None) -> frozenset[Permission]:
    if role is None:
        return frozenset()
    return ROLE_PERMISSIONS.get(role, frozenset())
