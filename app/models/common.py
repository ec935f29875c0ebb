import enum


class EntityKind(enum.Enum):
    """Discriminator for polymorphic ``(kind, id)`` links.

    Each member maps to exactly one model class through
    ``app.services.entity_kinds``.
    """

    user = "user"
    workspace = "workspace"
    team = "team"
    project = "project"
    status = "status"
    pipeline = "pipeline"
    task = "task"
    tag = "tag"
    goal = "goal"
    recurring_task = "recurring_task"
    time_log = "time_log"
    wiki = "wiki"
    wiki_revision = "wiki_revision"
    comment = "comment"
    attachment = "attachment"
    mention = "mention"
    reaction = "reaction"
    conversation = "conversation"
    message = "message"
    event = "event"
    event_participant = "event_participant"
    activity_log = "activity_log"
    audit_log = "audit_log"
    setting = "setting"
    user_preference = "user_preference"
    invoice = "invoice"
    backup = "backup"
    webhook = "webhook"
    webhook_delivery = "webhook_delivery"
    invitation = "invitation"
    reminder = "reminder"
    notification = "notification"
    custom_field = "custom_field"
    custom_field_value = "custom_field_value"


class Role(enum.Enum):
    owner = "owner"
    admin = "admin"
    manager = "manager"
    contributor = "contributor"
    lead = "lead"
    member = "member"
    viewer = "viewer"
