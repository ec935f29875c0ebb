from app.models.common import EntityKind, Role  # noqa: F401
from app.models.workspace import (  # noqa: F401
    ApiToken,
    Invitation,
    InvitationStatus,
    Team,
    TeamUser,
    User,
    Workspace,
    WorkspaceUser,
)
from app.models.planning import (  # noqa: F401
    DependencyType,
    Frequency,
    Goal,
    GoalStatus,
    GoalTask,
    Pipeline,
    PipelineStatus,
    Priority,
    Project,
    ProjectStatus,
    ProjectUser,
    RecurringTask,
    Status,
    StatusType,
    Tag,
    Task,
    TaskDependency,
    TaskPipeline,
    TaskTag,
    TaskType,
    TimeLog,
)
from app.models.content import (  # noqa: F401
    Attachment,
    Comment,
    Mention,
    Reaction,
    ReactionType,
    Wiki,
    WikiRevision,
)
from app.models.messaging import (  # noqa: F401
    Conversation,
    ConversationType,
    ConversationUser,
    Event,
    EventParticipant,
    EventType,
    Message,
    MessageType,
    ParticipationStatus,
)
from app.models.audit import (  # noqa: F401
    ActivityLog,
    AuditLog,
    Setting,
    SettingType,
    UserPreference,
)
from app.models.billing import (  # noqa: F401
    Backup,
    BackupStatus,
    BackupType,
    Invoice,
    InvoiceStatus,
)
from app.models.webhook import (  # noqa: F401
    Webhook,
    WebhookDelivery,
    WebhookDeliveryStatus,
)
from app.models.engagement import (  # noqa: F401
    CustomField,
    CustomFieldType,
    CustomFieldValue,
    Notification,
    Reminder,
    ReminderType,
)
