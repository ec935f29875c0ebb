import uuid

import pytest
from fastapi import HTTPException

from app.models.audit import Setting
from app.models.billing import Invoice, InvoiceStatus
from app.models.common import EntityKind, Role
from app.models.content import Comment
from app.models.engagement import (
    CustomField,
    CustomFieldValue,
    Notification,
    Reminder,
)
from app.models.messaging import Message, MessageType
from app.models.planning import Goal, Pipeline, Status, Task
from app.models.webhook import Webhook, WebhookDelivery, WebhookDeliveryStatus
from app.models.workspace import Invitation, InvitationStatus
from app.services.actor import ActorContext
from app.services.authorization import (
    Action,
    authorize,
    authorize_create,
    can,
    can_create,
    can_retry_delivery,
)

WORKSPACE_ID = uuid.uuid4()


def _actor(role: Role | None = None, **kwargs) -> ActorContext:
    roles = {WORKSPACE_ID: role} if role is not None else {}
    return ActorContext(user_id=uuid.uuid4(), workspace_roles=roles, **kwargs)


class TestCanBasics:
    def test_no_actor_is_denied(self) -> None:
        assert not can(None, Action.view, Task(workspace_id=WORKSPACE_ID))

    def test_unknown_action_is_denied(self) -> None:
        actor = _actor(Role.owner)
        assert not can(actor, "fly", Task(workspace_id=WORKSPACE_ID))

    def test_action_by_name(self) -> None:
        actor = _actor(Role.member)
        assert can(actor, "view", Task(workspace_id=WORKSPACE_ID))

    def test_repeated_calls_agree(self) -> None:
        actor = _actor(Role.contributor)
        task = Task(workspace_id=WORKSPACE_ID, reporter_id=uuid.uuid4())
        results = {can(actor, action, task) for action in [Action.update] * 5}
        assert results == {True}
        assert {can(actor, Action.delete, task) for _ in range(5)} == {False}

    def test_authorize_raises_403(self) -> None:
        with pytest.raises(HTTPException) as exc:
            authorize(_actor(), Action.view, Task(workspace_id=WORKSPACE_ID))
        assert exc.value.status_code == 403


class TestTaskPolicy:
    def test_reporter_can_update_and_delete(self) -> None:
        actor = _actor(Role.member)
        task = Task(workspace_id=WORKSPACE_ID, reporter_id=actor.user_id)
        assert can(actor, Action.update, task)
        assert can(actor, Action.delete, task)

    def test_member_cannot_edit_foreign_task(self) -> None:
        task = Task(workspace_id=WORKSPACE_ID, reporter_id=uuid.uuid4())
        assert not can(_actor(Role.member), Action.update, task)
        assert can(_actor(Role.contributor), Action.update, task)
        assert not can(_actor(Role.contributor), Action.delete, task)
        assert can(_actor(Role.manager), Action.delete, task)

    def test_outsider_reporter_is_denied(self) -> None:
        actor = _actor()
        task = Task(workspace_id=WORKSPACE_ID, reporter_id=actor.user_id)
        assert not can(actor, Action.update, task)


class TestGoalPolicy:
    def test_owner_can_manage(self) -> None:
        actor = _actor(Role.viewer)
        goal = Goal(workspace_id=WORKSPACE_ID, owner_id=actor.user_id)
        assert can(actor, Action.update, goal)
        assert can(actor, Action.delete, goal)
        assert not can(actor, Action.force_delete, goal)

    def test_viewer_reads_only(self) -> None:
        goal = Goal(workspace_id=WORKSPACE_ID, owner_id=uuid.uuid4())
        actor = _actor(Role.viewer)
        assert can(actor, Action.view, goal)
        assert not can(actor, Action.update, goal)

    def test_team_lead_can_update(self) -> None:
        team_id = uuid.uuid4()
        actor = _actor(team_roles={team_id: Role.lead})
        goal = Goal(workspace_id=WORKSPACE_ID, owner_id=uuid.uuid4(), team_id=team_id)
        assert can(actor, Action.view, goal)
        assert can(actor, Action.update, goal)
        assert not can(actor, Action.delete, goal)


class TestDenyGuards:
    def test_paid_invoice_is_locked(self) -> None:
        actor = _actor(Role.owner)
        invoice = Invoice(workspace_id=WORKSPACE_ID, status=InvoiceStatus.paid)
        assert can(actor, Action.view, invoice)
        assert not can(actor, Action.update, invoice)
        assert not can(actor, Action.delete, invoice)

        invoice.status = InvoiceStatus.open
        assert can(actor, Action.update, invoice)

    def test_default_status_cannot_be_deleted(self) -> None:
        actor = _actor(Role.admin)
        status = Status(workspace_id=WORKSPACE_ID, is_default=True)
        assert can(actor, Action.update, status)
        assert not can(actor, Action.delete, status)
        status.is_default = False
        assert can(actor, Action.delete, status)

    def test_default_pipeline_cannot_be_deleted(self) -> None:
        actor = _actor(Role.admin)
        pipeline = Pipeline(workspace_id=WORKSPACE_ID, is_default=True)
        assert not can(actor, Action.delete, pipeline)

    def test_protected_setting_survives_global_admin(self) -> None:
        admin = ActorContext(user_id=uuid.uuid4(), global_role=Role.admin)
        assert not can(admin, Action.delete, Setting(key="app.name"))
        assert can(admin, Action.delete, Setting(key="ui.theme"))

    def test_system_message_cannot_be_edited(self) -> None:
        actor = _actor()
        message = Message(
            conversation_id=uuid.uuid4(),
            user_id=actor.user_id,
            type=MessageType.system,
        )
        assert not can(actor, Action.update, message)
        message.type = MessageType.user
        assert can(actor, Action.update, message)

    def test_only_failed_deliveries_retry(self) -> None:
        actor = _actor(Role.owner)
        delivery = WebhookDelivery(
            status=WebhookDeliveryStatus.failed,
            attempts=1,
            webhook=Webhook(workspace_id=WORKSPACE_ID),
        )
        assert can(actor, Action.retry, delivery)
        assert can_retry_delivery(delivery)

        delivery.status = WebhookDeliveryStatus.delivered
        assert not can(actor, Action.retry, delivery)
        assert not can_retry_delivery(delivery)

    def test_exhausted_delivery_is_not_retryable(self) -> None:
        delivery = WebhookDelivery(status=WebhookDeliveryStatus.failed, attempts=5)
        assert not can_retry_delivery(delivery)


class TestInternalComments:
    def _comment(self, **kwargs) -> Comment:
        return Comment(
            workspace_id=WORKSPACE_ID,
            user_id=uuid.uuid4(),
            commentable_type=EntityKind.task,
            is_internal=True,
            **kwargs,
        )

    def test_hidden_from_members(self) -> None:
        assert not can(_actor(Role.member), Action.view, self._comment())

    def test_visible_to_leads(self) -> None:
        assert can(_actor(Role.lead), Action.view, self._comment())

    def test_public_comment_visible_to_members(self) -> None:
        comment = self._comment()
        comment.is_internal = False
        assert can(_actor(Role.member), Action.view, comment)

    def test_toggle_needs_manage(self) -> None:
        comment = self._comment()
        assert not can(_actor(Role.lead), Action.toggle_internal, comment)
        assert can(_actor(Role.manager), Action.toggle_internal, comment)


class TestCanCreate:
    def test_anyone_creates_workspaces(self) -> None:
        assert can_create(_actor(), EntityKind.workspace)

    def test_viewer_cannot_create_content(self) -> None:
        actor = _actor(Role.viewer)
        assert not can_create(actor, EntityKind.project, WORKSPACE_ID)
        assert not can_create(actor, EntityKind.task, WORKSPACE_ID)

    def test_member_creates_projects_and_tasks(self) -> None:
        actor = _actor(Role.member)
        assert can_create(actor, EntityKind.project, WORKSPACE_ID)
        assert can_create(actor, EntityKind.task, WORKSPACE_ID)

    def test_webhooks_need_workspace_admin(self) -> None:
        assert not can_create(_actor(Role.member), EntityKind.webhook, WORKSPACE_ID)
        assert can_create(_actor(Role.admin), EntityKind.webhook, WORKSPACE_ID)
        assert not can_create(_actor(Role.admin), EntityKind.webhook)

    def test_outsider_is_denied(self) -> None:
        with pytest.raises(HTTPException) as exc:
            authorize_create(_actor(), EntityKind.task, WORKSPACE_ID)
        assert exc.value.status_code == 403


class TestInvitationPolicy:
    def _invitation(self, **kwargs) -> Invitation:
        kwargs.setdefault("status", InvitationStatus.pending)
        return Invitation(
            workspace_id=WORKSPACE_ID,
            invited_by_id=uuid.uuid4(),
            email="grace@example.com",
            **kwargs,
        )

    def test_invitee_may_accept_while_pending(self) -> None:
        invitee = _actor(email="Grace@Example.com")
        invitation = self._invitation()
        assert can(invitee, Action.view, invitation)
        assert can(invitee, Action.accept, invitation)
        assert not can(invitee, Action.view_token, invitation)
        assert not can(invitee, Action.resend, invitation)
        invitation.status = InvitationStatus.declined
        assert not can(invitee, Action.accept, invitation)
        assert not can(invitee, Action.decline, invitation)

    def test_workspace_admin_manages(self) -> None:
        admin = _actor(Role.admin, email="admin@example.com")
        invitation = self._invitation()
        assert can(admin, Action.resend, invitation)
        assert can(admin, Action.view_token, invitation)
        assert not can(admin, Action.accept, invitation)
        invitation.status = InvitationStatus.accepted
        assert not can(admin, Action.resend, invitation)

    def test_stranger_sees_nothing(self) -> None:
        stranger = _actor(Role.member, email="mallory@example.com")
        assert not can(stranger, Action.view, self._invitation())


class TestOwnedRecordPolicies:
    def test_reminder_belongs_to_its_user(self) -> None:
        actor = _actor()
        mine = Reminder(user_id=actor.user_id)
        theirs = Reminder(user_id=uuid.uuid4())
        assert can(actor, Action.update, mine)
        assert not can(actor, Action.view, theirs)
        admin = _actor(global_role=Role.admin)
        assert can(admin, Action.delete, theirs)

    def test_notification_belongs_to_its_user(self) -> None:
        actor = _actor()
        assert can(actor, Action.delete, Notification(user_id=actor.user_id))
        assert not can(actor, Action.update, Notification(user_id=uuid.uuid4()))


class TestCustomFieldPolicies:
    def test_managers_define_fields(self) -> None:
        field = CustomField(workspace_id=WORKSPACE_ID)
        assert can(_actor(Role.viewer), Action.view, field)
        assert not can(_actor(Role.lead), Action.update, field)
        assert can(_actor(Role.manager), Action.update, field)

    def test_values_follow_field_workspace(self) -> None:
        value = CustomFieldValue(custom_field=CustomField(workspace_id=WORKSPACE_ID))
        assert can(_actor(Role.member), Action.update, value)
        assert not can(_actor(Role.viewer), Action.update, value)
        assert not can(_actor(), Action.view, value)

    def test_create_rules(self) -> None:
        assert can_create(_actor(Role.manager), EntityKind.custom_field, WORKSPACE_ID)
        assert not can_create(
            _actor(Role.member), EntityKind.custom_field, WORKSPACE_ID
        )
        assert can_create(
            _actor(Role.member), EntityKind.custom_field_value, WORKSPACE_ID
        )
        assert not can_create(
            _actor(Role.viewer), EntityKind.custom_field_value, WORKSPACE_ID
        )
        assert can_create(_actor(Role.admin), EntityKind.invitation, WORKSPACE_ID)
        assert not can_create(_actor(Role.manager), EntityKind.invitation, WORKSPACE_ID)
        assert can_create(_actor(), EntityKind.reminder)
        assert not can_create(_actor(Role.owner), EntityKind.notification)
        assert can_create(_actor(global_role=Role.admin), EntityKind.notification)
