from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException
from pydantic import ValidationError
from sqlalchemy import select

from app.models.common import Role
from app.models.workspace import (
    InvitationStatus,
    Team,
    TeamUser,
    WorkspaceUser,
)
from app.schemas.workspace import (
    InvitationCreate,
    InvitationUpdate,
    WorkspaceCreate,
    WorkspaceMemberCreate,
)
from app.services.common import ensure_utc
from app.services.invitations import can_be_accepted, invitations, is_expired
from app.services.workspaces import workspace_members, workspaces
from app.tasks.reminders import expire_invitations


def _invite(db_session, workspace, inviter, email="grace@example.com", **kwargs):
    invitation = invitations.create(
        db_session,
        InvitationCreate(workspace_id=workspace.id, email=email, **kwargs),
        inviter.id,
    )
    db_session.commit()
    return invitation


class TestInvitationCreate:
    def test_defaults(self, db_session, person, workspace) -> None:
        invitation = _invite(db_session, workspace, person, email=" Grace@Example.com")
        assert invitation.email == "grace@example.com"
        assert invitation.role == Role.member
        assert invitation.status == InvitationStatus.pending
        assert invitation.invited_by_id == person.id
        assert len(invitation.token) == 64
        remaining = ensure_utc(invitation.expires_at) - datetime.now(timezone.utc)
        assert timedelta(days=6) < remaining <= timedelta(days=7)

    def test_pending_duplicate_conflicts(self, db_session, person, workspace) -> None:
        _invite(db_session, workspace, person)
        with pytest.raises(HTTPException) as exc:
            _invite(db_session, workspace, person, email="GRACE@example.com")
        assert exc.value.status_code == 409

    def test_existing_member_conflicts(
        self, db_session, person, other_person, workspace
    ) -> None:
        workspace_members.add(
            db_session,
            str(workspace.id),
            WorkspaceMemberCreate(user_id=other_person.id),
            person.id,
        )
        with pytest.raises(HTTPException) as exc:
            _invite(db_session, workspace, person)
        assert exc.value.status_code == 409
        assert exc.value.detail == "User is already a member of this workspace"

    def test_past_expiry_rejected(self, db_session, person, workspace) -> None:
        with pytest.raises(HTTPException) as exc:
            _invite(
                db_session,
                workspace,
                person,
                expires_at=datetime.now(timezone.utc) - timedelta(hours=1),
            )
        assert exc.value.status_code == 400

    def test_team_from_other_workspace_rejected(
        self, db_session, person, workspace
    ) -> None:
        elsewhere = workspaces.create(
            db_session, WorkspaceCreate(name="Elsewhere"), person.id
        )
        team = Team(workspace_id=elsewhere.id, name="Platform")
        db_session.add(team)
        db_session.commit()
        with pytest.raises(HTTPException) as exc:
            _invite(db_session, workspace, person, team_id=team.id)
        assert exc.value.status_code == 400

    def test_owner_role_not_grantable(self, workspace) -> None:
        with pytest.raises(ValidationError):
            InvitationCreate(
                workspace_id=workspace.id, email="grace@example.com", role=Role.owner
            )

    def test_malformed_email_rejected(self, workspace) -> None:
        with pytest.raises(ValidationError):
            InvitationCreate(workspace_id=workspace.id, email="grace@localhost")


class TestInvitationAccept:
    def test_accept_creates_membership(
        self, db_session, person, other_person, workspace
    ) -> None:
        invitation = _invite(db_session, workspace, person, role=Role.lead)
        membership = invitations.accept(
            db_session, invitation.token, other_person.id, "GRACE@example.com"
        )
        db_session.commit()
        assert membership.workspace_id == workspace.id
        assert membership.user_id == other_person.id
        assert membership.role == Role.lead
        db_session.refresh(invitation)
        assert invitation.status == InvitationStatus.accepted
        assert invitation.accepted_at is not None

    def test_accept_joins_team(
        self, db_session, person, other_person, workspace
    ) -> None:
        team = Team(workspace_id=workspace.id, name="Platform")
        db_session.add(team)
        db_session.commit()
        invitation = _invite(db_session, workspace, person, team_id=team.id)
        invitations.accept(
            db_session, invitation.token, other_person.id, other_person.email
        )
        db_session.commit()
        rows = db_session.scalars(
            select(TeamUser.user_id).where(TeamUser.team_id == team.id)
        ).all()
        assert rows == [other_person.id]

    def test_wrong_email_forbidden(
        self, db_session, person, other_person, workspace
    ) -> None:
        invitation = _invite(db_session, workspace, person, email="someone@example.com")
        with pytest.raises(HTTPException) as exc:
            invitations.accept(
                db_session, invitation.token, other_person.id, other_person.email
            )
        assert exc.value.status_code == 403

    def test_expired_invitation_rejected(
        self, db_session, person, other_person, workspace
    ) -> None:
        invitation = _invite(db_session, workspace, person)
        invitation.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
        db_session.commit()
        assert is_expired(invitation)
        assert not can_be_accepted(invitation)
        with pytest.raises(HTTPException) as exc:
            invitations.accept(
                db_session, invitation.token, other_person.id, other_person.email
            )
        assert exc.value.status_code == 400
        assert exc.value.detail == "Invitation has expired"

    def test_second_accept_rejected(
        self, db_session, person, other_person, workspace
    ) -> None:
        invitation = _invite(db_session, workspace, person)
        invitations.accept(
            db_session, invitation.token, other_person.id, other_person.email
        )
        db_session.commit()
        with pytest.raises(HTTPException) as exc:
            invitations.accept(
                db_session, invitation.token, other_person.id, other_person.email
            )
        assert exc.value.status_code == 400
        memberships = db_session.scalars(
            select(WorkspaceUser.id).where(WorkspaceUser.user_id == other_person.id)
        ).all()
        assert len(memberships) == 1

    def test_unknown_token(self, db_session, other_person) -> None:
        with pytest.raises(HTTPException) as exc:
            invitations.accept(db_session, "nope", other_person.id, other_person.email)
        assert exc.value.status_code == 404


class TestInvitationLifecycle:
    def test_decline(self, db_session, person, other_person, workspace) -> None:
        invitation = _invite(db_session, workspace, person)
        invitations.decline(db_session, invitation.token, other_person.email)
        assert invitation.status == InvitationStatus.declined
        with pytest.raises(HTTPException) as exc:
            invitations.accept(
                db_session, invitation.token, other_person.id, other_person.email
            )
        assert exc.value.status_code == 400

    def test_resend_rotates_token(self, db_session, person, workspace) -> None:
        invitation = _invite(db_session, workspace, person)
        old_token = invitation.token
        invitations.resend(db_session, str(invitation.id))
        assert invitation.token != old_token
        with pytest.raises(HTTPException) as exc:
            invitations.get_by_token(db_session, old_token)
        assert exc.value.status_code == 404

    def test_update_only_while_pending(
        self, db_session, person, other_person, workspace
    ) -> None:
        invitation = _invite(db_session, workspace, person)
        updated = invitations.update(
            db_session, str(invitation.id), InvitationUpdate(role=Role.viewer)
        )
        assert updated.role == Role.viewer
        invitations.decline(db_session, invitation.token, other_person.email)
        with pytest.raises(HTTPException) as exc:
            invitations.update(
                db_session, str(invitation.id), InvitationUpdate(role=Role.member)
            )
        assert exc.value.status_code == 400

    def test_expire_stale(self, db_session, person, workspace) -> None:
        stale = _invite(db_session, workspace, person, email="old@example.com")
        fresh = _invite(db_session, workspace, person, email="new@example.com")
        stale.expires_at = datetime.now(timezone.utc) - timedelta(days=1)
        db_session.commit()
        assert invitations.expire_stale(db_session) == 1
        db_session.commit()
        db_session.refresh(stale)
        db_session.refresh(fresh)
        assert stale.status == InvitationStatus.expired
        assert fresh.status == InvitationStatus.pending

    def test_list_filters_status(
        self, db_session, person, other_person, workspace
    ) -> None:
        declined = _invite(db_session, workspace, person)
        _invite(db_session, workspace, person, email="new@example.com")
        invitations.decline(db_session, declined.token, other_person.email)
        pending = invitations.list(db_session, str(workspace.id), "pending", 10, 0)
        assert [item.email for item in pending] == ["new@example.com"]
        with pytest.raises(HTTPException):
            invitations.list(db_session, str(workspace.id), "bogus", 10, 0)

    def test_periodic_expiry(self, db_session, person, workspace) -> None:
        stale = _invite(db_session, workspace, person)
        stale.expires_at = datetime.now(timezone.utc) - timedelta(days=1)
        db_session.commit()
        assert expire_invitations(db_session) == 1
        db_session.refresh(stale)
        assert stale.status == InvitationStatus.expired
