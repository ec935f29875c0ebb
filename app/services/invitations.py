from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta

from fastapi import HTTPException
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.config import settings
from app.models.workspace import (
    Invitation,
    InvitationStatus,
    Team,
    TeamUser,
    User,
    Workspace,
    WorkspaceUser,
)
from app.schemas.workspace import InvitationCreate, InvitationUpdate
from app.services import audit
from app.services.common import (
    apply_pagination,
    coerce_uuid,
    ensure_utc,
    flush_or_conflict,
    get_or_404,
    utcnow,
)
from app.services.event import EventType, publish_event
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


def _new_token(db: Session) -> str:
    while True:
        token = secrets.token_urlsafe(48)
        taken = db.scalars(
            select(Invitation.id).where(Invitation.token == token)
        ).first()
        if taken is None:
            return token


def is_expired(invitation: Invitation, now: datetime | None = None) -> bool:
    now = ensure_utc(now) if now is not None else utcnow()
    return ensure_utc(invitation.expires_at) <= now


def can_be_accepted(invitation: Invitation, now: datetime | None = None) -> bool:
    return invitation.status == InvitationStatus.pending and not is_expired(
        invitation, now
    )


def _ensure_open(invitation: Invitation) -> None:
    if invitation.status != InvitationStatus.pending:
        raise HTTPException(status_code=400, detail="Invitation is no longer pending")
    if is_expired(invitation):
        raise HTTPException(status_code=400, detail="Invitation has expired")


def _ensure_invitee(invitation: Invitation, email: str | None) -> None:
    if not email or email.lower() != invitation.email.lower():
        raise HTTPException(
            status_code=403,
            detail="Invitation was sent to a different email address",
        )


class Invitations(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: InvitationCreate, inviter_id) -> Invitation:
        workspace = get_or_404(db, Workspace, payload.workspace_id, "Workspace")
        if payload.team_id is not None:
            team = get_or_404(db, Team, payload.team_id, "Team")
            if team.workspace_id != workspace.id:
                raise HTTPException(
                    status_code=400, detail="Team belongs to a different workspace"
                )
        now = utcnow()
        if payload.expires_at is not None:
            expires_at = ensure_utc(payload.expires_at)
            if expires_at <= now:
                raise HTTPException(
                    status_code=400, detail="expires_at must be in the future"
                )
        else:
            expires_at = now + timedelta(days=settings.invitation_ttl_days)

        member = db.scalars(
            select(WorkspaceUser.id)
            .join(User, User.id == WorkspaceUser.user_id)
            .where(WorkspaceUser.workspace_id == workspace.id)
            .where(User.email == payload.email)
        ).first()
        if member is not None:
            raise HTTPException(
                status_code=409, detail="User is already a member of this workspace"
            )
        pending = db.scalars(
            select(Invitation.id)
            .where(Invitation.workspace_id == workspace.id)
            .where(Invitation.email == payload.email)
            .where(Invitation.status == InvitationStatus.pending)
        ).first()
        if pending is not None:
            raise HTTPException(
                status_code=409,
                detail="A pending invitation already exists for this email address",
            )

        data = payload.model_dump(exclude={"expires_at"})
        invitation = Invitation(
            **data,
            invited_by_id=coerce_uuid(inviter_id),
            token=_new_token(db),
            expires_at=expires_at,
        )
        db.add(invitation)
        flush_or_conflict(db, "Invitation already exists")
        db.refresh(invitation)
        audit.log_activity(
            db,
            inviter_id,
            "invitation.created",
            invitation,
            properties={"email": invitation.email, "role": invitation.role.value},
        )
        logger.info(
            "Invited %s to workspace %s", invitation.email, invitation.workspace_id
        )
        publish_event(
            EventType.invitation_created,
            "invitation",
            invitation.id,
            actor_id=inviter_id,
            workspace_id=invitation.workspace_id,
            payload={"email": invitation.email, "role": invitation.role.value},
        )
        return invitation

    @staticmethod
    def get(db: Session, invitation_id: str) -> Invitation:
        return get_or_404(db, Invitation, invitation_id, "Invitation")

    @staticmethod
    def get_by_token(db: Session, token: str) -> Invitation:
        invitation = db.scalars(
            select(Invitation).where(Invitation.token == token)
        ).first()
        if invitation is None:
            raise HTTPException(status_code=404, detail="Invitation not found")
        return invitation

    @staticmethod
    def list(
        db: Session,
        workspace_id: str,
        status: str | None,
        limit: int,
        offset: int,
    ) -> list[Invitation]:
        stmt = select(Invitation).where(
            Invitation.workspace_id == coerce_uuid(workspace_id)
        )
        if status is not None:
            try:
                stmt = stmt.where(Invitation.status == InvitationStatus(status))
            except ValueError as exc:
                raise HTTPException(
                    status_code=400, detail="Invalid invitation status"
                ) from exc
        stmt = stmt.order_by(Invitation.created_at.desc())
        return db.scalars(apply_pagination(stmt, limit, offset)).all()

    @staticmethod
    def update(
        db: Session, invitation_id: str, payload: InvitationUpdate
    ) -> Invitation:
        invitation = get_or_404(db, Invitation, invitation_id, "Invitation")
        if invitation.status != InvitationStatus.pending:
            raise HTTPException(
                status_code=400, detail="Only pending invitations can be changed"
            )
        data = payload.model_dump(exclude_unset=True)
        if data.get("expires_at") is not None:
            data["expires_at"] = ensure_utc(data["expires_at"])
            if data["expires_at"] <= utcnow():
                raise HTTPException(
                    status_code=400, detail="expires_at must be in the future"
                )
        for key, value in data.items():
            if value is not None:
                setattr(invitation, key, value)
        db.flush()
        db.refresh(invitation)
        logger.info("Updated invitation %s", invitation.id)
        return invitation

    @staticmethod
    def delete(db: Session, invitation_id: str) -> None:
        invitation = get_or_404(db, Invitation, invitation_id, "Invitation")
        db.delete(invitation)
        db.flush()
        logger.info("Deleted invitation %s", invitation_id)

    @staticmethod
    def resend(db: Session, invitation_id: str) -> Invitation:
        """Issue a fresh token and push the expiry out again."""
        invitation = get_or_404(db, Invitation, invitation_id, "Invitation")
        if invitation.status != InvitationStatus.pending:
            raise HTTPException(
                status_code=400, detail="Only pending invitations can be resent"
            )
        invitation.token = _new_token(db)
        invitation.expires_at = utcnow() + timedelta(days=settings.invitation_ttl_days)
        db.flush()
        logger.info("Resent invitation %s", invitation.id)
        return invitation

    @staticmethod
    def accept(db: Session, token: str, user_id, email: str | None) -> WorkspaceUser:
        """Turn the invitation into a workspace membership for ``user_id``.

        A team named on the invitation is joined as well. The invitation is
        marked accepted in the same flush, so a second accept fails.
        """
        invitation = Invitations.get_by_token(db, token)
        _ensure_open(invitation)
        _ensure_invitee(invitation, email)
        user_id = coerce_uuid(user_id)
        existing = db.scalars(
            select(WorkspaceUser.id)
            .where(WorkspaceUser.workspace_id == invitation.workspace_id)
            .where(WorkspaceUser.user_id == user_id)
        ).first()
        if existing is not None:
            raise HTTPException(
                status_code=409, detail="User is already a member of this workspace"
            )
        membership = WorkspaceUser(
            workspace_id=invitation.workspace_id, user_id=user_id, role=invitation.role
        )
        db.add(membership)
        if invitation.team_id is not None:
            in_team = db.scalars(
                select(TeamUser.id)
                .where(TeamUser.team_id == invitation.team_id)
                .where(TeamUser.user_id == user_id)
            ).first()
            if in_team is None:
                db.add(TeamUser(team_id=invitation.team_id, user_id=user_id))
        invitation.status = InvitationStatus.accepted
        invitation.accepted_at = utcnow()
        flush_or_conflict(db, "User is already a member of this workspace")
        db.refresh(membership)
        audit.log_activity(
            db,
            user_id,
            "invitation.accepted",
            invitation,
            properties={"role": invitation.role.value},
        )
        logger.info(
            "User %s joined workspace %s by invitation",
            user_id,
            invitation.workspace_id,
        )
        publish_event(
            EventType.invitation_accepted,
            "invitation",
            invitation.id,
            actor_id=user_id,
            workspace_id=invitation.workspace_id,
            payload={"user_id": str(user_id), "role": invitation.role.value},
        )
        return membership

    @staticmethod
    def decline(db: Session, token: str, email: str | None) -> Invitation:
        invitation = Invitations.get_by_token(db, token)
        if invitation.status != InvitationStatus.pending:
            raise HTTPException(
                status_code=400, detail="Invitation is no longer pending"
            )
        _ensure_invitee(invitation, email)
        invitation.status = InvitationStatus.declined
        db.flush()
        logger.info("Invitation %s declined", invitation.id)
        return invitation

    @staticmethod
    def expire_stale(db: Session, now: datetime | None = None) -> int:
        now = ensure_utc(now) if now is not None else utcnow()
        result = db.execute(
            update(Invitation)
            .where(Invitation.status == InvitationStatus.pending)
            .where(Invitation.expires_at <= now)
            .values(status=InvitationStatus.expired)
            .execution_options(synchronize_session="fetch")
        )
        db.flush()
        if result.rowcount:
            logger.info("Expired %d stale invitations", result.rowcount)
        return result.rowcount


invitations = Invitations()
