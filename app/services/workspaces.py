import logging

from fastapi import HTTPException
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.models.common import EntityKind, Role
from app.models.workspace import Team, TeamUser, User, Workspace, WorkspaceUser
from app.schemas.workspace import (
    WorkspaceCreate,
    WorkspaceMemberCreate,
    WorkspaceMemberUpdate,
    WorkspaceUpdate,
)
from app.services import audit
from app.services.common import (
    apply_ordering,
    apply_pagination,
    coerce_uuid,
    flush_or_conflict,
    get_or_404,
)
from app.services.event import EventType, publish_event
from app.services.hierarchy import prepare_for_insert, slugify, unique_slug
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)

_AUDITED = ("name", "slug", "is_public")


class Workspaces(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: WorkspaceCreate, owner_id) -> Workspace:
        data = prepare_for_insert(EntityKind.workspace, payload.model_dump())
        data["slug"] = unique_slug(db, Workspace, slugify(data["slug"] or ""))
        workspace = Workspace(owner_id=coerce_uuid(owner_id), **data)
        db.add(workspace)
        db.flush()
        db.add(
            WorkspaceUser(
                workspace_id=workspace.id, user_id=workspace.owner_id, role=Role.owner
            )
        )
        db.flush()
        db.refresh(workspace)
        audit.log_activity(
            db, owner_id, "workspace.created", workspace, workspace_id=workspace.id
        )
        logger.info("Created workspace %s", workspace.id)
        publish_event(
            EventType.workspace_created,
            "workspace",
            workspace.id,
            actor_id=owner_id,
            workspace_id=workspace.id,
        )
        return workspace

    @staticmethod
    def get(db: Session, workspace_id: str) -> Workspace:
        return get_or_404(db, Workspace, workspace_id, "Workspace")

    @staticmethod
    def list(
        db: Session,
        user_id,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[Workspace]:
        stmt = (
            select(Workspace)
            .join(WorkspaceUser, WorkspaceUser.workspace_id == Workspace.id)
            .where(WorkspaceUser.user_id == coerce_uuid(user_id))
        )
        stmt = apply_ordering(
            stmt,
            order_by,
            order_dir,
            {"name": Workspace.name, "created_at": Workspace.created_at},
        )
        return db.scalars(apply_pagination(stmt, limit, offset)).all()

    @staticmethod
    def update(
        db: Session, workspace_id: str, payload: WorkspaceUpdate, actor_id=None
    ) -> Workspace:
        workspace = get_or_404(db, Workspace, workspace_id, "Workspace")
        before = audit.snapshot(workspace, _AUDITED)
        data = payload.model_dump(exclude_unset=True)
        if data.get("slug"):
            data["slug"] = unique_slug(
                db, Workspace, slugify(data["slug"]), exclude_id=workspace.id
            )
        for key, value in data.items():
            setattr(workspace, key, value)
        db.flush()
        db.refresh(workspace)
        audit.record_update(db, actor_id, workspace, before)
        logger.info("Updated workspace %s", workspace.id)
        publish_event(
            EventType.workspace_updated,
            "workspace",
            workspace.id,
            actor_id=actor_id,
            workspace_id=workspace.id,
        )
        return workspace

    @staticmethod
    def delete(db: Session, workspace_id: str, actor_id=None) -> None:
        workspace = get_or_404(db, Workspace, workspace_id, "Workspace")
        entity_id = workspace.id
        db.delete(workspace)
        db.flush()
        logger.info("Deleted workspace %s", entity_id)
        publish_event(
            EventType.workspace_deleted,
            "workspace",
            entity_id,
            actor_id=actor_id,
            workspace_id=entity_id,
        )


class WorkspaceMembers(ListResponseMixin):
    @staticmethod
    def add(
        db: Session, workspace_id: str, payload: WorkspaceMemberCreate, actor_id=None
    ) -> WorkspaceUser:
        workspace = get_or_404(db, Workspace, workspace_id, "Workspace")
        get_or_404(db, User, payload.user_id, "User")
        if payload.role == Role.owner:
            raise HTTPException(
                status_code=400, detail="A workspace has exactly one owner"
            )
        membership = WorkspaceUser(
            workspace_id=workspace.id, user_id=payload.user_id, role=payload.role
        )
        db.add(membership)
        flush_or_conflict(db, "User is already a member of this workspace")
        db.refresh(membership)
        audit.log_activity(
            db,
            actor_id,
            "workspace.member_added",
            workspace,
            properties={"user_id": str(payload.user_id), "role": payload.role.value},
            workspace_id=workspace.id,
        )
        logger.info("Added user %s to workspace %s", payload.user_id, workspace.id)
        publish_event(
            EventType.workspace_member_added,
            "workspace",
            workspace.id,
            actor_id=actor_id,
            workspace_id=workspace.id,
            payload={"user_id": str(payload.user_id)},
        )
        return membership

    @staticmethod
    def _membership(db: Session, workspace_id, user_id) -> WorkspaceUser:
        membership = db.scalars(
            select(WorkspaceUser)
            .where(WorkspaceUser.workspace_id == coerce_uuid(workspace_id))
            .where(WorkspaceUser.user_id == coerce_uuid(user_id))
        ).first()
        if not membership:
            raise HTTPException(status_code=404, detail="Workspace member not found")
        return membership

    @staticmethod
    def list(
        db: Session,
        workspace_id: str,
        role: str | None,
        limit: int,
        offset: int,
    ) -> list[WorkspaceUser]:
        stmt = select(WorkspaceUser).where(
            WorkspaceUser.workspace_id == coerce_uuid(workspace_id)
        )
        if role is not None:
            stmt = stmt.where(WorkspaceUser.role == Role(role))
        stmt = stmt.order_by(WorkspaceUser.joined_at.asc())
        return db.scalars(apply_pagination(stmt, limit, offset)).all()

    @staticmethod
    def update_role(
        db: Session, workspace_id: str, user_id: str, payload: WorkspaceMemberUpdate
    ) -> WorkspaceUser:
        membership = WorkspaceMembers._membership(db, workspace_id, user_id)
        if membership.role == Role.owner or payload.role == Role.owner:
            raise HTTPException(
                status_code=400, detail="Ownership cannot be changed here"
            )
        membership.role = payload.role
        db.flush()
        logger.info(
            "Updated role of user %s in workspace %s to %s",
            membership.user_id,
            membership.workspace_id,
            payload.role.value,
        )
        return membership

    @staticmethod
    def remove(db: Session, workspace_id: str, user_id: str, actor_id=None) -> None:
        membership = WorkspaceMembers._membership(db, workspace_id, user_id)
        if membership.role == Role.owner:
            raise HTTPException(
                status_code=400, detail="The workspace owner cannot be removed"
            )
        db.delete(membership)
        db.flush()
        logger.info(
            "Removed user %s from workspace %s",
            membership.user_id,
            membership.workspace_id,
        )
        publish_event(
            EventType.workspace_member_removed,
            "workspace",
            membership.workspace_id,
            actor_id=actor_id,
            workspace_id=membership.workspace_id,
            payload={"user_id": str(membership.user_id)},
        )

    @staticmethod
    def leave(db: Session, workspace_id: str, user_id) -> None:
        """Self-removal; the owner has to hand the workspace over first."""
        membership = WorkspaceMembers._membership(db, workspace_id, user_id)
        if membership.role == Role.owner:
            raise HTTPException(
                status_code=400, detail="The workspace owner cannot leave"
            )
        workspace_id = membership.workspace_id
        db.delete(membership)
        db.execute(
            delete(TeamUser)
            .where(TeamUser.user_id == membership.user_id)
            .where(
                TeamUser.team_id.in_(
                    select(Team.id).where(Team.workspace_id == workspace_id)
                )
            )
            .execution_options(synchronize_session="fetch")
        )
        db.flush()
        audit.log_activity(
            db,
            user_id,
            "workspace.member_left",
            db.get(Workspace, workspace_id),
            workspace_id=workspace_id,
        )
        logger.info("User %s left workspace %s", user_id, workspace_id)
        publish_event(
            EventType.workspace_member_left,
            "workspace",
            workspace_id,
            actor_id=user_id,
            workspace_id=workspace_id,
            payload={"user_id": str(user_id)},
        )


workspaces = Workspaces()
workspace_members = WorkspaceMembers()
