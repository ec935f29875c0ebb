from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_user_auth
from app.models.common import EntityKind
from app.schemas.common import ListResponse
from app.schemas.workspace import (
    WorkspaceCreate,
    WorkspaceMemberCreate,
    WorkspaceMemberUpdate,
    WorkspaceUpdate,
)
from app.services.actor import ActorContext
from app.services.authorization import Action, authorize, authorize_create
from app.services.presenters import present, serialize
from app.services.workspaces import workspace_members, workspaces

router = APIRouter(prefix="/workspaces", tags=["workspaces"])


def _member(membership) -> dict:
    return {
        "workspace_id": serialize(membership.workspace_id),
        "user_id": serialize(membership.user_id),
        "role": serialize(membership.role),
        "joined_at": serialize(membership.joined_at),
    }


@router.post("", status_code=status.HTTP_201_CREATED)
def create_workspace(
    payload: WorkspaceCreate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    authorize_create(actor, EntityKind.workspace)
    return present(workspaces.create(db, payload, actor.user_id), actor=actor)


@router.get("", response_model=ListResponse[dict])
def list_workspaces(
    order_by: str = Query(default="name"),
    order_dir: str = Query(default="asc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    response = workspaces.list_response(
        db, actor.user_id, order_by, order_dir, limit, offset
    )
    response["items"] = [present(item, actor=actor) for item in response["items"]]
    return response


@router.get("/{workspace_id}")
def get_workspace(
    workspace_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    workspace = workspaces.get(db, workspace_id)
    authorize(actor, Action.view, workspace)
    return present(workspace, actor=actor)


@router.patch("/{workspace_id}")
def update_workspace(
    workspace_id: str,
    payload: WorkspaceUpdate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    authorize(actor, Action.update, workspaces.get(db, workspace_id))
    return present(
        workspaces.update(db, workspace_id, payload, actor.user_id), actor=actor
    )


@router.delete("/{workspace_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_workspace(
    workspace_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> None:
    authorize(actor, Action.delete, workspaces.get(db, workspace_id))
    workspaces.delete(db, workspace_id, actor.user_id)


@router.get("/{workspace_id}/members", response_model=ListResponse[dict])
def list_members(
    workspace_id: str,
    role: str | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    authorize(actor, Action.view, workspaces.get(db, workspace_id))
    response = workspace_members.list_response(db, workspace_id, role, limit, offset)
    response["items"] = [_member(item) for item in response["items"]]
    return response


@router.post("/{workspace_id}/members", status_code=status.HTTP_201_CREATED)
def add_member(
    workspace_id: str,
    payload: WorkspaceMemberCreate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    authorize(actor, Action.add_users, workspaces.get(db, workspace_id))
    return _member(workspace_members.add(db, workspace_id, payload, actor.user_id))


@router.patch("/{workspace_id}/members/{user_id}")
def update_member_role(
    workspace_id: str,
    user_id: str,
    payload: WorkspaceMemberUpdate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    authorize(actor, Action.update_user_role, workspaces.get(db, workspace_id))
    return _member(workspace_members.update_role(db, workspace_id, user_id, payload))


@router.delete(
    "/{workspace_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT
)
def remove_member(
    workspace_id: str,
    user_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> None:
    authorize(actor, Action.remove_users, workspaces.get(db, workspace_id))
    workspace_members.remove(db, workspace_id, user_id, actor.user_id)


@router.post("/{workspace_id}/leave", status_code=status.HTTP_204_NO_CONTENT)
def leave_workspace(
    workspace_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> None:
    workspaces.get(db, workspace_id)
    workspace_members.leave(db, workspace_id, actor.user_id)
