from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_user_auth
from app.models.common import EntityKind
from app.schemas.common import ListResponse
from app.schemas.content import CommentCreate, CommentUpdate
from app.services.actor import ActorContext
from app.services.authorization import Action, authorize, authorize_create
from app.services.comments import comments
from app.services.entity_kinds import load
from app.services.permissions import Permission
from app.services.presenters import present

router = APIRouter(prefix="/comments", tags=["comments"])


def _viewable_target(db: Session, actor: ActorContext, kind: EntityKind, entity_id):
    target = load(db, kind, entity_id)
    if target is None:
        raise HTTPException(status_code=404, detail="Commented entity not found")
    authorize(actor, Action.view, target)
    return target


@router.post("", status_code=status.HTTP_201_CREATED)
def create_comment(
    payload: CommentCreate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    target = _viewable_target(
        db, actor, payload.commentable_type, payload.commentable_id
    )
    workspace_id = getattr(target, "workspace_id", None)
    if workspace_id is not None:
        authorize_create(actor, EntityKind.comment, workspace_id)
    if payload.is_internal and not actor.has(Permission.comments_manage, workspace_id):
        raise HTTPException(status_code=403, detail="Forbidden")
    return present(comments.create(db, payload, actor.user_id), actor=actor)


@router.get("", response_model=ListResponse[dict])
def list_comments(
    commentable_type: EntityKind,
    commentable_id: str,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    target = _viewable_target(db, actor, commentable_type, commentable_id)
    include_internal = actor.has(
        Permission.comments_view_internal, getattr(target, "workspace_id", None)
    )
    response = comments.list_response(
        db, commentable_type, commentable_id, include_internal, limit, offset
    )
    response["items"] = [present(item, actor=actor) for item in response["items"]]
    return response


@router.get("/{comment_id}")
def get_comment(
    comment_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    comment = comments.get(db, comment_id)
    authorize(actor, Action.view, comment)
    return present(comment, actor=actor)


@router.patch("/{comment_id}")
def update_comment(
    comment_id: str,
    payload: CommentUpdate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    comment = comments.get(db, comment_id)
    authorize(actor, Action.update, comment)
    if payload.is_internal is not None and payload.is_internal != comment.is_internal:
        authorize(actor, Action.toggle_internal, comment)
    return present(comments.update(db, comment_id, payload), actor=actor)


@router.delete("/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_comment(
    comment_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> None:
    authorize(actor, Action.delete, comments.get(db, comment_id))
    comments.delete(db, comment_id, actor.user_id)
