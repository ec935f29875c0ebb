from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_user_auth
from app.models.common import EntityKind
from app.schemas.common import ListResponse
from app.schemas.engagement import NotificationCreate
from app.services.actor import ActorContext
from app.services.authorization import Action, authorize, authorize_create
from app.services.notifications import notifications
from app.services.presenters import present

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.post("", status_code=status.HTTP_201_CREATED)
def create_notification(
    payload: NotificationCreate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    authorize_create(actor, EntityKind.notification)
    return present(notifications.create(db, payload), actor=actor)


@router.get("", response_model=ListResponse[dict])
def list_notifications(
    unread: bool = False,
    limit: int = Query(default=25, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    response = notifications.list_response(db, actor.user_id, unread, limit, offset)
    response["items"] = [present(item, actor=actor) for item in response["items"]]
    return response


@router.get("/unread-count")
def unread_count(
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    return {"count": notifications.unread_count(db, actor.user_id)}


@router.post("/read-all")
def mark_all_read(
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    return {"updated": notifications.mark_all_read(db, actor.user_id)}


@router.get("/{notification_id}")
def get_notification(
    notification_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    notification = notifications.get(db, notification_id)
    authorize(actor, Action.view, notification)
    return present(notification, actor=actor)


@router.post("/{notification_id}/read")
def mark_read(
    notification_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    authorize(actor, Action.update, notifications.get(db, notification_id))
    return present(notifications.mark_read(db, notification_id), actor=actor)


@router.post("/{notification_id}/unread")
def mark_unread(
    notification_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    authorize(actor, Action.update, notifications.get(db, notification_id))
    return present(notifications.mark_unread(db, notification_id), actor=actor)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notification(
    notification_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> None:
    authorize(actor, Action.delete, notifications.get(db, notification_id))
    notifications.delete(db, notification_id)
