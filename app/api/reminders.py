from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_user_auth
from app.models.common import EntityKind
from app.schemas.common import ListResponse
from app.schemas.engagement import ReminderCreate, ReminderUpdate
from app.services.actor import ActorContext
from app.services.authorization import Action, authorize, authorize_create
from app.services.entity_kinds import load
from app.services.presenters import present
from app.services.reminders import reminders

router = APIRouter(prefix="/reminders", tags=["reminders"])


@router.post("", status_code=status.HTTP_201_CREATED)
def create_reminder(
    payload: ReminderCreate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    authorize_create(actor, EntityKind.reminder)
    target = load(db, payload.remindable_type, payload.remindable_id)
    if target is not None:
        # reminders are only set on records the actor can see
        authorize(actor, Action.view, target)
    return present(reminders.create(db, payload, actor.user_id), actor=actor)


@router.get("", response_model=ListResponse[dict])
def list_reminders(
    is_sent: bool | None = None,
    limit: int = Query(default=25, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    response = reminders.list_response(db, actor.user_id, is_sent, limit, offset)
    response["items"] = [present(item, actor=actor) for item in response["items"]]
    return response


@router.get("/{reminder_id}")
def get_reminder(
    reminder_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    reminder = reminders.get(db, reminder_id)
    authorize(actor, Action.view, reminder)
    return present(reminder, actor=actor)


@router.patch("/{reminder_id}")
def update_reminder(
    reminder_id: str,
    payload: ReminderUpdate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    authorize(actor, Action.update, reminders.get(db, reminder_id))
    return present(reminders.update(db, reminder_id, payload), actor=actor)


@router.delete("/{reminder_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_reminder(
    reminder_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> None:
    authorize(actor, Action.delete, reminders.get(db, reminder_id))
    reminders.delete(db, reminder_id)
