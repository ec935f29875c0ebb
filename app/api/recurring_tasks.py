from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_user_auth
from app.models.common import EntityKind
from app.schemas.common import ListResponse
from app.schemas.planning import RecurringTaskCreate, RecurringTaskUpdate
from app.services.actor import ActorContext
from app.services.authorization import Action, authorize, authorize_create, can
from app.services.presenters import present
from app.services.recurring_tasks import recurring_tasks
from app.services.tasks import tasks

router = APIRouter(prefix="/recurring-tasks", tags=["recurring-tasks"])


@router.post("", status_code=status.HTTP_201_CREATED)
def create_recurring_task(
    payload: RecurringTaskCreate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    task = tasks.get(db, payload.task_id)
    authorize_create(actor, EntityKind.recurring_task, task.workspace_id)
    authorize(actor, Action.update, task)
    return present(recurring_tasks.create(db, payload), actor=actor)


@router.get("", response_model=ListResponse[dict])
def list_recurring_tasks(
    task_id: str | None = None,
    is_active: bool | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    response = recurring_tasks.list_response(db, task_id, is_active, limit, offset)
    response["items"] = [
        present(item, actor=actor)
        for item in response["items"]
        if can(actor, Action.view, item)
    ]
    response["count"] = len(response["items"])
    return response


@router.get("/{recurring_id}")
def get_recurring_task(
    recurring_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    recurring = recurring_tasks.get(db, recurring_id)
    authorize(actor, Action.view, recurring)
    return present(recurring, actor=actor)


@router.patch("/{recurring_id}")
def update_recurring_task(
    recurring_id: str,
    payload: RecurringTaskUpdate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    authorize(actor, Action.update, recurring_tasks.get(db, recurring_id))
    return present(recurring_tasks.update(db, recurring_id, payload), actor=actor)


@router.delete("/{recurring_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_recurring_task(
    recurring_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> None:
    authorize(actor, Action.delete, recurring_tasks.get(db, recurring_id))
    recurring_tasks.delete(db, recurring_id)
