from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_user_auth
from app.models.common import EntityKind
from app.schemas.common import ListResponse
from app.schemas.planning import GoalCreate, GoalTaskCreate, GoalUpdate
from app.services.actor import ActorContext
from app.services.authorization import Action, authorize, authorize_create, can
from app.services.goals import goal_tasks, goals
from app.services.presenters import present, serialize

router = APIRouter(prefix="/goals", tags=["goals"])


@router.post("", status_code=status.HTTP_201_CREATED)
def create_goal(
    payload: GoalCreate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    authorize_create(actor, EntityKind.goal, payload.workspace_id)
    return present(goals.create(db, payload, actor.user_id), actor=actor)


@router.get("", response_model=ListResponse[dict])
def list_goals(
    workspace_id: str,
    team_id: str | None = None,
    status: str | None = Query(
        default=None, pattern="^(draft|active|completed|cancelled)$"
    ),
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    response = goals.list_response(
        db, workspace_id, team_id, status, order_by, order_dir, limit, offset
    )
    response["items"] = [
        present(item, actor=actor)
        for item in response["items"]
        if can(actor, Action.view, item)
    ]
    response["count"] = len(response["items"])
    return response


@router.get("/{goal_id}")
def get_goal(
    goal_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    goal = goals.get(db, goal_id)
    authorize(actor, Action.view, goal)
    return present(goal, actor=actor)


@router.patch("/{goal_id}")
def update_goal(
    goal_id: str,
    payload: GoalUpdate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    authorize(actor, Action.update, goals.get(db, goal_id))
    return present(goals.update(db, goal_id, payload, actor.user_id), actor=actor)


@router.delete("/{goal_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_goal(
    goal_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> None:
    authorize(actor, Action.delete, goals.get(db, goal_id))
    goals.delete(db, goal_id, actor.user_id)


@router.post("/{goal_id}/tasks", status_code=status.HTTP_201_CREATED)
def link_goal_task(
    goal_id: str,
    payload: GoalTaskCreate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    authorize(actor, Action.update, goals.get(db, goal_id))
    link = goal_tasks.add(db, goal_id, payload)
    return {"goal_id": serialize(link.goal_id), "task_id": serialize(link.task_id)}


@router.delete("/{goal_id}/tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def unlink_goal_task(
    goal_id: str,
    task_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> None:
    authorize(actor, Action.update, goals.get(db, goal_id))
    goal_tasks.remove(db, goal_id, task_id)
