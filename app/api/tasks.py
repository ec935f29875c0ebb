from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_user_auth
from app.models.common import EntityKind
from app.schemas.common import ListResponse
from app.schemas.planning import (
    TaskCreate,
    TaskDependencyCreate,
    TaskPipelineCreate,
    TaskTagCreate,
    TaskUpdate,
)
from app.services.actor import ActorContext
from app.services.authorization import Action, authorize, authorize_create
from app.services.presenters import present, serialize
from app.services.tasks import task_dependencies, task_pipelines, task_tags, tasks
from app.services.workspaces import workspaces

router = APIRouter(prefix="/tasks", tags=["tasks"])


def _pivot(link, *fields: str) -> dict:
    return {name: serialize(getattr(link, name)) for name in ("task_id", *fields)}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_task(
    payload: TaskCreate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    authorize_create(actor, EntityKind.task, payload.workspace_id)
    return present(tasks.create(db, payload, actor.user_id), actor=actor)


@router.get("", response_model=ListResponse[dict])
def list_tasks(
    workspace_id: str,
    project_id: str | None = None,
    status_id: str | None = None,
    assignee_id: str | None = None,
    parent_id: str | None = None,
    roots_only: bool = False,
    order_by: str = Query(default="order"),
    order_dir: str = Query(default="asc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    authorize(actor, Action.view, workspaces.get(db, workspace_id))
    response = tasks.list_response(
        db,
        workspace_id,
        project_id,
        status_id,
        assignee_id,
        parent_id,
        roots_only,
        order_by,
        order_dir,
        limit,
        offset,
    )
    response["items"] = [present(item, actor=actor) for item in response["items"]]
    return response


@router.get("/{task_id}")
def get_task(
    task_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    task = tasks.get(db, task_id)
    authorize(actor, Action.view, task)
    return present(task, actor=actor)


@router.patch("/{task_id}")
def update_task(
    task_id: str,
    payload: TaskUpdate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    authorize(actor, Action.update, tasks.get(db, task_id))
    return present(tasks.update(db, task_id, payload, actor.user_id), actor=actor)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(
    task_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> None:
    authorize(actor, Action.delete, tasks.get(db, task_id))
    tasks.delete(db, task_id, actor.user_id)


# ---------------------------------------------------------------------------
# Pipelines
# ---------------------------------------------------------------------------


@router.post("/{task_id}/pipelines", status_code=status.HTTP_201_CREATED)
def add_task_pipeline(
    task_id: str,
    payload: TaskPipelineCreate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    authorize(actor, Action.update, tasks.get(db, task_id))
    link = task_pipelines.add(db, task_id, payload)
    return _pivot(link, "pipeline_id", "status_id", "order")


@router.patch("/{task_id}/pipelines/{pipeline_id}")
def move_task_in_pipeline(
    task_id: str,
    pipeline_id: str,
    payload: TaskPipelineCreate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    authorize(actor, Action.update, tasks.get(db, task_id))
    link = task_pipelines.move(
        db, task_id, pipeline_id, payload.status_id, payload.order
    )
    return _pivot(link, "pipeline_id", "status_id", "order")


@router.delete(
    "/{task_id}/pipelines/{pipeline_id}", status_code=status.HTTP_204_NO_CONTENT
)
def remove_task_pipeline(
    task_id: str,
    pipeline_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> None:
    authorize(actor, Action.update, tasks.get(db, task_id))
    task_pipelines.remove(db, task_id, pipeline_id)


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


@router.post("/{task_id}/dependencies", status_code=status.HTTP_201_CREATED)
def add_task_dependency(
    task_id: str,
    payload: TaskDependencyCreate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    authorize(actor, Action.update, tasks.get(db, task_id))
    dependency = task_dependencies.add(db, task_id, payload)
    return _pivot(dependency, "depends_on_id", "type")


@router.delete(
    "/{task_id}/dependencies/{depends_on_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def remove_task_dependency(
    task_id: str,
    depends_on_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> None:
    authorize(actor, Action.update, tasks.get(db, task_id))
    task_dependencies.remove(db, task_id, depends_on_id)


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------


@router.post("/{task_id}/tags", status_code=status.HTTP_201_CREATED)
def add_task_tag(
    task_id: str,
    payload: TaskTagCreate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    authorize(actor, Action.update, tasks.get(db, task_id))
    return _pivot(task_tags.add(db, task_id, payload), "tag_id")


@router.delete("/{task_id}/tags/{tag_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_task_tag(
    task_id: str,
    tag_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> None:
    authorize(actor, Action.update, tasks.get(db, task_id))
    task_tags.remove(db, task_id, tag_id)
