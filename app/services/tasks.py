import logging

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.common import EntityKind
from app.models.planning import (
    Pipeline,
    Project,
    Status,
    Tag,
    Task,
    TaskDependency,
    TaskPipeline,
    TaskTag,
)
from app.models.workspace import User, Workspace
from app.schemas.planning import (
    TaskCreate,
    TaskDependencyCreate,
    TaskPipelineCreate,
    TaskTagCreate,
    TaskUpdate,
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
from app.services.hierarchy import prepare_for_insert, validate_parent
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)

_AUDITED = (
    "title",
    "status_id",
    "assignee_id",
    "parent_id",
    "priority",
    "due_date",
)


def _same_workspace(db: Session, model, entity_id, workspace_id, label: str):
    entity = get_or_404(db, model, entity_id, label)
    if entity.workspace_id != workspace_id:
        raise HTTPException(
            status_code=400, detail=f"{label} belongs to a different workspace"
        )
    return entity


def _check_references(db: Session, workspace_id, data: dict) -> None:
    if data.get("project_id") is not None:
        _same_workspace(db, Project, data["project_id"], workspace_id, "Project")
    if data.get("status_id") is not None:
        _same_workspace(db, Status, data["status_id"], workspace_id, "Status")
    if data.get("assignee_id") is not None:
        get_or_404(db, User, data["assignee_id"], "Assignee")


class Tasks(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: TaskCreate, reporter_id) -> Task:
        data = prepare_for_insert(EntityKind.task, payload.model_dump())
        get_or_404(db, Workspace, data["workspace_id"], "Workspace")
        _check_references(db, data["workspace_id"], data)
        validate_parent(
            db, Task, data.get("parent_id"), data["workspace_id"], label="Parent task"
        )
        task = Task(reporter_id=coerce_uuid(reporter_id), **data)
        db.add(task)
        db.flush()
        db.refresh(task)
        audit.log_activity(db, reporter_id, "task.created", task)
        logger.info("Created task %s", task.id)
        publish_event(
            EventType.task_created,
            "task",
            task.id,
            actor_id=reporter_id,
            workspace_id=task.workspace_id,
        )
        return task

    @staticmethod
    def get(db: Session, task_id: str) -> Task:
        return get_or_404(db, Task, task_id, "Task")

    @staticmethod
    def list(
        db: Session,
        workspace_id: str,
        project_id: str | None,
        status_id: str | None,
        assignee_id: str | None,
        parent_id: str | None,
        roots_only: bool,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[Task]:
        stmt = select(Task).where(Task.workspace_id == coerce_uuid(workspace_id))
        if project_id is not None:
            stmt = stmt.where(Task.project_id == coerce_uuid(project_id))
        if status_id is not None:
            stmt = stmt.where(Task.status_id == coerce_uuid(status_id))
        if assignee_id is not None:
            stmt = stmt.where(Task.assignee_id == coerce_uuid(assignee_id))
        if parent_id is not None:
            stmt = stmt.where(Task.parent_id == coerce_uuid(parent_id))
        elif roots_only:
            stmt = stmt.where(Task.parent_id.is_(None))
        stmt = apply_ordering(
            stmt,
            order_by,
            order_dir,
            {
                "order": Task.order,
                "title": Task.title,
                "due_date": Task.due_date,
                "created_at": Task.created_at,
            },
        )
        return db.scalars(apply_pagination(stmt, limit, offset)).all()

    @staticmethod
    def update(db: Session, task_id: str, payload: TaskUpdate, actor_id=None) -> Task:
        task = get_or_404(db, Task, task_id, "Task")
        before = audit.snapshot(task, _AUDITED)
        data = payload.model_dump(exclude_unset=True)
        _check_references(db, task.workspace_id, data)
        if data.get("parent_id") is not None:
            validate_parent(
                db,
                Task,
                data["parent_id"],
                task.workspace_id,
                entity_id=task.id,
                label="Parent task",
            )
        for key, value in data.items():
            setattr(task, key, value)
        db.flush()
        db.refresh(task)
        audit.record_update(db, actor_id, task, before)
        logger.info("Updated task %s", task.id)
        publish_event(
            EventType.task_updated,
            "task",
            task.id,
            actor_id=actor_id,
            workspace_id=task.workspace_id,
            payload={"fields": sorted(data)},
        )
        return task

    @staticmethod
    def delete(db: Session, task_id: str, actor_id=None) -> None:
        task = get_or_404(db, Task, task_id, "Task")
        workspace_id = task.workspace_id
        entity_id = task.id
        # subtasks are kept and become roots
        for child in task.children:
            child.parent_id = None
        db.delete(task)
        db.flush()
        logger.info("Deleted task %s", entity_id)
        publish_event(
            EventType.task_deleted,
            "task",
            entity_id,
            actor_id=actor_id,
            workspace_id=workspace_id,
        )


# ---------------------------------------------------------------------------
# Pivots
# ---------------------------------------------------------------------------


class TaskPipelines:
    @staticmethod
    def add(db: Session, task_id: str, payload: TaskPipelineCreate) -> TaskPipeline:
        task = get_or_404(db, Task, task_id, "Task")
        _same_workspace(
            db, Pipeline, payload.pipeline_id, task.workspace_id, "Pipeline"
        )
        if payload.status_id is not None:
            _same_workspace(db, Status, payload.status_id, task.workspace_id, "Status")
        link = TaskPipeline(task_id=task.id, **payload.model_dump())
        db.add(link)
        flush_or_conflict(db, "Task is already in this pipeline")
        logger.info("Added task %s to pipeline %s", task.id, payload.pipeline_id)
        return link

    @staticmethod
    def _link(db: Session, task_id, pipeline_id) -> TaskPipeline:
        link = db.scalars(
            select(TaskPipeline)
            .where(TaskPipeline.task_id == coerce_uuid(task_id))
            .where(TaskPipeline.pipeline_id == coerce_uuid(pipeline_id))
        ).first()
        if not link:
            raise HTTPException(status_code=404, detail="Task pipeline not found")
        return link

    @staticmethod
    def move(
        db: Session, task_id: str, pipeline_id: str, status_id, order: int | None = None
    ) -> TaskPipeline:
        link = TaskPipelines._link(db, task_id, pipeline_id)
        task = get_or_404(db, Task, task_id, "Task")
        if status_id is not None:
            _same_workspace(db, Status, status_id, task.workspace_id, "Status")
        link.status_id = coerce_uuid(status_id)
        if order is not None:
            link.order = order
        db.flush()
        logger.info("Moved task %s in pipeline %s", task_id, pipeline_id)
        return link

    @staticmethod
    def remove(db: Session, task_id: str, pipeline_id: str) -> None:
        link = TaskPipelines._link(db, task_id, pipeline_id)
        db.delete(link)
        db.flush()
        logger.info("Removed task %s from pipeline %s", task_id, pipeline_id)


class TaskDependencies:
    @staticmethod
    def add(
        db: Session, task_id: str, payload: TaskDependencyCreate
    ) -> TaskDependency:
        task = get_or_404(db, Task, task_id, "Task")
        if payload.depends_on_id == task.id:
            raise HTTPException(
                status_code=400, detail="A task cannot depend on itself"
            )
        _same_workspace(db, Task, payload.depends_on_id, task.workspace_id, "Task")
        dependency = TaskDependency(
            task_id=task.id, depends_on_id=payload.depends_on_id, type=payload.type
        )
        db.add(dependency)
        flush_or_conflict(db, "Dependency already exists")
        logger.info("Task %s now depends on %s", task.id, payload.depends_on_id)
        return dependency

    @staticmethod
    def remove(db: Session, task_id: str, depends_on_id: str) -> None:
        dependency = db.scalars(
            select(TaskDependency)
            .where(TaskDependency.task_id == coerce_uuid(task_id))
            .where(TaskDependency.depends_on_id == coerce_uuid(depends_on_id))
        ).first()
        if not dependency:
            raise HTTPException(status_code=404, detail="Dependency not found")
        db.delete(dependency)
        db.flush()
        logger.info("Removed dependency %s -> %s", task_id, depends_on_id)


class TaskTags:
    @staticmethod
    def add(db: Session, task_id: str, payload: TaskTagCreate) -> TaskTag:
        task = get_or_404(db, Task, task_id, "Task")
        _same_workspace(db, Tag, payload.tag_id, task.workspace_id, "Tag")
        link = TaskTag(task_id=task.id, tag_id=payload.tag_id)
        db.add(link)
        flush_or_conflict(db, "Tag is already attached to this task")
        logger.info("Tagged task %s with %s", task.id, payload.tag_id)
        return link

    @staticmethod
    def remove(db: Session, task_id: str, tag_id: str) -> None:
        link = db.scalars(
            select(TaskTag)
            .where(TaskTag.task_id == coerce_uuid(task_id))
            .where(TaskTag.tag_id == coerce_uuid(tag_id))
        ).first()
        if not link:
            raise HTTPException(status_code=404, detail="Task tag not found")
        db.delete(link)
        db.flush()
        logger.info("Removed tag %s from task %s", tag_id, task_id)


tasks = Tasks()
task_pipelines = TaskPipelines()
task_dependencies = TaskDependencies()
task_tags = TaskTags()
