import uuid

import pytest
from fastapi import HTTPException
from sqlalchemy import select

from app.models.audit import ActivityLog, AuditLog
from app.models.planning import Pipeline, Priority, Status, Tag, Task, TaskPipeline
from app.schemas.planning import (
    TaskCreate,
    TaskDependencyCreate,
    TaskPipelineCreate,
    TaskTagCreate,
    TaskUpdate,
)
from app.schemas.workspace import WorkspaceCreate
from app.services.tasks import task_dependencies, task_pipelines, task_tags, tasks
from app.services.workspaces import workspaces


def _task(db_session, person, workspace, title: str, **kwargs) -> Task:
    payload = TaskCreate(workspace_id=workspace.id, title=title, **kwargs)
    return tasks.create(db_session, payload, person.id)


@pytest.fixture()
def status(db_session, workspace):
    item = Status(workspace_id=workspace.id, name="Doing", slug="doing")
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture()
def pipeline(db_session, workspace):
    item = Pipeline(workspace_id=workspace.id, name="Delivery", slug="delivery")
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture()
def other_workspace(db_session, person):
    ws = workspaces.create(db_session, WorkspaceCreate(name="Elsewhere"), person.id)
    db_session.commit()
    return ws


class TestTasksService:
    def test_create_sets_reporter_and_logs(
        self, db_session, person, workspace, _silence_events
    ) -> None:
        task = _task(db_session, person, workspace, "Write docs")
        assert task.reporter_id == person.id
        assert task.priority == Priority.medium
        logged = db_session.scalars(
            select(ActivityLog).where(ActivityLog.action == "task.created")
        ).all()
        assert [entry.subject_id for entry in logged] == [task.id]
        assert _silence_events.call_args.kwargs["event_type"] == "task.created"

    def test_create_unknown_workspace(self, db_session, person) -> None:
        with pytest.raises(HTTPException) as exc:
            tasks.create(
                db_session,
                TaskCreate(workspace_id=uuid.uuid4(), title="Orphan"),
                person.id,
            )
        assert exc.value.status_code == 404

    def test_status_from_other_workspace_rejected(
        self, db_session, person, other_workspace, status
    ) -> None:
        with pytest.raises(HTTPException) as exc:
            _task(db_session, person, other_workspace, "Mixed", status_id=status.id)
        assert exc.value.status_code == 400
        assert "different workspace" in exc.value.detail

    def test_parent_in_other_workspace_rejected(
        self, db_session, person, workspace, other_workspace
    ) -> None:
        parent = _task(db_session, person, workspace, "Parent")
        with pytest.raises(HTTPException) as exc:
            _task(db_session, person, other_workspace, "Child", parent_id=parent.id)
        assert exc.value.status_code == 400

    def test_update_into_own_subtree_is_a_cycle(
        self, db_session, person, workspace
    ) -> None:
        root = _task(db_session, person, workspace, "Root")
        child = _task(db_session, person, workspace, "Child", parent_id=root.id)
        grandchild = _task(db_session, person, workspace, "Leaf", parent_id=child.id)
        with pytest.raises(HTTPException) as exc:
            tasks.update(db_session, str(root.id), TaskUpdate(parent_id=grandchild.id))
        assert exc.value.status_code == 400
        assert exc.value.detail == "Parent task would create a cycle"

    def test_update_records_audit_diff(self, db_session, person, workspace) -> None:
        task = _task(db_session, person, workspace, "Draft")
        tasks.update(
            db_session,
            str(task.id),
            TaskUpdate(title="Final", priority=Priority.high),
            person.id,
        )
        entry = db_session.scalars(select(AuditLog)).one()
        assert entry.event == "updated"
        assert entry.old_values == {"title": "Draft", "priority": "medium"}
        assert entry.new_values == {"title": "Final", "priority": "high"}

    def test_delete_keeps_subtasks_as_roots(
        self, db_session, person, workspace
    ) -> None:
        parent = _task(db_session, person, workspace, "Parent")
        child = _task(db_session, person, workspace, "Child", parent_id=parent.id)
        db_session.commit()
        tasks.delete(db_session, str(parent.id), person.id)
        db_session.commit()
        db_session.refresh(child)
        assert child.parent_id is None

    def test_list_roots_only(self, db_session, person, workspace) -> None:
        parent = _task(db_session, person, workspace, "B parent", order=2)
        _task(db_session, person, workspace, "A child", parent_id=parent.id)
        other = _task(db_session, person, workspace, "C other", order=1)
        result = tasks.list(
            db_session,
            str(workspace.id),
            project_id=None,
            status_id=None,
            assignee_id=None,
            parent_id=None,
            roots_only=True,
            order_by="order",
            order_dir="asc",
            limit=10,
            offset=0,
        )
        assert [item.id for item in result] == [other.id, parent.id]

    def test_list_rejects_unknown_ordering(self, db_session, workspace) -> None:
        with pytest.raises(HTTPException) as exc:
            tasks.list(
                db_session,
                str(workspace.id),
                None,
                None,
                None,
                None,
                False,
                "priority",
                "asc",
                10,
                0,
            )
        assert exc.value.status_code == 400


class TestTaskPivots:
    def test_dependency_on_itself_rejected(self, db_session, person, workspace) -> None:
        task = _task(db_session, person, workspace, "Solo")
        with pytest.raises(HTTPException) as exc:
            task_dependencies.add(
                db_session, str(task.id), TaskDependencyCreate(depends_on_id=task.id)
            )
        assert exc.value.status_code == 400

    def test_duplicate_dependency_conflicts(
        self, db_session, person, workspace
    ) -> None:
        first = _task(db_session, person, workspace, "First")
        second = _task(db_session, person, workspace, "Second")
        payload = TaskDependencyCreate(depends_on_id=first.id)
        task_dependencies.add(db_session, str(second.id), payload)
        db_session.commit()
        with pytest.raises(HTTPException) as exc:
            task_dependencies.add(db_session, str(second.id), payload)
        assert exc.value.status_code == 409

    def test_remove_missing_dependency(self, db_session, person, workspace) -> None:
        task = _task(db_session, person, workspace, "Solo")
        with pytest.raises(HTTPException) as exc:
            task_dependencies.remove(db_session, str(task.id), str(uuid.uuid4()))
        assert exc.value.status_code == 404

    def test_pipeline_add_and_move(
        self, db_session, person, workspace, pipeline, status
    ) -> None:
        task = _task(db_session, person, workspace, "Flow")
        link = task_pipelines.add(
            db_session, str(task.id), TaskPipelineCreate(pipeline_id=pipeline.id)
        )
        assert link.status_id is None
        moved = task_pipelines.move(
            db_session, str(task.id), str(pipeline.id), status.id, order=4
        )
        assert moved.status_id == status.id
        assert moved.order == 4
        task_pipelines.remove(db_session, str(task.id), str(pipeline.id))
        assert db_session.scalars(select(TaskPipeline)).all() == []

    def test_duplicate_pipeline_conflicts(
        self, db_session, person, workspace, pipeline
    ) -> None:
        task = _task(db_session, person, workspace, "Flow")
        payload = TaskPipelineCreate(pipeline_id=pipeline.id)
        task_pipelines.add(db_session, str(task.id), payload)
        db_session.commit()
        with pytest.raises(HTTPException) as exc:
            task_pipelines.add(db_session, str(task.id), payload)
        assert exc.value.status_code == 409

    def test_tag_from_other_workspace_rejected(
        self, db_session, person, workspace, other_workspace
    ) -> None:
        tag = Tag(workspace_id=other_workspace.id, name="urgent")
        db_session.add(tag)
        db_session.commit()
        task = _task(db_session, person, workspace, "Tagged")
        with pytest.raises(HTTPException) as exc:
            task_tags.add(db_session, str(task.id), TaskTagCreate(tag_id=tag.id))
        assert exc.value.status_code == 400
