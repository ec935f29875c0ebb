from datetime import date

import pytest
from fastapi import HTTPException

from app.models.planning import GoalStatus
from app.models.workspace import Team
from app.schemas.planning import GoalCreate, GoalTaskCreate, GoalUpdate, TaskCreate
from app.schemas.workspace import WorkspaceCreate
from app.services.goals import goal_tasks, goals
from app.services.relations import load_relations
from app.services.tasks import tasks
from app.services.workspaces import workspaces


@pytest.fixture()
def goal(db_session, person, workspace):
    item = goals.create(
        db_session,
        GoalCreate(workspace_id=workspace.id, name="Launch", status=GoalStatus.active),
        person.id,
    )
    db_session.commit()
    return item


class TestGoalsService:
    def test_create(self, goal, person) -> None:
        assert goal.owner_id == person.id
        assert goal.progress == 0

    def test_end_before_start_rejected_by_schema(self, workspace) -> None:
        with pytest.raises(ValueError):
            GoalCreate(
                workspace_id=workspace.id,
                name="Backwards",
                start_date=date(2024, 5, 1),
                end_date=date(2024, 4, 1),
            )

    def test_update_checks_merged_dates(self, db_session, goal) -> None:
        goals.update(db_session, str(goal.id), GoalUpdate(start_date=date(2024, 5, 1)))
        with pytest.raises(HTTPException) as exc:
            goals.update(
                db_session, str(goal.id), GoalUpdate(end_date=date(2024, 4, 1))
            )
        assert exc.value.status_code == 400

    def test_team_from_other_workspace_rejected(
        self, db_session, person, workspace
    ) -> None:
        elsewhere = workspaces.create(
            db_session, WorkspaceCreate(name="Elsewhere"), person.id
        )
        team = Team(workspace_id=elsewhere.id, name="Platform")
        db_session.add(team)
        db_session.flush()
        with pytest.raises(HTTPException) as exc:
            goals.create(
                db_session,
                GoalCreate(workspace_id=workspace.id, name="Mixed", team_id=team.id),
                person.id,
            )
        assert exc.value.status_code == 400


class TestGoalTasksService:
    def test_link_and_load(self, db_session, person, workspace, goal) -> None:
        task = tasks.create(
            db_session, TaskCreate(workspace_id=workspace.id, title="Ship"), person.id
        )
        goal_tasks.add(db_session, str(goal.id), GoalTaskCreate(task_id=task.id))
        loaded = load_relations(db_session, goal, ["tasks"])["tasks"]
        assert [link.entity.id for link in loaded] == [task.id]
        assert "created_at" in loaded[0].pivot

    def test_duplicate_link_conflicts(
        self, db_session, person, workspace, goal
    ) -> None:
        task = tasks.create(
            db_session, TaskCreate(workspace_id=workspace.id, title="Ship"), person.id
        )
        db_session.commit()
        payload = GoalTaskCreate(task_id=task.id)
        goal_tasks.add(db_session, str(goal.id), payload)
        db_session.commit()
        with pytest.raises(HTTPException) as exc:
            goal_tasks.add(db_session, str(goal.id), payload)
        assert exc.value.status_code == 409

    def test_task_from_other_workspace_rejected(
        self, db_session, person, goal
    ) -> None:
        elsewhere = workspaces.create(
            db_session, WorkspaceCreate(name="Elsewhere"), person.id
        )
        task = tasks.create(
            db_session, TaskCreate(workspace_id=elsewhere.id, title="Far"), person.id
        )
        with pytest.raises(HTTPException) as exc:
            goal_tasks.add(db_session, str(goal.id), GoalTaskCreate(task_id=task.id))
        assert exc.value.status_code == 400

    def test_unlink_missing(self, db_session, goal) -> None:
        import uuid

        with pytest.raises(HTTPException) as exc:
            goal_tasks.remove(db_session, str(goal.id), str(uuid.uuid4()))
        assert exc.value.status_code == 404
