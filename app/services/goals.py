import logging

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.planning import Goal, GoalStatus, GoalTask, Task
from app.models.workspace import Team, Workspace
from app.schemas.planning import GoalCreate, GoalTaskCreate, GoalUpdate
from app.services import audit
from app.services.common import (
    apply_ordering,
    apply_pagination,
    coerce_uuid,
    flush_or_conflict,
    get_or_404,
)
from app.services.event import EventType, publish_event
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)

_AUDITED = ("name", "status", "progress", "start_date", "end_date")


def _check_team(db: Session, team_id, workspace_id) -> None:
    if team_id is None:
        return
    team = get_or_404(db, Team, team_id, "Team")
    if team.workspace_id != workspace_id:
        raise HTTPException(
            status_code=400, detail="Team belongs to a different workspace"
        )


class Goals(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: GoalCreate, owner_id) -> Goal:
        get_or_404(db, Workspace, payload.workspace_id, "Workspace")
        _check_team(db, payload.team_id, payload.workspace_id)
        goal = Goal(owner_id=coerce_uuid(owner_id), **payload.model_dump())
        db.add(goal)
        db.flush()
        db.refresh(goal)
        audit.log_activity(db, owner_id, "goal.created", goal)
        logger.info("Created goal %s", goal.id)
        publish_event(
            EventType.goal_created,
            "goal",
            goal.id,
            actor_id=owner_id,
            workspace_id=goal.workspace_id,
        )
        return goal

    @staticmethod
    def get(db: Session, goal_id: str) -> Goal:
        return get_or_404(db, Goal, goal_id, "Goal")

    @staticmethod
    def list(
        db: Session,
        workspace_id: str,
        team_id: str | None,
        status: str | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[Goal]:
        stmt = select(Goal).where(Goal.workspace_id == coerce_uuid(workspace_id))
        if team_id is not None:
            stmt = stmt.where(Goal.team_id == coerce_uuid(team_id))
        if status is not None:
            stmt = stmt.where(Goal.status == GoalStatus(status))
        stmt = apply_ordering(
            stmt,
            order_by,
            order_dir,
            {
                "name": Goal.name,
                "end_date": Goal.end_date,
                "created_at": Goal.created_at,
            },
        )
        return db.scalars(apply_pagination(stmt, limit, offset)).all()

    @staticmethod
    def update(db: Session, goal_id: str, payload: GoalUpdate, actor_id=None) -> Goal:
        goal = get_or_404(db, Goal, goal_id, "Goal")
        before = audit.snapshot(goal, _AUDITED)
        data = payload.model_dump(exclude_unset=True)
        if "team_id" in data:
            _check_team(db, data["team_id"], goal.workspace_id)
        start = data.get("start_date", goal.start_date)
        end = data.get("end_date", goal.end_date)
        if start and end and end < start:
            raise HTTPException(
                status_code=400, detail="end_date must not be before start_date"
            )
        for key, value in data.items():
            setattr(goal, key, value)
        db.flush()
        db.refresh(goal)
        audit.record_update(db, actor_id, goal, before)
        logger.info("Updated goal %s", goal.id)
        publish_event(
            EventType.goal_updated,
            "goal",
            goal.id,
            actor_id=actor_id,
            workspace_id=goal.workspace_id,
        )
        return goal

    @staticmethod
    def delete(db: Session, goal_id: str, actor_id=None) -> None:
        goal = get_or_404(db, Goal, goal_id, "Goal")
        workspace_id = goal.workspace_id
        entity_id = goal.id
        db.delete(goal)
        db.flush()
        logger.info("Deleted goal %s", entity_id)
        publish_event(
            EventType.goal_deleted,
            "goal",
            entity_id,
            actor_id=actor_id,
            workspace_id=workspace_id,
        )


class GoalTasks:
    @staticmethod
    def add(db: Session, goal_id: str, payload: GoalTaskCreate) -> GoalTask:
        goal = get_or_404(db, Goal, goal_id, "Goal")
        task = get_or_404(db, Task, payload.task_id, "Task")
        if task.workspace_id != goal.workspace_id:
            raise HTTPException(
                status_code=400, detail="Task belongs to a different workspace"
            )
        link = GoalTask(goal_id=goal.id, task_id=task.id)
        db.add(link)
        flush_or_conflict(db, "Task is already linked to this goal")
        logger.info("Linked task %s to goal %s", task.id, goal.id)
        return link

    @staticmethod
    def remove(db: Session, goal_id: str, task_id: str) -> None:
        link = db.scalars(
            select(GoalTask)
            .where(GoalTask.goal_id == coerce_uuid(goal_id))
            .where(GoalTask.task_id == coerce_uuid(task_id))
        ).first()
        if not link:
            raise HTTPException(status_code=404, detail="Goal task not found")
        db.delete(link)
        db.flush()
        logger.info("Unlinked task %s from goal %s", task_id, goal_id)


goals = Goals()
goal_tasks = GoalTasks()
