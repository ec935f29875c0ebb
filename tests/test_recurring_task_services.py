import uuid
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from app.models.planning import Frequency, Task
from app.schemas.planning import RecurringTaskCreate, TaskCreate
from app.services.common import ensure_utc
from app.services.recurring_tasks import recurring_tasks
from app.services.tasks import tasks
from app.tasks.recurring import spawn_due

START = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture()
def template(db_session, person, workspace):
    item = tasks.create(
        db_session,
        TaskCreate(workspace_id=workspace.id, title="Standup notes"),
        person.id,
    )
    db_session.commit()
    return item


def _recurring(db_session, template, **kwargs):
    payload = RecurringTaskCreate(
        task_id=template.id,
        frequency=kwargs.pop("frequency", Frequency.daily),
        next_due_date=kwargs.pop("next_due_date", START),
        **kwargs,
    )
    return recurring_tasks.create(db_session, payload)


class TestRecurringTasksService:
    def test_create_flags_template(self, db_session, template) -> None:
        _recurring(db_session, template)
        assert template.is_recurring is True

    def test_end_before_next_due(self, db_session, template) -> None:
        with pytest.raises(HTTPException) as exc:
            _recurring(db_session, template, end_date=datetime(2023, 12, 1))
        assert exc.value.status_code == 400

    def test_delete_last_clears_flag(self, db_session, template) -> None:
        recurring = _recurring(db_session, template)
        recurring_tasks.delete(db_session, str(recurring.id))
        assert template.is_recurring is False

    def test_due_respects_active_flag(self, db_session, template) -> None:
        active = _recurring(db_session, template)
        _recurring(db_session, template, is_active=False)
        later = datetime(2024, 1, 2, tzinfo=timezone.utc)
        assert [item.id for item in recurring_tasks.due(db_session, later)] == [
            active.id
        ]
        assert recurring_tasks.due(db_session, datetime(2023, 12, 31)) == []

    def test_spawn_clones_and_advances(self, db_session, template) -> None:
        recurring = _recurring(db_session, template)
        spawned = recurring_tasks.spawn(db_session, recurring, START)
        assert spawned.title == "Standup notes"
        assert spawned.workspace_id == template.workspace_id
        assert spawned.is_recurring is False
        assert ensure_utc(spawned.due_date) == START
        assert ensure_utc(recurring.next_due_date) == datetime(
            2024, 1, 2, 9, 0, tzinfo=timezone.utc
        )
        assert recurring.is_active is True

    def test_spawn_past_end_deactivates(self, db_session, template) -> None:
        recurring = _recurring(
            db_session,
            template,
            frequency=Frequency.weekly,
            end_date=datetime(2024, 1, 5, tzinfo=timezone.utc),
        )
        assert recurring_tasks.spawn(db_session, recurring, START) is not None
        assert recurring.is_active is False

    def test_spawn_without_template(self, db_session) -> None:
        orphan = SimpleNamespace(id=uuid.uuid4(), task=None, is_active=True)
        assert recurring_tasks.spawn(db_session, orphan, START) is None
        assert orphan.is_active is False


class TestSpawnDue:
    def test_spawns_each_due_recurrence(self, db_session, template) -> None:
        _recurring(db_session, template)
        _recurring(db_session, template, next_due_date=datetime(2030, 1, 1))
        db_session.commit()

        now = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        assert spawn_due(db_session, now) == 1
        spawned = db_session.query(Task).filter(Task.id != template.id).all()
        assert [item.title for item in spawned] == ["Standup notes"]

    def test_nothing_due(self, db_session, template) -> None:
        _recurring(db_session, template, next_due_date=datetime(2030, 1, 1))
        db_session.commit()
        assert spawn_due(db_session, START) == 0
