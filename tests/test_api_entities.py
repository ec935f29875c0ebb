import uuid
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from app.models.common import Role
from app.models.planning import TimeLog
from app.schemas.content import CommentCreate
from app.schemas.planning import TaskCreate
from app.schemas.workspace import WorkspaceMemberCreate
from app.services.comments import comments
from app.services.tasks import tasks
from app.services.workspaces import workspace_members


@pytest.fixture()
def task(db_session, person, workspace):
    item = tasks.create(
        db_session, TaskCreate(workspace_id=workspace.id, title="Ship it"), person.id
    )
    db_session.commit()
    return item


class TestEntityEndpoint:
    def test_missing_token(self, client, task) -> None:
        resp = client.get(f"/entities/task/{task.id}")
        assert resp.status_code == 401
        assert resp.json()["message"] == "Missing bearer token"

    def test_invalid_token(self, client, task) -> None:
        resp = client.get(
            f"/entities/task/{task.id}",
            headers={"Authorization": "Bearer nope"},
        )
        assert resp.status_code == 401

    def test_get_without_include(self, client, auth_headers, task) -> None:
        resp = client.get(f"/entities/task/{task.id}", headers=auth_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["id"] == str(task.id)
        assert data["title"] == "Ship it"
        assert "comments" not in data

    def test_include_relations(
        self, client, auth_headers, db_session, person, task
    ) -> None:
        comments.create(
            db_session,
            CommentCreate(
                commentable_type="task", commentable_id=task.id, content="Nice"
            ),
            person.id,
        )
        db_session.commit()
        resp = client.get(
            f"/api/v1/entities/task/{task.id}",
            params={"include": "comments,tags,bogus"},
            headers=auth_headers,
        )
        assert resp.status_code == 200
        data = resp.json()
        assert [item["content"] for item in data["comments"]] == ["Nice"]
        assert data["tags"] == []
        assert "bogus" not in data

    def test_unknown_kind(self, client, auth_headers) -> None:
        resp = client.get(f"/entities/widget/{uuid.uuid4()}", headers=auth_headers)
        assert resp.status_code == 404
        assert resp.json()["message"] == "Unknown entity type widget"

    def test_unknown_entity(self, client, auth_headers) -> None:
        resp = client.get(f"/entities/task/{uuid.uuid4()}", headers=auth_headers)
        assert resp.status_code == 404
        assert resp.json()["message"] == "Task not found"

    def test_outsider_forbidden(self, client, other_auth_headers, task) -> None:
        resp = client.get(f"/entities/task/{task.id}", headers=other_auth_headers)
        assert resp.status_code == 403


@pytest.fixture()
def member_headers(db_session, other_person, workspace, other_auth_headers):
    workspace_members.add(
        db_session,
        str(workspace.id),
        WorkspaceMemberCreate(user_id=other_person.id, role=Role.member),
    )
    db_session.commit()
    return other_auth_headers


class TestRelatedRecordVisibility:
    def test_time_logs_of_others_not_included(
        self, client, db_session, person, task, member_headers
    ) -> None:
        log = TimeLog(
            user_id=person.id,
            task_id=task.id,
            started_at=datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc),
            duration=90,
        )
        db_session.add(log)
        db_session.commit()

        direct = client.get(f"/entities/time_log/{log.id}", headers=member_headers)
        assert direct.status_code == 403

        resp = client.get(
            f"/entities/task/{task.id}",
            params={"include": "time_logs"},
            headers=member_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["time_logs"] == []

    def test_internal_parent_comment_is_null(
        self, client, db_session, person, task, member_headers
    ) -> None:
        root = comments.create(
            db_session,
            CommentCreate(
                commentable_type="task",
                commentable_id=task.id,
                content="internal secret",
                is_internal=True,
            ),
            person.id,
        )
        reply = comments.create(
            db_session,
            CommentCreate(
                commentable_type="task",
                commentable_id=task.id,
                parent_id=root.id,
                content="Public answer",
            ),
            person.id,
        )
        db_session.commit()

        direct = client.get(f"/entities/comment/{root.id}", headers=member_headers)
        assert direct.status_code == 403

        resp = client.get(
            f"/entities/comment/{reply.id}",
            params={"include": "parent,user"},
            headers=member_headers,
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["parent"] is None
        assert data["user"]["name"] == "Ada Lovelace"

    def test_owner_sees_everything(
        self, client, db_session, person, task, auth_headers
    ) -> None:
        log = TimeLog(
            user_id=person.id,
            task_id=task.id,
            started_at=datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc),
            duration=45,
        )
        db_session.add(log)
        db_session.commit()
        resp = client.get(
            f"/entities/task/{task.id}",
            params={"include": "time_logs"},
            headers=auth_headers,
        )
        assert [item["duration"] for item in resp.json()["time_logs"]] == [45]

    def test_denied_entity_loads_no_relations(
        self, client, task, other_auth_headers
    ) -> None:
        with patch("app.api.entities.load_relations") as mock_load:
            resp = client.get(
                f"/entities/task/{task.id}",
                params={"include": "comments"},
                headers=other_auth_headers,
            )
        assert resp.status_code == 403
        mock_load.assert_not_called()
