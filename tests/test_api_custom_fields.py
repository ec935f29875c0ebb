import pytest

from app.models.common import Role
from app.schemas.planning import TaskCreate
from app.schemas.workspace import WorkspaceMemberCreate
from app.services.tasks import tasks
from app.services.workspaces import workspace_members


@pytest.fixture()
def task(db_session, person, workspace):
    item = tasks.create(
        db_session,
        TaskCreate(workspace_id=workspace.id, title="Launch"),
        person.id,
    )
    db_session.commit()
    return item


@pytest.fixture()
def member_headers(db_session, other_person, workspace, other_auth_headers):
    workspace_members.add(
        db_session,
        str(workspace.id),
        WorkspaceMemberCreate(user_id=other_person.id, role=Role.member),
    )
    db_session.commit()
    return other_auth_headers


def _create_field(client, headers, workspace, **overrides):
    body = {
        "workspace_id": str(workspace.id),
        "name": "Stage",
        "key": "stage",
        "type": "select",
        "applies_to": "task",
        "options": ["design", "build", "ship"],
    }
    body.update(overrides)
    return client.post("/custom-fields", json=body, headers=headers)


class TestCustomFieldEndpoints:
    def test_owner_creates_field(self, client, auth_headers, workspace) -> None:
        resp = _create_field(client, auth_headers, workspace)
        assert resp.status_code == 201
        data = resp.json()
        assert data["available_options"] == ["design", "build", "ship"]

        resp = client.get(
            "/custom-fields",
            params={"workspace_id": str(workspace.id), "applies_to": "task"},
            headers=auth_headers,
        )
        assert [item["key"] for item in resp.json()["items"]] == ["stage"]

    def test_member_cannot_define_fields(
        self, client, member_headers, workspace
    ) -> None:
        resp = _create_field(client, member_headers, workspace)
        assert resp.status_code == 403

    def test_member_sets_value(
        self, client, auth_headers, member_headers, workspace, task
    ) -> None:
        field_id = _create_field(client, auth_headers, workspace).json()["id"]
        resp = client.put(
            f"/custom-fields/{field_id}/values",
            json={"entity_type": "task", "entity_id": str(task.id), "value": "build"},
            headers=member_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["formatted_value"] == "build"

        resp = client.get(
            "/custom-fields/values",
            params={"entity_type": "task", "entity_id": str(task.id)},
            headers=member_headers,
        )
        assert resp.status_code == 200
        assert [item["value"] for item in resp.json()["items"]] == ["build"]

    def test_invalid_option_rejected(
        self, client, auth_headers, workspace, task
    ) -> None:
        field_id = _create_field(client, auth_headers, workspace).json()["id"]
        resp = client.put(
            f"/custom-fields/{field_id}/values",
            json={"entity_type": "task", "entity_id": str(task.id), "value": "later"},
            headers=auth_headers,
        )
        assert resp.status_code == 400

    def test_outsider_cannot_read_values(
        self, client, other_auth_headers, task
    ) -> None:
        resp = client.get(
            "/custom-fields/values",
            params={"entity_type": "task", "entity_id": str(task.id)},
            headers=other_auth_headers,
        )
        assert resp.status_code == 403

    def test_delete_field(self, client, auth_headers, workspace) -> None:
        field_id = _create_field(client, auth_headers, workspace).json()["id"]
        resp = client.delete(f"/custom-fields/{field_id}", headers=auth_headers)
        assert resp.status_code == 204
        resp = client.get(f"/custom-fields/{field_id}", headers=auth_headers)
        assert resp.status_code == 404
