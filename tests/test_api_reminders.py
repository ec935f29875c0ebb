import pytest

from app.schemas.planning import TaskCreate
from app.services.tasks import tasks


@pytest.fixture()
def task(db_session, person, workspace):
    item = tasks.create(
        db_session,
        TaskCreate(workspace_id=workspace.id, title="Renew certificates"),
        person.id,
    )
    db_session.commit()
    return item


def _payload(task, remind_at="2030-01-01T09:00:00Z") -> dict:
    return {
        "remindable_type": "task",
        "remindable_id": str(task.id),
        "remind_at": remind_at,
    }


class TestReminderEndpoints:
    def test_create_and_list_own(self, client, auth_headers, task) -> None:
        resp = client.post("/reminders", json=_payload(task), headers=auth_headers)
        assert resp.status_code == 201
        data = resp.json()
        assert data["type"] == "in_app"
        assert data["is_due"] is False

        resp = client.get("/reminders", headers=auth_headers)
        assert [item["id"] for item in resp.json()["items"]] == [data["id"]]

    def test_past_reminder_is_due(self, client, auth_headers, task) -> None:
        resp = client.post(
            "/reminders",
            json=_payload(task, "2020-01-01T09:00:00Z"),
            headers=auth_headers,
        )
        assert resp.json()["is_due"] is True

    def test_cannot_remind_on_hidden_record(
        self, client, other_auth_headers, task
    ) -> None:
        resp = client.post(
            "/reminders", json=_payload(task), headers=other_auth_headers
        )
        assert resp.status_code == 403

    def test_others_cannot_touch_reminder(
        self, client, auth_headers, other_auth_headers, task
    ) -> None:
        reminder_id = client.post(
            "/reminders", json=_payload(task), headers=auth_headers
        ).json()["id"]
        resp = client.patch(
            f"/reminders/{reminder_id}",
            json={"type": "email"},
            headers=other_auth_headers,
        )
        assert resp.status_code == 403
        resp = client.delete(f"/reminders/{reminder_id}", headers=auth_headers)
        assert resp.status_code == 204
