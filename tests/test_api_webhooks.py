from unittest.mock import patch

import pytest

from app.models.webhook import Webhook, WebhookDelivery, WebhookDeliveryStatus


@pytest.fixture()
def webhook(db_session, person, workspace):
    hook = Webhook(
        workspace_id=workspace.id,
        created_by_id=person.id,
        name="Deploys",
        url="https://example.com/hook",
        secret="shh",
        events=["task"],
    )
    db_session.add(hook)
    db_session.commit()
    db_session.refresh(hook)
    return hook


@pytest.fixture()
def delivery(db_session, webhook):
    item = WebhookDelivery(
        webhook_id=webhook.id,
        event="task.created",
        payload={"event": "task.created"},
        status=WebhookDeliveryStatus.failed,
        attempts=2,
    )
    db_session.add(item)
    db_session.commit()
    db_session.refresh(item)
    return item


class TestWebhookEndpoints:
    def test_create(self, client, auth_headers, workspace) -> None:
        resp = client.post(
            "/webhooks",
            json={
                "workspace_id": str(workspace.id),
                "name": "CI",
                "url": "https://ci.example.com/hook",
                "secret": "s3cret",
                "events": ["task.created"],
            },
            headers=auth_headers,
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["events"] == ["task.created"]
        assert data["secret"] == "s3cret"

    def test_create_rejects_bad_url(self, client, auth_headers, workspace) -> None:
        resp = client.post(
            "/webhooks",
            json={
                "workspace_id": str(workspace.id),
                "name": "Bad",
                "url": "ftp://example.com",
                "events": ["task"],
            },
            headers=auth_headers,
        )
        assert resp.status_code == 422

    def test_outsider_cannot_create(
        self, client, other_auth_headers, workspace
    ) -> None:
        resp = client.post(
            "/webhooks",
            json={
                "workspace_id": str(workspace.id),
                "name": "Sneaky",
                "url": "https://evil.example.com",
                "events": ["*"],
            },
            headers=other_auth_headers,
        )
        assert resp.status_code == 403

    def test_outsider_does_not_see_webhook(
        self, client, other_auth_headers, webhook
    ) -> None:
        resp = client.get("/webhooks", headers=other_auth_headers)
        assert resp.status_code == 200
        assert resp.json()["items"] == []

    def test_update(self, client, auth_headers, webhook) -> None:
        resp = client.patch(
            f"/webhooks/{webhook.id}",
            json={"is_active": False},
            headers=auth_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["is_active"] is False

    def test_delete(self, client, auth_headers, webhook) -> None:
        resp = client.delete(f"/webhooks/{webhook.id}", headers=auth_headers)
        assert resp.status_code == 204
        resp = client.get(f"/webhooks/{webhook.id}", headers=auth_headers)
        assert resp.status_code == 404


class TestDeliveryEndpoints:
    def test_list_by_webhook(self, client, auth_headers, webhook, delivery) -> None:
        resp = client.get(
            "/webhooks/deliveries",
            params={"webhook_id": str(webhook.id), "status": "failed"},
            headers=auth_headers,
        )
        assert resp.status_code == 200
        assert [item["id"] for item in resp.json()["items"]] == [str(delivery.id)]

    @patch("app.tasks.webhooks.deliver_single_webhook.delay")
    def test_retry(self, mock_deliver, client, auth_headers, delivery) -> None:
        resp = client.post(
            f"/webhooks/deliveries/{delivery.id}/retry", headers=auth_headers
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "pending"
        mock_deliver.assert_called_once_with(delivery_id=str(delivery.id))

    def test_retry_delivered_forbidden(
        self, client, auth_headers, db_session, delivery
    ) -> None:
        delivery.status = WebhookDeliveryStatus.delivered
        db_session.commit()
        resp = client.post(
            f"/webhooks/deliveries/{delivery.id}/retry", headers=auth_headers
        )
        assert resp.status_code == 403
