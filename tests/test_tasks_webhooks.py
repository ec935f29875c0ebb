import hashlib
import hmac
import json
import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import httpx
import pytest

from app.models.webhook import Webhook, WebhookDelivery, WebhookDeliveryStatus
from app.tasks.webhooks import (
    EVENT_HEADER,
    SIGNATURE_HEADER,
    _find_and_queue,
    attempt_delivery,
    queue_retries,
    retry_delay_seconds,
    sign_payload,
)
from tests.mocks import FakeHTTPXResponse


@pytest.fixture()
def webhook(db_session, person, workspace):
    hook = Webhook(
        workspace_id=workspace.id,
        created_by_id=person.id,
        name="Build hook",
        url="https://example.com/hook",
        secret="test-secret-key",
        events=["task"],
    )
    db_session.add(hook)
    db_session.commit()
    db_session.refresh(hook)
    return hook


@pytest.fixture()
def pending_delivery(db_session, webhook):
    delivery = WebhookDelivery(
        webhook_id=webhook.id,
        event="task.created",
        payload={"event": "task.created", "entity_id": "abc"},
        status=WebhookDeliveryStatus.pending,
    )
    db_session.add(delivery)
    db_session.commit()
    db_session.refresh(delivery)
    return delivery


def _client_returning(response):
    client = MagicMock()
    client.__enter__.return_value.post.return_value = response
    return client


class TestSigning:
    def test_sign_payload_is_hmac_sha256(self) -> None:
        expected = hmac.new(b"key", b"{}", hashlib.sha256).hexdigest()
        assert sign_payload("key", "{}") == expected

    def test_retry_delay_doubles(self) -> None:
        assert retry_delay_seconds(1) == 60
        assert retry_delay_seconds(2) == 120
        assert retry_delay_seconds(4) == 480


class TestFindAndQueue:
    @patch("app.tasks.webhooks.deliver_single_webhook.delay")
    def test_queues_matching_webhook(
        self, mock_deliver, db_session, workspace, webhook
    ) -> None:
        entity_id = str(uuid.uuid4())
        ids = _find_and_queue(
            db_session,
            event_type="task.created",
            entity_type="task",
            entity_id=entity_id,
            actor_id=None,
            workspace_id=str(workspace.id),
            payload={"title": "Ship"},
        )
        assert len(ids) == 1
        mock_deliver.assert_called_once_with(delivery_id=ids[0])

        delivery = db_session.query(WebhookDelivery).one()
        assert delivery.status == WebhookDeliveryStatus.pending
        assert delivery.payload["entity_id"] == entity_id
        assert delivery.payload["payload"] == {"title": "Ship"}

    @patch("app.tasks.webhooks.deliver_single_webhook.delay")
    def test_skips_unsubscribed_events(
        self, mock_deliver, db_session, workspace, webhook
    ) -> None:
        ids = _find_and_queue(
            db_session,
            "wiki.created",
            "wiki",
            str(uuid.uuid4()),
            None,
            str(workspace.id),
            None,
        )
        assert ids == []
        mock_deliver.assert_not_called()


class TestAttemptDelivery:
    @patch("httpx.Client")
    def test_success_signs_body(
        self, mock_client_cls, db_session, pending_delivery
    ) -> None:
        mock_client = _client_returning(FakeHTTPXResponse(200))
        mock_client_cls.return_value = mock_client

        delivery = attempt_delivery(db_session, str(pending_delivery.id))

        assert delivery.status == WebhookDeliveryStatus.delivered
        assert delivery.attempts == 1
        assert delivery.response_code == 200
        assert delivery.next_attempt_at is None

        post = mock_client.__enter__.return_value.post
        kwargs = post.call_args.kwargs
        body = json.dumps(pending_delivery.payload, default=str)
        assert kwargs["content"] == body
        assert kwargs["headers"][EVENT_HEADER] == "task.created"
        assert kwargs["headers"][SIGNATURE_HEADER] == sign_payload(
            "test-secret-key", body
        )

    @patch("httpx.Client")
    def test_error_status_schedules_retry(
        self, mock_client_cls, db_session, pending_delivery
    ) -> None:
        mock_client_cls.return_value = _client_returning(
            FakeHTTPXResponse(500, text="boom")
        )
        before = datetime.now(timezone.utc)

        delivery = attempt_delivery(db_session, str(pending_delivery.id))

        assert delivery.status == WebhookDeliveryStatus.failed
        assert delivery.response_body == "boom"
        assert delivery.next_attempt_at >= before + timedelta(seconds=60)

    @patch("httpx.Client")
    def test_transport_error(
        self, mock_client_cls, db_session, pending_delivery
    ) -> None:
        client = MagicMock()
        client.__enter__.return_value.post.side_effect = httpx.ConnectError(
            "refused"
        )
        mock_client_cls.return_value = client

        delivery = attempt_delivery(db_session, str(pending_delivery.id))

        assert delivery.status == WebhookDeliveryStatus.failed
        assert delivery.response_body == "refused"

    @patch("httpx.Client")
    def test_last_attempt_stops_retrying(
        self, mock_client_cls, db_session, pending_delivery
    ) -> None:
        pending_delivery.attempts = 4
        db_session.commit()
        mock_client_cls.return_value = _client_returning(FakeHTTPXResponse(503))

        delivery = attempt_delivery(db_session, str(pending_delivery.id))

        assert delivery.attempts == 5
        assert delivery.next_attempt_at is None

    @patch("httpx.Client")
    def test_inactive_webhook_not_called(
        self, mock_client_cls, db_session, webhook, pending_delivery
    ) -> None:
        webhook.is_active = False
        db_session.commit()

        delivery = attempt_delivery(db_session, str(pending_delivery.id))

        assert delivery.status == WebhookDeliveryStatus.failed
        assert delivery.response_body == "Webhook inactive"
        mock_client_cls.assert_not_called()

    def test_missing_delivery(self, db_session) -> None:
        assert attempt_delivery(db_session, str(uuid.uuid4())) is None


class TestQueueRetries:
    @patch("app.tasks.webhooks.deliver_single_webhook.delay")
    def test_requeues_due_failures(
        self, mock_deliver, db_session, pending_delivery
    ) -> None:
        now = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
        pending_delivery.status = WebhookDeliveryStatus.failed
        pending_delivery.attempts = 1
        pending_delivery.next_attempt_at = now - timedelta(minutes=1)
        db_session.commit()

        ids = queue_retries(db_session, now)

        assert ids == [str(pending_delivery.id)]
        mock_deliver.assert_called_once_with(delivery_id=ids[0])
        db_session.refresh(pending_delivery)
        assert pending_delivery.status == WebhookDeliveryStatus.pending
        assert pending_delivery.next_attempt_at is None

    @patch("app.tasks.webhooks.deliver_single_webhook.delay")
    def test_ignores_future_and_exhausted(
        self, mock_deliver, db_session, pending_delivery
    ) -> None:
        now = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
        pending_delivery.status = WebhookDeliveryStatus.failed
        pending_delivery.attempts = 1
        pending_delivery.next_attempt_at = now + timedelta(minutes=5)
        db_session.commit()
        assert queue_retries(db_session, now) == []

        pending_delivery.attempts = 5
        pending_delivery.next_attempt_at = now - timedelta(minutes=5)
        db_session.commit()
        assert queue_retries(db_session, now) == []
        mock_deliver.assert_not_called()
