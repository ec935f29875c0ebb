import uuid
from unittest.mock import patch

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from app.models.common import EntityKind
from app.schemas.engagement import NotificationCreate
from app.services.event import EventType
from app.services.notifications import notifications


class TestNotificationsService:
    def test_notify_about_entity(self, db_session, person, workspace) -> None:
        notification = notifications.notify(
            db_session, person.id, "workspace.joined", workspace, {"by": "Ada"}
        )
        assert notification.notifiable_type == EntityKind.workspace
        assert notification.notifiable_id == workspace.id
        assert notification.read_at is None

    def test_notify_publishes_event(self, db_session, person) -> None:
        with patch("app.services.notifications.publish_event") as mock_publish:
            notifications.notify(db_session, person.id, "digest")
        assert mock_publish.call_args.args[0] == EventType.notification_created

    def test_create_checks_target(self, db_session, person) -> None:
        with pytest.raises(HTTPException) as exc:
            notifications.create(
                db_session,
                NotificationCreate(
                    user_id=person.id,
                    type="mention",
                    notifiable_type=EntityKind.task,
                    notifiable_id=uuid.uuid4(),
                ),
            )
        assert exc.value.status_code == 404

    def test_create_needs_type_and_id_together(self, person) -> None:
        with pytest.raises(ValidationError):
            NotificationCreate(
                user_id=person.id, type="mention", notifiable_type=EntityKind.task
            )

    def test_read_state(self, db_session, person) -> None:
        first = notifications.notify(db_session, person.id, "digest")
        notifications.notify(db_session, person.id, "digest")
        db_session.commit()
        assert notifications.unread_count(db_session, person.id) == 2

        notifications.mark_read(db_session, str(first.id))
        assert first.read_at is not None
        assert notifications.unread_count(db_session, person.id) == 1
        unread = notifications.list(db_session, person.id, True, 10, 0)
        assert first.id not in [item.id for item in unread]

        notifications.mark_unread(db_session, str(first.id))
        assert notifications.unread_count(db_session, person.id) == 2

    def test_mark_all_read_is_per_user(
        self, db_session, person, other_person
    ) -> None:
        notifications.notify(db_session, person.id, "digest")
        notifications.notify(db_session, person.id, "digest")
        notifications.notify(db_session, other_person.id, "digest")
        db_session.commit()
        assert notifications.mark_all_read(db_session, person.id) == 2
        assert notifications.unread_count(db_session, person.id) == 0
        assert notifications.unread_count(db_session, other_person.id) == 1

    def test_delete(self, db_session, person) -> None:
        notification = notifications.notify(db_session, person.id, "digest")
        notifications.delete(db_session, str(notification.id))
        with pytest.raises(HTTPException) as exc:
            notifications.get(db_session, str(notification.id))
        assert exc.value.status_code == 404
