import pytest
from fastapi import HTTPException

from app.models.common import Role
from app.models.messaging import ConversationType
from app.schemas.messaging import (
    ConversationCreate,
    ConversationMemberCreate,
    MessageCreate,
    MessageUpdate,
)
from app.services.conversations import conversation_members, conversations, messages


@pytest.fixture()
def group(db_session, person, workspace):
    item = conversations.create(
        db_session,
        ConversationCreate(workspace_id=workspace.id, name="general"),
        person.id,
    )
    db_session.commit()
    return item


class TestConversationsService:
    def test_creator_is_owner(self, group, person) -> None:
        (membership,) = group.memberships
        assert membership.user_id == person.id
        assert membership.role == Role.owner

    def test_direct_needs_exactly_one_other(
        self, db_session, person, workspace
    ) -> None:
        with pytest.raises(HTTPException) as exc:
            conversations.create(
                db_session,
                ConversationCreate(
                    workspace_id=workspace.id,
                    type=ConversationType.direct,
                    user_ids=[person.id],
                ),
                person.id,
            )
        assert exc.value.status_code == 400

    def test_direct_members_are_fixed(
        self, db_session, person, other_person, workspace
    ) -> None:
        direct = conversations.create(
            db_session,
            ConversationCreate(
                workspace_id=workspace.id,
                type=ConversationType.direct,
                user_ids=[other_person.id],
            ),
            person.id,
        )
        assert len(direct.memberships) == 2
        with pytest.raises(HTTPException) as exc:
            conversation_members.add(
                db_session,
                str(direct.id),
                ConversationMemberCreate(user_id=other_person.id),
            )
        assert exc.value.detail == "Direct conversations have fixed members"

    def test_list_only_joined(
        self, db_session, person, other_person, workspace, group
    ) -> None:
        conversations.create(
            db_session,
            ConversationCreate(workspace_id=workspace.id, name="secret"),
            other_person.id,
        )
        result = conversations.list(
            db_session, person.id, str(workspace.id), limit=10, offset=0
        )
        assert [item.id for item in result] == [group.id]


class TestConversationMembersService:
    def test_add_and_remove(self, db_session, other_person, group) -> None:
        conversation_members.add(
            db_session, str(group.id), ConversationMemberCreate(user_id=other_person.id)
        )
        db_session.commit()
        with pytest.raises(HTTPException) as exc:
            conversation_members.add(
                db_session,
                str(group.id),
                ConversationMemberCreate(user_id=other_person.id),
            )
        assert exc.value.status_code == 409
        conversation_members.remove(db_session, str(group.id), str(other_person.id))
        with pytest.raises(HTTPException) as exc:
            conversation_members.remove(
                db_session, str(group.id), str(other_person.id)
            )
        assert exc.value.status_code == 404

    def test_owner_cannot_leave(self, db_session, person, group) -> None:
        with pytest.raises(HTTPException) as exc:
            conversation_members.remove(db_session, str(group.id), str(person.id))
        assert exc.value.status_code == 400

    def test_mark_read(self, db_session, person, group) -> None:
        membership = conversation_members.mark_read(
            db_session, str(group.id), person.id
        )
        assert membership.last_read_at is not None


class TestMessagesService:
    def test_send_and_list(self, db_session, person, group) -> None:
        messages.send(
            db_session, str(group.id), MessageCreate(content="one"), person.id
        )
        messages.send(
            db_session, str(group.id), MessageCreate(content="two"), person.id
        )
        result = messages.list(db_session, str(group.id), limit=10, offset=0)
        assert sorted(item.content for item in result) == ["one", "two"]

    def test_send_publishes_event(
        self, db_session, person, group, _silence_events
    ) -> None:
        message = messages.send(
            db_session, str(group.id), MessageCreate(content="hi"), person.id
        )
        kwargs = _silence_events.call_args.kwargs
        assert kwargs["event_type"] == "message.created"
        assert kwargs["entity_id"] == str(message.id)

    def test_edit_marks_message(self, db_session, person, group) -> None:
        message = messages.send(
            db_session, str(group.id), MessageCreate(content="typo"), person.id
        )
        unchanged = messages.update(
            db_session, str(message.id), MessageUpdate(content="typo")
        )
        assert unchanged.is_edited is False
        edited = messages.update(
            db_session, str(message.id), MessageUpdate(content="fixed")
        )
        assert edited.is_edited is True
        assert edited.edited_at is not None
