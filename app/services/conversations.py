import logging

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.common import Role
from app.models.messaging import (
    Conversation,
    ConversationType,
    ConversationUser,
    Message,
    MessageType,
)
from app.models.workspace import User, Workspace
from app.schemas.messaging import (
    ConversationCreate,
    ConversationMemberCreate,
    ConversationMemberUpdate,
    ConversationUpdate,
    MessageCreate,
    MessageUpdate,
)
from app.services.common import (
    apply_pagination,
    coerce_uuid,
    flush_or_conflict,
    get_or_404,
    utcnow,
)
from app.services.event import EventType, publish_event
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


class Conversations(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: ConversationCreate, creator_id) -> Conversation:
        get_or_404(db, Workspace, payload.workspace_id, "Workspace")
        creator_id = coerce_uuid(creator_id)
        others = [
            user_id
            for user_id in dict.fromkeys(payload.user_ids)
            if user_id != creator_id
        ]
        if payload.type == ConversationType.direct and len(others) != 1:
            raise HTTPException(
                status_code=400,
                detail="A direct conversation needs exactly one other user",
            )
        for user_id in others:
            get_or_404(db, User, user_id, "User")
        conversation = Conversation(
            workspace_id=payload.workspace_id,
            name=payload.name,
            type=payload.type,
            is_private=payload.is_private,
        )
        db.add(conversation)
        db.flush()
        db.add(
            ConversationUser(
                conversation_id=conversation.id, user_id=creator_id, role=Role.owner
            )
        )
        for user_id in others:
            db.add(ConversationUser(conversation_id=conversation.id, user_id=user_id))
        db.flush()
        db.refresh(conversation)
        logger.info("Created conversation %s", conversation.id)
        publish_event(
            EventType.conversation_created,
            "conversation",
            conversation.id,
            actor_id=creator_id,
            workspace_id=conversation.workspace_id,
        )
        return conversation

    @staticmethod
    def get(db: Session, conversation_id: str) -> Conversation:
        return get_or_404(db, Conversation, conversation_id, "Conversation")

    @staticmethod
    def list(
        db: Session,
        user_id,
        workspace_id: str | None,
        limit: int,
        offset: int,
    ) -> list[Conversation]:
        stmt = (
            select(Conversation)
            .join(
                ConversationUser,
                ConversationUser.conversation_id == Conversation.id,
            )
            .where(ConversationUser.user_id == coerce_uuid(user_id))
        )
        if workspace_id is not None:
            stmt = stmt.where(Conversation.workspace_id == coerce_uuid(workspace_id))
        stmt = stmt.order_by(Conversation.updated_at.desc())
        return db.scalars(apply_pagination(stmt, limit, offset)).all()

    @staticmethod
    def update(
        db: Session, conversation_id: str, payload: ConversationUpdate
    ) -> Conversation:
        conversation = get_or_404(db, Conversation, conversation_id, "Conversation")
        for key, value in payload.model_dump(exclude_unset=True).items():
            setattr(conversation, key, value)
        db.flush()
        db.refresh(conversation)
        logger.info("Updated conversation %s", conversation.id)
        return conversation

    @staticmethod
    def delete(db: Session, conversation_id: str) -> None:
        conversation = get_or_404(db, Conversation, conversation_id, "Conversation")
        db.delete(conversation)
        db.flush()
        logger.info("Deleted conversation %s", conversation_id)


class ConversationMembers:
    @staticmethod
    def _membership(db: Session, conversation_id, user_id) -> ConversationUser:
        membership = db.scalars(
            select(ConversationUser)
            .where(ConversationUser.conversation_id == coerce_uuid(conversation_id))
            .where(ConversationUser.user_id == coerce_uuid(user_id))
        ).first()
        if not membership:
            raise HTTPException(
                status_code=404, detail="Conversation member not found"
            )
        return membership

    @staticmethod
    def add(
        db: Session, conversation_id: str, payload: ConversationMemberCreate
    ) -> ConversationUser:
        conversation = get_or_404(db, Conversation, conversation_id, "Conversation")
        if conversation.type == ConversationType.direct:
            raise HTTPException(
                status_code=400, detail="Direct conversations have fixed members"
            )
        get_or_404(db, User, payload.user_id, "User")
        if payload.role == Role.owner:
            raise HTTPException(
                status_code=400, detail="A conversation has exactly one owner"
            )
        membership = ConversationUser(
            conversation_id=conversation.id,
            user_id=payload.user_id,
            role=payload.role,
        )
        db.add(membership)
        flush_or_conflict(db, "User is already in this conversation")
        logger.info(
            "Added user %s to conversation %s", payload.user_id, conversation.id
        )
        return membership

    @staticmethod
    def update_role(
        db: Session,
        conversation_id: str,
        user_id: str,
        payload: ConversationMemberUpdate,
    ) -> ConversationUser:
        membership = ConversationMembers._membership(db, conversation_id, user_id)
        if membership.role == Role.owner or payload.role == Role.owner:
            raise HTTPException(
                status_code=400, detail="Ownership cannot be changed here"
            )
        membership.role = payload.role
        db.flush()
        logger.info(
            "Updated role of user %s in conversation %s", user_id, conversation_id
        )
        return membership

    @staticmethod
    def remove(db: Session, conversation_id: str, user_id: str) -> None:
        membership = ConversationMembers._membership(db, conversation_id, user_id)
        if membership.role == Role.owner:
            raise HTTPException(
                status_code=400, detail="The conversation owner cannot be removed"
            )
        db.delete(membership)
        db.flush()
        logger.info("Removed user %s from conversation %s", user_id, conversation_id)

    @staticmethod
    def mark_read(db: Session, conversation_id: str, user_id) -> ConversationUser:
        membership = ConversationMembers._membership(db, conversation_id, user_id)
        membership.last_read_at = utcnow()
        db.flush()
        return membership


class Messages(ListResponseMixin):
    @staticmethod
    def send(
        db: Session, conversation_id: str, payload: MessageCreate, sender_id
    ) -> Message:
        conversation = get_or_404(db, Conversation, conversation_id, "Conversation")
        message = Message(
            conversation_id=conversation.id,
            user_id=coerce_uuid(sender_id),
            content=payload.content,
            metadata_=payload.metadata_,
            type=MessageType.user,
        )
        db.add(message)
        conversation.updated_at = utcnow()
        db.flush()
        db.refresh(message)
        logger.info("Created message %s", message.id)
        publish_event(
            EventType.message_created,
            "message",
            message.id,
            actor_id=sender_id,
            workspace_id=conversation.workspace_id,
            payload={"conversation_id": str(conversation.id)},
        )
        return message

    @staticmethod
    def get(db: Session, message_id: str) -> Message:
        return get_or_404(db, Message, message_id, "Message")

    @staticmethod
    def list(
        db: Session, conversation_id: str, limit: int, offset: int
    ) -> list[Message]:
        stmt = (
            select(Message)
            .where(Message.conversation_id == coerce_uuid(conversation_id))
            .order_by(Message.created_at.asc())
        )
        return db.scalars(apply_pagination(stmt, limit, offset)).all()

    @staticmethod
    def update(db: Session, message_id: str, payload: MessageUpdate) -> Message:
        message = get_or_404(db, Message, message_id, "Message")
        if message.content != payload.content:
            message.content = payload.content
            message.is_edited = True
            message.edited_at = utcnow()
        db.flush()
        db.refresh(message)
        logger.info("Updated message %s", message.id)
        return message

    @staticmethod
    def delete(db: Session, message_id: str) -> None:
        message = get_or_404(db, Message, message_id, "Message")
        db.delete(message)
        db.flush()
        logger.info("Deleted message %s", message_id)


conversations = Conversations()
conversation_members = ConversationMembers()
messages = Messages()
