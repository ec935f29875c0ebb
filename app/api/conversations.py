from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_user_auth
from app.models.common import EntityKind
from app.schemas.common import ListResponse
from app.schemas.messaging import (
    ConversationCreate,
    ConversationMemberCreate,
    ConversationMemberUpdate,
    ConversationUpdate,
    MessageCreate,
    MessageUpdate,
)
from app.services.actor import ActorContext
from app.services.authorization import Action, authorize, authorize_create
from app.services.conversations import conversation_members, conversations, messages
from app.services.presenters import present, serialize

router = APIRouter(prefix="/conversations", tags=["conversations"])


def _member(membership) -> dict:
    return {
        "conversation_id": serialize(membership.conversation_id),
        "user_id": serialize(membership.user_id),
        "role": serialize(membership.role),
        "last_read_at": serialize(membership.last_read_at),
    }


@router.post("", status_code=status.HTTP_201_CREATED)
def create_conversation(
    payload: ConversationCreate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    authorize_create(actor, EntityKind.conversation, payload.workspace_id)
    conversation = conversations.create(db, payload, actor.user_id)
    # the snapshot predates the new membership
    return present(conversation)


@router.get("", response_model=ListResponse[dict])
def list_conversations(
    workspace_id: str | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    response = conversations.list_response(
        db, actor.user_id, workspace_id, limit, offset
    )
    response["items"] = [present(item, actor=actor) for item in response["items"]]
    return response


@router.get("/{conversation_id}")
def get_conversation(
    conversation_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    conversation = conversations.get(db, conversation_id)
    authorize(actor, Action.view, conversation)
    return present(conversation, actor=actor)


@router.patch("/{conversation_id}")
def update_conversation(
    conversation_id: str,
    payload: ConversationUpdate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    authorize(actor, Action.update, conversations.get(db, conversation_id))
    return present(conversations.update(db, conversation_id, payload), actor=actor)


@router.delete("/{conversation_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_conversation(
    conversation_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> None:
    authorize(actor, Action.delete, conversations.get(db, conversation_id))
    conversations.delete(db, conversation_id)


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------


@router.post("/{conversation_id}/members", status_code=status.HTTP_201_CREATED)
def add_conversation_member(
    conversation_id: str,
    payload: ConversationMemberCreate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    authorize(actor, Action.add_users, conversations.get(db, conversation_id))
    return _member(conversation_members.add(db, conversation_id, payload))


@router.patch("/{conversation_id}/members/{user_id}")
def update_conversation_member(
    conversation_id: str,
    user_id: str,
    payload: ConversationMemberUpdate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    authorize(actor, Action.update_user_role, conversations.get(db, conversation_id))
    return _member(
        conversation_members.update_role(db, conversation_id, user_id, payload)
    )


@router.delete(
    "/{conversation_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT
)
def remove_conversation_member(
    conversation_id: str,
    user_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> None:
    authorize(actor, Action.remove_users, conversations.get(db, conversation_id))
    conversation_members.remove(db, conversation_id, user_id)


@router.post("/{conversation_id}/read")
def mark_conversation_read(
    conversation_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    authorize(actor, Action.view, conversations.get(db, conversation_id))
    return _member(conversation_members.mark_read(db, conversation_id, actor.user_id))


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


@router.get("/{conversation_id}/messages", response_model=ListResponse[dict])
def list_messages(
    conversation_id: str,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    authorize(actor, Action.view, conversations.get(db, conversation_id))
    response = messages.list_response(db, conversation_id, limit, offset)
    response["items"] = [present(item, actor=actor) for item in response["items"]]
    return response


@router.post("/{conversation_id}/messages", status_code=status.HTTP_201_CREATED)
def send_message(
    conversation_id: str,
    payload: MessageCreate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    authorize(actor, Action.send_message, conversations.get(db, conversation_id))
    return present(
        messages.send(db, conversation_id, payload, actor.user_id), actor=actor
    )


@router.patch("/messages/{message_id}")
def update_message(
    message_id: str,
    payload: MessageUpdate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    authorize(actor, Action.update, messages.get(db, message_id))
    return present(messages.update(db, message_id, payload), actor=actor)


@router.delete("/messages/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_message(
    message_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> None:
    authorize(actor, Action.delete, messages.get(db, message_id))
    messages.delete(db, message_id)
