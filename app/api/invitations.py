from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_user_auth
from app.models.common import EntityKind
from app.schemas.common import ListResponse
from app.schemas.workspace import InvitationCreate, InvitationUpdate
from app.services.actor import ActorContext
from app.services.authorization import Action, authorize, authorize_create, can
from app.services.invitations import invitations
from app.services.presenters import present, serialize

router = APIRouter(prefix="/invitations", tags=["invitations"])


def _membership(membership) -> dict:
    return {
        "workspace_id": serialize(membership.workspace_id),
        "user_id": serialize(membership.user_id),
        "role": serialize(membership.role),
        "joined_at": serialize(membership.joined_at),
    }


@router.post("", status_code=status.HTTP_201_CREATED)
def create_invitation(
    payload: InvitationCreate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    authorize_create(actor, EntityKind.invitation, payload.workspace_id)
    return present(invitations.create(db, payload, actor.user_id), actor=actor)


@router.get("", response_model=ListResponse[dict])
def list_invitations(
    workspace_id: str,
    status: str | None = Query(
        default=None, pattern="^(pending|accepted|declined|expired)$"
    ),
    limit: int = Query(default=25, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    response = invitations.list_response(db, workspace_id, status, limit, offset)
    response["items"] = [
        present(item, actor=actor)
        for item in response["items"]
        if can(actor, Action.view, item)
    ]
    response["count"] = len(response["items"])
    return response


# token routes must precede "/{invitation_id}"
@router.post("/accept/{token}")
def accept_invitation(
    token: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    membership = invitations.accept(db, token, actor.user_id, actor.email)
    return _membership(membership)


@router.post("/decline/{token}")
def decline_invitation(
    token: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    return present(invitations.decline(db, token, actor.email), actor=actor)


@router.get("/{invitation_id}")
def get_invitation(
    invitation_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    invitation = invitations.get(db, invitation_id)
    authorize(actor, Action.view, invitation)
    return present(invitation, actor=actor)


@router.patch("/{invitation_id}")
def update_invitation(
    invitation_id: str,
    payload: InvitationUpdate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    authorize(actor, Action.update, invitations.get(db, invitation_id))
    return present(invitations.update(db, invitation_id, payload), actor=actor)


@router.post("/{invitation_id}/resend")
def resend_invitation(
    invitation_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    authorize(actor, Action.resend, invitations.get(db, invitation_id))
    return present(invitations.resend(db, invitation_id), actor=actor)


@router.delete("/{invitation_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_invitation(
    invitation_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> None:
    authorize(actor, Action.delete, invitations.get(db, invitation_id))
    invitations.delete(db, invitation_id)
