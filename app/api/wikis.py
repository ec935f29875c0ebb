from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_user_auth
from app.models.common import EntityKind
from app.schemas.common import ListResponse
from app.schemas.content import WikiCreate, WikiUpdate
from app.services.actor import ActorContext
from app.services.authorization import Action, authorize, authorize_create, can
from app.services.presenters import present
from app.services.wikis import wikis

router = APIRouter(prefix="/wikis", tags=["wikis"])


@router.post("", status_code=status.HTTP_201_CREATED)
def create_wiki(
    payload: WikiCreate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    authorize_create(actor, EntityKind.wiki, payload.workspace_id)
    return present(wikis.create(db, payload, actor.user_id), actor=actor)


@router.get("", response_model=ListResponse[dict])
def list_wikis(
    workspace_id: str,
    parent_id: str | None = None,
    roots_only: bool = False,
    is_published: bool | None = None,
    order_by: str = Query(default="title"),
    order_dir: str = Query(default="asc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    response = wikis.list_response(
        db,
        workspace_id,
        parent_id,
        roots_only,
        is_published,
        order_by,
        order_dir,
        limit,
        offset,
    )
    # public pages and collaborator invites make visibility per page
    response["items"] = [
        present(item, actor=actor)
        for item in response["items"]
        if can(actor, Action.view, item)
    ]
    response["count"] = len(response["items"])
    return response


@router.get("/{wiki_id}")
def get_wiki(
    wiki_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    wiki = wikis.get(db, wiki_id)
    authorize(actor, Action.view, wiki)
    return present(wiki, actor=actor)


@router.patch("/{wiki_id}")
def update_wiki(
    wiki_id: str,
    payload: WikiUpdate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    authorize(actor, Action.update, wikis.get(db, wiki_id))
    return present(wikis.update(db, wiki_id, payload, actor.user_id), actor=actor)


@router.delete("/{wiki_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_wiki(
    wiki_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> None:
    authorize(actor, Action.delete, wikis.get(db, wiki_id))
    wikis.delete(db, wiki_id, actor.user_id)
