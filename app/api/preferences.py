from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_user_auth
from app.schemas.common import ListResponse
from app.schemas.preference import PreferenceUpsert
from app.services.actor import ActorContext
from app.services.presenters import present
from app.services.preferences import preferences

router = APIRouter(prefix="/preferences", tags=["preferences"])


@router.get("", response_model=ListResponse[dict])
def list_preferences(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    items = preferences.list(db, actor.user_id, limit, offset)
    return {
        "items": [present(item, actor=actor) for item in items],
        "count": len(items),
        "limit": limit,
        "offset": offset,
    }


@router.get("/{key}")
def get_preference(
    key: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    return present(preferences.get(db, actor.user_id, key), actor=actor)


@router.put("/{key}")
def upsert_preference(
    key: str,
    payload: PreferenceUpsert,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    return present(preferences.upsert(db, actor.user_id, key, payload), actor=actor)


@router.delete("/{key}", status_code=status.HTTP_204_NO_CONTENT)
def delete_preference(
    key: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> None:
    preferences.delete(db, actor.user_id, key)
