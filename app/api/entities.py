from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_user_auth
from app.services.actor import ActorContext
from app.services.authorization import Action, authorize
from app.services.entity_kinds import parse_kind
from app.services.presenters import present
from app.services.relations import (
    NotFound,
    load_relations,
    parse_relations,
    resolve,
)

router = APIRouter(prefix="/entities", tags=["entities"])


@router.get("/{kind}/{entity_id}")
def get_entity(
    kind: str,
    entity_id: str,
    include: str | None = Query(default=None, description="Comma-separated relations"),
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    entity_kind = parse_kind(kind)
    if entity_kind is None:
        raise HTTPException(status_code=404, detail=f"Unknown entity type {kind}")
    result = resolve(db, entity_kind, entity_id)
    if isinstance(result, NotFound):
        label = entity_kind.value.replace("_", " ").capitalize()
        raise HTTPException(status_code=404, detail=f"{label} not found")
    authorize(actor, Action.view, result.entity)
    relations = load_relations(db, result.entity, parse_relations(include))
    return present(result.entity, relations, actor)
