from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_user_auth
from app.models.common import EntityKind
from app.schemas.common import ListResponse
from app.schemas.engagement import (
    CustomFieldCreate,
    CustomFieldUpdate,
    CustomFieldValueSet,
)
from app.services.actor import ActorContext
from app.services.authorization import Action, authorize, authorize_create, can
from app.services.custom_fields import custom_field_values, custom_fields
from app.services.entity_kinds import load
from app.services.presenters import present

router = APIRouter(prefix="/custom-fields", tags=["custom-fields"])


@router.post("", status_code=status.HTTP_201_CREATED)
def create_custom_field(
    payload: CustomFieldCreate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    authorize_create(actor, EntityKind.custom_field, payload.workspace_id)
    return present(custom_fields.create(db, payload), actor=actor)


@router.get("", response_model=ListResponse[dict])
def list_custom_fields(
    workspace_id: str,
    applies_to: str | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    response = custom_fields.list_response(
        db, workspace_id, applies_to, limit, offset
    )
    response["items"] = [
        present(item, actor=actor)
        for item in response["items"]
        if can(actor, Action.view, item)
    ]
    response["count"] = len(response["items"])
    return response


# must precede "/{field_id}"
@router.get("/values", response_model=ListResponse[dict])
def list_values(
    entity_type: EntityKind,
    entity_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    entity = load(db, entity_type, entity_id)
    if entity is None:
        raise HTTPException(status_code=404, detail="Entity not found")
    authorize(actor, Action.view, entity)
    items = custom_field_values.list_for_entity(db, entity_type, entity.id)
    return {
        "items": [present(item, actor=actor) for item in items],
        "count": len(items),
        "limit": None,
        "offset": None,
    }


@router.delete("/values/{value_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_value(
    value_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> None:
    authorize(actor, Action.delete, custom_field_values.get(db, value_id))
    custom_field_values.delete(db, value_id)


@router.get("/{field_id}")
def get_custom_field(
    field_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    field = custom_fields.get(db, field_id)
    authorize(actor, Action.view, field)
    return present(field, actor=actor)


@router.patch("/{field_id}")
def update_custom_field(
    field_id: str,
    payload: CustomFieldUpdate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    authorize(actor, Action.update, custom_fields.get(db, field_id))
    return present(custom_fields.update(db, field_id, payload), actor=actor)


@router.delete("/{field_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_custom_field(
    field_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> None:
    authorize(actor, Action.delete, custom_fields.get(db, field_id))
    custom_fields.delete(db, field_id)


@router.put("/{field_id}/values")
def set_value(
    field_id: str,
    payload: CustomFieldValueSet,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    field = custom_fields.get(db, field_id)
    authorize_create(actor, EntityKind.custom_field_value, field.workspace_id)
    target = load(db, payload.entity_type, payload.entity_id)
    if target is not None:
        authorize(actor, Action.view, target)
    return present(custom_field_values.set(db, field_id, payload), actor=actor)
