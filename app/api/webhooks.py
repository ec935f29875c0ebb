from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_user_auth
from app.models.common import EntityKind
from app.schemas.common import ListResponse
from app.schemas.webhook import WebhookCreate, WebhookUpdate
from app.services.actor import ActorContext
from app.services.authorization import Action, authorize, authorize_create, can
from app.services.presenters import present
from app.services.webhook import webhook_deliveries, webhooks

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("", status_code=status.HTTP_201_CREATED)
def create_webhook(
    payload: WebhookCreate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    authorize_create(actor, EntityKind.webhook, payload.workspace_id)
    return present(webhooks.create(db, payload, actor.user_id), actor=actor)


@router.get("", response_model=ListResponse[dict])
def list_webhooks(
    workspace_id: str | None = None,
    is_active: bool | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=25, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    response = webhooks.list_response(
        db, workspace_id, is_active, order_by, order_dir, limit, offset
    )
    response["items"] = [
        present(item, actor=actor)
        for item in response["items"]
        if can(actor, Action.view, item)
    ]
    response["count"] = len(response["items"])
    return response


# must precede "/{webhook_id}"
@router.get("/deliveries", response_model=ListResponse[dict])
def list_deliveries(
    webhook_id: str | None = None,
    event: str | None = None,
    status: str | None = Query(default=None, pattern="^(pending|delivered|failed)$"),
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=25, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    response = webhook_deliveries.list_response(
        db, webhook_id, event, status, order_by, order_dir, limit, offset
    )
    response["items"] = [
        present(item, actor=actor)
        for item in response["items"]
        if can(actor, Action.view, item)
    ]
    response["count"] = len(response["items"])
    return response


@router.get("/deliveries/{delivery_id}")
def get_delivery(
    delivery_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    delivery = webhook_deliveries.get(db, delivery_id)
    authorize(actor, Action.view, delivery)
    return present(delivery, actor=actor)


@router.post("/deliveries/{delivery_id}/retry")
def retry_delivery(
    delivery_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    authorize(actor, Action.retry, webhook_deliveries.get(db, delivery_id))
    return present(webhook_deliveries.retry(db, delivery_id), actor=actor)


@router.delete(
    "/deliveries/{delivery_id}", status_code=status.HTTP_204_NO_CONTENT
)
def delete_delivery(
    delivery_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> None:
    authorize(actor, Action.delete, webhook_deliveries.get(db, delivery_id))
    webhook_deliveries.delete(db, delivery_id)


@router.get("/{webhook_id}")
def get_webhook(
    webhook_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    webhook = webhooks.get(db, webhook_id)
    authorize(actor, Action.view, webhook)
    return present(webhook, actor=actor)


@router.patch("/{webhook_id}")
def update_webhook(
    webhook_id: str,
    payload: WebhookUpdate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> dict:
    authorize(actor, Action.update, webhooks.get(db, webhook_id))
    return present(webhooks.update(db, webhook_id, payload), actor=actor)


@router.delete("/{webhook_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_webhook(
    webhook_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_user_auth),
) -> None:
    authorize(actor, Action.delete, webhooks.get(db, webhook_id))
    webhooks.delete(db, webhook_id)
