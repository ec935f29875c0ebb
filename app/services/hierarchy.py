import re
import unicodedata

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.common import EntityKind
from app.services.common import coerce_uuid
from app.services.relations import descendant_ids

# kind -> attribute the slug is derived from
SLUG_SOURCES = {
    EntityKind.workspace: "name",
    EntityKind.project: "name",
    EntityKind.status: "name",
    EntityKind.pipeline: "name",
    EntityKind.wiki: "title",
}


def slugify(text: str) -> str:
    normalized = unicodedata.normalize("NFKD", text or "")
    ascii_text = normalized.encode("ascii", "ignore").decode("ascii").lower()
    return re.sub(r"[^a-z0-9]+", "-", ascii_text).strip("-")


def prepare_for_insert(kind: EntityKind, data: dict) -> dict:
    """Return a copy of ``data`` with derived defaults filled in.

    Fills ``slug`` from the kind's title/name attribute when it is missing
    and drops an explicit ``parent_id`` of ``None``.
    """
    prepared = dict(data)
    source = SLUG_SOURCES.get(kind)
    if source and not prepared.get("slug") and prepared.get(source):
        prepared["slug"] = slugify(prepared[source])
    if "parent_id" in prepared and prepared["parent_id"] is None:
        prepared.pop("parent_id")
    return prepared


def unique_slug(
    db: Session, model, slug: str, workspace_id=None, exclude_id=None
) -> str:
    base = slug or "untitled"
    candidate = base
    suffix = 2
    while True:
        stmt = select(model.id).where(model.slug == candidate)
        if workspace_id is not None and hasattr(model, "workspace_id"):
            stmt = stmt.where(model.workspace_id == workspace_id)
        if exclude_id is not None:
            stmt = stmt.where(model.id != exclude_id)
        if db.scalars(stmt).first() is None:
            return candidate
        candidate = f"{base}-{suffix}"
        suffix += 1


def validate_parent(
    db: Session,
    model,
    parent_id,
    workspace_id,
    entity_id=None,
    label: str = "Parent",
):
    """Check that ``parent_id`` can be the parent of ``entity_id``.

    The parent must exist, share the workspace, and must not be the entity
    itself or one of its descendants.
    """
    if parent_id is None:
        return None
    parent = db.get(model, coerce_uuid(parent_id))
    if not parent:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    if getattr(parent, "workspace_id", None) != workspace_id:
        raise HTTPException(
            status_code=400, detail=f"{label} belongs to a different workspace"
        )
    if entity_id is not None:
        entity_id = coerce_uuid(entity_id)
        if parent.id == entity_id or parent.id in descendant_ids(db, model, entity_id):
            raise HTTPException(
                status_code=400, detail=f"{label} would create a cycle"
            )
    return parent
