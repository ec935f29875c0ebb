import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.common import EntityKind
from app.models.content import Wiki, WikiRevision
from app.models.workspace import Workspace
from app.schemas.content import WikiCreate, WikiUpdate
from app.services import audit
from app.services.common import (
    apply_ordering,
    apply_pagination,
    coerce_uuid,
    get_or_404,
)
from app.services.event import EventType, publish_event
from app.services.hierarchy import (
    prepare_for_insert,
    slugify,
    unique_slug,
    validate_parent,
)
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


class Wikis(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: WikiCreate, author_id) -> Wiki:
        data = prepare_for_insert(EntityKind.wiki, payload.model_dump())
        get_or_404(db, Workspace, data["workspace_id"], "Workspace")
        validate_parent(
            db, Wiki, data.get("parent_id"), data["workspace_id"], label="Parent wiki"
        )
        data["slug"] = unique_slug(
            db, Wiki, slugify(data["slug"] or ""), workspace_id=data["workspace_id"]
        )
        wiki = Wiki(created_by_id=coerce_uuid(author_id), **data)
        db.add(wiki)
        db.flush()
        db.add(
            WikiRevision(
                wiki_id=wiki.id,
                user_id=wiki.created_by_id,
                title=wiki.title,
                content=wiki.content,
                summary="Initial version",
            )
        )
        db.flush()
        db.refresh(wiki)
        audit.log_activity(db, author_id, "wiki.created", wiki)
        logger.info("Created wiki %s", wiki.id)
        publish_event(
            EventType.wiki_created,
            "wiki",
            wiki.id,
            actor_id=author_id,
            workspace_id=wiki.workspace_id,
        )
        return wiki

    @staticmethod
    def get(db: Session, wiki_id: str) -> Wiki:
        return get_or_404(db, Wiki, wiki_id, "Wiki")

    @staticmethod
    def list(
        db: Session,
        workspace_id: str,
        parent_id: str | None,
        roots_only: bool,
        is_published: bool | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[Wiki]:
        stmt = select(Wiki).where(Wiki.workspace_id == coerce_uuid(workspace_id))
        if parent_id is not None:
            stmt = stmt.where(Wiki.parent_id == coerce_uuid(parent_id))
        elif roots_only:
            stmt = stmt.where(Wiki.parent_id.is_(None))
        if is_published is not None:
            stmt = stmt.where(Wiki.is_published == is_published)
        stmt = apply_ordering(
            stmt,
            order_by,
            order_dir,
            {"title": Wiki.title, "created_at": Wiki.created_at},
        )
        return db.scalars(apply_pagination(stmt, limit, offset)).all()

    @staticmethod
    def update(db: Session, wiki_id: str, payload: WikiUpdate, editor_id) -> Wiki:
        """Apply ``payload`` and snapshot the result as a new revision.

        A revision is only written when the title or the content changed.
        """
        wiki = get_or_404(db, Wiki, wiki_id, "Wiki")
        data = payload.model_dump(exclude_unset=True)
        summary = data.pop("summary", None)
        if data.get("parent_id") is not None:
            validate_parent(
                db,
                Wiki,
                data["parent_id"],
                wiki.workspace_id,
                entity_id=wiki.id,
                label="Parent wiki",
            )
        if data.get("slug"):
            data["slug"] = unique_slug(
                db,
                Wiki,
                slugify(data["slug"]),
                workspace_id=wiki.workspace_id,
                exclude_id=wiki.id,
            )
        changed = any(
            key in data and data[key] != getattr(wiki, key)
            for key in ("title", "content")
        )
        for key, value in data.items():
            setattr(wiki, key, value)
        if changed:
            db.add(
                WikiRevision(
                    wiki_id=wiki.id,
                    user_id=coerce_uuid(editor_id),
                    title=wiki.title,
                    content=wiki.content,
                    summary=summary,
                )
            )
        db.flush()
        db.refresh(wiki)
        logger.info("Updated wiki %s", wiki.id)
        publish_event(
            EventType.wiki_updated,
            "wiki",
            wiki.id,
            actor_id=editor_id,
            workspace_id=wiki.workspace_id,
        )
        return wiki

    @staticmethod
    def delete(db: Session, wiki_id: str, actor_id=None) -> None:
        wiki = get_or_404(db, Wiki, wiki_id, "Wiki")
        workspace_id = wiki.workspace_id
        entity_id = wiki.id
        # a bare parent_id change would be nulled again by the delete
        for child in list(wiki.children):
            child.parent = wiki.parent
        db.delete(wiki)
        db.flush()
        logger.info("Deleted wiki %s", entity_id)
        publish_event(
            EventType.wiki_deleted,
            "wiki",
            entity_id,
            actor_id=actor_id,
            workspace_id=workspace_id,
        )


wikis = Wikis()
