import logging

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.common import EntityKind
from app.models.content import Comment
from app.schemas.content import CommentCreate, CommentUpdate
from app.services import audit
from app.services.common import apply_pagination, coerce_uuid, get_or_404, utcnow
from app.services.entity_kinds import load
from app.services.event import EventType, publish_event
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)

# kinds a comment may be attached to
COMMENTABLE_KINDS = frozenset(
    {
        EntityKind.project,
        EntityKind.task,
        EntityKind.goal,
        EntityKind.wiki,
        EntityKind.event,
        EntityKind.time_log,
    }
)


class Comments(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: CommentCreate, author_id) -> Comment:
        if payload.commentable_type not in COMMENTABLE_KINDS:
            raise HTTPException(
                status_code=400,
                detail=f"Cannot comment on {payload.commentable_type.value}",
            )
        target = load(db, payload.commentable_type, payload.commentable_id)
        if target is None:
            raise HTTPException(status_code=404, detail="Commented entity not found")
        if payload.parent_id is not None:
            parent = get_or_404(db, Comment, payload.parent_id, "Parent comment")
            if (
                parent.commentable_type != payload.commentable_type
                or parent.commentable_id != payload.commentable_id
            ):
                raise HTTPException(
                    status_code=400,
                    detail="Parent comment belongs to a different thread",
                )
        comment = Comment(
            user_id=coerce_uuid(author_id),
            workspace_id=getattr(target, "workspace_id", None),
            **payload.model_dump(),
        )
        db.add(comment)
        db.flush()
        db.refresh(comment)
        audit.log_activity(
            db,
            author_id,
            "comment.created",
            target,
            properties={"comment_id": str(comment.id)},
        )
        logger.info("Created comment %s", comment.id)
        publish_event(
            EventType.comment_created,
            "comment",
            comment.id,
            actor_id=author_id,
            workspace_id=comment.workspace_id,
            payload={
                "commentable_type": comment.commentable_type.value,
                "commentable_id": str(comment.commentable_id),
            },
        )
        return comment

    @staticmethod
    def get(db: Session, comment_id: str) -> Comment:
        return get_or_404(db, Comment, comment_id, "Comment")

    @staticmethod
    def list(
        db: Session,
        commentable_type: EntityKind,
        commentable_id: str,
        include_internal: bool,
        limit: int,
        offset: int,
    ) -> list[Comment]:
        """Top-level comments of one target, oldest first."""
        stmt = (
            select(Comment)
            .where(Comment.commentable_type == commentable_type)
            .where(Comment.commentable_id == coerce_uuid(commentable_id))
            .where(Comment.parent_id.is_(None))
        )
        if not include_internal:
            stmt = stmt.where(Comment.is_internal.is_(False))
        stmt = stmt.order_by(Comment.created_at.asc())
        return db.scalars(apply_pagination(stmt, limit, offset)).all()

    @staticmethod
    def update(db: Session, comment_id: str, payload: CommentUpdate) -> Comment:
        comment = get_or_404(db, Comment, comment_id, "Comment")
        data = payload.model_dump(exclude_unset=True)
        if "content" in data and data["content"] != comment.content:
            comment.is_edited = True
            comment.edited_at = utcnow()
        for key, value in data.items():
            setattr(comment, key, value)
        db.flush()
        db.refresh(comment)
        logger.info("Updated comment %s", comment.id)
        publish_event(
            EventType.comment_updated,
            "comment",
            comment.id,
            workspace_id=comment.workspace_id,
        )
        return comment

    @staticmethod
    def delete(db: Session, comment_id: str, actor_id=None) -> None:
        comment = get_or_404(db, Comment, comment_id, "Comment")
        workspace_id = comment.workspace_id
        entity_id = comment.id
        db.delete(comment)
        db.flush()
        logger.info("Deleted comment %s", entity_id)
        publish_event(
            EventType.comment_deleted,
            "comment",
            entity_id,
            actor_id=actor_id,
            workspace_id=workspace_id,
        )


comments = Comments()
