import logging

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.audit import UserPreference
from app.schemas.preference import PreferenceUpsert
from app.services.common import apply_pagination, coerce_uuid, flush_or_conflict

logger = logging.getLogger(__name__)


class Preferences:
    @staticmethod
    def _find(db: Session, user_id, key: str) -> UserPreference | None:
        return db.scalars(
            select(UserPreference)
            .where(UserPreference.user_id == coerce_uuid(user_id))
            .where(UserPreference.key == key)
        ).first()

    @staticmethod
    def get(db: Session, user_id, key: str) -> UserPreference:
        preference = Preferences._find(db, user_id, key)
        if not preference:
            raise HTTPException(status_code=404, detail="Preference not found")
        return preference

    @staticmethod
    def list(db: Session, user_id, limit: int, offset: int) -> list[UserPreference]:
        stmt = (
            select(UserPreference)
            .where(UserPreference.user_id == coerce_uuid(user_id))
            .order_by(UserPreference.key.asc())
        )
        return db.scalars(apply_pagination(stmt, limit, offset)).all()

    @staticmethod
    def upsert(
        db: Session, user_id, key: str, payload: PreferenceUpsert
    ) -> UserPreference:
        """One row per ``(user_id, key)``: update in place or insert."""
        preference = Preferences._find(db, user_id, key)
        if preference:
            preference.value = payload.value
            db.flush()
            logger.info("Updated preference %s for user %s", key, user_id)
            return preference
        preference = UserPreference(
            user_id=coerce_uuid(user_id), key=key, value=payload.value
        )
        db.add(preference)
        flush_or_conflict(db, "Preference already exists")
        logger.info("Created preference %s for user %s", key, user_id)
        return preference

    @staticmethod
    def delete(db: Session, user_id, key: str) -> None:
        preference = Preferences.get(db, user_id, key)
        db.delete(preference)
        db.flush()
        logger.info("Deleted preference %s for user %s", key, user_id)


preferences = Preferences()
