import hashlib
import logging
import secrets

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.workspace import ApiToken, User
from app.services.common import coerce_uuid, ensure_utc, utcnow

logger = logging.getLogger(__name__)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def issue_token(db: Session, user_id, name: str = "api", expires_at=None) -> str:
    """Create an ``ApiToken`` row and return the raw token (shown once)."""
    raw = secrets.token_urlsafe(32)
    db.add(
        ApiToken(
            user_id=coerce_uuid(user_id),
            name=name,
            token_hash=hash_token(raw),
            expires_at=expires_at,
        )
    )
    db.flush()
    logger.info("Issued API token %s for user %s", name, user_id)
    return raw


def authenticate(db: Session, token: str | None) -> User:
    if not token:
        raise HTTPException(status_code=401, detail="Missing bearer token")
    api_token = db.scalars(
        select(ApiToken).where(ApiToken.token_hash == hash_token(token))
    ).first()
    if not api_token or not api_token.is_active:
        raise HTTPException(status_code=401, detail="Invalid token")
    now = utcnow()
    if api_token.expires_at and ensure_utc(api_token.expires_at) <= now:
        raise HTTPException(status_code=401, detail="Token expired")
    user = db.get(User, api_token.user_id)
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="Inactive user")
    api_token.last_used_at = now
    db.flush()
    return user
