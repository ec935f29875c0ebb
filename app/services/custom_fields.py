from __future__ import annotations

import json
import logging
from datetime import date, datetime

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.common import EntityKind
from app.models.engagement import CustomField, CustomFieldType, CustomFieldValue
from app.schemas.engagement import (
    CustomFieldCreate,
    CustomFieldUpdate,
    CustomFieldValueSet,
)
from app.services.common import (
    apply_pagination,
    coerce_uuid,
    flush_or_conflict,
    get_or_404,
)
from app.services.entity_kinds import kind_of, load
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _invalid(field: CustomField, reason: str) -> HTTPException:
    return HTTPException(status_code=400, detail=f"{field.name}: {reason}")


def encode_value(field: CustomField, value) -> str | None:
    """Validate ``value`` against ``field`` and return its stored text form."""
    if value is None or value == "" or value == []:
        if field.is_required:
            raise _invalid(field, "a value is required")
        return None
    field_type = field.type
    if field_type == CustomFieldType.number:
        if isinstance(value, bool):
            raise _invalid(field, "expected a number")
        try:
            return str(float(value))
        except (TypeError, ValueError) as exc:
            raise _invalid(field, "expected a number") from exc
    if field_type == CustomFieldType.date:
        if isinstance(value, datetime):
            return value.date().isoformat()
        if isinstance(value, date):
            return value.isoformat()
        try:
            return date.fromisoformat(str(value)).isoformat()
        except ValueError as exc:
            raise _invalid(field, "expected an ISO date") from exc
    if field_type == CustomFieldType.checkbox:
        if isinstance(value, bool):
            return "true" if value else "false"
        text = str(value).strip().lower()
        if text in _TRUE:
            return "true"
        if text in _FALSE:
            return "false"
        raise _invalid(field, "expected true or false")
    options = field.options or []
    if field_type == CustomFieldType.select:
        if str(value) not in options:
            raise _invalid(field, f"{value!r} is not an available option")
        return str(value)
    if field_type == CustomFieldType.multiselect:
        chosen = [value] if isinstance(value, str) else list(value)
        unknown = [item for item in chosen if str(item) not in options]
        if unknown:
            raise _invalid(field, f"{unknown[0]!r} is not an available option")
        return json.dumps([str(item) for item in chosen])
    return str(value)


def decode_value(field_type: CustomFieldType, raw: str | None):
    if raw is None:
        return None
    if field_type == CustomFieldType.number:
        return float(raw)
    if field_type == CustomFieldType.checkbox:
        return raw == "true"
    if field_type == CustomFieldType.date:
        return date.fromisoformat(raw)
    if field_type == CustomFieldType.multiselect:
        return json.loads(raw)
    return raw


def format_value(field_type: CustomFieldType, raw: str | None) -> str | None:
    value = decode_value(field_type, raw)
    if value is None:
        return None
    if field_type == CustomFieldType.number:
        return f"{value:g}"
    if field_type == CustomFieldType.checkbox:
        return "Yes" if value else "No"
    if field_type == CustomFieldType.date:
        return value.isoformat()
    if field_type == CustomFieldType.multiselect:
        return ", ".join(value)
    return value


class CustomFields(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: CustomFieldCreate) -> CustomField:
        field = CustomField(**payload.model_dump())
        db.add(field)
        flush_or_conflict(db, "A custom field with this key already exists")
        db.refresh(field)
        logger.info(
            "Created custom field %s (%s) in workspace %s",
            field.key,
            field.applies_to.value,
            field.workspace_id,
        )
        return field

    @staticmethod
    def get(db: Session, field_id: str) -> CustomField:
        return get_or_404(db, CustomField, field_id, "Custom field")

    @staticmethod
    def list(
        db: Session,
        workspace_id: str,
        applies_to: str | None,
        limit: int,
        offset: int,
    ) -> list[CustomField]:
        stmt = select(CustomField).where(
            CustomField.workspace_id == coerce_uuid(workspace_id)
        )
        if applies_to is not None:
            try:
                stmt = stmt.where(CustomField.applies_to == EntityKind(applies_to))
            except ValueError as exc:
                raise HTTPException(
                    status_code=400, detail="Invalid entity type"
                ) from exc
        stmt = stmt.order_by(CustomField.order.asc(), CustomField.name.asc())
        return db.scalars(apply_pagination(stmt, limit, offset)).all()

    @staticmethod
    def update(db: Session, field_id: str, payload: CustomFieldUpdate) -> CustomField:
        field = get_or_404(db, CustomField, field_id, "Custom field")
        data = payload.model_dump(exclude_unset=True)
        if "options" in data and field.type in (
            CustomFieldType.select,
            CustomFieldType.multiselect,
        ):
            if not data["options"]:
                raise HTTPException(
                    status_code=400, detail="select fields need at least one option"
                )
        for key, value in data.items():
            if value is not None or key == "options":
                setattr(field, key, value)
        db.flush()
        db.refresh(field)
        logger.info("Updated custom field %s", field.id)
        return field

    @staticmethod
    def delete(db: Session, field_id: str) -> None:
        field = get_or_404(db, CustomField, field_id, "Custom field")
        db.delete(field)
        db.flush()
        logger.info("Deleted custom field %s", field_id)


class CustomFieldValues(ListResponseMixin):
    @staticmethod
    def set(
        db: Session, field_id: str, payload: CustomFieldValueSet
    ) -> CustomFieldValue:
        """Create or replace the value of ``field_id`` on one entity."""
        field = get_or_404(db, CustomField, field_id, "Custom field")
        if payload.entity_type != field.applies_to:
            raise HTTPException(
                status_code=400,
                detail=f"Field applies to {field.applies_to.value} records",
            )
        entity = load(db, payload.entity_type, payload.entity_id)
        if entity is None:
            raise HTTPException(status_code=404, detail="Entity not found")
        if getattr(entity, "workspace_id", field.workspace_id) != field.workspace_id:
            raise HTTPException(
                status_code=400, detail="Entity belongs to a different workspace"
            )
        raw = encode_value(field, payload.value)
        current = db.scalars(
            select(CustomFieldValue)
            .where(CustomFieldValue.custom_field_id == field.id)
            .where(CustomFieldValue.entity_type == payload.entity_type)
            .where(CustomFieldValue.entity_id == payload.entity_id)
        ).first()
        if current is None:
            current = CustomFieldValue(
                custom_field_id=field.id,
                entity_type=payload.entity_type,
                entity_id=payload.entity_id,
            )
            db.add(current)
        current.value = raw
        flush_or_conflict(db, "Value was set concurrently")
        db.refresh(current)
        logger.info(
            "Set %s on %s %s",
            field.key,
            payload.entity_type.value,
            payload.entity_id,
        )
        return current

    @staticmethod
    def get(db: Session, value_id: str) -> CustomFieldValue:
        return get_or_404(db, CustomFieldValue, value_id, "Custom field value")

    @staticmethod
    def list_for_entity(
        db: Session, entity_type: EntityKind, entity_id
    ) -> list[CustomFieldValue]:
        stmt = (
            select(CustomFieldValue)
            .join(CustomField, CustomField.id == CustomFieldValue.custom_field_id)
            .where(CustomFieldValue.entity_type == entity_type)
            .where(CustomFieldValue.entity_id == coerce_uuid(entity_id))
            .order_by(CustomField.order.asc(), CustomField.name.asc())
        )
        return db.scalars(stmt).all()

    @staticmethod
    def missing_required(db: Session, entity) -> list[CustomField]:
        """Required fields of the entity's workspace that have no value yet."""
        kind = kind_of(entity)
        filled = select(CustomFieldValue.custom_field_id).where(
            CustomFieldValue.entity_type == kind,
            CustomFieldValue.entity_id == entity.id,
            CustomFieldValue.value.is_not(None),
        )
        stmt = (
            select(CustomField)
            .where(CustomField.workspace_id == entity.workspace_id)
            .where(CustomField.applies_to == kind)
            .where(CustomField.is_required.is_(True))
            .where(CustomField.id.not_in(filled))
            .order_by(CustomField.order.asc())
        )
        return db.scalars(stmt).all()

    @staticmethod
    def delete(db: Session, value_id: str) -> None:
        value = get_or_404(db, CustomFieldValue, value_id, "Custom field value")
        db.delete(value)
        db.flush()
        logger.info("Deleted custom field value %s", value_id)


custom_fields = CustomFields()
custom_field_values = CustomFieldValues()
