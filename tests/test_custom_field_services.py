import uuid
from datetime import date

import pytest
from fastapi import HTTPException
from pydantic import ValidationError
from sqlalchemy import select

from app.models.common import EntityKind
from app.models.engagement import CustomFieldType, CustomFieldValue
from app.schemas.engagement import (
    CustomFieldCreate,
    CustomFieldUpdate,
    CustomFieldValueSet,
)
from app.schemas.planning import TaskCreate
from app.schemas.workspace import WorkspaceCreate
from app.services.custom_fields import (
    custom_field_values,
    custom_fields,
    decode_value,
    format_value,
)
from app.services.tasks import tasks
from app.services.workspaces import workspaces


@pytest.fixture()
def task(db_session, person, workspace):
    item = tasks.create(
        db_session,
        TaskCreate(workspace_id=workspace.id, title="Launch"),
        person.id,
    )
    db_session.commit()
    return item


def _field(db_session, workspace, key="stage", **kwargs):
    kwargs.setdefault("name", key.title())
    kwargs.setdefault("applies_to", EntityKind.task)
    field = custom_fields.create(
        db_session, CustomFieldCreate(workspace_id=workspace.id, key=key, **kwargs)
    )
    db_session.commit()
    return field


def _set(db_session, field, task, value):
    return custom_field_values.set(
        db_session,
        str(field.id),
        CustomFieldValueSet(
            entity_type=EntityKind.task, entity_id=task.id, value=value
        ),
    )


class TestCustomFieldsService:
    def test_duplicate_key_conflicts(self, db_session, workspace) -> None:
        _field(db_session, workspace)
        with pytest.raises(HTTPException) as exc:
            _field(db_session, workspace)
        assert exc.value.status_code == 409

    def test_same_key_for_other_kind(self, db_session, workspace) -> None:
        _field(db_session, workspace)
        other = _field(db_session, workspace, applies_to=EntityKind.project)
        assert other.applies_to == EntityKind.project

    def test_select_needs_options(self, workspace) -> None:
        with pytest.raises(ValidationError):
            CustomFieldCreate(
                workspace_id=workspace.id,
                name="Stage",
                key="stage",
                type=CustomFieldType.select,
                applies_to=EntityKind.task,
            )

    def test_key_pattern(self, workspace) -> None:
        with pytest.raises(ValidationError):
            CustomFieldCreate(
                workspace_id=workspace.id,
                name="Stage",
                key="Stage Name",
                applies_to=EntityKind.task,
            )

    def test_list_ordered(self, db_session, workspace) -> None:
        _field(db_session, workspace, key="second", order=2)
        _field(db_session, workspace, key="first", order=1)
        _field(db_session, workspace, key="budget", applies_to=EntityKind.project)
        result = custom_fields.list(db_session, str(workspace.id), "task", 10, 0)
        assert [item.key for item in result] == ["first", "second"]

    def test_update_cannot_empty_select_options(self, db_session, workspace) -> None:
        field = _field(
            db_session, workspace, type=CustomFieldType.select, options=["a", "b"]
        )
        with pytest.raises(HTTPException) as exc:
            custom_fields.update(
                db_session, str(field.id), CustomFieldUpdate(options=[])
            )
        assert exc.value.status_code == 400


class TestCustomFieldValues:
    def test_upsert_replaces_value(self, db_session, workspace, task) -> None:
        field = _field(db_session, workspace, type=CustomFieldType.number)
        first = _set(db_session, field, task, 3)
        second = _set(db_session, field, task, "4.5")
        assert first.id == second.id
        assert second.value == "4.5"
        values = custom_field_values.list_for_entity(
            db_session, EntityKind.task, task.id
        )
        assert [item.id for item in values] == [first.id]

    def test_kind_must_match(self, db_session, workspace, task) -> None:
        field = _field(db_session, workspace, applies_to=EntityKind.project)
        with pytest.raises(HTTPException) as exc:
            _set(db_session, field, task, "x")
        assert exc.value.status_code == 400

    def test_entity_must_exist(self, db_session, workspace) -> None:
        field = _field(db_session, workspace)
        with pytest.raises(HTTPException) as exc:
            custom_field_values.set(
                db_session,
                str(field.id),
                CustomFieldValueSet(
                    entity_type=EntityKind.task, entity_id=uuid.uuid4(), value="x"
                ),
            )
        assert exc.value.status_code == 404

    def test_entity_from_other_workspace(
        self, db_session, person, workspace
    ) -> None:
        field = _field(db_session, workspace)
        elsewhere = workspaces.create(
            db_session, WorkspaceCreate(name="Elsewhere"), person.id
        )
        foreign = tasks.create(
            db_session,
            TaskCreate(workspace_id=elsewhere.id, title="Foreign"),
            person.id,
        )
        with pytest.raises(HTTPException) as exc:
            _set(db_session, field, foreign, "x")
        assert exc.value.status_code == 400

    def test_required_value(self, db_session, workspace, task) -> None:
        field = _field(db_session, workspace, is_required=True)
        missing = custom_field_values.missing_required(db_session, task)
        assert [item.id for item in missing] == [field.id]
        with pytest.raises(HTTPException) as exc:
            _set(db_session, field, task, "")
        assert exc.value.status_code == 400
        _set(db_session, field, task, "kickoff")
        assert custom_field_values.missing_required(db_session, task) == []

    def test_select_rejects_unknown_option(self, db_session, workspace, task) -> None:
        field = _field(
            db_session, workspace, type=CustomFieldType.select, options=["a", "b"]
        )
        with pytest.raises(HTTPException) as exc:
            _set(db_session, field, task, "c")
        assert exc.value.status_code == 400
        assert _set(db_session, field, task, "b").value == "b"

    def test_multiselect_and_checkbox(self, db_session, workspace, task) -> None:
        tags = _field(
            db_session,
            workspace,
            key="areas",
            type=CustomFieldType.multiselect,
            options=["api", "ui", "docs"],
        )
        flag = _field(
            db_session, workspace, key="billable", type=CustomFieldType.checkbox
        )
        assert _set(db_session, tags, task, ["api", "docs"]).value == '["api", "docs"]'
        assert _set(db_session, flag, task, "yes").value == "true"
        with pytest.raises(HTTPException):
            _set(db_session, flag, task, "maybe")

    def test_deleting_field_removes_values(self, db_session, workspace, task) -> None:
        field = _field(db_session, workspace)
        value_id = _set(db_session, field, task, "kickoff").id
        db_session.commit()
        custom_fields.delete(db_session, str(field.id))
        db_session.commit()
        remaining = db_session.scalars(
            select(CustomFieldValue.id).where(CustomFieldValue.id == value_id)
        ).all()
        assert remaining == []


class TestValueCodec:
    def test_decode(self) -> None:
        assert decode_value(CustomFieldType.number, "4.0") == 4.0
        assert decode_value(CustomFieldType.checkbox, "false") is False
        assert decode_value(CustomFieldType.date, "2024-02-29") == date(2024, 2, 29)
        assert decode_value(CustomFieldType.multiselect, '["a"]') == ["a"]
        assert decode_value(CustomFieldType.text, None) is None

    def test_format(self) -> None:
        assert format_value(CustomFieldType.number, "4.0") == "4"
        assert format_value(CustomFieldType.checkbox, "true") == "Yes"
        assert format_value(CustomFieldType.multiselect, '["a", "b"]') == "a, b"
