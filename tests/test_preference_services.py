import pytest
from fastapi import HTTPException

from app.models.audit import UserPreference
from app.schemas.preference import PreferenceUpsert
from app.services.preferences import preferences


class TestPreferencesService:
    def test_upsert_inserts_then_updates(self, db_session, person) -> None:
        created = preferences.upsert(
            db_session, person.id, "theme", PreferenceUpsert(value={"mode": "dark"})
        )
        updated = preferences.upsert(
            db_session, person.id, "theme", PreferenceUpsert(value={"mode": "light"})
        )
        assert updated.id == created.id
        assert updated.value == {"mode": "light"}
        assert db_session.query(UserPreference).count() == 1

    def test_keys_are_per_user(self, db_session, person, other_person) -> None:
        preferences.upsert(
            db_session, person.id, "theme", PreferenceUpsert(value={"mode": "dark"})
        )
        with pytest.raises(HTTPException) as exc:
            preferences.get(db_session, other_person.id, "theme")
        assert exc.value.status_code == 404

    def test_list_sorted_by_key(self, db_session, person) -> None:
        for key in ("sidebar", "locale", "theme"):
            preferences.upsert(db_session, person.id, key, PreferenceUpsert(value={}))
        result = preferences.list(db_session, person.id, limit=10, offset=0)
        assert [item.key for item in result] == ["locale", "sidebar", "theme"]

    def test_delete(self, db_session, person) -> None:
        preferences.upsert(db_session, person.id, "theme", PreferenceUpsert())
        preferences.delete(db_session, person.id, "theme")
        with pytest.raises(HTTPException):
            preferences.get(db_session, person.id, "theme")
