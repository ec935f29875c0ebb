import uuid

import pytest

from app.models.common import EntityKind
from app.models.planning import DependencyType
from app.schemas.content import WikiCreate
from app.schemas.planning import TaskCreate, TaskDependencyCreate
from app.services.relations import (
    NOT_LOADED,
    HierarchyCycleError,
    Linked,
    NotFound,
    Resolved,
    ancestors,
    descendant_ids,
    full_path,
    is_root,
    load_relations,
    parse_relations,
    resolve,
)
from app.services.tasks import task_dependencies, tasks
from app.services.wikis import wikis


@pytest.fixture()
def wiki_tree(db_session, person, workspace):
    home = wikis.create(
        db_session, WikiCreate(workspace_id=workspace.id, title="Home"), person.id
    )
    setup = wikis.create(
        db_session,
        WikiCreate(workspace_id=workspace.id, title="Setup", parent_id=home.id),
        person.id,
    )
    db_session.commit()
    return home, setup


class TestNotLoaded:
    def test_is_falsy_singleton(self) -> None:
        assert not NOT_LOADED
        assert type(NOT_LOADED)() is NOT_LOADED
        assert repr(NOT_LOADED) == "NOT_LOADED"

    def test_distinct_from_empty(self, db_session, person, workspace) -> None:
        task = tasks.create(
            db_session, TaskCreate(workspace_id=workspace.id, title="Alone"), person.id
        )
        result = resolve(db_session, EntityKind.task, task.id, ["children"])
        assert result.get("children") == []
        assert result.get("tags") is NOT_LOADED


class TestResolve:
    def test_not_found(self, db_session) -> None:
        missing = uuid.uuid4()
        result = resolve(db_session, EntityKind.task, missing)
        assert isinstance(result, NotFound)
        assert result.id == missing

    def test_loads_requested_relations_only(self, db_session, wiki_tree) -> None:
        home, setup = wiki_tree
        result = resolve(db_session, EntityKind.wiki, setup.id, ["parent"])
        assert isinstance(result, Resolved)
        assert result.relations["parent"].id == home.id
        assert "children" not in result.relations

    def test_unknown_relation_is_ignored(self, db_session, wiki_tree) -> None:
        home, _ = wiki_tree
        loaded = load_relations(db_session, home, ["children", "nonsense"])
        assert list(loaded) == ["children"]

    def test_pivot_carries_extra_columns(self, db_session, person, workspace) -> None:
        first = tasks.create(
            db_session, TaskCreate(workspace_id=workspace.id, title="First"), person.id
        )
        second = tasks.create(
            db_session, TaskCreate(workspace_id=workspace.id, title="Second"), person.id
        )
        task_dependencies.add(
            db_session,
            second.id,
            TaskDependencyCreate(
                depends_on_id=first.id, type=DependencyType.relates_to
            ),
        )
        loaded = load_relations(db_session, second, ["dependencies"])
        (link,) = loaded["dependencies"]
        assert isinstance(link, Linked)
        assert link.entity.id == first.id
        assert link.pivot == {"type": DependencyType.relates_to}

        dependents = load_relations(db_session, first, ["dependents"])["dependents"]
        assert [item.entity.id for item in dependents] == [second.id]

    def test_wiki_revisions_loaded(self, db_session, wiki_tree) -> None:
        home, _ = wiki_tree
        revisions = load_relations(db_session, home, ["revisions"])["revisions"]
        assert [item.summary for item in revisions] == ["Initial version"]

    def test_parse_relations(self) -> None:
        assert parse_relations(" parent, children ,,") == ["parent", "children"]
        assert parse_relations(None) == []


class TestHierarchy:
    def test_full_path(self, wiki_tree) -> None:
        home, setup = wiki_tree
        assert full_path(setup) == "Home > Setup"
        assert full_path(home) == "Home"

    def test_is_root_and_ancestors(self, wiki_tree) -> None:
        home, setup = wiki_tree
        assert is_root(home)
        assert not is_root(setup)
        assert [item.id for item in ancestors(setup)] == [home.id]

    def test_descendant_ids(self, db_session, wiki_tree) -> None:
        from app.models.content import Wiki

        home, setup = wiki_tree
        assert descendant_ids(db_session, Wiki, home.id) == {setup.id}
        assert descendant_ids(db_session, Wiki, setup.id) == set()

    def test_cycle_raises(self, db_session, wiki_tree) -> None:
        home, setup = wiki_tree
        # written behind the validator's back
        home.parent_id = setup.id
        db_session.flush()
        db_session.expire_all()
        with pytest.raises(HierarchyCycleError):
            ancestors(setup)
