"""Tests for the board service."""

import logging
import os
import tempfile

import pytest

from workorbit import service as service_module
from workorbit.errors import (
    ConflictError, NotFoundError, StorageError, ValidationError, VersionConflict,
)
from workorbit.models import (
    ALLOWED_PARENT, ENTITY_TYPES, EntityPatch, MoveTarget, NewEntity,
)
from workorbit.service import BoardService, validate_parent_mapping
from workorbit.storage.sqlite_store import SQLiteBoardStorage


class FailingHistoryStorage(SQLiteBoardStorage):
    """Store whose history table is unavailable."""

    def add_history(self, entity_id, action, actor_id, payload=None):
        raise StorageError("history table unavailable")


def _temp_store(cls):
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    return cls(path), path


@pytest.fixture
def store():
    s, path = _temp_store(SQLiteBoardStorage)
    yield s
    s.close()
    os.unlink(path)


@pytest.fixture
def svc(store):
    return BoardService(store, actor_id="alice")


@pytest.fixture
def failing_svc():
    s, path = _temp_store(FailingHistoryStorage)
    yield BoardService(s, actor_id="alice")
    s.close()
    os.unlink(path)


def _new(svc, entity_type, name="Test", parent=None, **kwargs):
    return svc.create_entity(NewEntity(
        type=entity_type, name=name, created_by="alice",
        parent_public_id=parent.public_id if parent else None, **kwargs))


def _actions(svc, entity):
    return [h.action for h in svc.get_history(entity.public_id)]


class TestParentMapping:
    @pytest.mark.parametrize("child", ENTITY_TYPES)
    @pytest.mark.parametrize("parent", ENTITY_TYPES + [None])
    def test_mapping_table(self, child, parent):
        if parent is None or parent == ALLOWED_PARENT[child]:
            validate_parent_mapping(child, parent)
        else:
            with pytest.raises(ValidationError) as exc:
                validate_parent_mapping(child, parent)
            assert exc.value.code == "INVALID_PARENT"

    def test_exposed_on_service(self):
        BoardService.validate_parent_mapping("task", "story")
        with pytest.raises(ValidationError):
            BoardService.validate_parent_mapping("mission", "mission")

    def test_unknown_child_type(self):
        with pytest.raises(ValidationError):
            validate_parent_mapping("epic", None)


class TestCreate:
    def test_round_trip(self, svc):
        m = _new(svc, "mission", "Orbit", description="d", room="r1",
                 assigned_to="bob", estimate_hours=4.0, sprint_id="sp1",
                 start_date="2024-01-01", end_date="2024-02-01", metadata={"a": 1})
        got = svc.get_entity(m.public_id)
        assert got == m
        assert got.version == 1
        assert got.is_deleted is False
        assert got.public_id.startswith("M_")
        assert got.created_by == "alice"

    def test_history_created(self, svc):
        m = _new(svc, "mission", "Orbit")
        history = svc.get_history(m.public_id)
        assert len(history) == 1
        assert history[0].action == "created"
        assert history[0].actor_id == "alice"
        assert history[0].payload["name"] == "Orbit"

    def test_parent_by_public_id(self, svc):
        m = _new(svc, "mission")
        p = _new(svc, "project", parent=m)
        assert p.parent_id == m.entity_id
        assert p.parent_public_id == m.public_id

    def test_parent_by_entity_id(self, svc):
        m = _new(svc, "mission")
        p = svc.create_entity(NewEntity(type="project", name="x", created_by="a",
                                        parent_id=m.entity_id))
        assert p.parent_public_id == m.public_id

    def test_parent_mismatch_writes_nothing(self, svc, store):
        m = _new(svc, "mission")
        p = _new(svc, "project", parent=m)
        with pytest.raises(ValidationError):
            _new(svc, "task", parent=p)
        assert store.count_by_type("task") == 0
        assert _actions(svc, p) == ["created"]

    def test_missing_parent(self, svc):
        with pytest.raises(NotFoundError):
            svc.create_entity(NewEntity(type="project", name="x", created_by="a",
                                        parent_public_id="M_ffffff"))

    def test_deleted_parent_not_found(self, svc):
        m = _new(svc, "mission")
        svc.delete_entity(m.public_id)
        with pytest.raises(NotFoundError):
            _new(svc, "project", parent=m)

    def test_unmapped_project(self, svc, store):
        p = _new(svc, "project")
        assert p.parent_id is None
        assert p.public_id in [e.public_id for e in store.find_unmapped()]

    def test_supplied_id_conflict_not_retried(self, svc):
        _new(svc, "mission", public_id="M_aaaaaa")
        with pytest.raises(ConflictError):
            _new(svc, "mission", public_id="M_aaaaaa")

    def test_generated_id_collision_retries(self, svc, monkeypatch):
        _new(svc, "mission", public_id="M_aaaaaa")
        ids = iter(["M_aaaaaa", "M_bbbbbb"])
        monkeypatch.setattr(service_module, "generate_public_id", lambda t: next(ids))
        m = _new(svc, "mission")
        assert m.public_id == "M_bbbbbb"

    def test_generated_id_collision_gives_up(self, svc, monkeypatch):
        _new(svc, "mission", public_id="M_aaaaaa")
        calls = []

        def always_taken(entity_type):
            calls.append(entity_type)
            return "M_aaaaaa"

        monkeypatch.setattr(service_module, "generate_public_id", always_taken)
        with pytest.raises(ConflictError):
            _new(svc, "mission")
        assert len(calls) == service_module.MAX_ID_ATTEMPTS


class TestUpdate:
    def test_updated_action(self, svc):
        t = _new(svc, "task", "Old")
        updated = svc.update_entity(t.public_id, EntityPatch(name="New"))
        assert updated.name == "New"
        assert updated.version == 2
        history = svc.get_history(t.public_id)
        assert history[-1].action == "updated"
        assert history[-1].payload["fields"] == ["name"]

    def test_workflow_changed_action(self, svc):
        t = _new(svc, "task")
        svc.update_entity(t.public_id, EntityPatch(workflow="build", name="Renamed"))
        last = svc.get_history(t.public_id)[-1]
        assert last.action == "workflow_changed"
        assert last.payload["from"] == "inbox"
        assert last.payload["to"] == "build"

    def test_assigned_action(self, svc):
        t = _new(svc, "task")
        svc.update_entity(t.public_id, EntityPatch(assigned_to="bob"))
        assert _actions(svc, t)[-1] == "assigned"

    def test_mapped_and_unmapped_actions(self, svc):
        s = _new(svc, "story")
        t = _new(svc, "task")
        mapped = svc.update_entity(t.public_id, EntityPatch(parent_public_id=s.public_id))
        assert mapped.parent_public_id == s.public_id
        unmapped = svc.update_entity(t.public_id, EntityPatch(parent_public_id=None))
        assert unmapped.parent_id is None
        assert _actions(svc, t) == ["created", "mapped", "unmapped"]

    def test_null_clears_absent_keeps(self, svc):
        t = _new(svc, "task", description="keep me", room="r1")
        updated = svc.update_entity(t.public_id, EntityPatch(room=None))
        assert updated.room is None
        assert updated.description == "keep me"

    def test_unchanged_values_write_nothing(self, svc):
        s = _new(svc, "story")
        t = _new(svc, "task", "Same", parent=s)
        same = svc.update_entity(t.public_id, EntityPatch(
            name="Same", parent_public_id=s.public_id))
        assert same.version == 1
        assert svc.get_entity(t.public_id).version == 1
        assert _actions(svc, t) == ["created"]

    def test_empty_patch(self, svc):
        t = _new(svc, "task")
        with pytest.raises(ValidationError):
            svc.update_entity(t.public_id, EntityPatch())

    def test_missing(self, svc):
        with pytest.raises(NotFoundError):
            svc.update_entity("T_ffffff", EntityPatch(name="x"))

    def test_optimistic_locking(self, svc):
        t = _new(svc, "task", "v1")
        ok = svc.update_entity(t.public_id, EntityPatch(expected_version=1, name="v2"))
        assert ok.version == 2
        with pytest.raises(VersionConflict):
            svc.update_entity(t.public_id, EntityPatch(expected_version=1, name="v3"))
        got = svc.get_entity(t.public_id)
        assert got.name == "v2"
        assert got.version == 2
        assert _actions(svc, t) == ["created", "updated"]

    def test_invalid_parent_on_update(self, svc):
        m = _new(svc, "mission")
        t = _new(svc, "task")
        with pytest.raises(ValidationError):
            svc.update_entity(t.public_id, EntityPatch(parent_public_id=m.public_id))
        assert svc.get_entity(t.public_id).version == 1

    def test_history_failure_does_not_mask_update(self, failing_svc, caplog):
        with caplog.at_level(logging.ERROR, logger="workorbit.service"):
            t = _new(failing_svc, "task", "Old")
            updated = failing_svc.update_entity(t.public_id, EntityPatch(name="New"))
        assert updated.name == "New"
        assert failing_svc.get_entity(t.public_id).name == "New"
        assert "history write failed" in caplog.text


class TestDelete:
    def test_delete(self, svc, store):
        t = _new(svc, "task")
        svc.delete_entity(t.public_id)
        with pytest.raises(NotFoundError):
            svc.get_entity(t.public_id)
        assert _actions(svc, t) == ["created", "deleted"]

    def test_delete_missing(self, svc):
        with pytest.raises(NotFoundError):
            svc.delete_entity("T_ffffff")

    def test_children_keep_parent_link(self, svc, store):
        m = _new(svc, "mission")
        p = _new(svc, "project", parent=m)
        svc.delete_entity(m.public_id)
        got = svc.get_entity(p.public_id)
        assert got.parent_id == m.entity_id
        assert [e.public_id for e in store.find_orphaned()] == [p.public_id]


class TestMoves:
    def test_within_column(self, svc):
        t = _new(svc, "task")
        moved = svc.move_within_column(t.public_id, "inbox", 2)
        assert moved.position == 2
        assert moved.workflow == "inbox"
        assert _actions(svc, t) == ["created"]

    def test_within_column_changes_workflow(self, svc):
        s = _new(svc, "story")
        t = _new(svc, "task", parent=s)
        moved = svc.move_within_column(t.public_id, "review", 0)
        assert moved.workflow == "review"
        assert moved.parent_id == s.entity_id
        assert _actions(svc, t)[-1] == "workflow_changed"

    def test_within_column_validation(self, svc):
        t = _new(svc, "task")
        with pytest.raises(ValidationError):
            svc.move_within_column(t.public_id, "done", 0)
        with pytest.raises(ValidationError):
            svc.move_within_column(t.public_id, "inbox", "1")

    def test_across_two_history_rows(self, svc):
        s = _new(svc, "story")
        t = _new(svc, "task")
        moved = svc.move_across(t.public_id, MoveTarget(
            parent_public_id=s.public_id, workflow="build", position=1))
        assert moved.parent_public_id == s.public_id
        assert moved.workflow == "build"
        assert moved.position == 1
        assert _actions(svc, t) == ["created", "mapped", "workflow_changed"]

    def test_across_noop_writes_nothing(self, svc):
        t = _new(svc, "task")
        same = svc.move_across(t.public_id, MoveTarget(workflow="inbox"))
        assert same.version == 1
        assert _actions(svc, t) == ["created"]

    def test_across_unmap(self, svc):
        s = _new(svc, "story")
        t = _new(svc, "task", parent=s)
        moved = svc.move_across(t.public_id, MoveTarget(parent_public_id=None))
        assert moved.parent_id is None
        assert _actions(svc, t)[-1] == "unmapped"

    def test_across_invalid_parent(self, svc):
        p = _new(svc, "project")
        t = _new(svc, "task")
        with pytest.raises(ValidationError):
            svc.move_across(t.public_id, MoveTarget(parent_public_id=p.public_id))
        assert svc.get_entity(t.public_id).parent_id is None


class TestBulkMap:
    def test_bulk_map(self, svc):
        p = _new(svc, "project")
        stories = [_new(svc, "story", f"S{i}") for i in range(3)]
        mapped = svc.bulk_map([s.public_id for s in stories], p.public_id)
        assert [s.parent_public_id for s in mapped] == [p.public_id] * 3
        assert svc.get_entity(p.public_id).children_count_total == 3
        last = svc.get_history(stories[0].public_id)[-1]
        assert last.action == "bulk_mapped"
        assert last.payload["count"] == 3

    def test_bulk_map_validates_all_first(self, svc, store):
        p = _new(svc, "project")
        s = _new(svc, "story")
        t = _new(svc, "task")
        with pytest.raises(ValidationError):
            svc.bulk_map([s.public_id, t.public_id], p.public_id)
        assert svc.get_entity(s.public_id).parent_id is None
        assert store.find_children_of(p.entity_id) == []

    def test_bulk_unmap(self, svc):
        p = _new(svc, "project")
        s = _new(svc, "story", parent=p)
        mapped = svc.bulk_map([s.public_id], None)
        assert mapped[0].parent_id is None


class TestReads:
    def test_get_entity_bad_format(self, svc):
        with pytest.raises(ValidationError):
            svc.get_entity("not-an-id")

    def test_search(self, svc):
        _new(svc, "task", "Fix login", description="oauth flow")
        _new(svc, "task", "Fix logout")
        assert [e.name for e in svc.search("fix oauth")] == ["Fix login"]

    def test_history_of_deleted(self, svc):
        t = _new(svc, "task")
        svc.delete_entity(t.public_id)
        assert _actions(svc, t) == ["created", "deleted"]

    def test_history_missing(self, svc):
        with pytest.raises(NotFoundError):
            svc.get_history("T_ffffff")


class TestComments:
    def test_add_comment(self, svc):
        t = _new(svc, "task")
        history_id = svc.add_comment(t.public_id, "looks good")
        assert history_id > 0
        last = svc.get_history(t.public_id)[-1]
        assert last.action == "comment"
        assert last.payload == {"text": "looks good"}

    def test_empty_comment(self, svc):
        t = _new(svc, "task")
        with pytest.raises(ValidationError):
            svc.add_comment(t.public_id, "  ")

    def test_comment_failure_propagates(self, failing_svc):
        t = _new(failing_svc, "task")
        with pytest.raises(StorageError):
            failing_svc.add_comment(t.public_id, "hello")
