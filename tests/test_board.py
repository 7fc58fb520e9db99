"""Tests for board assembly."""

import os
import tempfile

import pytest

from workorbit.board import build_board, group_by_workflow, resolve_view_type
from workorbit.errors import DataIntegrityError, ValidationError
from workorbit.models import BoardEntity, BoardQuery, NewEntity
from workorbit.service import BoardService
from workorbit.storage.sqlite_store import SQLiteBoardStorage


@pytest.fixture
def store():
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    s = SQLiteBoardStorage(path)
    yield s
    s.close()
    os.unlink(path)


@pytest.fixture
def svc(store):
    return BoardService(store, actor_id="alice")


def _new(svc, entity_type, name="Test", parent=None, **kwargs):
    return svc.create_entity(NewEntity(
        type=entity_type, name=name, created_by="alice",
        parent_public_id=parent.public_id if parent else None, **kwargs))


def _ids(entities):
    return [e.public_id for e in entities]


def test_group_by_workflow_keeps_order():
    entities = [
        BoardEntity(public_id="T_000001", workflow="build"),
        BoardEntity(public_id="T_000002", workflow="inbox"),
        BoardEntity(public_id="T_000003", workflow="build"),
    ]
    cols = group_by_workflow(entities)
    assert _ids(cols.build) == ["T_000001", "T_000003"]
    assert _ids(cols.inbox) == ["T_000002"]
    assert cols.review == [] and cols.shipped == []


def test_group_by_workflow_unknown():
    with pytest.raises(DataIntegrityError):
        group_by_workflow([BoardEntity(public_id="T_000001", workflow="done")])


class TestViewType:
    def test_empty_board_is_mission(self, store):
        assert resolve_view_type(store, "auto") == "mission"

    def test_auto_prefers_story(self, svc, store):
        _new(svc, "mission")
        _new(svc, "project")
        assert resolve_view_type(store, "auto") == "project"
        _new(svc, "story")
        assert resolve_view_type(store, "auto") == "story"

    def test_deleted_stories_ignored(self, svc, store):
        _new(svc, "project")
        s = _new(svc, "story")
        svc.delete_entity(s.public_id)
        assert resolve_view_type(store, "auto") == "project"

    def test_explicit_view(self, store):
        assert resolve_view_type(store, "story") == "story"


class TestBuildBoard:
    def test_mission_with_two_projects(self, svc, store):
        m = _new(svc, "mission", "M")
        p1 = _new(svc, "project", "P1", parent=m, workflow="build")
        p2 = _new(svc, "project", "P2", parent=m, workflow="inbox")
        board = build_board(store, BoardQuery(view_type="mission"))
        assert board.view_type == "mission"
        assert board.total_count == 1
        assert len(board.rows) == 1
        row = board.rows[0]
        assert row.title.public_id == m.public_id
        assert _ids(row.columns.build) == [p1.public_id]
        assert _ids(row.columns.inbox) == [p2.public_id]
        assert row.columns.review == []
        assert row.columns.shipped == []

    def test_empty(self, store):
        board = build_board(store, BoardQuery())
        assert board.rows == []
        assert board.total_count == 0
        assert board.other_tasks.count() == 0

    def test_other_tasks(self, svc, store):
        s = _new(svc, "story")
        _new(svc, "task", parent=s)
        loose = _new(svc, "task", "loose", workflow="review")
        board = build_board(store, BoardQuery(view_type="story"))
        assert _ids(board.rows[0].columns.inbox) != []
        # the unmapped story is a row title, not a card
        assert _ids(board.other_tasks.review) == [loose.public_id]
        assert board.other_tasks.count() == 1

    def test_other_tasks_type_filter(self, svc, store):
        _new(svc, "mission")
        t = _new(svc, "task")
        _new(svc, "story")
        board = build_board(store, BoardQuery(view_type="mission", type="task"))
        assert _ids(board.other_tasks.inbox) == [t.public_id]
        assert board.total_count == 1

    def test_hide_other_tasks(self, svc, store):
        _new(svc, "task")
        board = build_board(store, BoardQuery(view_type="mission",
                                              include_other_tasks=False))
        assert board.other_tasks.count() == 0

    def test_paging(self, svc, store):
        missions = [_new(svc, "mission", f"M{i}") for i in range(5)]
        board = build_board(store, BoardQuery(view_type="mission", offset=1, limit=2))
        assert board.total_count == 5
        assert [r.title.public_id for r in board.rows] == _ids(missions[1:3])

    def test_card_filters_do_not_drop_titles(self, svc, store):
        m = _new(svc, "mission")
        _new(svc, "project", parent=m, workflow="build")
        _new(svc, "project", parent=m, workflow="inbox", assigned_to="bob")
        board = build_board(store, BoardQuery(view_type="mission", workflow="build"))
        row = board.rows[0]
        assert len(row.columns.build) == 1
        assert row.columns.inbox == []
        board = build_board(store, BoardQuery(view_type="mission", assigned_to="bob"))
        assert len(board.rows[0].columns.inbox) == 1
        assert board.rows[0].columns.build == []

    def test_title_search(self, svc, store):
        _new(svc, "mission", "Apollo")
        gemini = _new(svc, "mission", "Gemini")
        board = build_board(store, BoardQuery(view_type="mission", search="gem"))
        assert [r.title.public_id for r in board.rows] == [gemini.public_id]

    def test_deleted_child_absent(self, svc, store):
        m = _new(svc, "mission")
        p = _new(svc, "project", parent=m)
        svc.delete_entity(p.public_id)
        board = build_board(store, BoardQuery(view_type="mission"))
        assert board.rows[0].columns.count() == 0
        assert board.rows[0].title.children_count_total == 0

    def test_invalid_query(self, store):
        with pytest.raises(ValidationError):
            build_board(store, BoardQuery(view_type="task"))

    def test_to_dict(self, svc, store):
        _new(svc, "mission")
        data = build_board(store, BoardQuery()).to_dict()
        assert set(data) == {"rows", "otherTasks", "totalCount", "viewType"}
        assert data["viewType"] == "mission"
        assert set(data["rows"][0]["columns"]) == {"inbox", "build", "review", "shipped"}

    def test_service_delegates(self, svc):
        _new(svc, "project")
        assert svc.get_board(BoardQuery()).view_type == "project"
