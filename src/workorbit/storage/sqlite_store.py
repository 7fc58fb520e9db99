"""SQLite storage implementation for the board."""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from typing import Any

from workorbit.errors import (
    ConflictError, NotFoundError, StorageError, ValidationError, VersionConflict,
)
from workorbit.models import (
    BoardEntity, BoardQuery, EntityHistory, EntityPatch, HistoryAction, NewEntity, Workflow,
    format_timestamp, now_utc, parse_timestamp,
)
from workorbit.storage.interface import BoardStorage
from workorbit.storage.schema import SCHEMA

logger = logging.getLogger(__name__)

_ENTITY_SELECT = """
    SELECT b.*,
           p.public_id AS parent_public_id,
           (SELECT COUNT(*) FROM board_entities c
             WHERE c.parent_id = b.entity_id AND c.is_deleted = 0) AS children_count_total,
           (SELECT COUNT(*) FROM board_entities c
             WHERE c.parent_id = b.entity_id AND c.is_deleted = 0
               AND c.workflow != 'shipped') AS children_count_open
    FROM board_entities b
    LEFT JOIN board_entities p ON p.entity_id = b.parent_id
"""

_ORDER = " ORDER BY b.created_at ASC, b.rowid ASC"

# patch field -> column; parent_public_id is resolved by the service
_PATCH_COLUMNS = {
    "name": "name",
    "description": "description",
    "room": "room",
    "assigned_to": "assigned_to",
    "start_date": "start_date",
    "end_date": "end_date",
    "estimate_hours": "estimate_hours",
    "sprint_id": "sprint_id",
    "workflow": "workflow",
    "parent_id": "parent_id",
    "metadata": "metadata",
}


def _like(term: str) -> str:
    """Build a LIKE pattern matching ``term`` anywhere, escaping wildcards."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class SQLiteBoardStorage(BoardStorage):
    """SQLite-based board store."""

    def __init__(self, db_path: str):
        self._db_path = db_path
        self._conn = sqlite3.connect(db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.execute("PRAGMA busy_timeout=5000")
        self._conn.executescript(SCHEMA)
        self._conn.commit()

    def path(self) -> str:
        return self._db_path

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> SQLiteBoardStorage:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # --- Helpers ---

    def _row_to_entity(self, row: sqlite3.Row) -> BoardEntity:
        """Convert a joined database row to a BoardEntity."""
        md = row["metadata"] or "{}"
        try:
            metadata = json.loads(md)
        except (json.JSONDecodeError, TypeError):
            logger.warning("unreadable metadata on entity %s", row["public_id"])
            metadata = {}
        keys = set(row.keys())
        return BoardEntity(
            entity_id=row["entity_id"],
            public_id=row["public_id"],
            type=row["type"],
            name=row["name"],
            description=row["description"],
            room=row["room"],
            created_by=row["created_by"],
            assigned_to=row["assigned_to"],
            start_date=row["start_date"],
            end_date=row["end_date"],
            estimate_hours=row["estimate_hours"],
            sprint_id=row["sprint_id"],
            workflow=row["workflow"],
            parent_id=row["parent_id"],
            parent_public_id=row["parent_public_id"] if "parent_public_id" in keys else None,
            position=row["position"],
            children_count_open=row["children_count_open"] if "children_count_open" in keys else 0,
            children_count_total=row["children_count_total"] if "children_count_total" in keys else 0,
            metadata=metadata,
            version=row["version"],
            is_deleted=bool(row["is_deleted"]),
            created_at=parse_timestamp(row["created_at"]) or now_utc(),
            updated_at=parse_timestamp(row["updated_at"]) or now_utc(),
        )

    def _select(self, where: str, params: list[Any], order: bool = True) -> list[BoardEntity]:
        sql = f"{_ENTITY_SELECT} WHERE {where}"
        if order:
            sql += _ORDER
        rows = self._conn.execute(sql, params).fetchall()
        return [self._row_to_entity(row) for row in rows]

    def _execute_write(self, sql: str, params: list[Any]) -> sqlite3.Cursor:
        """Run one UPDATE and commit; a dangling parent reference is NotFound."""
        try:
            cur = self._conn.execute(sql, params)
            self._conn.commit()
        except sqlite3.IntegrityError as e:
            self._conn.rollback()
            if "FOREIGN KEY" in str(e):
                raise NotFoundError("parent entity not found") from e
            raise
        return cur

    def _build_filter_sql(self, q: BoardQuery | None, titles: bool,
                          base_where: str = "b.is_deleted = 0") -> tuple[str, list[Any]]:
        """Build a WHERE clause from a BoardQuery.

        Title queries filter on type, search text and explicit title ids;
        card queries (children, unmapped) filter on assignee, sprint and
        workflow. Room applies to both.
        """
        clauses = [base_where]
        params: list[Any] = []
        if q is None:
            return base_where, params

        if q.room:
            clauses.append("b.room = ?")
            params.append(q.room)

        if titles:
            if q.type and q.type != "any":
                clauses.append("b.type = ?")
                params.append(q.type)
            if q.search:
                pattern = _like(q.search)
                clauses.append(
                    "(b.name LIKE ? ESCAPE '\\' OR b.description LIKE ? ESCAPE '\\'"
                    " OR b.public_id LIKE ? ESCAPE '\\')"
                )
                params.extend([pattern, pattern, pattern])
            if q.title_public_ids:
                placeholders = ",".join("?" * len(q.title_public_ids))
                clauses.append(f"b.public_id IN ({placeholders})")
                params.extend(q.title_public_ids)
        else:
            if q.assigned_to:
                clauses.append("b.assigned_to = ?")
                params.append(q.assigned_to)
            if q.sprint_id:
                clauses.append("b.sprint_id = ?")
                params.append(q.sprint_id)
            if q.workflow and q.workflow != "any":
                clauses.append("b.workflow = ?")
                params.append(q.workflow)

        return " AND ".join(clauses), params

    # --- Lookups ---

    def find_by_public_id(self, public_id: str,
                          include_deleted: bool = False) -> BoardEntity | None:
        where = "b.public_id = ?"
        if not include_deleted:
            where += " AND b.is_deleted = 0"
        found = self._select(where, [public_id], order=False)
        return found[0] if found else None

    def find_by_entity_id(self, entity_id: str) -> BoardEntity | None:
        found = self._select("b.entity_id = ? AND b.is_deleted = 0", [entity_id], order=False)
        return found[0] if found else None

    def resolve_public_id_to_entity_id(self, public_id: str) -> str | None:
        row = self._conn.execute(
            "SELECT entity_id FROM board_entities WHERE public_id = ? AND is_deleted = 0",
            (public_id,)
        ).fetchone()
        return row["entity_id"] if row else None

    # --- Queries ---

    def search_titles(self, query: BoardQuery) -> list[BoardEntity]:
        where, params = self._build_filter_sql(query, titles=True)
        return self._select(where, params)

    def find_children_of(self, parent_id: str,
                         query: BoardQuery | None = None) -> list[BoardEntity]:
        where, params = self._build_filter_sql(
            query, titles=False, base_where="b.parent_id = ? AND b.is_deleted = 0"
        )
        return self._select(where, [parent_id] + params)

    def find_unmapped(self, query: BoardQuery | None = None) -> list[BoardEntity]:
        where, params = self._build_filter_sql(
            query, titles=False, base_where="b.parent_id IS NULL AND b.is_deleted = 0"
        )
        return self._select(where, params)

    def find_orphaned(self) -> list[BoardEntity]:
        """Live entities whose parent has been soft-deleted."""
        return self._select(
            "b.is_deleted = 0 AND p.entity_id IS NOT NULL AND p.is_deleted = 1", []
        )

    def full_text_search(self, search: str,
                         query: BoardQuery | None = None) -> list[BoardEntity]:
        words = search.split()
        if not words:
            return []
        where, params = self._build_filter_sql(query, titles=False)
        if query is not None and query.type and query.type != "any":
            where += " AND b.type = ?"
            params.append(query.type)
        for word in words:
            pattern = _like(word)
            where += (" AND (b.name LIKE ? ESCAPE '\\'"
                      " OR COALESCE(b.description, '') LIKE ? ESCAPE '\\')")
            params.extend([pattern, pattern])
        return self._select(where, params)

    def count_by_type(self, entity_type: str, parent_not_null: bool = False,
                      only_active: bool = False) -> int:
        sql = "SELECT COUNT(*) AS cnt FROM board_entities WHERE type = ?"
        if parent_not_null:
            sql += " AND parent_id IS NOT NULL"
        if only_active:
            sql += " AND is_deleted = 0"
        row = self._conn.execute(sql, (entity_type,)).fetchone()
        return row["cnt"] if row else 0

    # --- Create / Update / Delete ---

    def create_entity(self, new: NewEntity, resolved_parent_id: str | None) -> BoardEntity:
        entity_id = str(uuid.uuid4())
        now = format_timestamp(now_utc())
        try:
            self._conn.execute(
                """INSERT INTO board_entities (
                    entity_id, public_id, type, name, description, room,
                    created_by, assigned_to, start_date, end_date,
                    estimate_hours, sprint_id, workflow, parent_id, position,
                    metadata, version, is_deleted, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1, 0, ?, ?)""",
                (
                    entity_id, new.public_id, new.type, new.name,
                    new.description, new.room, new.created_by,
                    new.assigned_to, new.start_date, new.end_date,
                    new.estimate_hours, new.sprint_id,
                    new.workflow or Workflow.INBOX, resolved_parent_id, None,
                    json.dumps(new.metadata or {}), now, now,
                )
            )
            self._conn.commit()
        except sqlite3.IntegrityError as e:
            self._conn.rollback()
            msg = str(e)
            if "public_id" in msg:
                raise ConflictError(f"public id already taken: {new.public_id}",
                                    details={"public_id": new.public_id}) from e
            if "FOREIGN KEY" in msg:
                raise NotFoundError(f"parent entity not found: {resolved_parent_id}") from e
            raise

        logger.debug("create_entity %s (%s)", new.public_id, new.type)
        created = self.find_by_entity_id(entity_id)
        assert created is not None
        return created

    def update_entity_by_public_id(self, public_id: str, patch: EntityPatch,
                                   expected_version: int | None = None) -> BoardEntity:
        set_clauses = []
        params: list[Any] = []

        for key, value in patch.items():
            col = _PATCH_COLUMNS.get(key)
            if col is None:
                continue
            if col == "metadata":
                value = json.dumps(value or {})
            set_clauses.append(f"{col} = ?")
            params.append(value)

        # Always bump version and updated_at
        set_clauses.append("version = version + 1")
        set_clauses.append("updated_at = ?")
        params.append(format_timestamp(now_utc()))

        sql = (f"UPDATE board_entities SET {', '.join(set_clauses)} "
               "WHERE public_id = ? AND is_deleted = 0")
        params.append(public_id)
        if expected_version is not None:
            sql += " AND version = ?"
            params.append(expected_version)

        cur = self._execute_write(sql, params)

        if cur.rowcount == 0:
            current = self.find_by_public_id(public_id)
            if current is None:
                raise NotFoundError(f"entity not found: {public_id}")
            raise VersionConflict(public_id, expected_version or 0, current.version)

        logger.debug("update_entity %s fields=%s", public_id, sorted(patch))
        updated = self.find_by_public_id(public_id)
        assert updated is not None
        return updated

    def delete_entity_by_public_id(self, public_id: str) -> None:
        self._conn.execute(
            "UPDATE board_entities SET is_deleted = 1, updated_at = ? "
            "WHERE public_id = ? AND is_deleted = 0",
            (format_timestamp(now_utc()), public_id)
        )
        self._conn.commit()
        logger.debug("delete_entity %s", public_id)

    def set_position(self, entity_id: str, parent_id: str | None, workflow: str,
                     position: int | None) -> None:
        cur = self._execute_write(
            "UPDATE board_entities SET workflow = ?, parent_id = ?, position = ?, "
            "version = version + 1, updated_at = ? "
            "WHERE entity_id = ? AND is_deleted = 0",
            [workflow, parent_id, position, format_timestamp(now_utc()), entity_id]
        )
        if cur.rowcount == 0:
            raise NotFoundError(f"entity not found: {entity_id}")
        logger.debug("set_position %s workflow=%s position=%s", entity_id, workflow, position)

    # --- History ---

    def add_history(self, entity_id: str, action: str, actor_id: str | None,
                    payload: dict[str, Any] | None = None) -> int:
        if not HistoryAction.is_valid(action):
            raise ValidationError(f"invalid history action: {action}")
        try:
            cur = self._conn.execute(
                "INSERT INTO board_history (entity_id, action, actor_id, payload, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (entity_id, action, actor_id, json.dumps(payload or {}, default=str),
                 format_timestamp(now_utc()))
            )
            self._conn.commit()
        except sqlite3.Error as e:
            self._conn.rollback()
            raise StorageError(f"could not write {action} history for {entity_id}: {e}") from e
        return cur.lastrowid or 0

    def get_history(self, entity_id: str) -> list[EntityHistory]:
        rows = self._conn.execute(
            "SELECT * FROM board_history WHERE entity_id = ? "
            "ORDER BY created_at ASC, history_id ASC",
            (entity_id,)
        ).fetchall()
        history = []
        for row in rows:
            try:
                payload = json.loads(row["payload"] or "{}")
            except (json.JSONDecodeError, TypeError):
                payload = {}
            history.append(EntityHistory(
                history_id=row["history_id"],
                entity_id=row["entity_id"],
                action=row["action"],
                actor_id=row["actor_id"],
                payload=payload,
                created_at=parse_timestamp(row["created_at"]) or now_utc(),
            ))
        return history

    # --- Metadata ---

    def get_metadata(self, key: str) -> str | None:
        row = self._conn.execute(
            "SELECT value FROM metadata WHERE key = ?", (key,)
        ).fetchone()
        return row["value"] if row else None

    def set_metadata(self, key: str, value: str) -> None:
        self._conn.execute(
            "INSERT INTO metadata (key, value) VALUES (?, ?) "
            "ON CONFLICT (key) DO UPDATE SET value = excluded.value",
            (key, value)
        )
        self._conn.commit()


def open_storage(db_path: str) -> SQLiteBoardStorage:
    """Open or create a SQLite board store at the given path."""
    return SQLiteBoardStorage(db_path)
