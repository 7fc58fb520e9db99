"""Board data model: entity tags, records, patches and board shapes."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterator

from workorbit.errors import ValidationError


# --- EntityType constants ---

class EntityType:
    MISSION = "mission"
    PROJECT = "project"
    STORY = "story"
    TASK = "task"

    _VALID = {MISSION, PROJECT, STORY, TASK}

    @classmethod
    def is_valid(cls, t: Any) -> bool:
        return t in cls._VALID


# --- Workflow constants ---

class Workflow:
    INBOX = "inbox"
    BUILD = "build"
    REVIEW = "review"
    SHIPPED = "shipped"

    _VALID = {INBOX, BUILD, REVIEW, SHIPPED}

    @classmethod
    def is_valid(cls, w: Any) -> bool:
        return w in cls._VALID


# --- HistoryAction constants ---

class HistoryAction:
    CREATED = "created"
    UPDATED = "updated"
    MAPPED = "mapped"
    UNMAPPED = "unmapped"
    WORKFLOW_CHANGED = "workflow_changed"
    ASSIGNED = "assigned"
    DELETED = "deleted"
    COMMENT = "comment"
    BULK_MAPPED = "bulk_mapped"

    _VALID = {CREATED, UPDATED, MAPPED, UNMAPPED, WORKFLOW_CHANGED,
              ASSIGNED, DELETED, COMMENT, BULK_MAPPED}

    @classmethod
    def is_valid(cls, a: Any) -> bool:
        return a in cls._VALID


ENTITY_TYPES = [EntityType.MISSION, EntityType.PROJECT, EntityType.STORY, EntityType.TASK]
WORKFLOWS = [Workflow.INBOX, Workflow.BUILD, Workflow.REVIEW, Workflow.SHIPPED]

# Types that can head a board row, least to most specific.
TITLE_TYPES = [EntityType.MISSION, EntityType.PROJECT, EntityType.STORY]

ENTITY_PREFIX = {
    EntityType.MISSION: "M_",
    EntityType.PROJECT: "P_",
    EntityType.STORY: "S_",
    EntityType.TASK: "T_",
}

# child type -> the only type allowed as its parent (None: root only)
ALLOWED_PARENT: dict[str, str | None] = {
    EntityType.MISSION: None,
    EntityType.PROJECT: EntityType.MISSION,
    EntityType.STORY: EntityType.PROJECT,
    EntityType.TASK: EntityType.STORY,
}

PUBLIC_ID_RE = re.compile(r"^(M_|P_|S_|T_)[a-z0-9]+$", re.IGNORECASE)


# --- Helper: timestamp handling ---

def now_utc() -> datetime:
    """Current time in UTC."""
    return datetime.now(timezone.utc)


def format_timestamp(dt: datetime | None) -> str | None:
    """Format datetime as RFC3339 with fixed microsecond precision.

    The fixed width keeps lexical order equal to chronological order, which
    the store relies on for ``ORDER BY created_at``.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    s = dt.astimezone(timezone.utc).isoformat(timespec="microseconds")
    if s.endswith("+00:00"):
        s = s[:-6] + "Z"
    return s


def parse_timestamp(s: str | None) -> datetime | None:
    """Parse an RFC3339 timestamp string."""
    if not s:
        return None
    s = s.strip()
    if not s:
        return None
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        raise ValueError(f"Cannot parse timestamp: {s}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _check_common(values: dict[str, Any]) -> None:
    """Field checks shared by creation input and patches."""
    if "name" in values:
        name = values["name"]
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("name is required")
    if "workflow" in values and not Workflow.is_valid(values["workflow"]):
        raise ValidationError(f"invalid workflow: {values['workflow']}")
    est = values.get("estimate_hours")
    if est is not None:
        if isinstance(est, bool) or not isinstance(est, (int, float)):
            raise ValidationError("estimate_hours must be a number")
        if est < 0:
            raise ValidationError("estimate_hours cannot be negative")
    # metadata is never null; clear it with {}
    if "metadata" in values and not isinstance(values["metadata"], dict):
        raise ValidationError("metadata must be an object")
    ppid = values.get("parent_public_id")
    if ppid is not None and not PUBLIC_ID_RE.match(str(ppid)):
        raise ValidationError(f"invalid parent public id: {ppid}")


# --- Dataclasses ---

@dataclass
class BoardEntity:
    """A mission, project, story or task on the board."""

    entity_id: str = ""
    public_id: str = ""
    type: str = EntityType.TASK
    name: str = ""
    description: str | None = None
    room: str | None = None
    created_by: str = ""
    assigned_to: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    estimate_hours: float | None = None
    sprint_id: str | None = None
    workflow: str = Workflow.INBOX
    parent_id: str | None = None
    parent_public_id: str | None = None  # derived via join, never stored
    position: int | None = None
    children_count_open: int = 0
    children_count_total: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)
    version: int = 1
    is_deleted: bool = False
    created_at: datetime = field(default_factory=now_utc)
    updated_at: datetime = field(default_factory=now_utc)

    @property
    def status(self) -> str:
        return self.workflow

    def to_dict(self) -> dict:
        """Serialize using the camelCase keys of the board API."""
        return {
            "entityId": self.entity_id,
            "publicId": self.public_id,
            "type": self.type,
            "name": self.name,
            "description": self.description,
            "room": self.room,
            "createdBy": self.created_by,
            "assignedTo": self.assigned_to,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "estimateHours": self.estimate_hours,
            "sprintId": self.sprint_id,
            "workflow": self.workflow,
            "parentId": self.parent_id,
            "parentPublicId": self.parent_public_id,
            "position": self.position,
            "childrenCountOpen": self.children_count_open,
            "childrenCountTotal": self.children_count_total,
            "status": self.status,
            "metadata": self.metadata,
            "version": self.version,
            "isDeleted": self.is_deleted,
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_dict(cls, d: dict) -> BoardEntity:
        return cls(
            entity_id=d.get("entityId", ""),
            public_id=d.get("publicId", ""),
            type=d.get("type", EntityType.TASK),
            name=d.get("name", ""),
            description=d.get("description"),
            room=d.get("room"),
            created_by=d.get("createdBy", ""),
            assigned_to=d.get("assignedTo"),
            start_date=d.get("startDate"),
            end_date=d.get("endDate"),
            estimate_hours=d.get("estimateHours"),
            sprint_id=d.get("sprintId"),
            workflow=d.get("workflow", Workflow.INBOX),
            parent_id=d.get("parentId"),
            parent_public_id=d.get("parentPublicId"),
            position=d.get("position"),
            children_count_open=d.get("childrenCountOpen", 0) or 0,
            children_count_total=d.get("childrenCountTotal", 0) or 0,
            metadata=d.get("metadata") or {},
            version=d.get("version", 1),
            is_deleted=bool(d.get("isDeleted", False)),
            created_at=parse_timestamp(d.get("createdAt")) or now_utc(),
            updated_at=parse_timestamp(d.get("updatedAt")) or now_utc(),
        )


@dataclass(frozen=True)
class EntityHistory:
    """Append-only audit record for a board entity."""

    history_id: int = 0
    entity_id: str = ""
    action: str = ""
    actor_id: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=now_utc)

    def to_dict(self) -> dict:
        return {
            "historyId": self.history_id,
            "entityId": self.entity_id,
            "action": self.action,
            "actorId": self.actor_id,
            "payload": self.payload,
            "createdAt": format_timestamp(self.created_at),
        }


@dataclass
class NewEntity:
    """Input for creating a board entity."""

    type: str
    name: str
    created_by: str
    description: str | None = None
    room: str | None = None
    assigned_to: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    estimate_hours: float | None = None
    sprint_id: str | None = None
    workflow: str = Workflow.INBOX
    parent_public_id: str | None = None
    parent_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    public_id: str | None = None

    def validate(self) -> None:
        """Raise ValidationError on malformed input."""
        if not EntityType.is_valid(self.type):
            raise ValidationError(f"invalid entity type: {self.type}")
        if not self.created_by:
            raise ValidationError("created_by is required")
        _check_common({
            "name": self.name,
            "workflow": self.workflow,
            "estimate_hours": self.estimate_hours,
            "metadata": self.metadata,
            "parent_public_id": self.parent_public_id,
        })
        if self.public_id is not None:
            if not PUBLIC_ID_RE.match(self.public_id):
                raise ValidationError(f"invalid public id: {self.public_id}")
            if not self.public_id.upper().startswith(ENTITY_PREFIX[self.type]):
                raise ValidationError(
                    f"public id {self.public_id} does not match type {self.type}"
                )


class _FieldSet:
    """Named values where "absent" and "present but None" are distinct."""

    FIELDS: tuple[str, ...] = ()

    def __init__(self, **values: Any) -> None:
        unknown = sorted(set(values) - set(self.FIELDS))
        if unknown:
            raise ValidationError(f"unknown field(s): {', '.join(unknown)}")
        self._values: dict[str, Any] = dict(values)

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def __getitem__(self, name: str) -> Any:
        return self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self._values == other._values  # type: ignore[attr-defined]

    def __repr__(self) -> str:
        inner = ", ".join(f"{k}={v!r}" for k, v in self._values.items())
        return f"{type(self).__name__}({inner})"

    def get(self, name: str, default: Any = None) -> Any:
        return self._values.get(name, default)

    def items(self) -> list[tuple[str, Any]]:
        return list(self._values.items())

    def is_empty(self) -> bool:
        return not self._values


class EntityPatch(_FieldSet):
    """Partial update of a board entity.

    Only fields passed to the constructor are applied. ``expected_version``
    opts into the optimistic-concurrency check.
    """

    FIELDS = (
        "name", "description", "room", "assigned_to", "start_date",
        "end_date", "estimate_hours", "sprint_id", "workflow",
        "parent_public_id", "parent_id", "metadata",
    )

    # camelCase wire names accepted by from_dict
    _WIRE = {
        "assignedTo": "assigned_to",
        "startDate": "start_date",
        "endDate": "end_date",
        "estimateHours": "estimate_hours",
        "sprintId": "sprint_id",
        "parentPublicId": "parent_public_id",
        "parentId": "parent_id",
    }

    def __init__(self, expected_version: int | None = None, **values: Any) -> None:
        super().__init__(**values)
        self.expected_version = expected_version

    def __eq__(self, other: object) -> bool:
        result = super().__eq__(other)
        if result is NotImplemented or not result:
            return result
        return self.expected_version == other.expected_version  # type: ignore[attr-defined]

    @classmethod
    def from_dict(cls, d: dict) -> EntityPatch:
        values = {}
        expected = None
        for key, value in d.items():
            if key in ("expectedVersion", "expected_version"):
                expected = value
                continue
            values[cls._WIRE.get(key, key)] = value
        return cls(expected_version=expected, **values)

    def without(self, *names: str) -> EntityPatch:
        """Copy of this patch with the given fields dropped."""
        kept = {k: v for k, v in self._values.items() if k not in names}
        return EntityPatch(expected_version=self.expected_version, **kept)

    def with_fields(self, **values: Any) -> EntityPatch:
        """Copy of this patch with the given fields set."""
        merged = dict(self._values)
        merged.update(values)
        return EntityPatch(expected_version=self.expected_version, **merged)

    def changes_parent(self) -> bool:
        return "parent_public_id" in self or "parent_id" in self

    def validate(self) -> None:
        if self.expected_version is not None and (
            isinstance(self.expected_version, bool)
            or not isinstance(self.expected_version, int)
        ):
            raise ValidationError("expected_version must be an integer")
        _check_common(self._values)
        if "parent_public_id" in self and "parent_id" in self:
            raise ValidationError("pass either parent_public_id or parent_id, not both")


class MoveTarget(_FieldSet):
    """Drop target of a drag-and-drop move."""

    FIELDS = ("parent_public_id", "parent_id", "workflow", "position")

    def changes_parent(self) -> bool:
        return "parent_public_id" in self or "parent_id" in self

    def validate(self) -> None:
        _check_common(self._values)
        pos = self.get("position")
        if pos is not None and (isinstance(pos, bool) or not isinstance(pos, int)):
            raise ValidationError("position must be an integer")
        if "parent_public_id" in self and "parent_id" in self:
            raise ValidationError("pass either parent_public_id or parent_id, not both")


@dataclass
class BoardQuery:
    """Filters and view options for board and title queries."""

    search: str = ""
    type: str | None = None  # entity type or "any"
    room: str | None = None
    assigned_to: str | None = None
    sprint_id: str | None = None
    workflow: str | None = None  # workflow or "any"
    limit: int = 0
    offset: int = 0
    view_type: str = "auto"
    title_public_ids: list[str] = field(default_factory=list)
    include_other_tasks: bool = True

    def validate(self) -> None:
        if self.type not in (None, "any") and not EntityType.is_valid(self.type):
            raise ValidationError(f"invalid entity type: {self.type}")
        if self.workflow not in (None, "any") and not Workflow.is_valid(self.workflow):
            raise ValidationError(f"invalid workflow: {self.workflow}")
        if self.view_type != "auto" and self.view_type not in TITLE_TYPES:
            raise ValidationError(f"invalid view type: {self.view_type}")
        if self.limit < 0 or self.offset < 0:
            raise ValidationError("limit and offset cannot be negative")


@dataclass
class BoardColumns:
    inbox: list[BoardEntity] = field(default_factory=list)
    build: list[BoardEntity] = field(default_factory=list)
    review: list[BoardEntity] = field(default_factory=list)
    shipped: list[BoardEntity] = field(default_factory=list)

    def bucket(self, workflow: str) -> list[BoardEntity]:
        return getattr(self, workflow)

    def count(self) -> int:
        return sum(len(self.bucket(w)) for w in WORKFLOWS)

    def to_dict(self) -> dict:
        return {w: [e.to_dict() for e in self.bucket(w)] for w in WORKFLOWS}


@dataclass
class BoardRow:
    title: BoardEntity
    columns: BoardColumns = field(default_factory=BoardColumns)

    def to_dict(self) -> dict:
        return {"title": self.title.to_dict(), "columns": self.columns.to_dict()}


@dataclass
class BoardResponse:
    rows: list[BoardRow] = field(default_factory=list)
    other_tasks: BoardColumns = field(default_factory=BoardColumns)
    total_count: int = 0
    view_type: str = EntityType.MISSION

    def to_dict(self) -> dict:
        return {
            "rows": [r.to_dict() for r in self.rows],
            "otherTasks": self.other_tasks.to_dict(),
            "totalCount": self.total_count,
            "viewType": self.view_type,
        }
