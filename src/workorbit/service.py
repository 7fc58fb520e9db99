"""Board service: validation and orchestration on top of the store.

All checks run before the first write. History rows are written after the
state change; a failed history write is logged and does not undo or hide
the change itself.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Any

from workorbit.board import build_board
from workorbit.errors import (
    ConflictError, NotFoundError, StorageError, ValidationError, VersionConflict,
)
from workorbit.id_gen import generate_public_id, is_valid_public_id
from workorbit.models import (
    ALLOWED_PARENT, BoardEntity, BoardQuery, BoardResponse, EntityHistory,
    EntityPatch, EntityType, HistoryAction, MoveTarget, NewEntity, Workflow,
)
from workorbit.storage.interface import BoardStorage

logger = logging.getLogger(__name__)

MAX_ID_ATTEMPTS = 3


def validate_parent_mapping(child_type: str, parent_type: str | None) -> None:
    """Check that ``parent_type`` may hold a ``child_type``.

    ``parent_type`` None (root/unmapped) is always allowed.
    """
    if not EntityType.is_valid(child_type):
        raise ValidationError(f"invalid entity type: {child_type}")
    if parent_type is None:
        return
    required = ALLOWED_PARENT[child_type]
    if parent_type != required:
        expected = f"expected {required}" if required else f"a {child_type} has no parent"
        raise ValidationError(
            f"cannot map {child_type} under {parent_type} ({expected})",
            code="INVALID_PARENT",
            details={"child_type": child_type, "parent_type": parent_type},
        )


class BoardService:
    """Entry point for board operations on behalf of one actor."""

    validate_parent_mapping = staticmethod(validate_parent_mapping)

    def __init__(self, store: BoardStorage, actor_id: str | None = None) -> None:
        self.store = store
        self.actor_id = actor_id

    # --- Helpers ---

    def _require(self, public_id: str) -> BoardEntity:
        entity = self.store.find_by_public_id(public_id)
        if entity is None:
            raise NotFoundError(f"entity not found: {public_id}",
                                details={"public_id": public_id})
        return entity

    def _resolve_parent(self, parent_public_id: str | None,
                        parent_id: str | None) -> BoardEntity | None:
        """Load the referenced parent, or None when no parent is given."""
        if parent_public_id is not None:
            entity_id = self.store.resolve_public_id_to_entity_id(parent_public_id)
            parent = self.store.find_by_entity_id(entity_id) if entity_id else None
            ref = parent_public_id
        elif parent_id is not None:
            parent = self.store.find_by_entity_id(parent_id)
            ref = parent_id
        else:
            return None
        if parent is None:
            raise NotFoundError(f"parent not found: {ref}", details={"parent": ref})
        return parent

    def _record(self, entity: BoardEntity, action: str,
                payload: dict[str, Any] | None = None) -> None:
        """Best-effort history write."""
        try:
            self.store.add_history(entity.entity_id, action, self.actor_id, payload)
        except StorageError:
            logger.exception("history write failed: action=%s entity=%s",
                             action, entity.public_id)

    # --- Create / Update / Delete ---

    def create_entity(self, new: NewEntity) -> BoardEntity:
        """Validate and insert a new entity, generating its public id if needed."""
        new.validate()
        parent = self._resolve_parent(new.parent_public_id, new.parent_id)
        validate_parent_mapping(new.type, parent.type if parent else None)
        parent_entity_id = parent.entity_id if parent else None

        supplied = new.public_id is not None
        attempts = 1 if supplied else MAX_ID_ATTEMPTS
        created = None
        for attempt in range(1, attempts + 1):
            candidate = new if supplied else dataclasses.replace(
                new, public_id=generate_public_id(new.type))
            try:
                created = self.store.create_entity(candidate, parent_entity_id)
                break
            except ConflictError:
                if attempt == attempts:
                    raise
                logger.warning("public id collision on %s, retrying (%d/%d)",
                               candidate.public_id, attempt, attempts)
        assert created is not None

        self._record(created, HistoryAction.CREATED, {
            "type": created.type,
            "name": created.name,
            "workflow": created.workflow,
            "parentPublicId": created.parent_public_id,
        })
        return created

    def update_entity(self, public_id: str, patch: EntityPatch) -> BoardEntity:
        """Apply a partial update.

        With ``patch.expected_version`` set, the update only goes through if
        the stored version still matches; otherwise VersionConflict is raised
        and nothing is written.
        """
        patch.validate()
        if patch.is_empty():
            raise ValidationError("nothing to update")
        current = self._require(public_id)
        if patch.expected_version is not None and patch.expected_version != current.version:
            raise VersionConflict(public_id, patch.expected_version, current.version)

        store_patch = patch
        parent = None
        parent_changed = False
        if patch.changes_parent():
            parent = self._resolve_parent(patch.get("parent_public_id"), patch.get("parent_id"))
            validate_parent_mapping(current.type, parent.type if parent else None)
            new_parent_id = parent.entity_id if parent else None
            store_patch = patch.without("parent_public_id").with_fields(parent_id=new_parent_id)
            parent_changed = new_parent_id != current.parent_id

        changed = sorted(
            k for k, v in store_patch.items()
            if k != "parent_id" and getattr(current, k) != v
        )
        if parent_changed:
            changed.append("parent")
        if not changed:
            return current

        updated = self.store.update_entity_by_public_id(
            public_id, store_patch, expected_version=patch.expected_version)
        payload: dict[str, Any] = {"fields": changed, "version": updated.version}

        if "workflow" in changed:
            payload.update({"from": current.workflow, "to": updated.workflow})
            action = HistoryAction.WORKFLOW_CHANGED
        elif changed == ["parent"]:
            payload.update({"from": current.parent_public_id, "to": updated.parent_public_id})
            action = HistoryAction.MAPPED if parent else HistoryAction.UNMAPPED
        elif changed == ["assigned_to"]:
            payload.update({"from": current.assigned_to, "to": updated.assigned_to})
            action = HistoryAction.ASSIGNED
        else:
            action = HistoryAction.UPDATED
        self._record(updated, action, payload)
        return updated

    def delete_entity(self, public_id: str) -> None:
        """Soft-delete an entity. Its children keep their parent link."""
        current = self._require(public_id)
        self.store.delete_entity_by_public_id(public_id)
        if current.children_count_total:
            logger.info("%s deleted with %d children still linked",
                        public_id, current.children_count_total)
        self._record(current, HistoryAction.DELETED, {
            "publicId": public_id,
            "childrenCountTotal": current.children_count_total,
        })

    # --- Moves ---

    def move_within_column(self, public_id: str, workflow: str,
                           new_position: int) -> BoardEntity:
        """Reorder an entity inside a column; the parent is left alone.

        Position is stored but boards still list cards by creation time. Only
        a workflow change is recorded in history; a pure reorder is not.
        """
        if not Workflow.is_valid(workflow):
            raise ValidationError(f"invalid workflow: {workflow}")
        if isinstance(new_position, bool) or not isinstance(new_position, int):
            raise ValidationError("position must be an integer")
        current = self._require(public_id)
        self.store.set_position(current.entity_id, current.parent_id, workflow, new_position)
        moved = self.store.find_by_entity_id(current.entity_id) or current
        if workflow != current.workflow:
            self._record(moved, HistoryAction.WORKFLOW_CHANGED, {
                "from": current.workflow, "to": workflow, "position": new_position,
            })
        return moved

    def move_across(self, public_id: str, target: MoveTarget) -> BoardEntity:
        """Drag-and-drop move: parent, workflow and position in one call.

        Writes at most two history rows (mapping, workflow) and at least one
        if anything changed. A move that changes nothing writes nothing.
        """
        target.validate()
        current = self._require(public_id)

        parent = None
        new_parent_id = current.parent_id
        if target.changes_parent():
            parent = self._resolve_parent(target.get("parent_public_id"), target.get("parent_id"))
            validate_parent_mapping(current.type, parent.type if parent else None)
            new_parent_id = parent.entity_id if parent else None

        new_workflow = target["workflow"] if "workflow" in target else current.workflow
        new_position = target["position"] if "position" in target else current.position

        parent_changed = new_parent_id != current.parent_id
        workflow_changed = new_workflow != current.workflow
        position_changed = new_position != current.position
        if not (parent_changed or workflow_changed or position_changed):
            return current

        self.store.set_position(current.entity_id, new_parent_id, new_workflow, new_position)
        moved = self.store.find_by_entity_id(current.entity_id) or current

        if parent_changed:
            self._record(moved, HistoryAction.MAPPED if parent else HistoryAction.UNMAPPED, {
                "from": current.parent_public_id,
                "to": parent.public_id if parent else None,
            })
        if workflow_changed:
            self._record(moved, HistoryAction.WORKFLOW_CHANGED, {
                "from": current.workflow, "to": new_workflow,
            })
        if not (parent_changed or workflow_changed):
            self._record(moved, HistoryAction.UPDATED, {
                "fields": ["position"], "position": new_position,
            })
        return moved

    def bulk_map(self, child_public_ids: list[str],
                 parent_public_id: str | None) -> list[BoardEntity]:
        """Map several entities under one parent (None unmaps them).

        Every child is validated before any of them is moved.
        """
        parent = self._resolve_parent(parent_public_id, None)
        children = [self._require(pid) for pid in child_public_ids]
        for child in children:
            validate_parent_mapping(child.type, parent.type if parent else None)

        new_parent_id = parent.entity_id if parent else None
        mapped = []
        for child in children:
            self.store.set_position(child.entity_id, new_parent_id, child.workflow, child.position)
            moved = self.store.find_by_entity_id(child.entity_id) or child
            self._record(moved, HistoryAction.BULK_MAPPED, {
                "from": child.parent_public_id,
                "to": parent_public_id,
                "count": len(children),
            })
            mapped.append(moved)
        return mapped

    # --- Reads ---

    def get_board(self, query: BoardQuery) -> BoardResponse:
        return build_board(self.store, query)

    def get_entity(self, public_id: str) -> BoardEntity:
        if not is_valid_public_id(public_id):
            raise ValidationError(f"invalid public id: {public_id}")
        return self._require(public_id)

    def search(self, text: str, query: BoardQuery | None = None) -> list[BoardEntity]:
        return self.store.full_text_search(text, query)

    def get_history(self, public_id: str) -> list[EntityHistory]:
        """History of an entity, including one that has been deleted."""
        entity = self.store.find_by_public_id(public_id, include_deleted=True)
        if entity is None:
            raise NotFoundError(f"entity not found: {public_id}")
        return self.store.get_history(entity.entity_id)

    def add_comment(self, public_id: str, text: str) -> int:
        """Attach a comment to the entity's history. Returns the history id."""
        if not text or not text.strip():
            raise ValidationError("comment text is required")
        entity = self._require(public_id)
        return self.store.add_history(entity.entity_id, HistoryAction.COMMENT,
                                      self.actor_id, {"text": text})
