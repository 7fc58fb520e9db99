"""Storage interface (abstract base) for the board store."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from workorbit.models import BoardEntity, BoardQuery, EntityHistory, EntityPatch, NewEntity


class BoardStorage(ABC):
    """Abstract base class defining all board persistence operations.

    Reads exclude soft-deleted entities unless a method says otherwise.
    The store enforces no business rules; validation belongs to the service.
    """

    @abstractmethod
    def path(self) -> str:
        """Return the database file path."""

    @abstractmethod
    def close(self) -> None:
        """Close the storage connection."""

    # --- Lookups ---

    @abstractmethod
    def find_by_public_id(self, public_id: str,
                          include_deleted: bool = False) -> BoardEntity | None:
        """Get an entity by public id. Returns None if not found.

        Soft-deleted rows are only returned with ``include_deleted``.
        """

    @abstractmethod
    def find_by_entity_id(self, entity_id: str) -> BoardEntity | None:
        """Get a live entity by internal id. Returns None if not found."""

    @abstractmethod
    def resolve_public_id_to_entity_id(self, public_id: str) -> str | None:
        """Translate a public id into the internal id of a live entity."""

    # --- Queries ---

    @abstractmethod
    def search_titles(self, query: BoardQuery) -> list[BoardEntity]:
        """Entities matching the title filters, oldest first."""

    @abstractmethod
    def find_children_of(self, parent_id: str,
                         query: BoardQuery | None = None) -> list[BoardEntity]:
        """Direct children of ``parent_id``, oldest first."""

    @abstractmethod
    def find_unmapped(self, query: BoardQuery | None = None) -> list[BoardEntity]:
        """Live entities without a parent, oldest first."""

    @abstractmethod
    def find_orphaned(self) -> list[BoardEntity]:
        """Live entities whose parent has been soft-deleted."""

    @abstractmethod
    def full_text_search(self, search: str,
                         query: BoardQuery | None = None) -> list[BoardEntity]:
        """Entities whose name/description match every word of ``search``."""

    @abstractmethod
    def count_by_type(self, entity_type: str, parent_not_null: bool = False,
                      only_active: bool = False) -> int:
        """Count entities of a type. Deleted rows count unless ``only_active``."""

    # --- Create / Update / Delete ---

    @abstractmethod
    def create_entity(self, new: NewEntity, resolved_parent_id: str | None) -> BoardEntity:
        """Insert a new entity at version 1. Raises ConflictError on a taken public id."""

    @abstractmethod
    def update_entity_by_public_id(self, public_id: str, patch: EntityPatch,
                                   expected_version: int | None = None) -> BoardEntity:
        """Apply the present fields of ``patch``, bump version and updated_at."""

    @abstractmethod
    def delete_entity_by_public_id(self, public_id: str) -> None:
        """Soft-delete an entity. Idempotent."""

    @abstractmethod
    def set_position(self, entity_id: str, parent_id: str | None, workflow: str,
                     position: int | None) -> None:
        """Set workflow, parent and position together."""

    # --- History ---

    @abstractmethod
    def add_history(self, entity_id: str, action: str, actor_id: str | None,
                    payload: dict[str, Any] | None = None) -> int:
        """Append a history row. Returns the history id."""

    @abstractmethod
    def get_history(self, entity_id: str) -> list[EntityHistory]:
        """History rows for an entity, deleted or not, oldest first."""

    # --- Metadata ---

    @abstractmethod
    def get_metadata(self, key: str) -> str | None:
        """Get a metadata value."""

    @abstractmethod
    def set_metadata(self, key: str, value: str) -> None:
        """Set a metadata value."""
