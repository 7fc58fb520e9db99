"""Error types raised by the board core."""

from __future__ import annotations

from typing import Any


class BoardError(Exception):
    """Base error for board operations.

    ``code`` is a stable machine-readable tag; ``details`` carries optional
    structured context for the caller.
    """

    code = "BOARD_ERROR"

    def __init__(self, message: str, code: str | None = None,
                 details: Any = None) -> None:
        super().__init__(message)
        if code:
            self.code = code
        self.details = details


class ValidationError(BoardError, ValueError):
    """Malformed input or an invalid parent/child mapping."""

    code = "VALIDATION"


class NotFoundError(BoardError, LookupError):
    """Referenced entity does not exist or is soft-deleted."""

    code = "NOT_FOUND"


class ConflictError(BoardError):
    """Public id already taken."""

    code = "CONFLICT"


class VersionConflict(BoardError):
    """Optimistic-lock mismatch on update."""

    code = "VERSION_CONFLICT"

    def __init__(self, public_id: str, expected: int, actual: int | None) -> None:
        super().__init__(
            f"version conflict on {public_id}: expected {expected}, found {actual}",
            details={"public_id": public_id, "expected": expected, "actual": actual},
        )
        self.public_id = public_id
        self.expected = expected
        self.actual = actual


class DataIntegrityError(BoardError):
    """Stored data violates an invariant (e.g. unknown workflow value)."""

    code = "DATA_INTEGRITY"


class StorageError(BoardError):
    """Unclassified failure reported by the store."""

    code = "STORAGE"
