"""Public id generation and parsing.

Public ids self-describe the entity type: a two-character prefix followed
by a short random token, e.g. ``M_3fa9c1`` (mission) or ``T_0b7e22`` (task).

Uniqueness is enforced by the store's unique constraint on ``public_id``;
the generator only makes collisions unlikely (16^6 tokens per type).
"""

from __future__ import annotations

import secrets

from workorbit.errors import ValidationError
from workorbit.models import ENTITY_PREFIX, PUBLIC_ID_RE

PUBLIC_ID_TOKEN_LENGTH = 6

_TYPE_BY_PREFIX = {prefix: t for t, prefix in ENTITY_PREFIX.items()}


def generate_token(length: int = PUBLIC_ID_TOKEN_LENGTH) -> str:
    """Return ``length`` lowercase hex chars from a CSPRNG."""
    # token_hex yields two chars per byte
    return secrets.token_hex((length + 1) // 2)[:length]


def generate_public_id(entity_type: str) -> str:
    """Create a fresh public id for ``entity_type``.

    Format: prefix + 6-char token, e.g. "P_9c01ab".
    """
    prefix = ENTITY_PREFIX.get(entity_type)
    if prefix is None:
        raise ValidationError(f"invalid entity type: {entity_type}")
    return f"{prefix}{generate_token()}"


def is_valid_public_id(value: object) -> bool:
    """True if ``value`` looks like a public id (case-insensitive)."""
    return isinstance(value, str) and PUBLIC_ID_RE.match(value) is not None


def get_type_from_public_id(value: object) -> str | None:
    """Return the entity type encoded in the prefix, or None.

    Examples:
        "M_ab12cd" -> "mission"
        "T_0000ff" -> "task"
        "X_123" -> None
    """
    if not isinstance(value, str):
        return None
    return _TYPE_BY_PREFIX.get(value[:2].upper())
