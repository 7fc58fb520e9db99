"""Utility functions for the wo CLI."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from workorbit.errors import ValidationError
from workorbit.models import BoardEntity, Workflow


def workflow_symbol(workflow: str) -> str:
    """Return a symbol for workflow display."""
    symbols = {
        Workflow.INBOX: " ",
        Workflow.BUILD: ">",
        Workflow.REVIEW: "?",
        Workflow.SHIPPED: "x",
    }
    return symbols.get(workflow, "!")


def format_time_ago(dt: datetime) -> str:
    """Format a datetime as a relative time string."""
    now = datetime.now(timezone.utc)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    delta = now - dt
    seconds = int(delta.total_seconds())
    if seconds < 60:
        return "just now"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"
    days = hours // 24
    if days < 30:
        return f"{days}d ago"
    months = days // 30
    if months < 12:
        return f"{months}mo ago"
    years = days // 365
    return f"{years}y ago"


def truncate(s: str, max_len: int = 60) -> str:
    """Truncate a string with ellipsis."""
    if len(s) <= max_len:
        return s
    return s[:max_len - 3] + "..."


def format_entity_row(entity: BoardEntity, long_format: bool = False) -> str:
    """Format an entity as a single-line row for list display."""
    sym = workflow_symbol(entity.workflow)
    name = truncate(entity.name, 50)
    if long_format:
        assignee = entity.assigned_to or "-"
        parent = entity.parent_public_id or "-"
        return (f"[{sym}] {entity.public_id:<10} {entity.type:<8} {parent:<10} "
                f"{assignee:<15} {name}")
    return f"[{sym}] {entity.public_id:<10} {name}"


def parse_metadata_pairs(pairs: tuple[str, ...] | list[str]) -> dict[str, Any]:
    """Parse KEY=VALUE options into a metadata dict."""
    metadata: dict[str, Any] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ValidationError(f"metadata must be KEY=VALUE, got: {pair}")
        metadata[key] = value
    return metadata


def blank_to_none(value: str | None) -> str | None:
    """CLI convention: an empty option value clears the field."""
    if value is None:
        return None
    return value if value.strip() else None
