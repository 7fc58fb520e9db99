"""Board assembly: turn flat entity lists into rows of workflow columns."""

from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING, Iterable

from workorbit.errors import DataIntegrityError
from workorbit.models import (
    BoardColumns, BoardEntity, BoardQuery, BoardResponse, BoardRow,
    EntityType, TITLE_TYPES, Workflow,
)

if TYPE_CHECKING:
    from workorbit.storage.interface import BoardStorage

logger = logging.getLogger(__name__)


def group_by_workflow(entities: Iterable[BoardEntity]) -> BoardColumns:
    """Bucket entities into the four workflow columns, keeping input order.

    An entity with an unknown workflow means the store holds bad data; it is
    reported rather than dropped.
    """
    columns = BoardColumns()
    for entity in entities:
        if not Workflow.is_valid(entity.workflow):
            raise DataIntegrityError(
                f"entity {entity.public_id} has unknown workflow {entity.workflow!r}",
                details={"public_id": entity.public_id, "workflow": entity.workflow},
            )
        columns.bucket(entity.workflow).append(entity)
    return columns


def resolve_view_type(store: BoardStorage, view_type: str) -> str:
    """Map "auto" to the most specific title level that has live entities."""
    if view_type != "auto":
        return view_type
    for candidate in reversed(TITLE_TYPES):
        if store.count_by_type(candidate, only_active=True) > 0:
            return candidate
    return EntityType.MISSION


def build_board(store: BoardStorage, query: BoardQuery) -> BoardResponse:
    """Assemble the board for ``query``.

    Rows are the title entities of the chosen view level, each with its
    direct children grouped by workflow. ``other_tasks`` holds unmapped
    entities that are not themselves row titles. ``total_count`` is the
    number of titles before offset/limit are applied.
    """
    query.validate()
    view = resolve_view_type(store, query.view_type)

    titles = store.search_titles(dataclasses.replace(query, type=view))
    total = len(titles)
    if query.offset:
        titles = titles[query.offset:]
    if query.limit:
        titles = titles[:query.limit]

    rows = [
        BoardRow(title=title, columns=group_by_workflow(
            store.find_children_of(title.entity_id, query)))
        for title in titles
    ]

    other = BoardColumns()
    if query.include_other_tasks:
        unmapped = [e for e in store.find_unmapped(query) if e.type != view]
        if query.type and query.type != "any":
            unmapped = [e for e in unmapped if e.type == query.type]
        other = group_by_workflow(unmapped)

    logger.debug("board view=%s rows=%d/%d other=%d",
                 view, len(rows), total, other.count())
    return BoardResponse(rows=rows, other_tasks=other, total_count=total, view_type=view)
