"""wo board - show the board grouped into workflow columns."""

from __future__ import annotations

import click

from workorbit.cli import WorkOrbitContext, board_errors, pass_ctx
from workorbit.models import (
    ENTITY_TYPES, TITLE_TYPES, WORKFLOWS, BoardColumns, BoardQuery,
)
from workorbit.utils import format_entity_row, truncate


def _echo_columns(columns: BoardColumns, indent: str) -> None:
    for workflow in WORKFLOWS:
        cards = columns.bucket(workflow)
        if not cards:
            continue
        click.echo(f"{indent}{workflow} ({len(cards)})")
        for card in cards:
            click.echo(f"{indent}  {format_entity_row(card)}")


@click.command("board")
@click.option("--view", "view_type", default="auto",
              type=click.Choice(["auto"] + TITLE_TYPES), help="Entity type used as row titles")
@click.option("--search", "-s", default="", help="Filter titles by text")
@click.option("--type", "entity_type", default=None, type=click.Choice(["any"] + ENTITY_TYPES),
              help="Filter titles and other tasks by type")
@click.option("--title", "title_ids", multiple=True, help="Only these title public ids")
@click.option("--room", default=None, help="Filter by room")
@click.option("--assignee", "-a", default=None, help="Filter cards by assignee")
@click.option("--sprint", "sprint_id", default=None, help="Filter cards by sprint")
@click.option("--workflow", "-w", default=None, type=click.Choice(["any"] + WORKFLOWS),
              help="Filter cards by workflow")
@click.option("--limit", "-n", default=0, type=click.IntRange(min=0), help="Max rows (0 = all)")
@click.option("--offset", default=0, type=click.IntRange(min=0), help="Rows to skip")
@click.option("--no-other", is_flag=True, help="Hide unmapped entities")
@pass_ctx
@board_errors
def board(ctx: WorkOrbitContext, view_type: str, search: str, entity_type: str | None,
          title_ids: tuple[str, ...], room: str | None, assignee: str | None,
          sprint_id: str | None, workflow: str | None, limit: int, offset: int,
          no_other: bool) -> None:
    """Show board rows of titles with their children by workflow."""
    query = BoardQuery(
        search=search,
        type=entity_type,
        room=room,
        assigned_to=assignee,
        sprint_id=sprint_id,
        workflow=workflow,
        limit=limit,
        offset=offset,
        view_type=view_type,
        title_public_ids=list(title_ids),
        include_other_tasks=not no_other,
    )
    response = ctx.service.get_board(query)

    if ctx.json_output:
        ctx.output(response.to_dict())
        return

    if not response.rows and not response.other_tasks.count():
        click.echo("Board is empty.")
        return

    click.echo(f"Board by {response.view_type} "
               f"({len(response.rows)} of {response.total_count} rows)")
    for row in response.rows:
        title = row.title
        click.echo(f"\n{title.public_id}  {truncate(title.name, 50)}  "
                   f"[{title.children_count_open}/{title.children_count_total} open]")
        _echo_columns(row.columns, "  ")

    if response.other_tasks.count():
        click.echo(f"\nOther ({response.other_tasks.count()} unmapped)")
        _echo_columns(response.other_tasks, "  ")
