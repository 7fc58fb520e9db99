"""wo search - full-text search over names and descriptions."""

from __future__ import annotations

import click

from workorbit.cli import WorkOrbitContext, board_errors, pass_ctx
from workorbit.models import ENTITY_TYPES, WORKFLOWS, BoardQuery
from workorbit.utils import format_entity_row


@click.command("search")
@click.argument("query_text")
@click.option("--type", "entity_type", default=None, type=click.Choice(ENTITY_TYPES),
              help="Filter by type")
@click.option("--workflow", "-w", default=None, type=click.Choice(WORKFLOWS),
              help="Filter by workflow")
@click.option("--assignee", "-a", default=None, help="Filter by assignee")
@click.option("--room", default=None, help="Filter by room")
@click.option("--limit", "-n", default=50, type=int, help="Max results")
@click.option("--long", "long_format", is_flag=True, help="Long format")
@pass_ctx
@board_errors
def search(ctx: WorkOrbitContext, query_text: str, entity_type: str | None,
           workflow: str | None, assignee: str | None, room: str | None,
           limit: int, long_format: bool) -> None:
    """Find entities whose name or description contains every word."""
    query = BoardQuery(type=entity_type, workflow=workflow,
                       assigned_to=assignee, room=room)
    results = ctx.service.search(query_text, query)
    if limit > 0:
        results = results[:limit]

    if ctx.json_output:
        ctx.output([e.to_dict() for e in results])
        return

    if not results:
        click.echo("No matches found.")
        return

    for entity in results:
        click.echo(format_entity_row(entity, long_format=long_format))

    if not ctx.quiet:
        click.echo(f"\n{len(results)} result(s)")
