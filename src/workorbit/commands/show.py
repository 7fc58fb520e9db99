"""wo show - display entity details."""

from __future__ import annotations

import click

from workorbit.cli import WorkOrbitContext, board_errors, pass_ctx
from workorbit.models import BoardQuery
from workorbit.utils import format_entity_row, format_time_ago


@click.command("show")
@click.argument("public_id")
@pass_ctx
@board_errors
def show(ctx: WorkOrbitContext, public_id: str) -> None:
    """Show detailed view of an entity and its children."""
    entity = ctx.service.get_entity(public_id)
    assert ctx.store is not None
    children = ctx.store.find_children_of(entity.entity_id, BoardQuery())

    if ctx.json_output:
        data = entity.to_dict()
        data["_children"] = [c.to_dict() for c in children]
        ctx.output(data)
        return

    click.echo(f"{'─' * 60}")
    click.echo(f"  {entity.public_id}")
    click.echo(f"{'─' * 60}")
    click.echo(f"  Name:     {entity.name}")
    click.echo(f"  Type:     {entity.type}")
    click.echo(f"  Workflow: {entity.workflow}")
    click.echo(f"  Parent:   {entity.parent_public_id or '-'}")

    if entity.room:
        click.echo(f"  Room:     {entity.room}")
    if entity.assigned_to:
        click.echo(f"  Assignee: {entity.assigned_to}")
    if entity.sprint_id:
        click.echo(f"  Sprint:   {entity.sprint_id}")
    if entity.start_date or entity.end_date:
        click.echo(f"  Dates:    {entity.start_date or '?'} .. {entity.end_date or '?'}")
    if entity.estimate_hours is not None:
        click.echo(f"  Estimate: {entity.estimate_hours:g}h")

    click.echo(f"  Created:  {format_time_ago(entity.created_at)}")
    if entity.created_by:
        click.echo(f"  By:       {entity.created_by}")
    click.echo(f"  Updated:  {format_time_ago(entity.updated_at)}")
    click.echo(f"  Version:  {entity.version}")

    if entity.description:
        click.echo("\n  Description:")
        for line in entity.description.split("\n"):
            click.echo(f"    {line}")

    if entity.metadata:
        click.echo("\n  Metadata:")
        for key, value in sorted(entity.metadata.items()):
            click.echo(f"    {key}: {value}")

    if children:
        click.echo(f"\n  Children ({entity.children_count_open} open / "
                   f"{entity.children_count_total} total):")
        for child in children:
            click.echo(f"    {format_entity_row(child)}")
