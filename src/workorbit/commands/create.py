"""wo create - create a mission, project, story or task."""

from __future__ import annotations

import click

from workorbit.cli import WorkOrbitContext, board_errors, pass_ctx
from workorbit.models import ENTITY_TYPES, WORKFLOWS, NewEntity, Workflow
from workorbit.utils import blank_to_none, parse_metadata_pairs


@click.command("create")
@click.option("--type", "entity_type", default="task", type=click.Choice(ENTITY_TYPES),
              help="Entity type")
@click.option("--name", "-n", required=True, help="Entity name")
@click.option("--description", "-d", default="", help="Description")
@click.option("--room", default="", help="Room the entity belongs to")
@click.option("--assignee", "-a", default="", help="Assignee")
@click.option("--start", "start_date", default="", help="Start date")
@click.option("--end", "end_date", default="", help="End date")
@click.option("--estimate", type=float, default=None, help="Estimate in hours")
@click.option("--sprint", "sprint_id", default="", help="Sprint id")
@click.option("--workflow", "-w", default=Workflow.INBOX, type=click.Choice(WORKFLOWS),
              help="Initial workflow column")
@click.option("--parent", default="", help="Parent public id")
@click.option("--meta", multiple=True, help="Metadata KEY=VALUE (repeatable)")
@click.option("--id", "custom_id", default="", help="Custom public id")
@click.option("--silent", is_flag=True, help="Only output the public id")
@pass_ctx
@board_errors
def create(ctx: WorkOrbitContext, entity_type: str, name: str, description: str,
           room: str, assignee: str, start_date: str, end_date: str,
           estimate: float | None, sprint_id: str, workflow: str, parent: str,
           meta: tuple[str, ...], custom_id: str, silent: bool) -> None:
    """Create a new board entity."""
    ctx.require_role()

    new = NewEntity(
        type=entity_type,
        name=name,
        created_by=ctx.actor,
        description=blank_to_none(description),
        room=blank_to_none(room),
        assigned_to=blank_to_none(assignee),
        start_date=blank_to_none(start_date),
        end_date=blank_to_none(end_date),
        estimate_hours=estimate,
        sprint_id=blank_to_none(sprint_id),
        workflow=workflow,
        parent_public_id=blank_to_none(parent),
        metadata=parse_metadata_pairs(meta),
        public_id=blank_to_none(custom_id),
    )
    entity = ctx.service.create_entity(new)

    if silent:
        click.echo(entity.public_id)
    elif ctx.json_output:
        ctx.output(entity.to_dict())
    elif not ctx.quiet:
        click.echo(f"Created {entity.type} {entity.public_id}: {entity.name}")
        if entity.parent_public_id:
            click.echo(f"  Parent: {entity.parent_public_id}")
