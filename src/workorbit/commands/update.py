"""wo update - update an entity."""

from __future__ import annotations

import sys

import click

from workorbit.cli import WorkOrbitContext, board_errors, pass_ctx
from workorbit.models import WORKFLOWS, EntityPatch
from workorbit.utils import blank_to_none, parse_metadata_pairs


@click.command("update")
@click.argument("public_id")
@click.option("--name", "-n", default=None, help="New name")
@click.option("--description", "-d", default=None, help="New description (empty to clear)")
@click.option("--room", default=None, help="New room (empty to clear)")
@click.option("--assignee", "-a", default=None, help="New assignee (empty to clear)")
@click.option("--start", "start_date", default=None, help="Start date (empty to clear)")
@click.option("--end", "end_date", default=None, help="End date (empty to clear)")
@click.option("--estimate", default=None, help="Estimate in hours (empty to clear)")
@click.option("--sprint", "sprint_id", default=None, help="Sprint id (empty to clear)")
@click.option("--workflow", "-w", default=None, type=click.Choice(WORKFLOWS),
              help="New workflow column")
@click.option("--parent", default=None, help="New parent public id (empty to unmap)")
@click.option("--meta", multiple=True, help="Replace metadata with KEY=VALUE pairs")
@click.option("--clear-meta", is_flag=True, help="Clear all metadata")
@click.option("--claim", is_flag=True, help="Assign the entity to the current actor")
@click.option("--expected-version", type=int, default=None,
              help="Only update if the stored version matches")
@pass_ctx
@board_errors
def update(ctx: WorkOrbitContext, public_id: str, name: str | None,
           description: str | None, room: str | None, assignee: str | None,
           start_date: str | None, end_date: str | None, estimate: str | None,
           sprint_id: str | None, workflow: str | None, parent: str | None,
           meta: tuple[str, ...], clear_meta: bool, claim: bool,
           expected_version: int | None) -> None:
    """Update an existing entity."""
    ctx.require_role()

    updates: dict = {}
    if claim:
        updates["assigned_to"] = ctx.actor

    if name is not None:
        updates["name"] = name
    if description is not None:
        updates["description"] = blank_to_none(description)
    if room is not None:
        updates["room"] = blank_to_none(room)
    if assignee is not None:
        updates["assigned_to"] = blank_to_none(assignee)
    if start_date is not None:
        updates["start_date"] = blank_to_none(start_date)
    if end_date is not None:
        updates["end_date"] = blank_to_none(end_date)
    if estimate is not None:
        if estimate.strip():
            try:
                updates["estimate_hours"] = float(estimate)
            except ValueError:
                click.echo(f"Error: estimate must be a number, got: {estimate}", err=True)
                sys.exit(1)
        else:
            updates["estimate_hours"] = None
    if sprint_id is not None:
        updates["sprint_id"] = blank_to_none(sprint_id)
    if workflow is not None:
        updates["workflow"] = workflow
    if parent is not None:
        updates["parent_public_id"] = blank_to_none(parent)
    if clear_meta:
        updates["metadata"] = {}
    elif meta:
        updates["metadata"] = parse_metadata_pairs(meta)

    if not updates:
        click.echo("No updates specified.", err=True)
        sys.exit(1)

    entity = ctx.service.update_entity(
        public_id, EntityPatch(expected_version=expected_version, **updates))

    if ctx.json_output:
        ctx.output(entity.to_dict())
    elif not ctx.quiet:
        click.echo(f"Updated {entity.public_id} (version {entity.version})")
