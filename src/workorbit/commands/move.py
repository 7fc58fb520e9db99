"""wo move / wo map - reposition and remap entities."""

from __future__ import annotations

import sys

import click

from workorbit.cli import WorkOrbitContext, board_errors, pass_ctx
from workorbit.models import WORKFLOWS, MoveTarget
from workorbit.utils import blank_to_none


@click.command("move")
@click.argument("public_id")
@click.option("--workflow", "-w", default=None, type=click.Choice(WORKFLOWS),
              help="Target workflow column")
@click.option("--parent", default=None, help="Target parent public id (empty to unmap)")
@click.option("--position", "-p", type=int, default=None, help="Position in the column")
@pass_ctx
@board_errors
def move(ctx: WorkOrbitContext, public_id: str, workflow: str | None,
         parent: str | None, position: int | None) -> None:
    """Move an entity to another column, parent or position.

    Without --parent this is a move within the current row.
    """
    ctx.require_role()

    if workflow is None and parent is None and position is None:
        click.echo("Error: nothing to move (pass --workflow, --parent or --position)", err=True)
        sys.exit(1)

    if parent is None and position is not None:
        current = ctx.service.get_entity(public_id)
        entity = ctx.service.move_within_column(
            public_id, workflow or current.workflow, position)
    else:
        target: dict = {}
        if parent is not None:
            target["parent_public_id"] = blank_to_none(parent)
        if workflow is not None:
            target["workflow"] = workflow
        if position is not None:
            target["position"] = position
        entity = ctx.service.move_across(public_id, MoveTarget(**target))

    if ctx.json_output:
        ctx.output(entity.to_dict())
    elif not ctx.quiet:
        where = entity.parent_public_id or "(unmapped)"
        click.echo(f"Moved {entity.public_id} -> {where} [{entity.workflow}]")


@click.command("map")
@click.argument("child_ids", nargs=-1, required=True)
@click.option("--to", "parent", default=None, help="Parent public id")
@click.option("--unmap", is_flag=True, help="Remove the children from their parent")
@pass_ctx
@board_errors
def map_cmd(ctx: WorkOrbitContext, child_ids: tuple[str, ...], parent: str | None,
            unmap: bool) -> None:
    """Map several entities under one parent in a single step."""
    ctx.require_role()

    if unmap == bool(parent):
        click.echo("Error: pass exactly one of --to PARENT or --unmap", err=True)
        sys.exit(1)

    mapped = ctx.service.bulk_map(list(child_ids), None if unmap else parent)

    if ctx.json_output:
        ctx.output([e.to_dict() for e in mapped])
    elif not ctx.quiet:
        target = parent if parent else "(unmapped)"
        click.echo(f"Mapped {len(mapped)} entit{'y' if len(mapped) == 1 else 'ies'} -> {target}")
