"""wo delete - soft-delete an entity."""

from __future__ import annotations

import click

from workorbit.cli import DELETE_ROLES, WorkOrbitContext, board_errors, pass_ctx


@click.command("delete")
@click.argument("public_ids", nargs=-1, required=True)
@pass_ctx
@board_errors
def delete(ctx: WorkOrbitContext, public_ids: tuple[str, ...]) -> None:
    """Delete one or more entities.

    Children of a deleted entity stay on the board with their parent link
    intact; `wo doctor` lists them.
    """
    ctx.require_role(DELETE_ROLES)

    deleted = []
    for public_id in public_ids:
        entity = ctx.service.get_entity(public_id)
        ctx.service.delete_entity(public_id)
        deleted.append(entity)
        if not ctx.json_output and not ctx.quiet:
            click.echo(f"Deleted {public_id}")
            if entity.children_count_total:
                click.echo(f"  {entity.children_count_total} child(ren) left without a live parent")

    if ctx.json_output:
        ctx.output([{"publicId": e.public_id, "deleted": True} for e in deleted])
