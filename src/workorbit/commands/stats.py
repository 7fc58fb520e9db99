"""wo stats - show board statistics."""

from __future__ import annotations

import click

from workorbit.cli import WorkOrbitContext, pass_ctx
from workorbit.models import ENTITY_TYPES


@click.command("stats")
@pass_ctx
def stats(ctx: WorkOrbitContext) -> None:
    """Show counts per entity type."""
    ctx.ensure_initialized()
    assert ctx.store is not None

    by_type = {}
    for entity_type in ENTITY_TYPES:
        by_type[entity_type] = {
            "active": ctx.store.count_by_type(entity_type, only_active=True),
            "mapped": ctx.store.count_by_type(entity_type, parent_not_null=True,
                                              only_active=True),
            "all": ctx.store.count_by_type(entity_type),
        }

    if ctx.json_output:
        ctx.output({"by_type": by_type})
        return

    click.echo("Board Statistics")
    click.echo("─" * 40)
    click.echo(f"  {'type':<10} {'active':>7} {'mapped':>7} {'deleted':>8}")
    for entity_type, counts in by_type.items():
        deleted = counts["all"] - counts["active"]
        click.echo(f"  {entity_type:<10} {counts['active']:>7} {counts['mapped']:>7} {deleted:>8}")
    total = sum(c["active"] for c in by_type.values())
    click.echo(f"\n  Total active: {total}")
