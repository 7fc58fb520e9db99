"""wo doctor - health checks."""

from __future__ import annotations

import os

import click

from workorbit.cli import WorkOrbitContext, pass_ctx
from workorbit.storage.schema import SCHEMA_VERSION


@click.command("doctor")
@pass_ctx
def doctor(ctx: WorkOrbitContext) -> None:
    """Run health checks on the WorkOrbit board."""
    ctx.ensure_initialized()
    assert ctx.store is not None and ctx.workorbit_dir is not None

    issues_found = 0

    click.echo("WorkOrbit Doctor")
    click.echo("─" * 40)

    click.echo(f"  .workorbit/ directory: {ctx.workorbit_dir}")
    if os.path.isdir(ctx.workorbit_dir):
        click.echo("    [OK] exists")
    else:
        click.echo("    [ERROR] not found")
        issues_found += 1

    db_path = ctx.store.path()
    click.echo(f"  Database: {db_path}")
    version = ctx.store.get_metadata("schema_version")
    if version == SCHEMA_VERSION:
        click.echo(f"    [OK] schema version {version}")
    else:
        click.echo(f"    [WARN] schema version {version or 'unknown'} "
                   f"(expected {SCHEMA_VERSION})")
        issues_found += 1

    click.echo(f"  Actor: {ctx.actor or '(not set)'}")
    click.echo(f"  Role:  {ctx.role}")

    click.echo("\n  Checking for entities under deleted parents...")
    orphans = ctx.store.find_orphaned()
    if orphans:
        click.echo(f"    [WARN] {len(orphans)} orphaned entit{'y' if len(orphans) == 1 else 'ies'}:")
        for entity in orphans:
            click.echo(f"      {entity.public_id} ({entity.type}) -> {entity.parent_public_id}")
        issues_found += len(orphans)
    else:
        click.echo("    [OK] none")

    click.echo()
    if issues_found:
        click.echo(f"Found {issues_found} issue(s)")
    else:
        click.echo("All checks passed!")
