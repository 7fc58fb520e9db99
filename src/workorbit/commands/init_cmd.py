"""wo init - initialize a new .workorbit/ directory."""

from __future__ import annotations

import os

import click

from workorbit.cli import WorkOrbitContext, pass_ctx
from workorbit.config import (
    DEFAULT_ROLE, ROLES, WORKORBIT_DIR, MetadataConfig, WorkOrbitConfig,
)
from workorbit.storage import open_storage


@click.command("init")
@click.option("--actor", "init_actor", default="", help="Default actor id written to config.yaml")
@click.option("--role", "init_role", type=click.Choice(ROLES), default=DEFAULT_ROLE,
              help="Default role written to config.yaml")
@pass_ctx
def init_cmd(ctx: WorkOrbitContext, init_actor: str, init_role: str) -> None:
    """Initialize a new WorkOrbit board in the current directory."""
    workorbit_dir = os.path.join(os.getcwd(), WORKORBIT_DIR)

    if os.path.exists(workorbit_dir):
        click.echo(f"WorkOrbit already initialized at {workorbit_dir}")
        return

    os.makedirs(workorbit_dir, exist_ok=True)

    config = WorkOrbitConfig(actor=init_actor, role=init_role)
    config.save(workorbit_dir)

    meta = MetadataConfig()
    meta.save(workorbit_dir)

    gitignore_path = os.path.join(workorbit_dir, ".gitignore")
    with open(gitignore_path, "w") as f:
        f.write("# WorkOrbit local files (not shared via git)\n")
        f.write("*.db\n")
        f.write("*.db-wal\n")
        f.write("*.db-shm\n")

    # Creating the store applies the schema
    db_path = os.path.join(workorbit_dir, meta.database)
    store = open_storage(db_path)
    version = store.get_metadata("schema_version")
    store.close()

    click.echo(f"Initialized WorkOrbit in {workorbit_dir}")
    click.echo(f"  Database: {meta.database}")
    click.echo(f"  Schema version: {version}")
