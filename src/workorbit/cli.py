"""Click CLI root and global flags for WorkOrbit (wo)."""

from __future__ import annotations

import functools
import json
import logging
import sys
from typing import Any, Callable

import click

from workorbit import __version__
from workorbit.config import (
    ROLES, WorkOrbitConfig, find_workorbit_dir, get_actor, get_db_path, get_role,
)
from workorbit.errors import BoardError
from workorbit.service import BoardService
from workorbit.storage.sqlite_store import SQLiteBoardStorage

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Roles allowed to soft-delete entities
DELETE_ROLES = ("owner", "admin", "manager")


def configure_logging(level: int | str) -> None:
    """Send workorbit log records to stderr at ``level``."""
    logging.basicConfig(format=LOG_FORMAT, stream=sys.stderr)
    logging.getLogger("workorbit").setLevel(level)


class WorkOrbitContext:
    """Shared context for all commands."""

    def __init__(self) -> None:
        self.workorbit_dir: str | None = None
        self.store: SQLiteBoardStorage | None = None
        self.config: WorkOrbitConfig | None = None
        self.actor: str = ""
        self.role: str = ""
        self.json_output: bool = False
        self.verbose: bool = False
        self.debug: bool = False
        self.quiet: bool = False
        self.db_path: str | None = None
        self._service: BoardService | None = None

    def ensure_initialized(self) -> None:
        """Ensure the project directory and storage are available."""
        if self.store is not None:
            return
        self.workorbit_dir = find_workorbit_dir()
        if self.workorbit_dir is None:
            click.echo("Error: not in a WorkOrbit project (no .workorbit/ directory found)", err=True)
            click.echo("Run 'wo init' to create one", err=True)
            sys.exit(1)
        self.config = WorkOrbitConfig.load(self.workorbit_dir)
        if not self.actor:
            self.actor = get_actor(self.config)
        if not self.role:
            self.role = get_role(self.config)
        if not self.json_output and self.config:
            self.json_output = self.config.json_output
        if self.config.log_level and not (self.verbose or self.debug):
            configure_logging(self.config.log_level.upper())
        db_path = self.db_path or get_db_path(self.workorbit_dir, self.config)
        self.store = SQLiteBoardStorage(db_path)

    @property
    def service(self) -> BoardService:
        self.ensure_initialized()
        assert self.store is not None
        if self._service is None:
            self._service = BoardService(self.store, actor_id=self.actor)
        return self._service

    def require_role(self, allowed: tuple[str, ...] = ROLES) -> None:
        """Reject the command unless the caller's role is in ``allowed``."""
        self.ensure_initialized()
        if self.role not in allowed:
            raise BoardError(
                f"role '{self.role}' may not perform this operation",
                code="FORBIDDEN",
            )

    def close(self) -> None:
        if self.store is not None:
            self.store.close()
            self.store = None
            self._service = None

    def output(self, data: dict | list) -> None:
        """Output data as JSON."""
        click.echo(json.dumps(data, indent=2, default=str))


pass_ctx = click.make_pass_decorator(WorkOrbitContext, ensure=True)


def board_errors(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Report BoardError as 'Error: ...' on stderr with exit code 1."""
    @functools.wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except BoardError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
    return wrapper


@click.group(invoke_without_command=True)
@click.option("--db", envvar="WORKORBIT_DB", help="Path to database file")
@click.option("--actor", envvar="WO_ACTOR", help="Actor id for history rows")
@click.option("--role", type=click.Choice(ROLES), envvar="WO_ROLE", help="Caller role")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.option("--verbose", "-v", is_flag=True, help="Log progress to stderr")
@click.option("--debug", is_flag=True, help="Log store queries to stderr")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.version_option(__version__, prog_name="wo")
@click.pass_context
def cli(ctx: click.Context, db: str | None, actor: str | None, role: str | None,
        json_output: bool, verbose: bool, debug: bool, quiet: bool) -> None:
    """wo - WorkOrbit board"""
    wctx = ctx.ensure_object(WorkOrbitContext)
    wctx.verbose = verbose
    wctx.debug = debug
    wctx.quiet = quiet
    if json_output:
        wctx.json_output = True
    if actor:
        wctx.actor = actor
    if role:
        wctx.role = role
    if db:
        wctx.db_path = db

    if debug:
        configure_logging(logging.DEBUG)
    elif verbose:
        configure_logging(logging.INFO)

    ctx.call_on_close(wctx.close)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# --- Register all commands ---

from workorbit.commands.init_cmd import init_cmd
from workorbit.commands.create import create
from workorbit.commands.show import show
from workorbit.commands.update import update
from workorbit.commands.delete import delete
from workorbit.commands.move import move, map_cmd
from workorbit.commands.board_cmd import board
from workorbit.commands.search import search
from workorbit.commands.history import history, comment
from workorbit.commands.stats import stats
from workorbit.commands.doctor import doctor

cli.add_command(init_cmd, "init")
cli.add_command(create, "create")
cli.add_command(create, "new")  # Alias
cli.add_command(show, "show")
cli.add_command(update, "update")
cli.add_command(delete, "delete")
cli.add_command(move, "move")
cli.add_command(map_cmd, "map")
cli.add_command(board, "board")
cli.add_command(search, "search")
cli.add_command(history, "history")
cli.add_command(comment, "comment")
cli.add_command(stats, "stats")
cli.add_command(doctor, "doctor")


def main() -> None:
    cli(auto_envvar_prefix="WO")
