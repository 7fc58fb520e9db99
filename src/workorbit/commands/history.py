"""wo history / wo comment - entity audit trail."""

from __future__ import annotations

import click

from workorbit.cli import WorkOrbitContext, board_errors, pass_ctx
from workorbit.models import HistoryAction
from workorbit.utils import format_time_ago


def _describe(action: str, payload: dict) -> str:
    if action == HistoryAction.COMMENT:
        return payload.get("text", "")
    if "from" in payload or "to" in payload:
        return f"{payload.get('from') or '-'} -> {payload.get('to') or '-'}"
    if payload.get("fields"):
        return ", ".join(payload["fields"])
    return ""


@click.command("history")
@click.argument("public_id")
@pass_ctx
@board_errors
def history(ctx: WorkOrbitContext, public_id: str) -> None:
    """Show the history of an entity, oldest first."""
    entries = ctx.service.get_history(public_id)

    if ctx.json_output:
        ctx.output([h.to_dict() for h in entries])
        return

    if not entries:
        click.echo(f"No history for {public_id}")
        return

    click.echo(f"History for {public_id}:")
    for h in entries:
        age = format_time_ago(h.created_at)
        detail = _describe(h.action, h.payload)
        line = f"  [{age}] {h.action:<16} {h.actor_id or '-'}"
        if detail:
            line += f"  {detail}"
        click.echo(line)


@click.command("comment")
@click.argument("public_id")
@click.argument("text")
@pass_ctx
@board_errors
def comment(ctx: WorkOrbitContext, public_id: str, text: str) -> None:
    """Add a comment to an entity's history."""
    ctx.require_role()
    history_id = ctx.service.add_comment(public_id, text)

    if ctx.json_output:
        ctx.output({"historyId": history_id, "publicId": public_id, "text": text})
    elif not ctx.quiet:
        click.echo(f"Comment added to {public_id}")
