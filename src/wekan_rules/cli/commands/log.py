"""wekan-rules log -- show or prune the rule dispatch audit log."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import click

from wekan_rules.cli.formatting import format_log_table


@click.command()
@click.option("--board", "board_id", default=None, help="Only entries of this board.")
@click.option("--rule", "rule_id", default=None, help="Only entries of this rule.")
@click.option(
    "--outcome",
    default=None,
    type=click.Choice(["executed", "error"]),
    help="Only entries with this outcome.",
)
@click.option("-n", "--limit", default=50, type=int, help="Maximum number of entries.")
@click.option(
    "--prune-days",
    default=None,
    type=click.IntRange(min=0),
    help="Delete entries older than this many days instead of listing.",
)
@click.pass_context
def log(
    ctx: click.Context,
    board_id: str | None,
    rule_id: str | None,
    outcome: str | None,
    limit: int,
    prune_days: int | None,
) -> None:
    """Show rule dispatches, newest first."""
    from wekan_rules.cli import _board_session

    with _board_session(ctx) as (board, console):
        if prune_days is not None:
            cutoff = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(days=prune_days)
            removed = board.prune_log(cutoff, board_id=board_id)
            console.print(f"Pruned [green]{removed}[/green] log entr{'y' if removed == 1 else 'ies'}")
            return
        entries = board.get_log(
            board_id=board_id, rule_id=rule_id, outcome=outcome, limit=limit
        )
        format_log_table(entries, console)
