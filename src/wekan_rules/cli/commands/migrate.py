"""wekan-rules migrate -- assign roles from legacy member flags."""

from __future__ import annotations

import json
from typing import IO

import click

from wekan_rules.cli.formatting import format_migration_report, format_verification_report


@click.command()
@click.argument("boards_file", type=click.File("r"))
@click.option("--verify", is_flag=True, help="Only report members still carrying legacy flags.")
@click.pass_context
def migrate(ctx: click.Context, boards_file: IO[str], verify: bool) -> None:
    """Migrate board members in BOARDS_FILE (a JSON list of boards) to roles."""
    from wekan_rules.cli import _board_session
    from wekan_rules.permissions.migration import migrate_board_roles, verify_migration

    try:
        boards = json.load(boards_file)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"not valid JSON: {e}", param_hint="BOARDS_FILE") from None
    if not isinstance(boards, list):
        raise click.BadParameter("expected a JSON list of boards", param_hint="BOARDS_FILE")

    if verify:
        from wekan_rules.cli.formatting import get_console

        report = verify_migration(boards)
        format_verification_report(report, get_console())
        if not report.complete:
            raise SystemExit(1)
        return

    with _board_session(ctx) as (board, console):
        report = migrate_board_roles(boards, board.roles)
        format_migration_report(report, console)
    if report.errors:
        raise SystemExit(1)
