"""wekan-rules CLI -- manage board roles, rules and the rule audit log.

This module is never imported from wekan_rules/__init__.py. It is loaded
through the ``wekan-rules`` entry point declared in pyproject.toml.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

import click
from dotenv import load_dotenv
from rich.logging import RichHandler

from wekan_rules.cli.formatting import format_error, get_console

if TYPE_CHECKING:
    from collections.abc import Iterator

    from rich.console import Console

    from wekan_rules.board import RulesBoard


@click.group()
@click.option(
    "--db",
    default="wekan-rules.db",
    envvar="WEKAN_RULES_DB",
    help="Path to the rules database.",
)
@click.option(
    "--log-level",
    default="WARNING",
    envvar="WEKAN_RULES_LOG_LEVEL",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level for library messages.",
)
@click.pass_context
def cli(ctx: click.Context, db: str, log_level: str) -> None:
    """WeKan rules: board roles and board automation rules."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=get_console(), show_path=False)],
        force=True,
    )
    ctx.ensure_object(dict)
    ctx.obj["db_path"] = db


def main() -> None:
    """Console entry point: load ``.env`` then run the command group."""
    load_dotenv()
    cli()


def _get_board(ctx: click.Context) -> RulesBoard:
    """Open the RulesBoard named by --db."""
    from wekan_rules.board import RulesBoard

    return RulesBoard.open(ctx.obj["db_path"])


@contextmanager
def _board_session(ctx: click.Context) -> Iterator[tuple[RulesBoard, Console]]:
    """Open a RulesBoard, yield (board, console), close it, and report errors.

    Any exception is printed as a CLI error and exits with status 1.
    """
    console = get_console()
    try:
        board = _get_board(ctx)
        try:
            yield board, console
        finally:
            board.close()
    except SystemExit:
        raise
    except Exception as e:
        format_error(str(e), console)
        raise SystemExit(1) from None


# Register subcommands after cli group is defined
from wekan_rules.cli.commands.rules import rules  # noqa: E402
from wekan_rules.cli.commands.roles import roles  # noqa: E402
from wekan_rules.cli.commands.log import log  # noqa: E402
from wekan_rules.cli.commands.migrate import migrate  # noqa: E402

cli.add_command(rules)
cli.add_command(roles)
cli.add_command(log)
cli.add_command(migrate)
