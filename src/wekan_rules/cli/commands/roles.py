"""wekan-rules roles -- assign, revoke and inspect board roles."""

from __future__ import annotations

import click

from wekan_rules.cli.formatting import format_error, format_roles_table
from wekan_rules.models.roles import Role

_ROLE_NAMES = [r.value for r in Role]


@click.group()
def roles() -> None:
    """Manage per-board user roles."""


@roles.command("assign")
@click.argument("user_id")
@click.argument("board_id")
@click.argument("role", type=click.Choice(_ROLE_NAMES))
@click.pass_context
def assign(ctx: click.Context, user_id: str, board_id: str, role: str) -> None:
    """Give USER_ID the ROLE on BOARD_ID, replacing any previous role."""
    from wekan_rules.cli import _board_session

    with _board_session(ctx) as (board, console):
        board.roles.assign_role(user_id, board_id, role)
        console.print(f"{user_id} is now [cyan]{role}[/cyan] on {board_id}")


@roles.command("revoke")
@click.argument("user_id")
@click.argument("board_id")
@click.pass_context
def revoke(ctx: click.Context, user_id: str, board_id: str) -> None:
    """Remove USER_ID's role on BOARD_ID."""
    from wekan_rules.cli import _board_session

    with _board_session(ctx) as (board, console):
        board.roles.revoke_role(user_id, board_id)
        console.print(f"Revoked role of {user_id} on {board_id}")


@roles.command("show")
@click.option("--board", "board_id", default=None, help="List the members of a board.")
@click.option("--user", "user_id", default=None, help="List the boards of a user.")
@click.pass_context
def show(ctx: click.Context, board_id: str | None, user_id: str | None) -> None:
    """Show role assignments of a board or of a user."""
    from wekan_rules.cli import _board_session
    from wekan_rules.cli.formatting import get_console

    if (board_id is None) == (user_id is None):
        format_error("Pass exactly one of --board or --user.", get_console())
        raise SystemExit(1)

    with _board_session(ctx) as (board, console):
        if board_id is not None:
            format_roles_table(board.roles.board_members(board_id), "User", console)
        else:
            format_roles_table(board.roles.user_boards(user_id), "Board", console)


@roles.command("check")
@click.argument("user_id")
@click.argument("board_id")
@click.argument("permission")
@click.pass_context
def check(ctx: click.Context, user_id: str, board_id: str, permission: str) -> None:
    """Check whether USER_ID holds PERMISSION on BOARD_ID.

    Exits with status 0 when allowed and 1 when denied.
    """
    from wekan_rules.cli import _board_session

    with _board_session(ctx) as (board, console):
        allowed = board.roles.has_permission(user_id, board_id, permission)
        role = board.roles.get_role(user_id, board_id)
        role_text = role.value if role is not None else "no role"
        if allowed:
            console.print(f"[green]allowed[/green] {permission} ({role_text})")
        else:
            console.print(f"[red]denied[/red] {permission} ({role_text})")
    if not allowed:
        raise SystemExit(1)
