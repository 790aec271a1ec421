"""wekan-rules rules -- list, inspect, add and toggle rules."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import click

from wekan_rules.cli.formatting import format_rule_detail, format_rules_table
from wekan_rules.exceptions import RuleNotFoundError

if TYPE_CHECKING:
    from wekan_rules.board import RulesBoard
    from wekan_rules.models.rule import Rule


def _find_rule(board: RulesBoard, rule_ref: str) -> Rule:
    """Resolve a full rule id or a unique prefix of one."""
    try:
        return board.rules.get_rule(rule_ref)
    except RuleNotFoundError:
        pass
    matches = [
        rule
        for board_id in board.rules.list_board_ids()
        for rule in board.rules.list_rules(board_id)
        if rule.id.startswith(rule_ref)
    ]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        raise click.ClickException(f"Rule prefix '{rule_ref}' is ambiguous")
    raise RuleNotFoundError(rule_ref)


def _load_json(value: str, what: str) -> dict:
    try:
        data = json.loads(value)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"{what} is not valid JSON: {e}") from None
    if not isinstance(data, dict):
        raise click.BadParameter(f"{what} must be a JSON object")
    return data


@click.group()
def rules() -> None:
    """Manage board automation rules."""


@rules.command("list")
@click.argument("board_id", required=False)
@click.pass_context
def list_rules(ctx: click.Context, board_id: str | None) -> None:
    """List rules of BOARD_ID (all boards if omitted)."""
    from wekan_rules.cli import _board_session

    with _board_session(ctx) as (board, console):
        board_ids = [board_id] if board_id else board.rules.list_board_ids()
        found = [r for b in board_ids for r in board.rules.list_rules(b)]
        format_rules_table(found, console)


@rules.command("show")
@click.argument("rule_id")
@click.pass_context
def show_rule(ctx: click.Context, rule_id: str) -> None:
    """Show RULE_ID (full id or unique prefix)."""
    from wekan_rules.cli import _board_session

    with _board_session(ctx) as (board, console):
        format_rule_detail(_find_rule(board, rule_id), console)


@rules.command("add")
@click.argument("board_id")
@click.argument("title")
@click.option("--trigger", "trigger_json", required=True, help="Trigger as a JSON object.")
@click.option("--action", "action_json", required=True, help="Action as a JSON object.")
@click.option("--actor", default=None, help="User the rule acts as.")
@click.pass_context
def add_rule(
    ctx: click.Context,
    board_id: str,
    title: str,
    trigger_json: str,
    action_json: str,
    actor: str | None,
) -> None:
    """Create a rule titled TITLE on BOARD_ID."""
    from wekan_rules.cli import _board_session

    trigger = _load_json(trigger_json, "--trigger")
    action = _load_json(action_json, "--action")
    with _board_session(ctx) as (board, console):
        rule_id = board.rules.create_rule(board_id, title, trigger, action, actor_id=actor)
        console.print(f"Created rule [yellow]{rule_id}[/yellow]")


@rules.command("delete")
@click.argument("rule_id")
@click.pass_context
def delete_rule(ctx: click.Context, rule_id: str) -> None:
    """Delete RULE_ID. Deleting an unknown id is not an error."""
    from wekan_rules.cli import _board_session

    with _board_session(ctx) as (board, console):
        try:
            rule = _find_rule(board, rule_id)
        except RuleNotFoundError:
            console.print(f"[dim]No rule matching {rule_id}; nothing deleted.[/dim]")
            return
        board.rules.delete_rule(rule.id)
        console.print(f"Deleted rule [yellow]{rule.id[:8]}[/yellow] {rule.title}")


def _toggle(ctx: click.Context, rule_id: str, enabled: bool) -> None:
    from wekan_rules.cli import _board_session

    with _board_session(ctx) as (board, console):
        rule = _find_rule(board, rule_id)
        board.rules.set_enabled(rule.id, enabled)
        state = "Enabled" if enabled else "Disabled"
        console.print(f"{state} rule [yellow]{rule.id[:8]}[/yellow] {rule.title}")


@rules.command("enable")
@click.argument("rule_id")
@click.pass_context
def enable_rule(ctx: click.Context, rule_id: str) -> None:
    """Enable RULE_ID."""
    _toggle(ctx, rule_id, True)


@rules.command("disable")
@click.argument("rule_id")
@click.pass_context
def disable_rule(ctx: click.Context, rule_id: str) -> None:
    """Disable RULE_ID; it stays stored but never fires."""
    _toggle(ctx, rule_id, False)

