"""Rich formatting helpers for the wekan-rules CLI.

Rich auto-detects TTY and degrades gracefully when piped (no ANSI codes).
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.table import Table

if TYPE_CHECKING:
    from wekan_rules.models.results import RuleLogEntry
    from wekan_rules.models.roles import Role
    from wekan_rules.models.rule import Rule
    from wekan_rules.permissions.migration import MigrationReport, VerificationReport


def get_console() -> Console:
    """Create a Rich Console that auto-detects TTY for graceful pipe degradation."""
    return Console(stderr=False)


def _describe_trigger(rule: Rule) -> str:
    trigger = rule.trigger
    parts = [trigger.activity_type]
    for cond in trigger.conditions:
        parts.append(f"{cond.field} {cond.operator} {cond.value}")
    if trigger.user_id != "*":
        parts.append(f"by {trigger.user_id}")
    return ", ".join(parts)


def _describe_action(rule: Rule) -> str:
    params = rule.action.parameters
    kind = getattr(params, "type", None)
    return f"{rule.action.type}/{kind}" if kind else rule.action.type


def format_rules_table(rules: list[Rule], console: Console) -> None:
    """Display rules in creation order."""
    if not rules:
        console.print("[dim]No rules.[/dim]")
        return

    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("Id", style="yellow", width=8)
    table.add_column("Board", style="dim")
    table.add_column("On", style="cyan")
    table.add_column("Action", style="green")
    table.add_column("Title")

    for rule in rules:
        title = escape(rule.title)
        if not rule.enabled:
            title = f"[dim]{title} (disabled)[/dim]"
        table.add_row(
            rule.id[:8],
            rule.board_id,
            escape(_describe_trigger(rule)),
            _describe_action(rule),
            title,
        )

    console.print(table)


def format_rule_detail(rule: Rule, console: Console) -> None:
    """Display one rule with its full trigger and action."""
    state = "[green]enabled[/green]" if rule.enabled else "[red]disabled[/red]"
    console.print(f"[yellow]rule {rule.id}[/yellow]")
    console.print(f"  Title:    {escape(rule.title)}")
    console.print(f"  Board:    {rule.board_id}")
    console.print(f"  State:    {state}")
    if rule.actor_id:
        console.print(f"  Actor:    {rule.actor_id}")
    console.print(f"  Created:  {rule.created_at.strftime('%Y-%m-%d %H:%M:%S')}")
    console.print(f"  Updated:  {rule.updated_at.strftime('%Y-%m-%d %H:%M:%S')}")
    trigger = json.dumps(rule.trigger.model_dump(by_alias=True, mode="json"), indent=2)
    action = json.dumps(rule.action.model_dump(by_alias=True, mode="json"), indent=2)
    console.print("  Trigger:")
    console.print(escape(trigger), highlight=False)
    console.print("  Action:")
    console.print(escape(action), highlight=False)


def format_roles_table(
    assignments: dict[str, Role], key_label: str, console: Console
) -> None:
    """Display user -> role (or board -> role) assignments."""
    if not assignments:
        console.print("[dim]No role assignments.[/dim]")
        return

    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column(key_label, style="yellow")
    table.add_column("Role", style="cyan")
    for key in sorted(assignments):
        table.add_row(key, assignments[key].value)
    console.print(table)


def format_log_table(entries: list[RuleLogEntry], console: Console) -> None:
    """Display audit log entries, newest first."""
    if not entries:
        console.print("[dim]No log entries.[/dim]")
        return

    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("Time", style="dim")
    table.add_column("Rule", style="yellow", width=8)
    table.add_column("Event", style="cyan")
    table.add_column("Action")
    table.add_column("Outcome")
    table.add_column("Error")

    for entry in entries:
        outcome = (
            "[green]executed[/green]" if entry.outcome == "executed"
            else f"[red]{entry.outcome}[/red]"
        )
        error = ""
        if entry.error_kind:
            error = escape(f"{entry.error_kind}: {entry.error_message or ''}")
        table.add_row(
            entry.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            entry.rule_id[:8],
            entry.activity_type,
            entry.action_type,
            outcome,
            error,
        )

    console.print(table)


def format_migration_report(report: MigrationReport, console: Console) -> None:
    console.print(
        f"Migrated [green]{report.members_migrated}[/green] member(s) "
        f"on [green]{report.boards_migrated}[/green] board(s)"
    )
    for error in report.errors:
        console.print(f"  [red]failed[/red] {escape(error)}")


def format_verification_report(report: VerificationReport, console: Console) -> None:
    if report.complete:
        console.print(
            f"[green]Migration complete[/green]: {report.total_members} member(s) checked"
        )
        return
    console.print(
        f"[yellow]{len(report.pending)}[/yellow] of {report.total_members} "
        f"member(s) still carry legacy flags"
    )
    for board_id, user_id in report.pending:
        console.print(f"  {board_id} / {user_id}")


def format_error(message: str, console: Console) -> None:
    """Display an error message."""
    console.print(f"[red]Error:[/red] {escape(message)}", highlight=False)
