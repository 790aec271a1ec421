"""Migration from legacy boolean member flags to board roles.

Older board documents record membership as ``members: [{userId, isAdmin,
isCommentOnly, isNoComments, isWorker}]``. migrate_board_roles() assigns
the equivalent Role for every member, cleanup_legacy_flags() strips the
flags, and verify_migration() reports members that still carry them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable

from wekan_rules.exceptions import WekanRulesError
from wekan_rules.models.roles import LEGACY_MEMBER_FLAGS, role_from_member_flags

if TYPE_CHECKING:
    from wekan_rules.permissions.service import RoleService

logger = logging.getLogger(__name__)


@dataclass
class MigrationReport:
    """Counts produced by migrate_board_roles()."""

    boards_migrated: int = 0
    members_migrated: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class VerificationReport:
    """Counts produced by verify_migration()."""

    total_members: int = 0
    migrated_members: int = 0
    pending: list[tuple[str, str]] = field(default_factory=list)  # (board_id, user_id)

    @property
    def complete(self) -> bool:
        return self.migrated_members == self.total_members


def migrate_board_roles(
    boards: Iterable[dict], roles: RoleService
) -> MigrationReport:
    """Assign a role to every member of every board from its legacy flags.

    A failing member is recorded in the report and does not stop the rest.
    """
    report = MigrationReport()
    for board in boards:
        board_id = board.get("_id", "")
        members = board.get("members") or []
        if not members:
            continue
        logger.info("Migrating board %s (%s)", board.get("title", ""), board_id)
        for member in members:
            user_id = member.get("userId", "")
            role = role_from_member_flags(member)
            try:
                roles.add_user_to_board(user_id, board_id, role)
            except (WekanRulesError, ValueError) as exc:
                logger.error("Failed to migrate user %s on board %s: %s", user_id, board_id, exc)
                report.errors.append(f"{board_id}/{user_id}: {exc}")
                continue
            logger.debug("  user %s -> %s", user_id, role)
            report.members_migrated += 1
        report.boards_migrated += 1

    logger.info(
        "Migration completed: %d boards, %d members, %d errors",
        report.boards_migrated,
        report.members_migrated,
        len(report.errors),
    )
    return report


def cleanup_legacy_flags(board: dict) -> dict:
    """Return a copy of *board* whose members no longer carry legacy flags."""
    cleaned = dict(board)
    cleaned["members"] = [
        {k: v for k, v in member.items() if k not in LEGACY_MEMBER_FLAGS}
        for member in board.get("members") or []
    ]
    return cleaned


def verify_migration(boards: Iterable[dict]) -> VerificationReport:
    """Report members that still carry any legacy flag."""
    report = VerificationReport()
    for board in boards:
        for member in board.get("members") or []:
            report.total_members += 1
            if any(flag in member for flag in LEGACY_MEMBER_FLAGS):
                report.pending.append((board.get("_id", ""), member.get("userId", "")))
            else:
                report.migrated_members += 1
    return report
