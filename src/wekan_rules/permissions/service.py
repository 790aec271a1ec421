"""Role assignment store and permission checks.

RoleService binds users to exactly one Role per board and answers
permission questions against the static ROLE_PERMISSIONS table.
BoardAdmin short-circuits every permission check.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from wekan_rules.exceptions import InvalidRoleError, UnknownRoleError
from wekan_rules.models.roles import ROLE_PERMISSIONS, Role

if TYPE_CHECKING:
    from wekan_rules.storage.repositories import RoleRepository
    from wekan_rules.storage.unit import StorageUnit

logger = logging.getLogger(__name__)


def _now() -> datetime:
    """Naive UTC datetime for storage."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class RoleService:
    """Per (user, board) role assignments plus permission resolution."""

    def __init__(self, role_repo: RoleRepository, storage: StorageUnit) -> None:
        self._repo = role_repo
        self._storage = storage

    # ------------------------------------------------------------------
    # Assignment
    # ------------------------------------------------------------------

    def assign_role(self, user_id: str, board_id: str, role: Role | str) -> None:
        """Make *role* the only role of *user_id* on *board_id*.

        Any prior assignment for the pair is superseded in the same
        transaction, so readers see either the old role or the new one.

        Raises:
            InvalidRoleError: If *role* is not one of the four board roles.
            ValueError: If *user_id* or *board_id* is blank.
        """
        try:
            parsed = Role.parse(role)
        except UnknownRoleError:
            raise InvalidRoleError(role) from None
        if not user_id or not board_id:
            raise ValueError("assign_role requires a user_id and a board_id")

        with self._storage.transaction():
            self._repo.replace(user_id, board_id, parsed, _now())
        logger.debug("Assigned %s to user %s on board %s", parsed, user_id, board_id)

    def revoke_role(self, user_id: str, board_id: str) -> None:
        """Remove the user's role on the board (no-op if none)."""
        if not user_id or not board_id:
            return
        with self._storage.transaction():
            removed = self._repo.delete(user_id, board_id)
        if removed:
            logger.debug("Revoked role of user %s on board %s", user_id, board_id)

    def add_user_to_board(
        self, user_id: str, board_id: str, role: Role | str = Role.NORMAL
    ) -> None:
        """Add a member to a board; Normal unless another role is given."""
        self.assign_role(user_id, board_id, role)

    def remove_user_from_board(self, user_id: str, board_id: str) -> None:
        self.revoke_role(user_id, board_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_role(self, user_id: str, board_id: str) -> Role | None:
        """The user's current role on the board, or None."""
        if not user_id or not board_id:
            return None
        with self._storage.reading():
            row = self._repo.get_role(user_id, board_id)
            return row.role if row is not None else None

    def get_user_roles(self, user_id: str, board_id: str) -> list[Role]:
        """The user's roles on the board: zero or one element."""
        role = self.get_role(user_id, board_id)
        return [] if role is None else [role]

    def has_role(self, user_id: str, board_id: str, role: Role | str) -> bool:
        return self.get_role(user_id, board_id) == Role.parse(role)

    def has_permission(self, user_id: str | None, board_id: str, permission: str) -> bool:
        """Whether the user's role on the board grants *permission*.

        BoardAdmin satisfies every permission string, including ones no
        role lists. No role on the board means no permission.
        """
        if not user_id or not board_id:
            return False
        role = self.get_role(user_id, board_id)
        if role is None:
            return False
        if role is Role.BOARD_ADMIN:
            return True
        return permission in ROLE_PERMISSIONS[role].permissions

    def board_members(self, board_id: str) -> dict[str, Role]:
        """user_id -> role for every member of the board."""
        with self._storage.reading():
            return {row.user_id: row.role for row in self._repo.list_for_board(board_id)}

    def user_boards(self, user_id: str) -> dict[str, Role]:
        """board_id -> role for every board the user belongs to."""
        with self._storage.reading():
            return {row.board_id: row.role for row in self._repo.list_for_user(user_id)}

    # ------------------------------------------------------------------
    # Convenience checks
    # ------------------------------------------------------------------

    def is_board_member(self, user_id: str, board_id: str) -> bool:
        return len(self.get_user_roles(user_id, board_id)) > 0

    def is_board_admin(self, user_id: str, board_id: str) -> bool:
        return self.has_role(user_id, board_id, Role.BOARD_ADMIN)

    def is_normal_user(self, user_id: str, board_id: str) -> bool:
        return self.has_role(user_id, board_id, Role.NORMAL)

    def is_comment_only(self, user_id: str, board_id: str) -> bool:
        return self.has_role(user_id, board_id, Role.COMMENT_ONLY)

    def is_no_comments(self, user_id: str, board_id: str) -> bool:
        return self.has_role(user_id, board_id, Role.NO_COMMENTS)

    def can_create_cards(self, user_id: str, board_id: str) -> bool:
        return self.has_permission(user_id, board_id, "cards.create")

    def can_edit_cards(self, user_id: str, board_id: str) -> bool:
        return self.has_permission(user_id, board_id, "cards.edit")

    def can_delete_cards(self, user_id: str, board_id: str) -> bool:
        return self.has_permission(user_id, board_id, "cards.delete")

    def can_create_comments(self, user_id: str, board_id: str) -> bool:
        return self.has_permission(user_id, board_id, "comments.create")

    def can_edit_comments(self, user_id: str, board_id: str) -> bool:
        return self.has_permission(user_id, board_id, "comments.edit")

    def can_delete_comments(self, user_id: str, board_id: str) -> bool:
        return self.has_permission(user_id, board_id, "comments.delete")

    def can_manage_members(self, user_id: str, board_id: str) -> bool:
        return self.has_permission(user_id, board_id, "members.manage")

    def can_manage_rules(self, user_id: str, board_id: str) -> bool:
        return self.has_permission(user_id, board_id, "rules.manage")

    def can_manage_settings(self, user_id: str, board_id: str) -> bool:
        return self.has_permission(user_id, board_id, "settings.manage")
