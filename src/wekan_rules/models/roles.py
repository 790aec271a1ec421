"""Board roles and their static permission table.

Role is the closed enumeration of board roles. ROLE_PERMISSIONS maps each
role to an immutable RoleDefinition loaded once at import time.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from wekan_rules.exceptions import UnknownRoleError


class Role(str, enum.Enum):
    """The four board roles a member can hold."""

    BOARD_ADMIN = "BoardAdmin"
    NORMAL = "Normal"
    COMMENT_ONLY = "CommentOnly"
    NO_COMMENTS = "NoComments"

    def __repr__(self) -> str:
        return self.value

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, name: object) -> Role:
        """Return the Role for *name* (a Role or its string value).

        Raises:
            UnknownRoleError: If *name* is not one of the four roles.
        """
        if isinstance(name, Role):
            return name
        try:
            return cls(name)
        except ValueError:
            raise UnknownRoleError(name) from None


@dataclass(frozen=True)
class RoleDefinition:
    """Display metadata and the fixed permission set of a role."""

    role: Role
    display_name: str
    description: str
    permissions: frozenset[str]


ROLE_PERMISSIONS: dict[Role, RoleDefinition] = {
    Role.BOARD_ADMIN: RoleDefinition(
        role=Role.BOARD_ADMIN,
        display_name="Board Admin",
        description=(
            "Full access to the board including settings, members, and all content"
        ),
        permissions=frozenset({
            "board.admin",
            "board.edit",
            "board.view",
            "cards.create",
            "cards.edit",
            "cards.delete",
            "lists.create",
            "lists.edit",
            "lists.delete",
            "comments.create",
            "comments.edit",
            "comments.delete",
            "attachments.create",
            "attachments.delete",
            "members.manage",
            "rules.manage",
            "settings.manage",
        }),
    ),
    Role.NORMAL: RoleDefinition(
        role=Role.NORMAL,
        display_name="Normal",
        description="Can edit cards, add comments, and participate fully",
        permissions=frozenset({
            "board.view",
            "cards.create",
            "cards.edit",
            "cards.delete",
            "lists.create",
            "lists.edit",
            "comments.create",
            "comments.edit",
            "comments.delete",
            "attachments.create",
            "attachments.delete",
        }),
    ),
    Role.COMMENT_ONLY: RoleDefinition(
        role=Role.COMMENT_ONLY,
        display_name="Comment Only",
        description="Can only view and add comments",
        permissions=frozenset({
            "board.view",
            "cards.view",
            "comments.create",
            "comments.edit",
        }),
    ),
    Role.NO_COMMENTS: RoleDefinition(
        role=Role.NO_COMMENTS,
        display_name="No Comments",
        description="Can only view content, no editing or commenting",
        permissions=frozenset({
            "board.view",
            "cards.view",
        }),
    ),
}


def get_permissions(role_name: Role | str) -> frozenset[str]:
    """Return the fixed permission set for a role name.

    Raises:
        UnknownRoleError: If *role_name* is not one of the four roles.
    """
    return ROLE_PERMISSIONS[Role.parse(role_name)].permissions


def role_from_member_flags(member: dict) -> Role:
    """Map a legacy board member record (boolean flags) to a Role.

    Precedence: isAdmin > isCommentOnly > isNoComments > Normal.
    """
    if member.get("isAdmin"):
        return Role.BOARD_ADMIN
    if member.get("isCommentOnly"):
        return Role.COMMENT_ONLY
    if member.get("isNoComments"):
        return Role.NO_COMMENTS
    return Role.NORMAL


LEGACY_MEMBER_FLAGS: tuple[str, ...] = (
    "isAdmin",
    "isCommentOnly",
    "isNoComments",
    "isWorker",
)
