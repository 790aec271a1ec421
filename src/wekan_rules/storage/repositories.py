"""Abstract repository interfaces for WeKan rules storage.

Defines ABC interfaces for all database operations. No SQLAlchemy
imports here -- pure abstract contracts.

Concrete implementations are in sqlite.py.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from datetime import datetime

    from wekan_rules.models.roles import Role
    from wekan_rules.storage.schema import RoleAssignmentRow, RuleLogRow, RuleRow


class RuleRepository(ABC):
    """Abstract interface for rule storage (rule + trigger + action rows)."""

    @abstractmethod
    def get(self, rule_id: str) -> RuleRow | None:
        """Get a rule by id. Returns None if not found."""
        ...

    @abstractmethod
    def save(self, rule: RuleRow) -> None:
        """Insert or update a rule together with its trigger and action rows."""
        ...

    @abstractmethod
    def delete(self, rule_id: str) -> bool:
        """Delete a rule and its trigger/action rows.

        Returns True if a rule was deleted, False if none existed.
        """
        ...

    @abstractmethod
    def list_rules(self, board_id: str) -> Sequence[RuleRow]:
        """All rules of a board in creation order."""
        ...

    @abstractmethod
    def list_board_ids(self) -> list[str]:
        """Distinct board ids that have at least one rule."""
        ...

    @abstractmethod
    def next_position(self) -> int:
        """The creation sequence number for the next rule."""
        ...


class RoleRepository(ABC):
    """Abstract interface for role assignment storage."""

    @abstractmethod
    def get_role(self, user_id: str, board_id: str) -> RoleAssignmentRow | None:
        """The assignment for (user, board), or None."""
        ...

    @abstractmethod
    def replace(
        self, user_id: str, board_id: str, role: Role, assigned_at: datetime
    ) -> None:
        """Remove any assignment for (user, board) and insert the new one.

        Must run inside the caller's transaction so the swap commits as one unit.
        """
        ...

    @abstractmethod
    def delete(self, user_id: str, board_id: str) -> bool:
        """Delete the assignment. Returns True if one existed."""
        ...

    @abstractmethod
    def list_for_board(self, board_id: str) -> Sequence[RoleAssignmentRow]:
        ...

    @abstractmethod
    def list_for_user(self, user_id: str) -> Sequence[RoleAssignmentRow]:
        ...


class RuleLogRepository(ABC):
    """Abstract interface for the rule dispatch audit log."""

    @abstractmethod
    def save_log_entry(self, entry: RuleLogRow) -> None:
        ...

    @abstractmethod
    def get_log(
        self,
        *,
        board_id: str | None = None,
        rule_id: str | None = None,
        since: datetime | None = None,
        outcome: str | None = None,
        limit: int = 100,
    ) -> list[RuleLogRow]:
        """Log entries, newest first, filtered by the given criteria."""
        ...

    @abstractmethod
    def delete_log_entries(
        self, before: datetime, *, board_id: str | None = None
    ) -> int:
        """Delete entries older than *before*. Returns the number removed."""
        ...
