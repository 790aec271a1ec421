"""SQLite implementations of repository interfaces.

All repositories use SQLAlchemy 2.0-style queries (select() + session.execute()).
Each repository takes a Session in its constructor and only flushes;
committing is left to the caller's transaction scope.
"""

from __future__ import annotations

from datetime import datetime
from typing import Sequence

from sqlalchemy import and_, delete, func, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from wekan_rules.models.roles import Role
from wekan_rules.storage.repositories import (
    RoleRepository,
    RuleLogRepository,
    RuleRepository,
)
from wekan_rules.storage.schema import (
    ActionRow,
    RoleAssignmentRow,
    RuleLogRow,
    RuleRow,
    TriggerRow,
)


class SqliteRuleRepository(RuleRepository):
    """SQLite implementation of rule storage.

    Trigger and action rows hang off the rule with delete-orphan cascades,
    so deleting a rule never leaves either half behind.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, rule_id: str) -> RuleRow | None:
        stmt = (
            select(RuleRow)
            .where(RuleRow.rule_id == rule_id)
            .execution_options(populate_existing=True)
        )
        return self._session.execute(stmt).scalar_one_or_none()

    def save(self, rule: RuleRow) -> None:
        self._session.add(rule)
        self._session.flush()

    def delete(self, rule_id: str) -> bool:
        row = self.get(rule_id)
        if row is None:
            return False
        self._session.delete(row)
        self._session.flush()
        return True

    def list_rules(self, board_id: str) -> Sequence[RuleRow]:
        stmt = (
            select(RuleRow)
            .where(RuleRow.board_id == board_id)
            .order_by(RuleRow.position)
            .execution_options(populate_existing=True)
        )
        return list(self._session.execute(stmt).scalars().all())

    def list_board_ids(self) -> list[str]:
        stmt = select(RuleRow.board_id).distinct().order_by(RuleRow.board_id)
        return [row[0] for row in self._session.execute(stmt)]

    def next_position(self) -> int:
        stmt = select(func.max(RuleRow.position))
        current = self._session.execute(stmt).scalar()
        return 0 if current is None else current + 1

    def orphan_counts(self) -> tuple[int, int]:
        """Count trigger and action rows whose rule no longer exists."""
        triggers = self._session.execute(
            select(func.count())
            .select_from(TriggerRow)
            .where(~TriggerRow.rule_id.in_(select(RuleRow.rule_id)))
        ).scalar_one()
        actions = self._session.execute(
            select(func.count())
            .select_from(ActionRow)
            .where(~ActionRow.rule_id.in_(select(RuleRow.rule_id)))
        ).scalar_one()
        return triggers, actions


class SqliteRoleRepository(RoleRepository):
    """SQLite implementation of role assignment storage."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get_role(self, user_id: str, board_id: str) -> RoleAssignmentRow | None:
        stmt = (
            select(RoleAssignmentRow)
            .where(
                RoleAssignmentRow.user_id == user_id,
                RoleAssignmentRow.board_id == board_id,
            )
            .execution_options(populate_existing=True)
        )
        return self._session.execute(stmt).scalar_one_or_none()

    def replace(
        self, user_id: str, board_id: str, role: Role, assigned_at: datetime
    ) -> None:
        # One statement: a concurrent writer's row is superseded, never duplicated.
        stmt = sqlite_insert(RoleAssignmentRow).values(
            user_id=user_id,
            board_id=board_id,
            role=role,
            assigned_at=assigned_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[RoleAssignmentRow.user_id, RoleAssignmentRow.board_id],
            set_={"role": stmt.excluded.role, "assigned_at": stmt.excluded.assigned_at},
        )
        self._session.execute(stmt)

    def delete(self, user_id: str, board_id: str) -> bool:
        result = self._session.execute(
            delete(RoleAssignmentRow).where(
                RoleAssignmentRow.user_id == user_id,
                RoleAssignmentRow.board_id == board_id,
            )
        )
        self._session.flush()
        return (result.rowcount or 0) > 0

    def list_for_board(self, board_id: str) -> Sequence[RoleAssignmentRow]:
        stmt = (
            select(RoleAssignmentRow)
            .where(RoleAssignmentRow.board_id == board_id)
            .order_by(RoleAssignmentRow.user_id)
            .execution_options(populate_existing=True)
        )
        return list(self._session.execute(stmt).scalars().all())

    def list_for_user(self, user_id: str) -> Sequence[RoleAssignmentRow]:
        stmt = (
            select(RoleAssignmentRow)
            .where(RoleAssignmentRow.user_id == user_id)
            .order_by(RoleAssignmentRow.board_id)
            .execution_options(populate_existing=True)
        )
        return list(self._session.execute(stmt).scalars().all())


class SqliteRuleLogRepository(RuleLogRepository):
    """SQLite implementation of the rule dispatch audit log."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def save_log_entry(self, entry: RuleLogRow) -> None:
        self._session.add(entry)
        self._session.flush()

    def get_log(
        self,
        *,
        board_id: str | None = None,
        rule_id: str | None = None,
        since: datetime | None = None,
        outcome: str | None = None,
        limit: int = 100,
    ) -> list[RuleLogRow]:
        conditions = []
        if board_id is not None:
            conditions.append(RuleLogRow.board_id == board_id)
        if rule_id is not None:
            conditions.append(RuleLogRow.rule_id == rule_id)
        if since is not None:
            conditions.append(RuleLogRow.created_at >= since)
        if outcome is not None:
            conditions.append(RuleLogRow.outcome == outcome)

        stmt = select(RuleLogRow)
        if conditions:
            stmt = stmt.where(and_(*conditions))
        stmt = stmt.order_by(
            RuleLogRow.created_at.desc(), RuleLogRow.id.desc()
        ).limit(limit)
        return list(self._session.execute(stmt).scalars().all())

    def delete_log_entries(
        self, before: datetime, *, board_id: str | None = None
    ) -> int:
        stmt = select(RuleLogRow).where(RuleLogRow.created_at < before)
        if board_id is not None:
            stmt = stmt.where(RuleLogRow.board_id == board_id)
        rows = self._session.execute(stmt).scalars().all()
        count = len(rows)
        for row in rows:
            self._session.delete(row)
        self._session.flush()
        return count
