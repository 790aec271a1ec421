"""SQLAlchemy ORM schema for WeKan rules.

Defines all database tables: rules, rule_triggers, rule_actions,
role_assignments, rule_log, _wekan_rules_meta.

IMPORTANT: the Role enum is imported from the domain models -- it is NOT
redefined here. The ORM uses the same Python enum.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from wekan_rules.models.roles import Role


class Base(DeclarativeBase):
    """Base class for all WeKan rules ORM models."""

    pass


class RuleRow(Base):
    """An automation rule. Owns exactly one trigger row and one action row."""

    __tablename__ = "rules"

    rule_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    board_id: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    actor_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    # Creation sequence; listing order.
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    trigger: Mapped["TriggerRow"] = relationship(
        "TriggerRow",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="joined",
    )
    action: Mapped["ActionRow"] = relationship(
        "ActionRow",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="joined",
    )

    __table_args__ = (
        Index("ix_rules_board_position", "board_id", "position"),
    )


class TriggerRow(Base):
    """The trigger half of a rule."""

    __tablename__ = "rule_triggers"

    rule_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("rules.rule_id", ondelete="CASCADE"),
        primary_key=True,
    )
    activity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, default="*")
    conditions_json: Mapped[list] = mapped_column(JSON, nullable=False)

    __table_args__ = (
        Index("ix_rule_triggers_activity", "activity_type"),
    )


class ActionRow(Base):
    """The action half of a rule."""

    __tablename__ = "rule_actions"

    rule_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("rules.rule_id", ondelete="CASCADE"),
        primary_key=True,
    )
    action_type: Mapped[str] = mapped_column(String(30), nullable=False)
    params_json: Mapped[dict] = mapped_column(JSON, nullable=False)


class RoleAssignmentRow(Base):
    """Binding of one user to one role on one board.

    The composite primary key makes a second role for the same pair
    impossible at the storage level.
    """

    __tablename__ = "role_assignments"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    board_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    role: Mapped[Role] = mapped_column(nullable=False)
    assigned_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_role_assignments_board", "board_id"),
    )


class RuleLogRow(Base):
    """Audit log entry for one rule dispatch on one activity event."""

    __tablename__ = "rule_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    board_id: Mapped[str] = mapped_column(String(64), nullable=False)
    rule_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    activity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    action_type: Mapped[str] = mapped_column(String(30), nullable=False)
    outcome: Mapped[str] = mapped_column(
        String(20), nullable=False
    )  # "executed" or "error"
    error_kind: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_rule_log_board_time", "board_id", "created_at"),
    )


class MetaRow(Base):
    """Key-value metadata for the database itself (e.g., schema version)."""

    __tablename__ = "_wekan_rules_meta"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
