"""Result and log models for the matching/dispatch pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class MatchDiagnostic:
    """A problem found while matching a stored trigger (fail-closed)."""

    rule_id: str | None
    kind: str  # "MalformedTrigger"
    message: str


@dataclass(frozen=True)
class Effect:
    """A fully-resolved command issued to a collaborator.

    ``command`` names the collaborator method (e.g. ``"setCardColor"``) and
    ``params`` holds the resolved ids it was called with.
    """

    command: str
    params: dict = field(default_factory=dict)


@dataclass(frozen=True)
class ActionResult:
    """Outcome of executing one action.

    Exactly one of ``effects`` (success, possibly several commands) or
    ``error_kind`` (failure) is meaningful.
    """

    ok: bool
    effects: tuple[Effect, ...] = ()
    error_kind: str | None = None  # "TargetNotFound", "Unauthorized", ...
    error: str | None = None

    @classmethod
    def success(cls, *effects: Effect) -> ActionResult:
        return cls(ok=True, effects=tuple(effects))

    @classmethod
    def failure(cls, error_kind: str, error: str) -> ActionResult:
        return cls(ok=False, error_kind=error_kind, error=error)


@dataclass(frozen=True)
class RuleOutcome:
    """Result of dispatching one matching rule for one event."""

    rule_id: str
    rule_title: str
    outcome: str  # "executed", "error"
    result: ActionResult


@dataclass(frozen=True)
class RuleLogEntry:
    """An audit record of one rule dispatch.

    Maps 1:1 with RuleLogRow in the database.
    """

    id: int
    board_id: str
    rule_id: str
    activity_type: str
    action_type: str
    outcome: str  # "executed", "error"
    error_kind: str | None
    error_message: str | None
    created_at: datetime
