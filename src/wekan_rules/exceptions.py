"""WeKan rules exception hierarchy.

All rules/permissions exceptions inherit from WekanRulesError.
"""


class WekanRulesError(Exception):
    """Base exception for all rules and permission errors."""


class UnknownRoleError(WekanRulesError):
    """Raised when a role name is not one of the fixed board roles."""

    def __init__(self, role_name: object) -> None:
        self.role_name = role_name
        super().__init__(f"Unknown role: {role_name!r}")


class InvalidRoleError(UnknownRoleError):
    """Raised when an assignment names a role outside the fixed enumeration.

    Never coerced to Normal: the assignment is rejected and nothing is stored.
    """


class InvalidTriggerError(WekanRulesError):
    """Raised when a trigger spec is rejected at rule creation or update."""


class MalformedTriggerError(WekanRulesError):
    """A stored trigger that cannot be evaluated (e.g. unknown operator).

    The matcher never raises this; it is attached to a MatchDiagnostic
    and the match fails closed.
    """

    def __init__(self, operator: str, field: str) -> None:
        self.operator = operator
        self.field = field
        super().__init__(
            f"Unknown operator {operator!r} in condition on field {field!r}"
        )


class InvalidActionError(WekanRulesError):
    """Raised when an action spec lacks required parameters for its type."""


class IncompleteMailActionError(InvalidActionError):
    """Raised when a mail action has no recipient or no subject."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(
            f"Mail action missing required field(s): {', '.join(missing)}"
        )


class TargetNotFoundError(WekanRulesError):
    """Raised when a named board, list, swimlane, member or card can't be resolved."""

    def __init__(self, kind: str, name: str, board_id: str | None = None) -> None:
        self.kind = kind
        self.name = name
        self.board_id = board_id
        where = f" on board {board_id}" if board_id else ""
        super().__init__(f"{kind.capitalize()} not found: {name!r}{where}")


class UnauthorizedError(WekanRulesError):
    """Raised when a rule's actor lacks the permission an action requires."""

    def __init__(self, actor_id: str | None, board_id: str, permission: str) -> None:
        self.actor_id = actor_id
        self.board_id = board_id
        self.permission = permission
        super().__init__(
            f"Actor {actor_id!r} lacks permission '{permission}' on board {board_id}"
        )


class RuleNotFoundError(WekanRulesError):
    """Raised when a rule id lookup fails (update/get, never delete)."""

    def __init__(self, rule_id: str) -> None:
        self.rule_id = rule_id
        super().__init__(f"Rule not found: {rule_id}")


class StorageError(WekanRulesError):
    """Raised when a storage transaction fails and was rolled back."""
