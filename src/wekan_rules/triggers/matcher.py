"""TriggerMatcher -- decides whether an activity event satisfies a trigger.

A trigger matches an event iff:

1. the activity types are equal (no wildcard for the type itself),
2. the trigger's user filter is ``'*'`` or equals the event's actor,
3. every condition holds (logical AND). A condition whose value is ``'*'``
   always holds; a condition on a field the event does not carry never does.

Matching is total: it never raises. An operator outside the closed set
fails the match and is reported as a ``MalformedTrigger`` diagnostic.
"""

from __future__ import annotations

import logging
from collections import deque
from numbers import Real
from typing import TYPE_CHECKING, Any, Callable

from wekan_rules.exceptions import MalformedTriggerError
from wekan_rules.models.activity import MISSING
from wekan_rules.models.results import MatchDiagnostic
from wekan_rules.models.rule import WILDCARD

if TYPE_CHECKING:
    from wekan_rules.models.activity import ActivityEvent
    from wekan_rules.models.rule import Condition, TriggerSpec

logger = logging.getLogger(__name__)


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, Real):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _equals(actual: Any, expected: Any) -> bool:
    if actual == expected:
        return True
    left, right = _as_number(actual), _as_number(expected)
    if left is not None and right is not None:
        return left == right
    return str(actual) == str(expected)


def _contains(actual: Any, expected: Any) -> bool:
    if isinstance(actual, str):
        return str(expected) in actual
    if isinstance(actual, (list, tuple, set, frozenset)):
        return any(_equals(item, expected) for item in actual)
    return False


def _compare(actual: Any, expected: Any) -> int | None:
    """-1/0/1 ordering of actual vs expected, or None if not comparable."""
    left, right = _as_number(actual), _as_number(expected)
    if left is not None and right is not None:
        return (left > right) - (left < right)
    if isinstance(actual, str) and isinstance(expected, str):
        return (actual > expected) - (actual < expected)
    try:
        return (actual > expected) - (actual < expected)
    except TypeError:
        return None


def _greater_than(actual: Any, expected: Any) -> bool:
    return _compare(actual, expected) == 1


def _less_than(actual: Any, expected: Any) -> bool:
    return _compare(actual, expected) == -1


_OPERATOR_FUNCS: dict[str, Callable[[Any, Any], bool]] = {
    "equals": _equals,
    "notEquals": lambda a, e: not _equals(a, e),
    "contains": _contains,
    "greaterThan": _greater_than,
    "lessThan": _less_than,
}


class TriggerMatcher:
    """Evaluates TriggerSpecs against ActivityEvents.

    Diagnostics for malformed triggers are logged, kept in a bounded
    ``diagnostics`` buffer and passed to *on_diagnostic* when given.
    """

    def __init__(
        self,
        on_diagnostic: Callable[[MatchDiagnostic], None] | None = None,
        *,
        max_diagnostics: int = 100,
    ) -> None:
        self._on_diagnostic = on_diagnostic
        self.diagnostics: deque[MatchDiagnostic] = deque(maxlen=max_diagnostics)

    def matches(
        self,
        trigger: TriggerSpec,
        event: ActivityEvent,
        *,
        rule_id: str | None = None,
    ) -> bool:
        """Whether *event* satisfies *trigger*. Never raises."""
        if trigger.activity_type != event.activity_type:
            return False

        if trigger.user_id != WILDCARD and trigger.user_id != event.user_id:
            return False

        for condition in trigger.conditions:
            if not self._condition_holds(condition, event, rule_id):
                return False
        return True

    def _condition_holds(
        self, condition: Condition, event: ActivityEvent, rule_id: str | None
    ) -> bool:
        func = _OPERATOR_FUNCS.get(condition.operator)
        if func is None:
            self._report(
                rule_id, MalformedTriggerError(condition.operator, condition.field)
            )
            return False

        if condition.value == WILDCARD:
            return True

        actual = event.value_of(condition.field)
        if actual is MISSING:
            return False

        try:
            return bool(func(actual, condition.value))
        except Exception as exc:
            logger.debug(
                "Condition %s %s %r not evaluable against %r: %s",
                condition.field,
                condition.operator,
                condition.value,
                actual,
                exc,
            )
            return False

    def _report(self, rule_id: str | None, error: MalformedTriggerError) -> None:
        diagnostic = MatchDiagnostic(
            rule_id=rule_id, kind="MalformedTrigger", message=str(error)
        )
        logger.warning("MalformedTrigger in rule %s: %s", rule_id, error)
        self.diagnostics.append(diagnostic)
        if self._on_diagnostic is not None:
            try:
                self._on_diagnostic(diagnostic)
            except Exception:
                logger.exception("Diagnostic listener raised")
