"""Parsing, normalization and validation of trigger and action specs.

Raw dicts from the rule builder are folded into TriggerSpec / ActionSpec
models here. Blank trigger fields become the wildcard sentinel; anything
that cannot be matched or executed is rejected before it reaches storage.
"""

from __future__ import annotations

from typing import Any, Mapping

from pydantic import BaseModel, ValidationError

from wekan_rules.exceptions import (
    IncompleteMailActionError,
    InvalidActionError,
    InvalidTriggerError,
)
from wekan_rules.models.activity import ACTIVITY_TYPES
from wekan_rules.models.rule import (
    OPERATORS,
    WILDCARD,
    ActionSpec,
    MailAction,
    TriggerSpec,
    action_adapter,
)

_TRIGGER_KEYS = {
    "activityType": "activity_type",
    "activity_type": "activity_type",
    "conditions": "conditions",
    "userId": "user_id",
    "user_id": "user_id",
}


def sanitize_params(params: Mapping[str, Any]) -> dict[str, Any]:
    """Replace blank ('' or None) values with the wildcard sentinel."""
    sanitized = dict(params)
    for key, value in sanitized.items():
        if value is None or (isinstance(value, str) and value.strip() == ""):
            sanitized[key] = WILDCARD
    return sanitized


def parse_trigger(data: TriggerSpec | Mapping[str, Any]) -> TriggerSpec:
    """Build a TriggerSpec from a model or a flat builder dict.

    Keys other than activityType / userId / conditions are treated as
    ``equals`` conditions on the field of the same name, e.g.
    ``{"activityType": "createCard", "listName": ""}`` becomes a
    ``listName equals '*'`` condition.

    Raises:
        InvalidTriggerError: If the data does not form a trigger.
    """
    if isinstance(data, TriggerSpec):
        return data

    fields: dict[str, Any] = {}
    extra: list[dict[str, Any]] = []
    for key, value in data.items():
        target = _TRIGGER_KEYS.get(key)
        if target is not None:
            fields[target] = value
        else:
            extra.append({"field": key, "operator": "equals", "value": value})
    if extra:
        fields["conditions"] = list(fields.get("conditions") or []) + extra

    try:
        return TriggerSpec.model_validate(fields)
    except ValidationError as e:
        raise InvalidTriggerError(f"Trigger validation failed: {e}") from e


def validate_trigger(spec: TriggerSpec) -> TriggerSpec:
    """Reject unknown activity types, blank condition fields and unknown operators.

    Raises:
        InvalidTriggerError
    """
    if spec.activity_type not in ACTIVITY_TYPES:
        raise InvalidTriggerError(f"Unknown activity type: {spec.activity_type!r}")
    for condition in spec.conditions:
        if not condition.field or not condition.field.strip():
            raise InvalidTriggerError("Condition has a blank field name")
        if condition.operator not in OPERATORS:
            raise InvalidTriggerError(
                f"Unknown operator {condition.operator!r} on field {condition.field!r}"
            )
    return spec


def parse_action(data: BaseModel | Mapping[str, Any]) -> ActionSpec:
    """Build an ActionSpec from a model or a dict.

    Raises:
        InvalidActionError: If the category or parameter type is unknown or a
            parameter has the wrong shape.
    """
    if isinstance(data, BaseModel):
        data = data.model_dump(by_alias=True)
    try:
        return action_adapter.validate_python(data)
    except ValidationError as e:
        raise InvalidActionError(f"Action validation failed: {e}") from e


def check_action_parameters(spec: ActionSpec) -> None:
    """Raise if a required parameter of *spec* is blank.

    Raises:
        IncompleteMailActionError: For a mail action without ``to``/``subject``.
        InvalidActionError: For any other action missing a parameter.
    """
    missing = spec.parameters.missing()
    if not missing:
        return
    if isinstance(spec, MailAction):
        raise IncompleteMailActionError(missing)
    raise InvalidActionError(
        f"{spec.type} '{getattr(spec.parameters, 'type', spec.type)}' "
        f"missing required parameter(s): {', '.join(missing)}"
    )


def validate_rule_parts(
    trigger: TriggerSpec | Mapping[str, Any],
    action: BaseModel | Mapping[str, Any],
) -> tuple[TriggerSpec, ActionSpec]:
    """Parse and validate both halves of a rule."""
    trigger_spec = validate_trigger(parse_trigger(trigger))
    action_spec = parse_action(action)
    check_action_parameters(action_spec)
    return trigger_spec, action_spec
