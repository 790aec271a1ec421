"""Rule definition store.

RuleStore validates rules on the way in and converts between ORM rows and
the Rule DTO. A rule's trigger and action rows are written and removed in
the same transaction as the rule itself.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, Mapping

from pydantic import BaseModel, ValidationError

from wekan_rules.exceptions import (
    InvalidActionError,
    InvalidTriggerError,
    RuleNotFoundError,
    WekanRulesError,
)
from wekan_rules.models.rule import ActionSpec, Rule, TriggerSpec, action_adapter
from wekan_rules.rules.validation import validate_rule_parts
from wekan_rules.storage.schema import ActionRow, RuleRow, TriggerRow

if TYPE_CHECKING:
    from wekan_rules.storage.repositories import RuleRepository
    from wekan_rules.storage.unit import StorageUnit

logger = logging.getLogger(__name__)

_PATCHABLE = {
    "title": "title",
    "trigger": "trigger",
    "action": "action",
    "enabled": "enabled",
    "actorId": "actor_id",
    "actor_id": "actor_id",
}


def _now() -> datetime:
    """Naive UTC datetime for storage."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _check_title(title: str) -> str:
    if not isinstance(title, str) or not title.strip():
        raise ValueError("Rule title must not be blank")
    return title.strip()


def _as_dict(value: BaseModel | Mapping[str, Any]) -> dict[str, Any]:
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True)
    return dict(value)


def _merge_action(current: dict[str, Any], patch: dict[str, Any]) -> dict[str, Any]:
    """Shallow-merge an action patch; parameters merge only within one action kind."""
    merged = {**current, **patch}
    same_category = patch.get("type", current["type"]) == current["type"]
    if same_category and "parameters" in patch:
        old_params = current["parameters"]
        new_params = patch["parameters"]
        if new_params.get("type", old_params.get("type")) == old_params.get("type"):
            merged["parameters"] = {**old_params, **new_params}
    return merged


class RuleStore:
    """Create, update, delete and list rules."""

    def __init__(
        self,
        rule_repo: RuleRepository,
        storage: StorageUnit,
        *,
        clock: Callable[[], datetime] = _now,
    ) -> None:
        self._repo = rule_repo
        self._storage = storage
        self._clock = clock

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_rule(
        self,
        board_id: str,
        title: str,
        trigger: TriggerSpec | Mapping[str, Any],
        action: BaseModel | Mapping[str, Any],
        *,
        actor_id: str | None = None,
        enabled: bool = True,
    ) -> str:
        """Validate and store a rule; return its id.

        Raises:
            InvalidTriggerError: Unknown activity type or operator.
            InvalidActionError: Unknown action or missing required parameters
                (IncompleteMailActionError for mail without to/subject).
            ValueError: Blank board id or title.
        """
        if not board_id:
            raise ValueError("Rule board_id must not be blank")
        clean_title = _check_title(title)
        trigger_spec, action_spec = validate_rule_parts(trigger, action)

        rule_id = uuid.uuid4().hex
        now = self._clock()
        with self._storage.transaction():
            row = RuleRow(
                rule_id=rule_id,
                board_id=board_id,
                title=clean_title,
                enabled=enabled,
                actor_id=actor_id,
                position=self._repo.next_position(),
                created_at=now,
                updated_at=now,
            )
            self._apply_parts(row, trigger_spec, action_spec)
            self._repo.save(row)

        logger.debug(
            "Created rule %s on board %s: %s -> %s",
            rule_id,
            board_id,
            trigger_spec.activity_type,
            action_spec.type,
        )
        return rule_id

    def update_rule(self, rule_id: str, patch: Mapping[str, Any]) -> Rule:
        """Apply *patch* and re-validate the merged rule.

        Recognized keys: title, trigger, action, enabled, actorId. Trigger and
        action patches are merged into the stored spec.

        Raises:
            RuleNotFoundError: If the rule does not exist.
            InvalidTriggerError / InvalidActionError: If the merged rule is invalid.
            ValueError: Unknown patch key or blank title.
        """
        unknown = set(patch) - set(_PATCHABLE)
        if unknown:
            raise ValueError(f"Unknown rule field(s): {', '.join(sorted(unknown))}")

        with self._storage.transaction():
            row = self._repo.get(rule_id)
            if row is None:
                raise RuleNotFoundError(rule_id)
            current = self._row_to_rule(row)
            changes = {_PATCHABLE[k]: v for k, v in patch.items()}

            trigger_data = current.trigger.model_dump(by_alias=True)
            if "trigger" in changes:
                trigger_data = {**trigger_data, **_as_dict(changes["trigger"])}
            action_data = current.action.model_dump(by_alias=True)
            if "action" in changes:
                action_data = _merge_action(action_data, _as_dict(changes["action"]))

            trigger_spec, action_spec = validate_rule_parts(trigger_data, action_data)
            if "title" in changes:
                row.title = _check_title(changes["title"])
            if "enabled" in changes:
                row.enabled = bool(changes["enabled"])
            if "actor_id" in changes:
                row.actor_id = changes["actor_id"] or None
            self._apply_parts(row, trigger_spec, action_spec)
            row.updated_at = self._clock()
            self._repo.save(row)
            updated = self._row_to_rule(row)

        logger.debug("Updated rule %s", rule_id)
        return updated

    def set_enabled(self, rule_id: str, enabled: bool) -> None:
        """Enable or disable a rule. A disabled rule is stored but never matched."""
        self.update_rule(rule_id, {"enabled": enabled})

    def delete_rule(self, rule_id: str) -> None:
        """Delete a rule with its trigger and action. Deleting twice is a no-op."""
        with self._storage.transaction():
            removed = self._repo.delete(rule_id)
        if removed:
            logger.debug("Deleted rule %s", rule_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_rule(self, rule_id: str) -> Rule:
        """Raises RuleNotFoundError if the rule does not exist."""
        with self._storage.reading():
            row = self._repo.get(rule_id)
            if row is None:
                raise RuleNotFoundError(rule_id)
            return self._row_to_rule(row)

    def list_rules(self, board_id: str) -> list[Rule]:
        """All rules of a board (enabled or not) in creation order.

        Rows that no longer parse are logged and left out.
        """
        rules: list[Rule] = []
        with self._storage.reading():
            for row in self._repo.list_rules(board_id):
                try:
                    rules.append(self._row_to_rule(row))
                except WekanRulesError as exc:
                    logger.warning("Skipping unreadable rule %s: %s", row.rule_id, exc)
        return rules

    def list_board_ids(self) -> list[str]:
        with self._storage.reading():
            return self._repo.list_board_ids()

    # ------------------------------------------------------------------
    # Row conversion
    # ------------------------------------------------------------------

    @staticmethod
    def _apply_parts(row: RuleRow, trigger: TriggerSpec, action: ActionSpec) -> None:
        trigger_data = trigger.model_dump(by_alias=True, mode="json")
        action_data = action.model_dump(by_alias=True, mode="json")
        if row.trigger is None:
            row.trigger = TriggerRow(rule_id=row.rule_id)
        row.trigger.activity_type = trigger.activity_type
        row.trigger.user_id = trigger.user_id
        row.trigger.conditions_json = trigger_data["conditions"]
        if row.action is None:
            row.action = ActionRow(rule_id=row.rule_id)
        row.action.action_type = action.type
        row.action.params_json = action_data["parameters"]

    @staticmethod
    def _row_to_rule(row: RuleRow) -> Rule:
        try:
            trigger = TriggerSpec.model_validate({
                "activityType": row.trigger.activity_type,
                "userId": row.trigger.user_id,
                "conditions": row.trigger.conditions_json or [],
            })
        except ValidationError as e:
            raise InvalidTriggerError(f"Stored trigger is invalid: {e}") from e
        try:
            action = action_adapter.validate_python({
                "type": row.action.action_type,
                "parameters": row.action.params_json or {},
            })
        except ValidationError as e:
            raise InvalidActionError(f"Stored action is invalid: {e}") from e
        return Rule(
            id=row.rule_id,
            board_id=row.board_id,
            title=row.title,
            trigger=trigger,
            action=action,
            enabled=row.enabled,
            actor_id=row.actor_id,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )
