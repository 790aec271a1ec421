"""Three-step rule builder: title, then trigger, then action.

Each step validates its own input so a rule author sees errors at the step
that caused them. The rule is only stored when the action step succeeds.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping

from wekan_rules.models.rule import WILDCARD, TriggerSpec
from wekan_rules.rules.validation import parse_trigger, sanitize_params, validate_trigger

if TYPE_CHECKING:
    from pydantic import BaseModel

    from wekan_rules.protocols import BoardDirectory
    from wekan_rules.rules.store import RuleStore

_STEPS = ("title", "trigger", "action", "done")


class RuleBuilder:
    """Collects a rule through the title -> trigger -> action flow.

    Example::

        builder = RuleBuilder(store, board_id="b1", actor_id="u1")
        builder.set_title("Colour urgent cards")
        builder.set_trigger({"activityType": "addedLabel", "labelId": "urgent"})
        rule_id = builder.set_action(
            {"type": "card-action", "parameters": {"type": "set-color", "color": "red"}}
        )
    """

    def __init__(
        self,
        store: RuleStore,
        board_id: str,
        *,
        directory: BoardDirectory | None = None,
        actor_id: str | None = None,
    ) -> None:
        self._store = store
        self._board_id = board_id
        self._directory = directory
        self._actor_id = actor_id
        self._step = 0
        self._title: str | None = None
        self._trigger: TriggerSpec | None = None

    @property
    def step(self) -> str:
        return _STEPS[self._step]

    @property
    def title(self) -> str | None:
        return self._title

    @property
    def trigger(self) -> TriggerSpec | None:
        return self._trigger

    def _expect(self, step: str) -> None:
        if self.step != step:
            raise RuntimeError(f"Rule builder is at step '{self.step}', not '{step}'")

    def set_title(self, title: str) -> RuleBuilder:
        self._expect("title")
        if not title or not title.strip():
            raise ValueError("Rule title must not be blank")
        self._title = title.strip()
        self._step = 1
        return self

    def set_trigger(
        self,
        trigger: TriggerSpec | Mapping[str, Any],
        *,
        username: str | None = None,
    ) -> RuleBuilder:
        """Record the trigger.

        Blank parameters become ``'*'``. When *username* is given it replaces
        the trigger's user filter; an unknown or blank username means any user.

        Raises:
            InvalidTriggerError
        """
        self._expect("trigger")
        if isinstance(trigger, TriggerSpec):
            data: dict[str, Any] = trigger.model_dump(by_alias=True)
        else:
            data = sanitize_params(trigger)
        if username is not None:
            data["userId"] = self._resolve_user(username)
        self._trigger = validate_trigger(parse_trigger(data))
        self._step = 2
        return self

    def set_action(self, action: BaseModel | Mapping[str, Any]) -> str:
        """Validate the action and store the rule; returns the new rule id.

        Raises:
            InvalidActionError
        """
        self._expect("action")
        rule_id = self._store.create_rule(
            self._board_id,
            self._title,
            self._trigger,
            action,
            actor_id=self._actor_id,
        )
        self._step = 3
        return rule_id

    def back(self) -> RuleBuilder:
        """Return to the previous step (trigger -> title, action -> trigger)."""
        if 0 < self._step < 3:
            self._step -= 1
        return self

    def _resolve_user(self, username: str | None) -> str:
        if not username or not username.strip() or self._directory is None:
            return WILDCARD
        user_id = self._directory.find_user_id(username.strip())
        return user_id if user_id else WILDCARD
