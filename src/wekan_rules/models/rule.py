"""Rule, trigger and action models.

TriggerSpec describes when a rule fires. ActionSpec is a discriminated union
over the four action categories (board, card, checklist, mail); board, card
and checklist parameters are themselves discriminated by their ``type``.
Every model accepts camelCase (wire) or snake_case names.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, ClassVar, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator
from pydantic.alias_generators import to_camel

WILDCARD = "*"

# Closed set of condition operators.
OPERATORS: frozenset[str] = frozenset({
    "equals",
    "notEquals",
    "contains",
    "greaterThan",
    "lessThan",
})

DateField = Literal["startAt", "dueAt", "endAt", "receivedAt"]

_MODEL_CONFIG = {
    "alias_generator": to_camel,
    "populate_by_name": True,
    "extra": "forbid",
    "frozen": True,
}


def is_unset(value: object) -> bool:
    """True for None, blank strings and the wildcard sentinel."""
    if value is None:
        return True
    if isinstance(value, str):
        stripped = value.strip()
        return stripped == "" or stripped == WILDCARD
    return False


def _blank_to_wildcard(value: object) -> object:
    if value is None:
        return WILDCARD
    if isinstance(value, str) and value.strip() == "":
        return WILDCARD
    return value


# ---------------------------------------------------------------------------
# Triggers
# ---------------------------------------------------------------------------


class Condition(BaseModel):
    """One ``{field, operator, value}`` clause of a trigger.

    ``operator`` is kept as a plain string so that a stored trigger with an
    operator outside OPERATORS can still be loaded and fail closed at match
    time. New triggers are checked against OPERATORS before they are stored.
    """

    model_config = _MODEL_CONFIG

    field: str
    operator: str = "equals"
    value: Union[str, bool, int, float] = WILDCARD

    @field_validator("value", mode="before")
    @classmethod
    def _normalize_value(cls, v: object) -> object:
        return _blank_to_wildcard(v)


class TriggerSpec(BaseModel):
    """When a rule fires: an activity type, AND-ed conditions, an actor filter."""

    model_config = _MODEL_CONFIG

    activity_type: str
    conditions: tuple[Condition, ...] = ()
    user_id: str = WILDCARD

    @field_validator("user_id", mode="before")
    @classmethod
    def _normalize_user_id(cls, v: object) -> object:
        return _blank_to_wildcard(v)


# ---------------------------------------------------------------------------
# Action parameters
# ---------------------------------------------------------------------------


class ActionParams(BaseModel):
    """Base for per-action parameter models.

    ``_required`` lists the attribute names that must be non-blank before the
    action is executable.
    """

    model_config = _MODEL_CONFIG

    _required: ClassVar[tuple[str, ...]] = ()

    def missing(self) -> list[str]:
        """Return the wire names of required parameters that are blank."""
        absent = []
        for name in self._required:
            if is_unset(getattr(self, name)):
                absent.append(to_camel(name))
        return absent


class MoveCardParams(ActionParams):
    """Move the card to the top or bottom of a list.

    A blank list name means the card's own list; a blank board id means the
    board the activity happened on.
    """

    type: Literal["move-card"] = "move-card"
    position: Literal["top", "bottom"]
    board_id: str = WILDCARD
    list_name: str = WILDCARD
    swimlane_name: str = WILDCARD

    def missing(self) -> list[str]:
        # the card's own list only exists on the activity's board
        if not is_unset(self.board_id) and is_unset(self.list_name):
            return ["listName"]
        return []


class ArchiveParams(ActionParams):
    type: Literal["archive"] = "archive"
    action: Literal["archive", "unarchive"] = "archive"


class AddSwimlaneParams(ActionParams):
    type: Literal["add-swimlane"] = "add-swimlane"
    swimlane_name: str = ""

    _required: ClassVar[tuple[str, ...]] = ("swimlane_name",)


class CreateCardParams(ActionParams):
    type: Literal["create-card"] = "create-card"
    card_name: str = ""
    list_name: str = ""
    swimlane_name: str = WILDCARD

    _required: ClassVar[tuple[str, ...]] = ("card_name", "list_name")


class LinkCardParams(ActionParams):
    type: Literal["link-card"] = "link-card"
    board_id: str = WILDCARD
    list_name: str = ""
    swimlane_name: str = WILDCARD

    _required: ClassVar[tuple[str, ...]] = ("list_name",)


class SetDateParams(ActionParams):
    type: Literal["set-date"] = "set-date"
    action: Literal["setDate", "updateDate"] = "setDate"
    date_field: DateField


class RemoveDateParams(ActionParams):
    type: Literal["remove-date"] = "remove-date"
    date_field: DateField


class LabelParams(ActionParams):
    type: Literal["label"] = "label"
    action: Literal["add", "remove"] = "add"
    label_id: str = ""

    _required: ClassVar[tuple[str, ...]] = ("label_id",)


class MemberParams(ActionParams):
    type: Literal["member"] = "member"
    action: Literal["add", "remove"] = "add"
    member_name: str = ""

    _required: ClassVar[tuple[str, ...]] = ("member_name",)


class RemoveAllParams(ActionParams):
    """Remove every label and every member from the card."""

    type: Literal["remove-all"] = "remove-all"


class SetColorParams(ActionParams):
    type: Literal["set-color"] = "set-color"
    color: str = ""

    _required: ClassVar[tuple[str, ...]] = ("color",)


class ChecklistParams(ActionParams):
    type: Literal["checklist"] = "checklist"
    action: Literal["add", "remove"] = "add"
    checklist_name: str = ""

    _required: ClassVar[tuple[str, ...]] = ("checklist_name",)


class CheckAllParams(ActionParams):
    type: Literal["checkall"] = "checkall"
    action: Literal["check", "uncheck"] = "check"
    checklist_name: str = ""

    _required: ClassVar[tuple[str, ...]] = ("checklist_name",)


class CheckItemParams(ActionParams):
    type: Literal["check-item"] = "check-item"
    action: Literal["check", "uncheck"] = "check"
    item_name: str = ""
    checklist_name: str = ""

    _required: ClassVar[tuple[str, ...]] = ("item_name", "checklist_name")


class AddChecklistItemsParams(ActionParams):
    """Append items to a checklist; ``items`` is comma or newline separated."""

    type: Literal["add-checklist-items"] = "add-checklist-items"
    checklist_name: str = ""
    items: str = ""

    _required: ClassVar[tuple[str, ...]] = ("checklist_name", "items")

    def item_titles(self) -> list[str]:
        parts = self.items.replace("\n", ",").split(",")
        return [p.strip() for p in parts if p.strip()]


class MailParams(ActionParams):
    to: str = ""
    subject: str = ""
    message: str = ""

    _required: ClassVar[tuple[str, ...]] = ("to", "subject")


BoardActionParams = Annotated[
    Union[
        MoveCardParams,
        ArchiveParams,
        AddSwimlaneParams,
        CreateCardParams,
        LinkCardParams,
    ],
    Field(discriminator="type"),
]

CardActionParams = Annotated[
    Union[
        SetDateParams,
        RemoveDateParams,
        LabelParams,
        MemberParams,
        RemoveAllParams,
        SetColorParams,
    ],
    Field(discriminator="type"),
]

ChecklistActionParams = Annotated[
    Union[
        ChecklistParams,
        CheckAllParams,
        CheckItemParams,
        AddChecklistItemsParams,
    ],
    Field(discriminator="type"),
]


# ---------------------------------------------------------------------------
# Action specs (discriminated by category)
# ---------------------------------------------------------------------------


class BoardAction(BaseModel):
    model_config = _MODEL_CONFIG

    type: Literal["board-action"] = "board-action"
    parameters: BoardActionParams


class CardAction(BaseModel):
    model_config = _MODEL_CONFIG

    type: Literal["card-action"] = "card-action"
    parameters: CardActionParams


class ChecklistAction(BaseModel):
    model_config = _MODEL_CONFIG

    type: Literal["checklist-action"] = "checklist-action"
    parameters: ChecklistActionParams


class MailAction(BaseModel):
    model_config = _MODEL_CONFIG

    type: Literal["mail-action"] = "mail-action"
    parameters: MailParams


ActionSpec = Annotated[
    Union[BoardAction, CardAction, ChecklistAction, MailAction],
    Field(discriminator="type"),
]

action_adapter: TypeAdapter[Any] = TypeAdapter(ActionSpec)

ACTION_CATEGORIES: frozenset[str] = frozenset({
    "board-action",
    "card-action",
    "checklist-action",
    "mail-action",
})


# ---------------------------------------------------------------------------
# Rule
# ---------------------------------------------------------------------------


class Rule(BaseModel):
    """A stored automation entry: when ``trigger`` fires, perform ``action``.

    Not an ORM model -- used for data transfer only.
    """

    model_config = {"alias_generator": to_camel, "populate_by_name": True}

    id: str
    board_id: str
    title: str
    trigger: TriggerSpec
    action: ActionSpec
    enabled: bool = True
    actor_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    def __str__(self) -> str:
        state = "" if self.enabled else " (disabled)"
        return f"{self.id[:8]} {self.title}{state}"

    def __repr__(self) -> str:
        return (
            f"Rule({self.id[:8]} {self.trigger.activity_type} -> "
            f"{self.action.type} {self.title!r})"
        )
