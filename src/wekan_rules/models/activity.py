"""Activity events consumed by the rule engine.

An ActivityEvent is produced by the board/card mutation layer and only read
here: the engine never persists or mutates it.
"""

from __future__ import annotations

import types
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping

# Activity types a trigger may name. The type decides which payload fields exist.
ACTIVITY_TYPES: frozenset[str] = frozenset({
    "createCard",
    "moveCard",
    "archivedCard",
    "restoredCard",
    "addedLabel",
    "removedLabel",
    "joinMember",
    "unjoinMember",
    "addAttachment",
    "deleteAttachment",
    "addChecklist",
    "removeChecklist",
    "completeChecklist",
    "uncompleteChecklist",
    "checkedItem",
    "uncheckedItem",
})


class _Missing:
    """Sentinel for a field the event does not carry."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()

# camelCase wire names -> attribute names
_FIELD_ALIASES: dict[str, str] = {
    "activityType": "activity_type",
    "boardId": "board_id",
    "userId": "user_id",
    "cardId": "card_id",
    "listId": "list_id",
    "swimlaneId": "swimlane_id",
    "timestamp": "timestamp",
}
_ATTRIBUTES: frozenset[str] = frozenset(_FIELD_ALIASES.values())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class ActivityEvent:
    """A recorded board mutation that can trigger rules.

    Known attributes are first-class fields; anything else the activity
    carries (``labelId``, ``cardTitle``, ``checklistName``...) lives in
    ``payload`` and is reachable through :meth:`value_of`.
    """

    activity_type: str
    board_id: str
    user_id: str | None = None
    card_id: str | None = None
    list_id: str | None = None
    swimlane_id: str | None = None
    timestamp: datetime = field(default_factory=_utcnow)
    payload: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "payload", types.MappingProxyType(dict(self.payload)))

    def value_of(self, name: str) -> Any:
        """Return the value of field *name*, or MISSING when absent.

        Accepts camelCase or snake_case for the first-class attributes.
        Attributes that are None count as missing.
        """
        attr = _FIELD_ALIASES.get(name, name)
        if attr in _ATTRIBUTES:
            value = getattr(self, attr)
            return MISSING if value is None else value
        if name in self.payload:
            return self.payload[name]
        return MISSING

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ActivityEvent:
        """Build an event from a camelCase or snake_case record.

        Keys that are not first-class attributes go into ``payload``.
        """
        known: dict[str, Any] = {}
        payload: dict[str, Any] = dict(data.get("payload") or {})
        for key, value in data.items():
            if key == "payload":
                continue
            attr = _FIELD_ALIASES.get(key, key)
            if attr in _ATTRIBUTES:
                known[attr] = value
            else:
                payload[key] = value
        if "board_id" not in known:
            known["board_id"] = ""
        if "activity_type" not in known:
            known["activity_type"] = ""
        return cls(payload=payload, **known)

    def to_dict(self) -> dict[str, Any]:
        """Flatten to a camelCase dict (payload keys merged in)."""
        data: dict[str, Any] = dict(self.payload)
        for wire, attr in _FIELD_ALIASES.items():
            value = getattr(self, attr)
            if value is not None:
                data[wire] = value
        return data
