"""Protocol definitions for the collaborators the rule engine talks to.

BoardDirectory is the read port used to resolve human-readable names to ids.
BoardMutationAPI and MailAPI are the write ports actions are dispatched to.
Implementations signal failure by raising; the dispatcher records any
exception as a failed action.

No SQLAlchemy imports allowed in this module -- pure domain protocols.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal, Protocol, runtime_checkable


@dataclass(frozen=True)
class NamedRef:
    """An id/name pair for a list, swimlane, checklist or checklist item."""

    id: str
    name: str


@dataclass(frozen=True)
class CardLocation:
    """Where a card currently lives."""

    card_id: str
    board_id: str
    list_id: str
    swimlane_id: str


@runtime_checkable
class BoardDirectory(Protocol):
    """Read-only lookups into boards, lists, swimlanes, cards and users."""

    def board_exists(self, board_id: str) -> bool:
        ...

    def lists(self, board_id: str) -> list[NamedRef]:
        """Lists of a board, in board order."""
        ...

    def swimlanes(self, board_id: str) -> list[NamedRef]:
        """Swimlanes of a board, in board order."""
        ...

    def default_swimlane_id(self, board_id: str) -> str | None:
        ...

    def find_user_id(self, username: str) -> str | None:
        ...

    def card_location(self, card_id: str) -> CardLocation | None:
        ...

    def card_label_ids(self, card_id: str) -> list[str]:
        ...

    def card_member_ids(self, card_id: str) -> list[str]:
        ...

    def checklists(self, card_id: str) -> list[NamedRef]:
        ...

    def checklist_items(self, checklist_id: str) -> list[NamedRef]:
        ...


@runtime_checkable
class BoardMutationAPI(Protocol):
    """Board/card mutations; every argument is a resolved id."""

    def move_card(
        self,
        card_id: str,
        board_id: str,
        list_id: str,
        swimlane_id: str,
        position: Literal["top", "bottom"],
    ) -> None:
        ...

    def archive_card(self, card_id: str, archived: bool) -> None:
        ...

    def create_card(
        self, board_id: str, list_id: str, swimlane_id: str, title: str
    ) -> str:
        """Create a card and return its id."""
        ...

    def link_card(
        self, card_id: str, board_id: str, list_id: str, swimlane_id: str
    ) -> str:
        """Create a linked card and return its id."""
        ...

    def set_card_date(
        self, card_id: str, date_field: str, value: datetime | None
    ) -> None:
        ...

    def set_card_label(self, card_id: str, label_id: str, present: bool) -> None:
        ...

    def set_card_member(self, card_id: str, user_id: str, present: bool) -> None:
        ...

    def set_card_color(self, card_id: str, color: str) -> None:
        ...

    def create_swimlane(self, board_id: str, title: str) -> str:
        """Create a swimlane and return its id."""
        ...

    def add_checklist(self, card_id: str, title: str) -> str:
        ...

    def remove_checklist(self, card_id: str, checklist_id: str) -> None:
        ...

    def set_checklist_checked(self, checklist_id: str, checked: bool) -> None:
        ...

    def set_checklist_item_checked(self, item_id: str, checked: bool) -> None:
        ...

    def add_checklist_items(self, checklist_id: str, titles: list[str]) -> None:
        ...


@runtime_checkable
class MailAPI(Protocol):
    """Outgoing mail."""

    def send_mail(self, to: str, subject: str, body: str) -> None:
        ...
