"""ActionDispatcher -- turns a rule's ActionSpec into collaborator calls.

The dispatcher resolves human-readable targets (list, swimlane, checklist
and member names) to ids against the BoardDirectory and hands fully
resolved commands to the BoardMutationAPI or MailAPI. It never raises:
every failure comes back as a failed ActionResult with an ``error_kind``.

Name resolution is first match wins. A swimlane name that matches nothing
falls back to the board's default swimlane; lists, checklists, items and
members have no fallback.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, Mapping

from pydantic import BaseModel

from wekan_rules.exceptions import (
    IncompleteMailActionError,
    InvalidActionError,
    TargetNotFoundError,
    UnauthorizedError,
)
from wekan_rules.models.results import ActionResult, Effect
from wekan_rules.models.rule import (
    AddChecklistItemsParams,
    AddSwimlaneParams,
    ArchiveParams,
    BoardAction,
    CardAction,
    CheckAllParams,
    CheckItemParams,
    ChecklistAction,
    ChecklistParams,
    CreateCardParams,
    LabelParams,
    LinkCardParams,
    MailAction,
    MemberParams,
    MoveCardParams,
    RemoveAllParams,
    RemoveDateParams,
    SetColorParams,
    SetDateParams,
    is_unset,
)
from wekan_rules.rules.validation import check_action_parameters, parse_action

if TYPE_CHECKING:
    from wekan_rules.models.activity import ActivityEvent
    from wekan_rules.models.rule import ActionSpec
    from wekan_rules.permissions.service import RoleService
    from wekan_rules.protocols import (
        BoardDirectory,
        BoardMutationAPI,
        CardLocation,
        MailAPI,
        NamedRef,
    )

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass
class DispatchContext:
    """Who acts, and the collaborators an action is carried out through."""

    actor_id: str | None
    board_api: BoardMutationAPI
    directory: BoardDirectory
    mail_api: MailAPI | None = None
    clock: Callable[[], datetime] = field(default=_utcnow)


# Permission each action needs on the board it changes.
_BOARD_PERMISSIONS: dict[type, str] = {
    MoveCardParams: "cards.edit",
    ArchiveParams: "cards.edit",
    AddSwimlaneParams: "lists.create",
    CreateCardParams: "cards.create",
    LinkCardParams: "cards.create",
}


def required_permission(action: ActionSpec) -> str:
    """The permission the rule's actor needs for *action*."""
    if isinstance(action, BoardAction):
        return _BOARD_PERMISSIONS[type(action.parameters)]
    if isinstance(action, (CardAction, ChecklistAction)):
        return "cards.edit"
    if isinstance(action, MailAction):
        return "board.view"
    raise InvalidActionError(f"Unknown action category: {type(action).__name__}")


def _first_named(refs: list[NamedRef], name: str) -> NamedRef | None:
    for ref in refs:
        if ref.name == name:
            return ref
    return None


class ActionDispatcher:
    """Executes one action for one activity event.

    Args:
        roles: Answers whether the acting identity may perform the action.
    """

    def __init__(self, roles: RoleService) -> None:
        self._roles = roles

    def execute(
        self,
        action: ActionSpec | BaseModel | Mapping[str, Any],
        event: ActivityEvent,
        context: DispatchContext,
    ) -> ActionResult:
        """Run *action* in response to *event*. Never raises."""
        try:
            if isinstance(action, (BoardAction, CardAction, ChecklistAction, MailAction)):
                spec = action
            else:
                spec = parse_action(action)
            check_action_parameters(spec)

            permission = required_permission(spec)
            self._authorize(context.actor_id, event.board_id, permission)
            effects = self._dispatch(spec, event, context)
        except TargetNotFoundError as exc:
            return ActionResult.failure("TargetNotFound", str(exc))
        except UnauthorizedError as exc:
            return ActionResult.failure("Unauthorized", str(exc))
        except IncompleteMailActionError as exc:
            return ActionResult.failure("IncompleteMailAction", str(exc))
        except InvalidActionError as exc:
            return ActionResult.failure("InvalidAction", str(exc))
        except Exception as exc:
            return ActionResult.failure(
                "CollaboratorError", f"{type(exc).__name__}: {exc}"
            )
        logger.debug(
            "Dispatched %s on board %s: %s",
            spec.type,
            event.board_id,
            ", ".join(e.command for e in effects) or "no effects",
        )
        return ActionResult.success(*effects)

    def _authorize(self, actor_id: str | None, board_id: str, permission: str) -> None:
        if not self._roles.has_permission(actor_id, board_id, permission):
            raise UnauthorizedError(actor_id, board_id, permission)

    def _dispatch(
        self, spec: ActionSpec, event: ActivityEvent, context: DispatchContext
    ) -> list[Effect]:
        if isinstance(spec, BoardAction):
            return self._board_action(spec.parameters, event, context)
        if isinstance(spec, CardAction):
            return self._card_action(spec.parameters, event, context)
        if isinstance(spec, ChecklistAction):
            return self._checklist_action(spec.parameters, event, context)
        if isinstance(spec, MailAction):
            return self._mail_action(spec, context)
        raise InvalidActionError(f"Unknown action category: {type(spec).__name__}")

    # ------------------------------------------------------------------
    # Board actions
    # ------------------------------------------------------------------

    def _board_action(
        self, params: Any, event: ActivityEvent, ctx: DispatchContext
    ) -> list[Effect]:
        api = ctx.board_api

        if isinstance(params, MoveCardParams):
            location = self._card_location(event, ctx)
            board_id = self._target_board(params.board_id, event, ctx)
            if board_id == location.board_id and is_unset(params.list_name):
                list_id = location.list_id
            else:
                list_id = self._list_id(ctx, board_id, params.list_name)
            if board_id == location.board_id and is_unset(params.swimlane_name):
                swimlane_id = location.swimlane_id
            else:
                swimlane_id = self._swimlane_id(ctx, board_id, params.swimlane_name)
            api.move_card(location.card_id, board_id, list_id, swimlane_id, params.position)
            return [Effect("moveCard", {
                "cardId": location.card_id,
                "boardId": board_id,
                "listId": list_id,
                "swimlaneId": swimlane_id,
                "position": params.position,
            })]

        if isinstance(params, ArchiveParams):
            card_id = self._card_id(event)
            archived = params.action == "archive"
            api.archive_card(card_id, archived)
            return [Effect("archiveCard", {"cardId": card_id, "archived": archived})]

        if isinstance(params, AddSwimlaneParams):
            swimlane_id = api.create_swimlane(event.board_id, params.swimlane_name)
            return [Effect("createSwimlane", {
                "boardId": event.board_id,
                "title": params.swimlane_name,
                "swimlaneId": swimlane_id,
            })]

        if isinstance(params, CreateCardParams):
            list_id = self._list_id(ctx, event.board_id, params.list_name)
            swimlane_id = self._swimlane_id(ctx, event.board_id, params.swimlane_name)
            card_id = api.create_card(event.board_id, list_id, swimlane_id, params.card_name)
            return [Effect("createCard", {
                "boardId": event.board_id,
                "listId": list_id,
                "swimlaneId": swimlane_id,
                "title": params.card_name,
                "cardId": card_id,
            })]

        if isinstance(params, LinkCardParams):
            card_id = self._card_id(event)
            board_id = self._target_board(params.board_id, event, ctx)
            list_id = self._list_id(ctx, board_id, params.list_name)
            swimlane_id = self._swimlane_id(ctx, board_id, params.swimlane_name)
            linked_id = api.link_card(card_id, board_id, list_id, swimlane_id)
            return [Effect("linkCard", {
                "cardId": card_id,
                "boardId": board_id,
                "listId": list_id,
                "swimlaneId": swimlane_id,
                "linkedCardId": linked_id,
            })]

        raise InvalidActionError(f"Unknown board action: {type(params).__name__}")

    # ------------------------------------------------------------------
    # Card actions
    # ------------------------------------------------------------------

    def _card_action(
        self, params: Any, event: ActivityEvent, ctx: DispatchContext
    ) -> list[Effect]:
        api = ctx.board_api
        card_id = self._card_id(event)

        if isinstance(params, SetDateParams):
            # setDate and updateDate both stamp the current time
            value = ctx.clock()
            api.set_card_date(card_id, params.date_field, value)
            return [Effect("setCardDate", {
                "cardId": card_id, "field": params.date_field, "value": value,
            })]

        if isinstance(params, RemoveDateParams):
            api.set_card_date(card_id, params.date_field, None)
            return [Effect("setCardDate", {
                "cardId": card_id, "field": params.date_field, "value": None,
            })]

        if isinstance(params, LabelParams):
            present = params.action == "add"
            api.set_card_label(card_id, params.label_id, present)
            return [Effect("setCardLabel", {
                "cardId": card_id, "labelId": params.label_id, "present": present,
            })]

        if isinstance(params, MemberParams):
            user_id = ctx.directory.find_user_id(params.member_name)
            if not user_id:
                raise TargetNotFoundError("member", params.member_name, event.board_id)
            present = params.action == "add"
            api.set_card_member(card_id, user_id, present)
            return [Effect("setCardMember", {
                "cardId": card_id, "userId": user_id, "present": present,
            })]

        if isinstance(params, RemoveAllParams):
            effects = []
            for label_id in ctx.directory.card_label_ids(card_id):
                api.set_card_label(card_id, label_id, False)
                effects.append(Effect("setCardLabel", {
                    "cardId": card_id, "labelId": label_id, "present": False,
                }))
            for user_id in ctx.directory.card_member_ids(card_id):
                api.set_card_member(card_id, user_id, False)
                effects.append(Effect("setCardMember", {
                    "cardId": card_id, "userId": user_id, "present": False,
                }))
            return effects

        if isinstance(params, SetColorParams):
            api.set_card_color(card_id, params.color)
            return [Effect("setCardColor", {"cardId": card_id, "color": params.color})]

        raise InvalidActionError(f"Unknown card action: {type(params).__name__}")

    # ------------------------------------------------------------------
    # Checklist actions
    # ------------------------------------------------------------------

    def _checklist_action(
        self, params: Any, event: ActivityEvent, ctx: DispatchContext
    ) -> list[Effect]:
        api = ctx.board_api
        card_id = self._card_id(event)

        if isinstance(params, ChecklistParams):
            if params.action == "add":
                checklist_id = api.add_checklist(card_id, params.checklist_name)
                return [Effect("addChecklist", {
                    "cardId": card_id,
                    "title": params.checklist_name,
                    "checklistId": checklist_id,
                })]
            checklist = self._checklist(ctx, card_id, params.checklist_name)
            api.remove_checklist(card_id, checklist.id)
            return [Effect("removeChecklist", {
                "cardId": card_id, "checklistId": checklist.id,
            })]

        if isinstance(params, CheckAllParams):
            checklist = self._checklist(ctx, card_id, params.checklist_name)
            checked = params.action == "check"
            api.set_checklist_checked(checklist.id, checked)
            return [Effect("setChecklistChecked", {
                "checklistId": checklist.id, "checked": checked,
            })]

        if isinstance(params, CheckItemParams):
            checklist = self._checklist(ctx, card_id, params.checklist_name)
            item = _first_named(ctx.directory.checklist_items(checklist.id), params.item_name)
            if item is None:
                raise TargetNotFoundError("checklist item", params.item_name)
            checked = params.action == "check"
            api.set_checklist_item_checked(item.id, checked)
            return [Effect("setChecklistItemChecked", {
                "itemId": item.id, "checked": checked,
            })]

        if isinstance(params, AddChecklistItemsParams):
            checklist = self._checklist(ctx, card_id, params.checklist_name)
            titles = params.item_titles()
            api.add_checklist_items(checklist.id, titles)
            return [Effect("addChecklistItems", {
                "checklistId": checklist.id, "titles": titles,
            })]

        raise InvalidActionError(f"Unknown checklist action: {type(params).__name__}")

    # ------------------------------------------------------------------
    # Mail
    # ------------------------------------------------------------------

    def _mail_action(self, spec: MailAction, ctx: DispatchContext) -> list[Effect]:
        if ctx.mail_api is None:
            raise RuntimeError("No mail collaborator configured")
        params = spec.parameters
        ctx.mail_api.send_mail(params.to, params.subject, params.message)
        return [Effect("sendMail", {
            "to": params.to, "subject": params.subject, "body": params.message,
        })]

    # ------------------------------------------------------------------
    # Target resolution
    # ------------------------------------------------------------------

    @staticmethod
    def _card_id(event: ActivityEvent) -> str:
        if not event.card_id:
            raise TargetNotFoundError("card", "", event.board_id)
        return event.card_id

    def _card_location(self, event: ActivityEvent, ctx: DispatchContext) -> CardLocation:
        card_id = self._card_id(event)
        location = ctx.directory.card_location(card_id)
        if location is None:
            raise TargetNotFoundError("card", card_id, event.board_id)
        return location

    def _target_board(
        self, board_id: str, event: ActivityEvent, ctx: DispatchContext
    ) -> str:
        """The board an action writes to: its own board id, or the event's."""
        if is_unset(board_id) or board_id == event.board_id:
            return event.board_id
        if not ctx.directory.board_exists(board_id):
            raise TargetNotFoundError("board", board_id)
        self._authorize(ctx.actor_id, board_id, "cards.create")
        return board_id

    @staticmethod
    def _list_id(ctx: DispatchContext, board_id: str, name: str) -> str:
        ref = None if is_unset(name) else _first_named(ctx.directory.lists(board_id), name)
        if ref is None:
            raise TargetNotFoundError("list", name, board_id)
        return ref.id

    @staticmethod
    def _swimlane_id(ctx: DispatchContext, board_id: str, name: str) -> str:
        ref = None if is_unset(name) else _first_named(ctx.directory.swimlanes(board_id), name)
        if ref is not None:
            return ref.id
        default_id = ctx.directory.default_swimlane_id(board_id)
        if not default_id:
            raise TargetNotFoundError("swimlane", name, board_id)
        return default_id

    @staticmethod
    def _checklist(ctx: DispatchContext, card_id: str, name: str) -> NamedRef:
        ref = _first_named(ctx.directory.checklists(card_id), name)
        if ref is None:
            raise TargetNotFoundError("checklist", name)
        return ref
