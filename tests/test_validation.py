"""Tests for trigger/action parsing and validation."""

from __future__ import annotations

import pytest

from wekan_rules.exceptions import (
    IncompleteMailActionError,
    InvalidActionError,
    InvalidTriggerError,
)
from wekan_rules.models.rule import (
    AddChecklistItemsParams,
    BoardAction,
    CardAction,
    MailAction,
    MoveCardParams,
)
from wekan_rules.rules.validation import (
    check_action_parameters,
    parse_action,
    parse_trigger,
    sanitize_params,
    validate_rule_parts,
    validate_trigger,
)


class TestTriggers:
    def test_blank_user_becomes_wildcard(self):
        spec = parse_trigger({"activityType": "createCard", "userId": ""})
        assert spec.user_id == "*"

    def test_missing_user_defaults_to_wildcard(self):
        assert parse_trigger({"activityType": "createCard"}).user_id == "*"

    def test_flat_keys_become_equals_conditions(self):
        spec = parse_trigger({"activityType": "addedLabel", "labelId": "L1", "cardTitle": ""})
        by_field = {c.field: c for c in spec.conditions}
        assert by_field["labelId"].operator == "equals"
        assert by_field["labelId"].value == "L1"
        assert by_field["cardTitle"].value == "*"

    def test_snake_case_accepted(self):
        spec = parse_trigger({"activity_type": "moveCard", "user_id": "u1"})
        assert spec.activity_type == "moveCard"
        assert spec.user_id == "u1"

    def test_condition_value_blank_becomes_wildcard(self):
        spec = parse_trigger({
            "activityType": "moveCard",
            "conditions": [{"field": "listId", "value": "  "}],
        })
        assert spec.conditions[0].value == "*"

    def test_unknown_activity_type(self):
        with pytest.raises(InvalidTriggerError, match="Unknown activity type"):
            validate_trigger(parse_trigger({"activityType": "explodeCard"}))

    def test_unknown_operator(self):
        spec = parse_trigger({
            "activityType": "moveCard",
            "conditions": [{"field": "listId", "operator": "startsWith", "value": "x"}],
        })
        with pytest.raises(InvalidTriggerError, match="startsWith"):
            validate_trigger(spec)

    def test_blank_condition_field(self):
        spec = parse_trigger({
            "activityType": "moveCard",
            "conditions": [{"field": " ", "value": "x"}],
        })
        with pytest.raises(InvalidTriggerError):
            validate_trigger(spec)

    def test_missing_activity_type(self):
        with pytest.raises(InvalidTriggerError):
            parse_trigger({"userId": "u1", "conditions": "nonsense"})

    def test_sanitize_params(self):
        assert sanitize_params({"a": "", "b": None, "c": "x", "d": 0}) == {
            "a": "*",
            "b": "*",
            "c": "x",
            "d": 0,
        }


class TestActions:
    def test_parse_board_action(self):
        spec = parse_action({
            "type": "board-action",
            "parameters": {"type": "move-card", "position": "top", "listName": "Done"},
        })
        assert isinstance(spec, BoardAction)
        assert isinstance(spec.parameters, MoveCardParams)
        assert spec.parameters.list_name == "Done"
        assert spec.parameters.board_id == "*"

    def test_parse_from_model(self):
        model = CardAction.model_validate(
            {"type": "card-action", "parameters": {"type": "set-color", "color": "red"}}
        )
        assert parse_action(model) == model

    @pytest.mark.parametrize(
        "data",
        [
            {"type": "teleport-action", "parameters": {}},
            {"type": "card-action", "parameters": {"type": "explode"}},
            {"type": "board-action", "parameters": {"type": "move-card", "position": "middle"}},
            {"type": "card-action", "parameters": {"type": "set-color", "color": "red", "x": 1}},
        ],
    )
    def test_invalid_shapes(self, data):
        with pytest.raises(InvalidActionError):
            parse_action(data)

    def test_missing_required_parameter(self):
        spec = parse_action({"type": "card-action", "parameters": {"type": "label"}})
        with pytest.raises(InvalidActionError, match="labelId"):
            check_action_parameters(spec)

    def test_move_to_other_board_needs_list(self):
        spec = parse_action({
            "type": "board-action",
            "parameters": {"type": "move-card", "position": "top", "boardId": "b2"},
        })
        with pytest.raises(InvalidActionError, match="listName"):
            check_action_parameters(spec)

    def test_move_within_board_list_optional(self):
        spec = parse_action({
            "type": "board-action",
            "parameters": {"type": "move-card", "position": "bottom"},
        })
        check_action_parameters(spec)

    @pytest.mark.parametrize(
        "params,missing",
        [
            ({"to": "a@example.com"}, ["subject"]),
            ({"subject": "Hi"}, ["to"]),
            ({"to": " ", "subject": ""}, ["to", "subject"]),
        ],
    )
    def test_incomplete_mail(self, params, missing):
        spec = parse_action({"type": "mail-action", "parameters": params})
        assert isinstance(spec, MailAction)
        with pytest.raises(IncompleteMailActionError) as exc_info:
            check_action_parameters(spec)
        assert exc_info.value.missing == missing

    def test_incomplete_mail_is_invalid_action(self):
        assert issubclass(IncompleteMailActionError, InvalidActionError)

    def test_checklist_item_titles(self):
        params = AddChecklistItemsParams(checklist_name="Release", items="a, b\nc,,")
        assert params.item_titles() == ["a", "b", "c"]

    def test_validate_rule_parts(self):
        trigger, action = validate_rule_parts(
            {"activityType": "createCard"},
            {"type": "mail-action", "parameters": {"to": "a@example.com", "subject": "New card"}},
        )
        assert trigger.activity_type == "createCard"
        assert action.parameters.subject == "New card"
