"""Tests for RuleStore and its storage.

Covers:
- create/get/list in creation order, per board
- wildcard normalization of the stored trigger
- validation failures never persist (InvalidTrigger, InvalidAction, IncompleteMailAction)
- update merges trigger/action patches and re-validates
- enable/disable, idempotent delete, trigger/action removal with the rule
"""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from conftest import color_action, label_trigger
from wekan_rules.exceptions import (
    IncompleteMailActionError,
    InvalidActionError,
    InvalidTriggerError,
    RuleNotFoundError,
)
from wekan_rules.models.rule import CardAction, SetColorParams, TriggerSpec
from wekan_rules.rules.store import RuleStore


class TestCreate:
    def test_create_and_get(self, store):
        rule_id = store.create_rule("b1", "Colour urgent", label_trigger(), color_action())
        rule = store.get_rule(rule_id)

        assert rule.id == rule_id
        assert rule.board_id == "b1"
        assert rule.title == "Colour urgent"
        assert rule.enabled
        assert rule.trigger.activity_type == "addedLabel"
        assert rule.trigger.conditions[0].value == "L1"
        assert isinstance(rule.action, CardAction)
        assert rule.action.parameters == SetColorParams(color="red")

    def test_accepts_models(self, store):
        trigger = TriggerSpec(activity_type="createCard")
        action = CardAction(parameters=SetColorParams(color="blue"))
        rule_id = store.create_rule("b1", "Blue", trigger, action, actor_id="u1")
        rule = store.get_rule(rule_id)
        assert rule.actor_id == "u1"
        assert rule.action.parameters.color == "blue"

    def test_empty_user_stored_as_wildcard(self, store):
        rule_id = store.create_rule(
            "b1", "Any user", {"activityType": "createCard", "userId": ""}, color_action()
        )
        assert store.get_rule(rule_id).trigger.user_id == "*"

    def test_list_in_creation_order(self, store):
        ids = [
            store.create_rule("b1", f"Rule {i}", label_trigger(), color_action())
            for i in range(5)
        ]
        store.create_rule("b2", "Other board", label_trigger(), color_action())
        assert [r.id for r in store.list_rules("b1")] == ids
        assert store.list_board_ids() == ["b1", "b2"]

    def test_list_unknown_board(self, store):
        assert store.list_rules("nope") == []

    def test_timestamps_from_clock(self, rule_repo, storage):
        now = datetime(2024, 5, 1, 12, 0, 0)
        store = RuleStore(rule_repo, storage, clock=lambda: now)
        rule = store.get_rule(store.create_rule("b1", "t", label_trigger(), color_action()))
        assert rule.created_at == now
        assert rule.updated_at == now

    @pytest.mark.parametrize("board_id,title", [("", "t"), ("b1", ""), ("b1", "   ")])
    def test_blank_board_or_title(self, store, board_id, title):
        with pytest.raises(ValueError):
            store.create_rule(board_id, title, label_trigger(), color_action())

    def test_invalid_trigger_not_stored(self, store):
        with pytest.raises(InvalidTriggerError):
            store.create_rule("b1", "bad", {"activityType": "nope"}, color_action())
        assert store.list_rules("b1") == []

    def test_invalid_action_not_stored(self, store):
        with pytest.raises(InvalidActionError):
            store.create_rule(
                "b1",
                "bad",
                label_trigger(),
                {"type": "board-action", "parameters": {"type": "create-card", "cardName": "x"}},
            )
        assert store.list_rules("b1") == []

    def test_move_to_other_board_without_list_rejected(self, store):
        with pytest.raises(InvalidActionError, match="listName"):
            store.create_rule(
                "b1",
                "Ship it",
                label_trigger(),
                {
                    "type": "board-action",
                    "parameters": {"type": "move-card", "position": "top", "boardId": "b2"},
                },
            )
        assert store.list_rules("b1") == []

    def test_mail_without_subject_rejected(self, store):
        with pytest.raises(IncompleteMailActionError):
            store.create_rule(
                "b1",
                "Mail me",
                {"activityType": "createCard"},
                {"type": "mail-action", "parameters": {"to": "ops@example.com", "subject": ""}},
            )
        assert store.list_rules("b1") == []


class TestUpdate:
    def test_update_title_and_action_params(self, store):
        rule_id = store.create_rule("b1", "Colour", label_trigger(), color_action("red"))
        updated = store.update_rule(rule_id, {
            "title": "Colour green",
            "action": {"parameters": {"color": "green"}},
        })
        assert updated.title == "Colour green"
        assert updated.action.parameters.color == "green"
        assert store.get_rule(rule_id).action.parameters.color == "green"

    def test_update_replaces_action_kind(self, store):
        rule_id = store.create_rule("b1", "Colour", label_trigger(), color_action())
        updated = store.update_rule(rule_id, {
            "action": {"type": "card-action", "parameters": {"type": "label", "labelId": "L9"}},
        })
        assert updated.action.parameters.type == "label"
        assert updated.action.parameters.label_id == "L9"

    def test_update_trigger_merges(self, store):
        rule_id = store.create_rule("b1", "Colour", label_trigger(), color_action())
        updated = store.update_rule(rule_id, {"trigger": {"userId": "u7"}})
        assert updated.trigger.user_id == "u7"
        assert updated.trigger.activity_type == "addedLabel"
        assert updated.trigger.conditions[0].field == "labelId"

    def test_invalid_update_leaves_rule_unchanged(self, store):
        rule_id = store.create_rule("b1", "Colour", label_trigger(), color_action())
        with pytest.raises(InvalidActionError):
            store.update_rule(rule_id, {"action": {"parameters": {"color": ""}}})
        with pytest.raises(InvalidTriggerError):
            store.update_rule(rule_id, {"trigger": {"activityType": "bogus"}})
        rule = store.get_rule(rule_id)
        assert rule.action.parameters.color == "red"
        assert rule.trigger.activity_type == "addedLabel"

    def test_update_missing_rule(self, store):
        with pytest.raises(RuleNotFoundError):
            store.update_rule("missing", {"title": "x"})

    def test_update_unknown_field(self, store):
        rule_id = store.create_rule("b1", "Colour", label_trigger(), color_action())
        with pytest.raises(ValueError, match="boardId"):
            store.update_rule(rule_id, {"boardId": "b2"})

    def test_update_bumps_updated_at(self, rule_repo, storage):
        times = iter([datetime(2024, 1, 1), datetime(2024, 1, 1) + timedelta(hours=1)])
        store = RuleStore(rule_repo, storage, clock=lambda: next(times))
        rule_id = store.create_rule("b1", "t", label_trigger(), color_action())
        updated = store.update_rule(rule_id, {"title": "t2"})
        assert updated.updated_at > updated.created_at

    def test_enable_disable(self, store):
        rule_id = store.create_rule("b1", "Colour", label_trigger(), color_action())
        store.set_enabled(rule_id, False)
        assert not store.get_rule(rule_id).enabled
        assert [r.id for r in store.list_rules("b1")] == [rule_id]
        store.set_enabled(rule_id, True)
        assert store.get_rule(rule_id).enabled


class TestDelete:
    def test_delete_is_idempotent(self, store):
        rule_id = store.create_rule("b1", "Colour", label_trigger(), color_action())
        store.delete_rule(rule_id)
        store.delete_rule(rule_id)
        assert all(r.id != rule_id for r in store.list_rules("b1"))

    def test_delete_unknown_id(self, store):
        store.delete_rule("never-existed")

    def test_get_after_delete(self, store):
        rule_id = store.create_rule("b1", "Colour", label_trigger(), color_action())
        store.delete_rule(rule_id)
        with pytest.raises(RuleNotFoundError):
            store.get_rule(rule_id)

    def test_trigger_and_action_removed_with_rule(self, store, rule_repo):
        rule_id = store.create_rule("b1", "Colour", label_trigger(), color_action())
        store.create_rule("b1", "Keep", label_trigger(), color_action())
        store.delete_rule(rule_id)
        assert rule_repo.orphan_counts() == (0, 0)
        assert len(store.list_rules("b1")) == 1
