"""CLI tests for wekan-rules -- all command groups via Click's CliRunner.

Each test uses runner.isolated_filesystem() with a file-backed database,
seeded through RulesBoard where the command under test only reads.
"""

from __future__ import annotations

import json
import logging

import pytest
from click.testing import CliRunner

from fakes import FakeBoard
from wekan_rules.board import RulesBoard
from wekan_rules.cli import cli
from wekan_rules.models.activity import ActivityEvent

TRIGGER = json.dumps({
    "activityType": "addedLabel",
    "conditions": [{"field": "labelId", "value": "L1"}],
})
ACTION = json.dumps({"type": "card-action", "parameters": {"type": "set-color", "color": "red"}})


@pytest.fixture
def runner():
    """Create a Click test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def restore_logging():
    """The cli group reconfigures the root logger; undo it after each test."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def _invoke(runner: CliRunner, *args: str):
    # wide terminal so table cells are not truncated
    return runner.invoke(cli, ["--db", "test.db", *args], env={"COLUMNS": "200"})


def _setup_rules(db_path: str) -> list[str]:
    """Two rules on b1, one on b2. Returns their ids."""
    with RulesBoard.open(db_path) as rb:
        return [
            rb.rules.create_rule("b1", "Red on L1", json.loads(TRIGGER), json.loads(ACTION)),
            rb.rules.create_rule("b1", "Also red", json.loads(TRIGGER), json.loads(ACTION)),
            rb.rules.create_rule("b2", "Other board", json.loads(TRIGGER), json.loads(ACTION)),
        ]


def _rule_ids(db_path: str, board_id: str) -> list[str]:
    with RulesBoard.open(db_path) as rb:
        return [r.id for r in rb.rules.list_rules(board_id)]


# ---------------------------------------------------------------------------
# rules
# ---------------------------------------------------------------------------


class TestRules:
    def test_add(self, runner: CliRunner):
        with runner.isolated_filesystem():
            result = _invoke(
                runner, "rules", "add", "b1", "Colour it", "--trigger", TRIGGER, "--action", ACTION,
                "--actor", "u-admin",
            )
            assert result.exit_code == 0, result.output
            assert "Created rule" in result.output

            (rule_id,) = _rule_ids("test.db", "b1")
            assert rule_id in result.output
            with RulesBoard.open("test.db") as rb:
                assert rb.rules.get_rule(rule_id).actor_id == "u-admin"

    def test_add_invalid_json(self, runner: CliRunner):
        with runner.isolated_filesystem():
            result = _invoke(runner, "rules", "add", "b1", "t", "--trigger", "{nope", "--action", ACTION)
            assert result.exit_code == 2
            assert "not valid JSON" in result.output

    def test_add_rejected_by_validation(self, runner: CliRunner):
        with runner.isolated_filesystem():
            mail = json.dumps({"type": "mail-action", "parameters": {"to": "ops@example.com"}})
            result = _invoke(runner, "rules", "add", "b1", "Mail", "--trigger", TRIGGER, "--action", mail)
            assert result.exit_code == 1
            assert "Error" in result.output
            assert _rule_ids("test.db", "b1") == []

    def test_list(self, runner: CliRunner):
        with runner.isolated_filesystem():
            _setup_rules("test.db")
            result = _invoke(runner, "rules", "list")
            assert result.exit_code == 0
            assert "Red on L1" in result.output
            assert "Other board" in result.output

            result = _invoke(runner, "rules", "list", "b2")
            assert "Other board" in result.output
            assert "Red on L1" not in result.output

    def test_list_empty(self, runner: CliRunner):
        with runner.isolated_filesystem():
            result = _invoke(runner, "rules", "list")
            assert result.exit_code == 0
            assert "No rules" in result.output

    def test_show_by_prefix(self, runner: CliRunner):
        with runner.isolated_filesystem():
            rule_id = _setup_rules("test.db")[0]
            result = _invoke(runner, "rules", "show", rule_id[:12])
            assert result.exit_code == 0, result.output
            assert rule_id in result.output
            assert "set-color" in result.output
            assert "addedLabel" in result.output

    def test_show_unknown(self, runner: CliRunner):
        with runner.isolated_filesystem():
            _setup_rules("test.db")
            result = _invoke(runner, "rules", "show", "zzzz")
            assert result.exit_code == 1
            assert "Error" in result.output

    def test_disable_enable(self, runner: CliRunner):
        with runner.isolated_filesystem():
            rule_id = _setup_rules("test.db")[0]

            result = _invoke(runner, "rules", "disable", rule_id)
            assert result.exit_code == 0
            assert "Disabled rule" in result.output
            with RulesBoard.open("test.db") as rb:
                assert not rb.rules.get_rule(rule_id).enabled

            result = _invoke(runner, "rules", "enable", rule_id)
            assert "Enabled rule" in result.output
            with RulesBoard.open("test.db") as rb:
                assert rb.rules.get_rule(rule_id).enabled

    def test_delete(self, runner: CliRunner):
        with runner.isolated_filesystem():
            ids = _setup_rules("test.db")
            result = _invoke(runner, "rules", "delete", ids[0])
            assert result.exit_code == 0
            assert _rule_ids("test.db", "b1") == [ids[1]]

            # deleting again is not an error
            result = _invoke(runner, "rules", "delete", ids[0])
            assert result.exit_code == 0
            assert "nothing deleted" in result.output

    def test_delete_by_prefix(self, runner: CliRunner):
        with runner.isolated_filesystem():
            ids = _setup_rules("test.db")
            result = _invoke(runner, "rules", "delete", ids[0][:12])
            assert result.exit_code == 0, result.output
            assert "Deleted rule" in result.output
            assert _rule_ids("test.db", "b1") == [ids[1]]


# ---------------------------------------------------------------------------
# roles
# ---------------------------------------------------------------------------


class TestRoles:
    def test_assign_and_show(self, runner: CliRunner):
        with runner.isolated_filesystem():
            result = _invoke(runner, "roles", "assign", "u1", "b1", "Normal")
            assert result.exit_code == 0
            assert "u1 is now Normal on b1" in result.output
            _invoke(runner, "roles", "assign", "u2", "b1", "CommentOnly")

            result = _invoke(runner, "roles", "show", "--board", "b1")
            assert "u1" in result.output
            assert "CommentOnly" in result.output

            result = _invoke(runner, "roles", "show", "--user", "u1")
            assert "b1" in result.output

    def test_assign_unknown_role(self, runner: CliRunner):
        with runner.isolated_filesystem():
            result = _invoke(runner, "roles", "assign", "u1", "b1", "Overlord")
            assert result.exit_code == 2

    def test_show_needs_one_filter(self, runner: CliRunner):
        with runner.isolated_filesystem():
            assert _invoke(runner, "roles", "show").exit_code == 1
            assert _invoke(runner, "roles", "show", "--board", "b1", "--user", "u1").exit_code == 1

    def test_check(self, runner: CliRunner):
        with runner.isolated_filesystem():
            _invoke(runner, "roles", "assign", "u1", "b1", "CommentOnly")

            result = _invoke(runner, "roles", "check", "u1", "b1", "comments.create")
            assert result.exit_code == 0
            assert "allowed" in result.output

            result = _invoke(runner, "roles", "check", "u1", "b1", "cards.edit")
            assert result.exit_code == 1
            assert "denied" in result.output

    def test_revoke(self, runner: CliRunner):
        with runner.isolated_filesystem():
            _invoke(runner, "roles", "assign", "u1", "b1", "BoardAdmin")
            assert _invoke(runner, "roles", "revoke", "u1", "b1").exit_code == 0

            result = _invoke(runner, "roles", "check", "u1", "b1", "board.view")
            assert result.exit_code == 1
            assert "no role" in result.output


# ---------------------------------------------------------------------------
# log
# ---------------------------------------------------------------------------


def _setup_log(db_path: str) -> str:
    fake = FakeBoard()
    fake.fail_on.add("set_card_color")
    event = ActivityEvent(
        activity_type="addedLabel", board_id="b1", card_id="c1", payload={"labelId": "L1"},
    )
    with RulesBoard.open(db_path, board_api=fake, directory=fake) as rb:
        rb.roles.assign_role("u-admin", "b1", "BoardAdmin")
        rule_id = rb.rules.create_rule(
            "b1", "Red", json.loads(TRIGGER), json.loads(ACTION), actor_id="u-admin"
        )
        rb.on_activity(event)
        fake.fail_on.clear()
        rb.on_activity(event)
    return rule_id


class TestLog:
    def test_shows_entries(self, runner: CliRunner):
        with runner.isolated_filesystem():
            rule_id = _setup_log("test.db")
            result = _invoke(runner, "log")
            assert result.exit_code == 0
            assert rule_id[:8] in result.output
            assert "executed" in result.output
            assert "CollaboratorError" in result.output

    def test_outcome_filter(self, runner: CliRunner):
        with runner.isolated_filesystem():
            _setup_log("test.db")
            result = _invoke(runner, "log", "--outcome", "executed")
            assert "CollaboratorError" not in result.output

    def test_empty(self, runner: CliRunner):
        with runner.isolated_filesystem():
            result = _invoke(runner, "log", "--board", "b9")
            assert result.exit_code == 0
            assert "No log entries" in result.output

    def test_prune(self, runner: CliRunner):
        with runner.isolated_filesystem():
            _setup_log("test.db")
            result = _invoke(runner, "log", "--prune-days", "1")
            assert "Pruned 0 log entries" in result.output

            result = _invoke(runner, "log", "--prune-days", "0")
            assert result.exit_code == 0
            assert "Pruned 2 log entries" in result.output


# ---------------------------------------------------------------------------
# migrate
# ---------------------------------------------------------------------------


BOARDS = [
    {
        "_id": "b1",
        "title": "Roadmap",
        "members": [
            {"userId": "u1", "isAdmin": True},
            {"userId": "u2", "isCommentOnly": True},
            {"userId": "u3"},
        ],
    },
    {"_id": "b2", "members": []},
]


class TestMigrate:
    def test_migrate(self, runner: CliRunner):
        with runner.isolated_filesystem():
            with open("boards.json", "w") as f:
                json.dump(BOARDS, f)
            result = _invoke(runner, "migrate", "boards.json")
            assert result.exit_code == 0, result.output
            assert "Migrated 3 member(s) on 1 board(s)" in result.output

            result = _invoke(runner, "roles", "check", "u2", "b1", "cards.edit")
            assert "CommentOnly" in result.output

    def test_verify_pending(self, runner: CliRunner):
        with runner.isolated_filesystem():
            with open("boards.json", "w") as f:
                json.dump(BOARDS, f)
            result = _invoke(runner, "migrate", "boards.json", "--verify")
            assert result.exit_code == 1
            assert "2 of 3" in result.output

    def test_verify_complete(self, runner: CliRunner):
        with runner.isolated_filesystem():
            with open("boards.json", "w") as f:
                json.dump([{"_id": "b1", "members": [{"userId": "u1"}]}], f)
            result = _invoke(runner, "migrate", "boards.json", "--verify")
            assert result.exit_code == 0
            assert "Migration complete" in result.output

    def test_not_a_list(self, runner: CliRunner):
        with runner.isolated_filesystem():
            with open("boards.json", "w") as f:
                json.dump({"_id": "b1"}, f)
            result = _invoke(runner, "migrate", "boards.json")
            assert result.exit_code == 2


def test_envvar_db(runner: CliRunner):
    with runner.isolated_filesystem():
        _setup_rules("other.db")
        result = runner.invoke(cli, ["rules", "list"], env={"WEKAN_RULES_DB": "other.db", "COLUMNS": "200"})
        assert "Red on L1" in result.output
