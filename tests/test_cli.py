"""End-to-end tests for the command line verbs."""

import json
from pathlib import Path

import pytest

from kanban_md.__main__ import main, parse_args


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch):
    """Keep KANBAN_* variables from the outer environment out of the tests."""
    for name in ("KANBAN_DIR", "KANBAN_OUTPUT", "KANBAN_VERBOSE", "KANBAN_LOG_FILE", "KANBAN_NO_COLOR"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def cli(tmp_path: Path, capsys: pytest.CaptureFixture):
    """Run a verb against a board in tmp_path; returns (exit code, parsed JSON)."""
    board = tmp_path / "board"

    def run(*args: str):
        with pytest.raises(SystemExit) as exc_info:
            main(["--dir", str(board), "--json", *args])
        out = capsys.readouterr().out
        return exc_info.value.code, json.loads(out) if out.strip() else None

    run.board = board
    return run


@pytest.fixture
def board(cli):
    code, _ = cli("init", "--name", "demo")
    assert code == 0
    return cli


class TestParseArgs:
    def test_global_flags_after_verb(self):
        args = parse_args(["list", "--json", "--dir", "/tmp/x"])
        assert args.command == "list"
        assert args.format == "json"
        assert args.dir == Path("/tmp/x")

    def test_format_flags_exclusive(self):
        with pytest.raises(SystemExit):
            parse_args(["--json", "--table", "list"])


class TestInit:
    """Tests for init."""

    def test_init(self, cli):
        code, data = cli("init", "--name", "demo")
        assert code == 0
        assert data == {"status": "initialized", "dir": str(cli.board), "name": "demo"}
        assert (cli.board / "config.yml").is_file()

    def test_init_twice(self, board):
        code, data = board("init")
        assert code == 1
        assert data["code"] == "BOARD_EXISTS"

    def test_custom_statuses(self, cli):
        code, _ = cli("init", "--statuses", "open,doing,closed", "--wip-limit", "doing:2")
        assert code == 0
        _, task = cli("add", "First")
        assert task["status"] == "open"

    def test_missing_board(self, cli):
        code, data = cli("list")
        assert code == 1
        assert data["code"] == "BOARD_NOT_FOUND"
        assert set(data) == {"error", "code", "details"}


class TestTaskVerbs:
    """Tests for add, show, list and edit."""

    def test_add_and_show(self, board):
        code, created = board("add", "Fix login", "--priority", "high", "--tags", "auth,ui")
        assert code == 0
        assert created["id"] == 1
        assert created["status"] == "backlog"
        assert created["tags"] == ["auth", "ui"]

        _, shown = board("show", "#1")
        assert shown["title"] == "Fix login"
        assert shown["priority"] == "high"

    def test_add_invalid_priority(self, board):
        code, data = board("add", "X", "--priority", "urgent")
        assert code == 1
        assert data["code"] == "INVALID_PRIORITY"

    def test_show_missing(self, board):
        code, data = board("show", "42")
        assert code == 1
        assert data["code"] == "TASK_NOT_FOUND"

    def test_invalid_id(self, board):
        code, data = board("show", "abc")
        assert code == 1
        assert data["code"] == "INVALID_TASK_ID"

    def test_list_filters_and_sorts(self, board):
        board("add", "Low", "--priority", "low")
        board("add", "High", "--priority", "high", "--tags", "api")
        board("add", "Medium")

        _, tasks = board("list", "--sort", "priority")
        assert [t["title"] for t in tasks] == ["Low", "Medium", "High"]

        _, tasks = board("list", "--tag", "api")
        assert [t["id"] for t in tasks] == [2]

        _, tasks = board("list", "--sort", "id", "-n", "2", "--reverse")
        assert [t["id"] for t in tasks] == [3, 2]

    def test_list_unknown_status(self, board):
        code, data = board("list", "--status", "nope")
        assert code == 1
        assert data["code"] == "INVALID_STATUS"

    def test_list_group_by(self, board):
        board("add", "One", "--assignee", "ann")
        board("add", "Two")
        code, groups = board("list", "--group-by", "assignee")
        assert code == 0
        assert len(groups) == 2

    def test_edit(self, board):
        board("add", "Old")
        code, task = board("edit", "1", "--title", "New", "--add-tag", "x", "--due", "2025-07-01")
        assert code == 0
        assert task["title"] == "New"
        assert task["tags"] == ["x"]
        assert task["due"] == "2025-07-01"


class TestWorkflow:
    """Tests for moves, claims and the agent verbs."""

    def test_move_requires_claim(self, board):
        board("add", "Work")
        code, data = board("move", "1", "in-progress")
        assert code == 1
        assert data["code"] == "CLAIM_REQUIRED"

        code, task = board("move", "1", "in-progress", "--claim", "agent")
        assert code == 0
        assert task["status"] == "in-progress"
        assert task["claimed_by"] == "agent"
        assert task["changed"] is True

    def test_move_needs_a_target(self, board):
        board("add", "Work")
        code, data = board("move", "1")
        assert code == 1
        assert data["code"] == "INVALID_INPUT"

    def test_move_prev_at_first_status(self, board):
        board("add", "Work")
        code, data = board("move", "1", "--prev")
        assert code == 1
        assert data["code"] == "BOUNDARY_ERROR"

    def test_batch_reports_each_id(self, board):
        board("add", "One")
        board("add", "Two")
        code, results = board("priority", "1,2,9", "high")
        assert code == 1
        assert results[0] == {"id": 1, "ok": True}
        assert results[1] == {"id": 2, "ok": True}
        assert results[2]["ok"] is False
        assert results[2]["code"] == "TASK_NOT_FOUND"

    def test_pick(self, board):
        board("add", "Low", "--priority", "low")
        board("add", "Urgent", "--priority", "critical")

        code, task = board("pick", "--claim", "agent", "--status", "backlog")
        assert code == 0
        assert task["id"] == 2
        assert task["claimed_by"] == "agent"

    def test_pick_nothing(self, board):
        code, data = board("pick", "--claim", "agent")
        assert code == 1
        assert data["code"] == "NOTHING_TO_PICK"

    def test_claim_conflict(self, board):
        board("add", "Work")
        board("claim", "1", "agent-a")
        code, data = board("claim", "1", "agent-b")
        assert code == 1
        assert data["code"] == "TASK_CLAIMED"

        code, task = board("claim", "1", "agent-b", "--force")
        assert code == 0
        assert task["claimed_by"] == "agent-b"

    def test_block_and_unblock(self, board):
        board("add", "Work")
        _, task = board("block", "1", "waiting on review")
        assert task["blocked"] is True
        assert task["block_reason"] == "waiting on review"
        _, task = board("unblock", "1")
        assert task["blocked"] is False


class TestDelete:
    """Tests for soft delete."""

    def test_delete_needs_force_without_terminal(self, board):
        board("add", "Doomed")
        code, data = board("delete", "1")
        assert code == 1
        assert data["code"] == "INVALID_INPUT"

    def test_delete_archives(self, board):
        board("add", "Doomed")
        code, task = board("delete", "1", "--force")
        assert code == 0
        assert task["status"] == "archived"

        _, tasks = board("list")
        assert tasks == []
        _, tasks = board("list", "--archived")
        assert [t["id"] for t in tasks] == [1]


class TestReports:
    """Tests for log, check, board and context."""

    def test_log(self, board):
        board("add", "One")
        board("add", "Two")
        board("priority", "2", "high")

        _, entries = board("log", "--task", "2")
        assert [e["action"] for e in entries] == ["create", "priority"]

        _, entries = board("log", "--action", "create")
        assert [e["task_id"] for e in entries] == [1, 2]

    def test_check_clean_board(self, board):
        board("add", "One")
        code, report = board("check")
        assert code == 0
        assert report == {"warnings": [], "repairs": []}

    def test_board_summary(self, board):
        board("add", "One")
        code, summary = board("board")
        assert code == 0
        assert summary["total_tasks"] == 1

    def test_context_write_to(self, board, tmp_path: Path):
        board("add", "One")
        target = tmp_path / "AGENTS.md"
        code, data = board("context", "--write-to", str(target))
        assert code == 0
        assert data == {"status": "written", "file": str(target)}
        assert target.read_text().count("kanban-md") >= 1

    def test_context_unknown_section(self, board):
        code, data = board("context", "--sections", "nope")
        assert code == 1
        assert data["code"] == "INVALID_INPUT"


class TestConfig:
    """Tests for showing and changing config.yml through the config verb."""

    def test_show_all(self, board):
        code, values = board("config")
        assert code == 0
        assert values["board.name"] == "demo"
        assert values["statuses"][0] == "backlog"
        assert values["next_id"] == 1

    def test_get(self, board):
        code, value = board("config", "get", "defaults.priority")
        assert code == 0
        assert value == "medium"

    def test_set_persists(self, board):
        code, data = board("config", "set", "board.name", "renamed")
        assert code == 0
        assert data == {"key": "board.name", "value": "renamed"}

        _, value = board("config", "get", "board.name")
        assert value == "renamed"
        text = (board.board / "config.yml").read_text()
        assert text.startswith("# kanban-md board configuration")
        assert "name: renamed" in text

    def test_set_default_status_used_by_add(self, board):
        board("config", "set", "defaults.status", "todo")
        _, task = board("add", "First")
        assert task["status"] == "todo"

    def test_set_invalid_default_status(self, board):
        before = (board.board / "config.yml").read_text()
        code, data = board("config", "set", "defaults.status", "nope")
        assert code == 1
        assert data["code"] == "INVALID_INPUT"
        assert "default status 'nope' not in statuses" in data["error"]
        assert (board.board / "config.yml").read_text() == before

    def test_set_read_only_key(self, board):
        code, data = board("config", "set", "statuses", "a,b")
        assert code == 1
        assert data["code"] == "INVALID_INPUT"
        assert data["error"] == "config key 'statuses' is read-only"

    def test_unknown_key(self, board):
        code, data = board("config", "get", "nope")
        assert code == 1
        assert data == {"error": "unknown config key 'nope'", "code": "INVALID_INPUT", "details": {"key": "nope"}}

    def test_set_needs_value(self, board):
        code, data = board("config", "set", "board.name")
        assert code == 1
        assert data["code"] == "INVALID_INPUT"
