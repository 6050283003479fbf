"""Tests for BoardService: moves, claims, WIP limits and agent workflow."""

from datetime import datetime, timedelta

import pytest

from kanban_md.errors import ErrorCode, KanbanError
from kanban_md.models import ARCHIVED_STATUS
from kanban_md.repositories import FilesystemRepository
from kanban_md.services import ActivityLog, BoardService, ConfigService, Filter, FilterService, PickOptions


def error_code(exc_info: pytest.ExceptionInfo) -> ErrorCode:
    return exc_info.value.code


@pytest.fixture
def no_claims(update_config):
    """Board where no status requires a claim."""
    return update_config(require_claim_for=[])


class TestMove:
    """Tests for status transitions."""

    def test_move_sets_started_and_logs(
        self,
        board_service: BoardService,
        activity_log: ActivityLog,
        make_task,
        update_config,
        now: datetime,
    ):
        """Leaving the first status stamps started and appends a move entry."""
        update_config(require_claim_for=[], wip_limits={"todo": 1})
        make_task(1, status="todo")

        result = board_service.move(1, "in-progress", now=now)

        assert result.changed
        assert result.task.started == now
        assert board_service.get_task(1).status == "in-progress"
        last = activity_log.read()[-1]
        assert (last.action, last.task_id, last.detail) == ("move", 1, "todo -> in-progress")

    def test_same_status_is_noop(self, board_service: BoardService, activity_log: ActivityLog, make_task, no_claims):
        make_task(1, status="todo")
        result = board_service.move(1, "todo")
        assert not result.changed
        assert activity_log.read() == []

    def test_invalid_status(self, board_service: BoardService, make_task):
        make_task(1)
        with pytest.raises(KanbanError) as exc_info:
            board_service.move(1, "nope")
        assert error_code(exc_info) is ErrorCode.INVALID_STATUS

    def test_missing_task(self, board_service: BoardService):
        with pytest.raises(KanbanError) as exc_info:
            board_service.move(42, "todo")
        assert error_code(exc_info) is ErrorCode.TASK_NOT_FOUND

    def test_done_sets_completed_and_reopen_clears_it(
        self, board_service: BoardService, make_task, no_claims, now: datetime
    ):
        make_task(1, status="review")
        done = board_service.move(1, "done", now=now).task
        assert done.completed == now
        assert done.started == now

        later = now + timedelta(hours=1)
        reopened = board_service.move(1, "todo", now=later).task
        assert reopened.completed is None
        assert reopened.started == now

    def test_next_and_prev(self, board_service: BoardService, make_task, no_claims):
        make_task(1, status="backlog")
        assert board_service.move_next(1).task.status == "todo"
        assert board_service.move_prev(1).task.status == "backlog"

    def test_boundaries(self, board_service: BoardService, make_task, no_claims):
        make_task(1, status="backlog")
        make_task(2, status="done")
        with pytest.raises(KanbanError) as exc_info:
            board_service.move_prev(1)
        assert error_code(exc_info) is ErrorCode.BOUNDARY_ERROR
        with pytest.raises(KanbanError) as exc_info:
            board_service.move_next(2)
        assert error_code(exc_info) is ErrorCode.BOUNDARY_ERROR

    def test_blocked_task_moves_with_warning(self, board_service: BoardService, make_task, no_claims):
        make_task(1, status="todo", blocked=True, block_reason="waiting on API")
        result = board_service.move(1, "in-progress")
        assert result.warnings == ["task #1 is blocked (waiting on API)"]


class TestWipLimits:
    """Tests for column and class WIP limits."""

    def test_column_limit(self, board_service: BoardService, repo: FilesystemRepository, make_task, update_config):
        update_config(require_claim_for=[], wip_limits={"in-progress": 1})
        make_task(1, status="in-progress")
        make_task(2, status="todo")

        with pytest.raises(KanbanError) as exc_info:
            board_service.move(2, "in-progress")

        assert error_code(exc_info) is ErrorCode.WIP_LIMIT_EXCEEDED
        assert exc_info.value.details == {"status": "in-progress", "limit": 1, "current": 1}
        assert repo.find_by_id(2).status == "todo"

    def test_force_overrides_limit(self, board_service: BoardService, make_task, update_config):
        update_config(require_claim_for=[], wip_limits={"in-progress": 1})
        make_task(1, status="in-progress")
        make_task(2, status="todo")

        result = board_service.move(2, "in-progress", force=True)

        assert result.task.status == "in-progress"
        assert "overridden" in result.warnings[0]

    def test_expedite_bypasses_column_limit(self, board_service: BoardService, make_task, update_config):
        update_config(require_claim_for=[], wip_limits={"in-progress": 1})
        make_task(1, status="in-progress")
        make_task(2, status="todo", class_="expedite")

        assert board_service.move(2, "in-progress").task.status == "in-progress"

    def test_class_limit(self, board_service: BoardService, make_task, no_claims):
        """Only one expedite task may be in flight by default."""
        make_task(1, status="in-progress", class_="expedite")
        make_task(2, status="backlog", class_="expedite")

        with pytest.raises(KanbanError) as exc_info:
            board_service.move(2, "todo")

        assert error_code(exc_info) is ErrorCode.CLASS_WIP_EXCEEDED

    def test_class_limit_ignores_done(self, board_service: BoardService, make_task, no_claims):
        make_task(1, status="done", class_="expedite")
        make_task(2, status="backlog", class_="expedite")
        assert board_service.move(2, "todo").changed


class TestClaims:
    """Tests for the claim guard and claim requirements."""

    def test_claim_required_for_active_status(self, board_service: BoardService, make_task):
        make_task(1, status="backlog")
        with pytest.raises(KanbanError) as exc_info:
            board_service.move(1, "todo")
        assert error_code(exc_info) is ErrorCode.CLAIM_REQUIRED

    def test_move_with_claim(self, board_service: BoardService, activity_log: ActivityLog, make_task, now: datetime):
        make_task(1, status="backlog")

        task = board_service.move(1, "todo", claim="agent-a", now=now).task

        assert (task.claimed_by, task.claimed_at) == ("agent-a", now)
        assert [e.action for e in activity_log.read()] == ["claim", "move"]

    def test_other_agent_blocked(self, board_service: BoardService, make_task, now: datetime):
        make_task(1, status="todo", claimed_by="agent-a", claimed_at=now)

        with pytest.raises(KanbanError) as exc_info:
            board_service.move(1, "in-progress", claim="agent-b", now=now + timedelta(minutes=10))

        assert error_code(exc_info) is ErrorCode.TASK_CLAIMED
        assert exc_info.value.details["remaining"] == "0h 50m"

    def test_force_takes_over(self, board_service: BoardService, make_task, now: datetime):
        make_task(1, status="todo", claimed_by="agent-a", claimed_at=now)
        task = board_service.move(1, "in-progress", claim="agent-b", force=True, now=now).task
        assert task.claimed_by == "agent-b"

    def test_expired_claim_cleared(self, board_service: BoardService, make_task, now: datetime):
        make_task(1, status="todo", claimed_by="agent-a", claimed_at=now - timedelta(hours=2))
        task = board_service.move(1, "in-progress", claim="agent-b", now=now).task
        assert task.claimed_by == "agent-b"

    def test_same_status_ignores_other_claim(
        self, board_service: BoardService, activity_log: ActivityLog, make_task, now: datetime
    ):
        """Moving a task to the status it already has succeeds even when another agent holds it."""
        make_task(1, status="todo", claimed_by="other", claimed_at=now)
        result = board_service.move(1, "todo", now=now + timedelta(minutes=1))
        assert not result.changed
        assert result.task.claimed_by == "other"
        assert activity_log.read() == []

    def test_same_status_with_claim_still_guarded(self, board_service: BoardService, make_task, now: datetime):
        make_task(1, status="todo", claimed_by="other", claimed_at=now)
        with pytest.raises(KanbanError) as exc_info:
            board_service.move(1, "todo", claim="agent", now=now + timedelta(minutes=1))
        assert error_code(exc_info) is ErrorCode.TASK_CLAIMED

    def test_same_agent_passes(self, board_service: BoardService, make_task, now: datetime):
        make_task(1, status="todo", claimed_by="agent-a", claimed_at=now)
        assert board_service.move(1, "in-progress", claim="agent-a", now=now).changed

    def test_claim_and_release(self, board_service: BoardService, activity_log: ActivityLog, make_task, now: datetime):
        make_task(1)
        assert board_service.claim(1, "agent-a", now=now).claimed_by == "agent-a"
        released = board_service.release(1, now=now)
        assert released.claimed_by == ""
        assert released.claimed_at is None
        assert [e.action for e in activity_log.read()] == ["claim", "release"]

    def test_release_unclaimed_is_noop(self, board_service: BoardService, activity_log: ActivityLog, make_task):
        make_task(1)
        board_service.release(1)
        assert activity_log.read() == []

    def test_claim_needs_agent(self, board_service: BoardService, make_task):
        make_task(1)
        with pytest.raises(KanbanError) as exc_info:
            board_service.claim(1, "")
        assert error_code(exc_info) is ErrorCode.INVALID_INPUT

    def test_interactive_service_skips_guards(
        self,
        repo: FilesystemRepository,
        config_service: ConfigService,
        activity_log: ActivityLog,
        make_task,
        now: datetime,
    ):
        """With enforce_claims off, claims and claim requirements are ignored."""
        service = BoardService(repo, config_service, activity_log, enforce_claims=False)
        make_task(1, status="backlog", claimed_by="agent-a", claimed_at=now)

        task = service.move(1, "in-progress", now=now).task

        assert task.status == "in-progress"
        assert task.claimed_by == "agent-a"


class TestBlockAndPriority:
    """Tests for blocking and priority changes."""

    def test_block_and_unblock(self, board_service: BoardService, make_task):
        make_task(1)
        blocked = board_service.block(1, "waiting on review")
        assert (blocked.blocked, blocked.block_reason) == (True, "waiting on review")
        unblocked = board_service.unblock(1)
        assert (unblocked.blocked, unblocked.block_reason) == (False, "")

    def test_corrupt_activity_log_does_not_fail_mutation(
        self, board_service: BoardService, activity_log: ActivityLog, make_task
    ):
        """Undecodable bytes in activity.jsonl never undo or fail a change."""
        make_task(1)
        activity_log.path.write_bytes(b"\xff\xfe garbage\n")
        assert board_service.block(1, "waiting").blocked
        assert board_service.get_task(1).blocked
        assert [e.action for e in activity_log.read()] == ["block"]

    def test_block_requires_reason(self, board_service: BoardService, make_task):
        make_task(1)
        with pytest.raises(KanbanError):
            board_service.block(1, "  ")

    def test_raise_and_lower(self, board_service: BoardService, activity_log: ActivityLog, make_task):
        make_task(1, priority="medium")
        assert board_service.raise_priority(1).priority == "high"
        assert board_service.lower_priority(1).priority == "medium"
        assert activity_log.read()[0].detail == "medium -> high"

    def test_raise_at_top(self, board_service: BoardService, make_task):
        make_task(1, priority="critical")
        with pytest.raises(KanbanError) as exc_info:
            board_service.raise_priority(1)
        assert error_code(exc_info) is ErrorCode.INVALID_INPUT

    def test_set_invalid_priority(self, board_service: BoardService, make_task):
        make_task(1)
        with pytest.raises(KanbanError) as exc_info:
            board_service.set_priority(1, "urgent")
        assert error_code(exc_info) is ErrorCode.INVALID_PRIORITY


class TestSoftDelete:
    """Tests for delete and archive."""

    def test_delete_archives_and_reopens(
        self,
        board_service: BoardService,
        repo: FilesystemRepository,
        config_service: ConfigService,
        activity_log: ActivityLog,
        make_task,
        now: datetime,
    ):
        """A deleted task stays on disk, leaves listings and can be moved back."""
        task = make_task(1, status="done", completed=now)
        path = task.file

        result = board_service.delete(1, now=now)

        assert result.task.status == ARCHIVED_STATUS
        assert result.task.completed == now
        assert path.exists()
        assert activity_log.read()[-1].action == "delete"

        tasks = repo.read_all()
        filters = FilterService(config_service.get_config())
        assert filters.apply(tasks, Filter()) == []
        assert [t.id for t in filters.apply(tasks, Filter(statuses=[ARCHIVED_STATUS]))] == [1]

        reopened = board_service.move(1, "todo", claim="agent", now=now).task
        assert reopened.status == "todo"
        assert reopened.completed is None

    def test_delete_warns_about_dependents(self, board_service: BoardService, make_task):
        make_task(1)
        make_task(2, depends_on=[1])
        result = board_service.delete(1)
        assert result.warnings == ["task #2 depends on #1"]

    def test_archive_twice_is_noop(self, board_service: BoardService, make_task):
        make_task(1)
        board_service.archive(1)
        assert not board_service.archive(1).changed


class TestAgentWorkflow:
    """Tests for pick, handoff and batches."""

    def test_pick_claims_and_moves(
        self, board_service: BoardService, activity_log: ActivityLog, make_task, now: datetime
    ):
        make_task(1, status="todo", priority="low")
        make_task(2, status="todo", priority="high")

        result = board_service.pick("agent-a", move_to="in-progress", now=now)

        assert result.task.id == 2
        assert result.task.status == "in-progress"
        assert result.task.claimed_by == "agent-a"
        assert board_service.get_task(2).claimed_at == now
        assert [e.action for e in activity_log.read()] == ["claim", "move"]

    def test_pick_uses_configured_timeout(self, board_service: BoardService, make_task, now: datetime):
        make_task(1, status="todo", claimed_by="agent-a", claimed_at=now - timedelta(hours=2))
        assert board_service.pick("agent-b", now=now).task.claimed_by == "agent-b"

    def test_pick_respects_disabled_timeout(self, board_service: BoardService, make_task, update_config, now: datetime):
        update_config(claim_timeout="")
        make_task(1, status="todo", claimed_by="agent-a", claimed_at=now - timedelta(hours=2))
        with pytest.raises(KanbanError) as exc_info:
            board_service.pick("agent-b", now=now)
        assert error_code(exc_info) is ErrorCode.NOTHING_TO_PICK

    def test_pick_with_status_filter(self, board_service: BoardService, make_task):
        make_task(1, status="backlog")
        result = board_service.pick("agent", PickOptions(statuses=["backlog"]))
        assert result.task.id == 1
        assert not result.changed

    def test_handoff(self, board_service: BoardService, activity_log: ActivityLog, make_task, now: datetime):
        make_task(1, status="in-progress", claimed_by="agent-a", claimed_at=now, body="Notes\n")

        result = board_service.handoff(1, "agent-a", note="ready for review", timestamp=True, now=now)

        task = result.task
        assert task.status == "review"
        assert task.claimed_by == "agent-a"
        assert task.body == "Notes\n\n[2025-06-01 12:00] ready for review\n"
        assert [e.action for e in activity_log.read()] == ["move", "handoff"]

    def test_handoff_block_and_release(self, board_service: BoardService, make_task, now: datetime):
        make_task(1, status="in-progress", claimed_by="agent-a", claimed_at=now)

        task = board_service.handoff(1, "agent-a", block_reason="needs design", release=True, now=now).task

        assert task.blocked
        assert task.block_reason == "needs design"
        assert task.claimed_by == ""

    def test_batch_collects_per_id_results(self, board_service: BoardService, make_task):
        make_task(1)

        results = board_service.batch([1, 99], lambda task_id: board_service.claim(task_id, "agent"))

        assert [r.ok for r in results] == [True, False]
        assert results[1].code == "TASK_NOT_FOUND"
        assert results[1].to_json() == {"id": 99, "ok": False, "error": "task not found: #99", "code": "TASK_NOT_FOUND"}
