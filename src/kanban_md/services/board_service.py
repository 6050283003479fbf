"""Service for task state transitions: moves, claims, blocks and priorities."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from ..errors import (
    KanbanError,
    boundary_error,
    class_wip_exceeded,
    claim_required,
    invalid_input,
    invalid_priority,
    invalid_status,
    nothing_to_pick,
    task_claimed,
    wip_limit_exceeded,
)
from ..models import ARCHIVED_STATUS, BoardConfig, Task
from ..repositories import FilesystemRepository, ReadWarning
from ..utils import format_duration, now_utc
from .filter_service import FilterService
from .pick_service import PickOptions, PickService

if TYPE_CHECKING:
    from .activity_log import ActivityLog
    from .config_service import ConfigService

logger = logging.getLogger(__name__)

REVIEW_STATUS = "review"


@dataclass
class MoveResult:
    """Outcome of a status change."""

    task: Task
    from_status: str
    changed: bool
    warnings: list[str] = field(default_factory=list)

    def to_json(self) -> dict[str, Any]:
        data = self.task.to_json()
        data["changed"] = self.changed
        return data


@dataclass
class BatchResult:
    """Per-id outcome of a batch operation."""

    id: int
    ok: bool
    error: str = ""
    code: str = ""

    def to_json(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "ok": self.ok}
        if not self.ok:
            data["error"] = self.error
            if self.code:
                data["code"] = self.code
        return data


class BoardService:
    """
    Service for the task state machine.

    Every mutation follows the same order: validate, write the task file,
    then append to the activity log.
    """

    def __init__(
        self,
        repository: FilesystemRepository,
        config_service: ConfigService,
        activity_log: ActivityLog,
        enforce_claims: bool = True,
    ) -> None:
        """
        Initialize the board service.

        Args:
            repository: Task store for the board's tasks directory
            config_service: Source of the board configuration
            activity_log: Mutation log for the board
            enforce_claims: Apply the claim guard and claim requirements.
                The interactive board turns this off.
        """
        self.repository = repository
        self.config_service = config_service
        self.activity_log = activity_log
        self.enforce_claims = enforce_claims

    @property
    def config(self) -> BoardConfig:
        return self.config_service.get_config()

    # --- Reads ---

    def load_tasks(self) -> tuple[list[Task], list[ReadWarning]]:
        """Read every task leniently."""
        return self.repository.read_all_lenient()

    def get_task(self, task_id: int) -> Task:
        """Strict read of one task."""
        return self.repository.find_by_id(task_id)

    # --- Claim guard ---

    def check_claim(self, task: Task, agent: str, force: bool, now: datetime) -> None:
        """
        Verify a mutation may proceed on a possibly claimed task.

        Unclaimed tasks, tasks claimed by the same agent, expired claims and
        forced operations pass. Expired and forced claims are cleared.

        Raises:
            KanbanError: TASK_CLAIMED when another agent holds a live claim.
        """
        if not self.enforce_claims or not task.claimed_by:
            return
        if agent and task.claimed_by == agent:
            return
        timeout = self.config.claim_timeout_delta()
        if task.claim_expired(timeout, now) or force:
            logger.debug("Clearing claim of %s on #%d", task.claimed_by, task.id)
            task.release()
            return
        remaining = task.claim_remaining(timeout, now)
        raise task_claimed(
            task.id,
            task.claimed_by,
            format_duration(remaining) if remaining is not None else "unknown",
        )

    def has_active_claim(self, task: Task, now: datetime) -> bool:
        """A claim is active when set and not expired."""
        return bool(task.claimed_by) and not task.claim_expired(
            self.config.claim_timeout_delta(), now
        )

    # --- Transition ---

    def validate_status(self, status: str) -> None:
        if not self.config.is_valid_status(status):
            raise invalid_status(status, self.config.all_statuses)

    def check_wip(
        self,
        task: Task,
        to_status: str,
        tasks: list[Task],
        force: bool = False,
    ) -> list[str]:
        """
        Enforce the column and class WIP limits for task entering to_status.

        Returns:
            Warnings for limits overridden with force.

        Raises:
            KanbanError: WIP_LIMIT_EXCEEDED or CLASS_WIP_EXCEEDED.
        """
        config = self.config
        warnings: list[str] = []
        class_name = config.resolve_class(task.class_)
        class_cfg = config.class_by_name(class_name)
        others = [t for t in tasks if t.id != task.id]

        limit = config.wip_limit(to_status)
        if limit > 0 and not (class_cfg and class_cfg.bypass_column_wip):
            current = sum(1 for t in others if t.status == to_status)
            if current >= limit:
                error = wip_limit_exceeded(to_status, limit, current)
                if not force:
                    raise error
                warnings.append(f"{error.message} (overridden with --force)")

        if (
            class_cfg is not None
            and class_cfg.wip_limit > 0
            and not config.is_terminal_status(to_status)
            and not config.is_archived_status(to_status)
        ):
            current = sum(
                1
                for t in others
                if config.resolve_class(t.class_) == class_name
                and not config.is_terminal_status(t.status)
                and not config.is_archived_status(t.status)
            )
            if current >= class_cfg.wip_limit:
                error = class_wip_exceeded(class_name, class_cfg.wip_limit, current)
                if not force:
                    raise error
                warnings.append(f"{error.message} (overridden with --force)")

        return warnings

    def apply_timestamps(self, task: Task, from_status: str, to_status: str, now: datetime) -> None:
        """
        Apply the started/completed side effects of a status change.

        Leaving the first status starts the task. Reaching the terminal
        status completes it. Returning to any other live status reopens it;
        archiving keeps completed as it was.
        """
        config = self.config
        if config.is_archived_status(to_status):
            return
        if to_status != config.first_status and task.started is None:
            task.started = now
        if config.is_terminal_status(to_status):
            task.completed = now
        else:
            task.completed = None

    def transition(
        self,
        task: Task,
        to_status: str,
        tasks: list[Task],
        now: datetime,
        force: bool = False,
    ) -> list[str]:
        """
        Validate and apply a status change in memory (no write).

        Returns:
            Warnings produced by the transition.

        Raises:
            KanbanError: INVALID_STATUS, CLAIM_REQUIRED, WIP_LIMIT_EXCEEDED
                or CLASS_WIP_EXCEEDED.
        """
        self.validate_status(to_status)
        from_status = task.status
        if from_status == to_status:
            return []

        if (
            self.enforce_claims
            and self.config.status_requires_claim(to_status, task.class_)
            and not self.has_active_claim(task, now)
        ):
            raise claim_required(to_status)

        warnings = self.check_wip(task, to_status, tasks, force=force)
        if task.blocked:
            warnings.append(f"task #{task.id} is blocked ({task.block_reason})")

        self.apply_timestamps(task, from_status, to_status, now)
        task.status = to_status
        task.updated = now
        return warnings

    # --- Moves ---

    def move(
        self,
        task_id: int,
        to_status: str,
        claim: str = "",
        release: bool = False,
        force: bool = False,
        now: datetime | None = None,
    ) -> MoveResult:
        """
        Move a task to a status.

        Args:
            task_id: Task to move
            to_status: Target status (a configured status or 'archived')
            claim: Agent to claim the task for in the same operation
            release: Clear the claim before anything else is checked
            force: Override WIP limits and other agents' claims
            now: Reference time

        Raises:
            KanbanError: On any failed validation; nothing is written then.
        """
        now = now or now_utc()
        task = self.get_task(task_id)
        return self._move_task(task, to_status, claim, release, force, now)

    def move_next(
        self,
        task_id: int,
        claim: str = "",
        release: bool = False,
        force: bool = False,
        now: datetime | None = None,
    ) -> MoveResult:
        """Move a task one status to the right.

        Raises:
            KanbanError: BOUNDARY_ERROR at the terminal status (or when archived).
        """
        task = self.get_task(task_id)
        index = self.config.status_index(task.status)
        if index < 0 or index >= len(self.config.statuses) - 1:
            raise boundary_error(task.id, task.status, "next")
        return self._move_task(task, self.config.statuses[index + 1], claim, release, force, now)

    def move_prev(
        self,
        task_id: int,
        claim: str = "",
        release: bool = False,
        force: bool = False,
        now: datetime | None = None,
    ) -> MoveResult:
        """Move a task one status to the left.

        Raises:
            KanbanError: BOUNDARY_ERROR at the first status (or when archived).
        """
        task = self.get_task(task_id)
        index = self.config.status_index(task.status)
        if index <= 0:
            raise boundary_error(task.id, task.status, "prev")
        return self._move_task(task, self.config.statuses[index - 1], claim, release, force, now)

    def _move_task(
        self,
        task: Task,
        to_status: str,
        claim: str = "",
        release: bool = False,
        force: bool = False,
        now: datetime | None = None,
    ) -> MoveResult:
        now = now or now_utc()
        from_status = task.status
        claim_before = (task.claimed_by, task.claimed_at)

        if from_status == to_status and not claim and not release:
            logger.debug("move: #%d already at %s", task.id, to_status)
            return MoveResult(task=task, from_status=from_status, changed=False)

        if release:
            task.release()
        self.check_claim(task, claim, force, now)
        if claim:
            task.claim(claim, now)
        self.validate_status(to_status)

        if from_status == to_status:
            if (task.claimed_by, task.claimed_at) != claim_before:
                task.updated = now
                self.repository.write_task(task)
                self._log_claim_change(task, claim_before[0], now)
            logger.debug("move: #%d already at %s", task.id, to_status)
            return MoveResult(task=task, from_status=from_status, changed=False)

        tasks, _ = self.load_tasks()
        warnings = self.transition(task, to_status, tasks, now, force=force)
        self.repository.write_task(task)

        self._log_claim_change(task, claim_before[0], now)
        self.activity_log.log_mutation("move", task.id, f"{from_status} -> {to_status}", now)
        logger.info("Task moved: #%d (%s -> %s)", task.id, from_status, to_status)
        return MoveResult(task=task, from_status=from_status, changed=True, warnings=warnings)

    def _log_claim_change(self, task: Task, previous_agent: str, now: datetime) -> None:
        if task.claimed_by and task.claimed_by != previous_agent:
            self.activity_log.log_mutation("claim", task.id, task.claimed_by, now)
        elif not task.claimed_by and previous_agent:
            self.activity_log.log_mutation("release", task.id, previous_agent, now)

    # --- Claims ---

    def claim(self, task_id: int, agent: str, force: bool = False, now: datetime | None = None) -> Task:
        """Claim a task for agent, refreshing claimed_at for the same agent."""
        if not agent:
            raise invalid_input("claim name is required (use --claim NAME)")
        now = now or now_utc()
        task = self.get_task(task_id)
        self.check_claim(task, agent, force, now)
        task.claim(agent, now)
        task.updated = now
        self.repository.write_task(task)
        self.activity_log.log_mutation("claim", task.id, agent, now)
        logger.info("Task claimed: #%d by %s", task.id, agent)
        return task

    def release(self, task_id: int, now: datetime | None = None) -> Task:
        """Clear a task's claim. Releasing an unclaimed task changes nothing."""
        now = now or now_utc()
        task = self.get_task(task_id)
        if not task.claimed_by:
            logger.debug("release: #%d is not claimed", task.id)
            return task
        agent = task.claimed_by
        task.release()
        task.updated = now
        self.repository.write_task(task)
        self.activity_log.log_mutation("release", task.id, agent, now)
        logger.info("Task released: #%d (was %s)", task.id, agent)
        return task

    # --- Blocking ---

    def block(
        self,
        task_id: int,
        reason: str,
        agent: str = "",
        force: bool = False,
        now: datetime | None = None,
    ) -> Task:
        """Mark a task blocked with a reason."""
        if not reason.strip():
            raise invalid_input("block reason is required")
        now = now or now_utc()
        task = self.get_task(task_id)
        self.check_claim(task, agent, force, now)
        task.blocked = True
        task.block_reason = reason
        task.updated = now
        self.repository.write_task(task)
        self.activity_log.log_mutation("block", task.id, reason, now)
        logger.info("Task blocked: #%d (%s)", task.id, reason)
        return task

    def unblock(
        self,
        task_id: int,
        agent: str = "",
        force: bool = False,
        now: datetime | None = None,
    ) -> Task:
        """Clear a task's blocked flag and reason."""
        now = now or now_utc()
        task = self.get_task(task_id)
        self.check_claim(task, agent, force, now)
        task.blocked = False
        task.block_reason = ""
        task.updated = now
        self.repository.write_task(task)
        self.activity_log.log_mutation("unblock", task.id, task.title, now)
        logger.info("Task unblocked: #%d", task.id)
        return task

    # --- Priority ---

    def set_priority(
        self,
        task_id: int,
        priority: str,
        agent: str = "",
        force: bool = False,
        now: datetime | None = None,
    ) -> Task:
        """Set a task's priority to a configured value."""
        if priority not in self.config.priorities:
            raise invalid_priority(priority, self.config.priorities)
        now = now or now_utc()
        task = self.get_task(task_id)
        return self._change_priority(task, priority, agent, force, now)

    def raise_priority(self, task_id: int, agent: str = "", force: bool = False, now: datetime | None = None) -> Task:
        """Move a task one priority up."""
        return self._shift_priority(task_id, 1, agent, force, now)

    def lower_priority(self, task_id: int, agent: str = "", force: bool = False, now: datetime | None = None) -> Task:
        """Move a task one priority down."""
        return self._shift_priority(task_id, -1, agent, force, now)

    def _shift_priority(
        self,
        task_id: int,
        delta: int,
        agent: str,
        force: bool,
        now: datetime | None,
    ) -> Task:
        now = now or now_utc()
        task = self.get_task(task_id)
        priorities = self.config.priorities
        index = self.config.priority_index(task.priority) + delta
        if index < 0 or index >= len(priorities):
            edge = "highest" if delta > 0 else "lowest"
            raise invalid_input(
                f"task #{task.id} is already at the {edge} priority ({task.priority})",
                id=task.id,
                priority=task.priority,
            )
        return self._change_priority(task, priorities[index], agent, force, now)

    def _change_priority(
        self,
        task: Task,
        priority: str,
        agent: str,
        force: bool,
        now: datetime,
    ) -> Task:
        self.check_claim(task, agent, force, now)
        old = task.priority
        if old == priority:
            return task
        task.priority = priority
        task.updated = now
        self.repository.write_task(task)
        self.activity_log.log_mutation("priority", task.id, f"{old} -> {priority}", now)
        logger.info("Task priority changed: #%d (%s -> %s)", task.id, old, priority)
        return task

    # --- Soft delete ---

    def delete(self, task_id: int, force: bool = False, now: datetime | None = None) -> MoveResult:
        """Soft-delete a task by moving it to 'archived'. The file stays on disk."""
        return self._archive(task_id, "delete", force, now)

    def archive(self, task_id: int, force: bool = False, now: datetime | None = None) -> MoveResult:
        """Move a task to 'archived'."""
        return self._archive(task_id, "archive", force, now)

    def _archive(self, task_id: int, action: str, force: bool, now: datetime | None) -> MoveResult:
        now = now or now_utc()
        task = self.get_task(task_id)
        from_status = task.status
        self.check_claim(task, "", force, now)
        if from_status == ARCHIVED_STATUS:
            return MoveResult(task=task, from_status=from_status, changed=False)

        tasks, _ = self.load_tasks()
        warnings = FilterService(self.config).find_dependents(task.id, tasks)
        self.transition(task, ARCHIVED_STATUS, tasks, now, force=force)
        self.repository.write_task(task)
        self.activity_log.log_mutation(action, task.id, task.title, now)
        logger.info("Task archived: #%d (%s -> %s)", task.id, from_status, ARCHIVED_STATUS)
        return MoveResult(task=task, from_status=from_status, changed=True, warnings=warnings)

    # --- Agent workflow ---

    def pick(
        self,
        agent: str,
        options: PickOptions | None = None,
        move_to: str = "",
        now: datetime | None = None,
    ) -> MoveResult:
        """
        Pick the next task, claim it for agent and optionally move it.

        Raises:
            KanbanError: NOTHING_TO_PICK when no task qualifies, or the
                transition error when the follow-up move fails.
        """
        if not agent:
            raise invalid_input("claim name is required (use --claim NAME)")
        now = now or now_utc()
        options = options or PickOptions()
        if options.claim_timeout is None:
            options.claim_timeout = self.config.claim_timeout_delta()
        for status in options.statuses:
            self.validate_status(status)
        if move_to:
            self.validate_status(move_to)

        tasks, _ = self.load_tasks()
        picked = PickService(self.config).pick(tasks, options, now)
        if picked is None:
            raise nothing_to_pick()

        from_status = picked.status
        previous_agent = picked.claimed_by
        picked.claim(agent, now)
        warnings: list[str] = []
        if move_to and move_to != from_status:
            warnings = self.transition(picked, move_to, tasks, now)
        picked.updated = now
        self.repository.write_task(picked)

        if previous_agent != agent:
            self.activity_log.log_mutation("claim", picked.id, agent, now)
        if picked.status != from_status:
            self.activity_log.log_mutation("move", picked.id, f"{from_status} -> {picked.status}", now)
        logger.info("Task picked: #%d by %s", picked.id, agent)
        return MoveResult(
            task=picked,
            from_status=from_status,
            changed=picked.status != from_status,
            warnings=warnings,
        )

    def handoff(
        self,
        task_id: int,
        agent: str,
        note: str = "",
        block_reason: str | None = None,
        release: bool = False,
        timestamp: bool = False,
        now: datetime | None = None,
    ) -> MoveResult:
        """
        Hand a task off for review.

        Moves the task to 'review', refreshes the claim, optionally blocks it,
        appends a note to the body and optionally releases the claim.
        """
        if not agent:
            raise invalid_input("claim name is required (use --claim NAME)")
        if block_reason is not None and not block_reason.strip():
            raise invalid_input("block reason is required (use --block REASON)")
        if REVIEW_STATUS not in self.config.statuses:
            raise invalid_input("board has no 'review' status; add one to use handoff")

        now = now or now_utc()
        task = self.get_task(task_id)
        self.check_claim(task, agent, False, now)
        from_status = task.status

        task.claim(agent, now)
        warnings: list[str] = []
        if from_status != REVIEW_STATUS:
            tasks, _ = self.load_tasks()
            warnings = self.transition(task, REVIEW_STATUS, tasks, now)

        if block_reason is not None:
            task.blocked = True
            task.block_reason = block_reason
        if note:
            task.body = append_note(task.body, note, now if timestamp else None)
        if release:
            task.release()
        task.updated = now
        self.repository.write_task(task)

        if task.status != from_status:
            self.activity_log.log_mutation("move", task.id, f"{from_status} -> {task.status}", now)
        self.activity_log.log_mutation("handoff", task.id, task.title, now)
        if task.blocked and block_reason is not None:
            self.activity_log.log_mutation("block", task.id, task.block_reason, now)
        if release:
            self.activity_log.log_mutation("release", task.id, agent, now)
        logger.info("Task handed off: #%d by %s", task.id, agent)
        return MoveResult(
            task=task,
            from_status=from_status,
            changed=task.status != from_status,
            warnings=warnings,
        )

    # --- Batches ---

    def batch(self, ids: list[int], operation: Callable[[int], object]) -> list[BatchResult]:
        """Run operation for each id independently, collecting per-id results."""
        results: list[BatchResult] = []
        for task_id in ids:
            try:
                operation(task_id)
            except KanbanError as e:
                logger.debug("batch: #%d failed: %s", task_id, e.message)
                results.append(BatchResult(id=task_id, ok=False, error=e.message, code=e.code.value))
            except OSError as e:
                logger.warning("batch: #%d failed: %s", task_id, e)
                results.append(BatchResult(id=task_id, ok=False, error=str(e)))
            else:
                results.append(BatchResult(id=task_id, ok=True))
        return results


def append_note(body: str, note: str, stamp: datetime | None = None) -> str:
    """Append a paragraph to a markdown body, optionally under a timestamp line."""
    text = note.strip()
    if stamp is not None:
        text = f"[{stamp.strftime('%Y-%m-%d %H:%M')}] {text}"
    if not body.strip():
        return text + "\n"
    return body.rstrip("\n") + "\n\n" + text + "\n"
