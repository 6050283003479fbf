"""Service for creating and editing tasks."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import TYPE_CHECKING

from ..errors import (
    dependency_not_found,
    invalid_class,
    invalid_date,
    invalid_input,
    invalid_priority,
    invalid_status,
    self_reference,
)
from ..models import BoardConfig, Task
from ..utils import now_utc, parse_date

if TYPE_CHECKING:
    from ..repositories import FilesystemRepository
    from .activity_log import ActivityLog
    from .board_service import BoardService
    from .config_service import ConfigService

logger = logging.getLogger(__name__)


def parse_tags(value: str) -> list[str]:
    """Split a comma separated tag list, dropping blanks."""
    return [tag.strip() for tag in value.split(",") if tag.strip()]


@dataclass
class TaskChanges:
    """Requested edits; None and empty values leave a field alone."""

    title: str | None = None
    status: str | None = None
    priority: str | None = None
    class_: str | None = None
    assignee: str | None = None
    tags: list[str] | None = None  # replaces the whole list
    add_tags: list[str] = field(default_factory=list)
    remove_tags: list[str] = field(default_factory=list)
    due: str | None = None
    clear_due: bool = False
    estimate: str | None = None
    body: str | None = None
    parent: int | None = None
    clear_parent: bool = False
    add_deps: list[int] = field(default_factory=list)
    remove_deps: list[int] = field(default_factory=list)
    block: str | None = None
    unblock: bool = False
    claim: str = ""
    release: bool = False
    force: bool = False

    def is_empty(self) -> bool:
        return not any(
            [
                self.title is not None,
                self.status is not None,
                self.priority is not None,
                self.class_ is not None,
                self.assignee is not None,
                self.tags is not None,
                self.add_tags,
                self.remove_tags,
                self.due is not None,
                self.clear_due,
                self.estimate is not None,
                self.body is not None,
                self.parent is not None,
                self.clear_parent,
                self.add_deps,
                self.remove_deps,
                self.block is not None,
                self.unblock,
                self.claim,
                self.release,
            ]
        )


class TaskService:
    """Service for task creation and field edits."""

    def __init__(
        self,
        repository: FilesystemRepository,
        config_service: ConfigService,
        activity_log: ActivityLog,
        board_service: BoardService,
    ) -> None:
        self.repository = repository
        self.config_service = config_service
        self.activity_log = activity_log
        self.board_service = board_service

    @property
    def config(self) -> BoardConfig:
        return self.config_service.get_config()

    # --- Create ---

    def create_task(
        self,
        title: str,
        status: str | None = None,
        priority: str | None = None,
        class_: str | None = None,
        assignee: str = "",
        tags: list[str] | None = None,
        due: str | None = None,
        estimate: str = "",
        body: str = "",
        parent: int | None = None,
        depends_on: list[int] | None = None,
        now: datetime | None = None,
    ) -> Task:
        """
        Create a task file and bump next_id.

        Args:
            title: Task title (required)
            status: Initial status (default from config)
            priority: Priority (default from config)
            class_: Class of service (empty means the default class)
            assignee: Optional assignee
            tags: Ordered tag list
            due: Due date as YYYY-MM-DD
            estimate: Free-form estimate
            body: Markdown body
            parent: Parent task id
            depends_on: Dependency ids
            now: Creation time

        Raises:
            KanbanError: On invalid values or a full WIP limit.
        """
        now = now or now_utc()
        config = self.config
        title = title.strip()
        if not title:
            raise invalid_input("title is required")

        status = status or config.defaults.status
        if status not in config.statuses:
            raise invalid_status(status, config.statuses)
        priority = priority or config.defaults.priority
        self._validate_priority(priority)
        if class_:
            self._validate_class(class_)

        tasks, _ = self.repository.read_all_lenient()
        max_id = max((t.id for t in tasks), default=0)
        task_id = max(config.next_id, max_id + 1)
        known_ids = {t.id for t in tasks}

        deps = list(dict.fromkeys(depends_on or []))
        if parent is not None:
            self._validate_reference(task_id, parent, known_ids)
        for dep in deps:
            self._validate_reference(task_id, dep, known_ids)

        task = Task(
            id=task_id,
            title=title,
            status=status,
            priority=priority,
            class_=class_ or "",
            assignee=assignee,
            tags=list(tags or []),
            due=self._parse_due(due) if due else None,
            estimate=estimate,
            parent=parent,
            depends_on=deps,
            body=body,
            created=now,
            updated=now,
        )

        self.board_service.check_wip(task, status, tasks)
        if status != config.first_status:
            self.board_service.apply_timestamps(task, config.first_status, status, now)

        self.repository.ensure_directory()
        self.repository.write_task(task, self.repository.choose_task_path(task))
        self.config_service.save(config.model_copy(update={"next_id": task_id + 1}))
        self.activity_log.log_mutation("create", task.id, task.title, now)
        logger.info("Task created: #%d (status=%s)", task.id, status)
        return task

    # --- Edit ---

    def edit_task(self, task_id: int, changes: TaskChanges, now: datetime | None = None) -> Task:
        """
        Apply field edits to a task.

        A title change renames the file to the new slug; a status change goes
        through the same transition rules as a move.

        Raises:
            KanbanError: INVALID_INPUT when nothing is requested, or the first
                failed validation. The file is untouched on failure.
        """
        if changes.is_empty():
            raise invalid_input("no changes specified")
        if changes.block is not None and changes.unblock:
            raise invalid_input("cannot use --block and --unblock together")
        if changes.parent is not None and changes.clear_parent:
            raise invalid_input("cannot use --parent and --clear-parent together")
        if changes.due is not None and changes.clear_due:
            raise invalid_input("cannot use --due and --clear-due together")

        now = now or now_utc()
        task = self.board_service.get_task(task_id)
        old_title = task.title
        old_status = task.status
        previous_agent = task.claimed_by

        if changes.release:
            task.release()
        self.board_service.check_claim(task, changes.claim, changes.force, now)
        if changes.claim:
            task.claim(changes.claim, now)

        self._apply_fields(task, changes)

        tasks: list[Task] | None = None
        if changes.parent is not None or changes.add_deps:
            tasks, _ = self.repository.read_all_lenient()
            known_ids = {t.id for t in tasks}
            if changes.parent is not None:
                self._validate_reference(task.id, changes.parent, known_ids)
                task.parent = changes.parent
            for dep in changes.add_deps:
                self._validate_reference(task.id, dep, known_ids)
                if dep not in task.depends_on:
                    task.depends_on.append(dep)

        warnings: list[str] = []
        if changes.status is not None and changes.status != old_status:
            if tasks is None:
                tasks, _ = self.repository.read_all_lenient()
            warnings = self.board_service.transition(task, changes.status, tasks, now, force=changes.force)
        elif changes.status is not None:
            self.board_service.validate_status(changes.status)

        task.updated = now
        if task.title != old_title:
            self.repository.move_task_file(task, self.repository.choose_task_path(task))
        else:
            self.repository.write_task(task)

        for warning in warnings:
            logger.warning("Edit #%d: %s", task.id, warning)

        if task.claimed_by and task.claimed_by != previous_agent:
            self.activity_log.log_mutation("claim", task.id, task.claimed_by, now)
        elif previous_agent and not task.claimed_by:
            self.activity_log.log_mutation("release", task.id, previous_agent, now)
        if task.status != old_status:
            self.activity_log.log_mutation("move", task.id, f"{old_status} -> {task.status}", now)
        self.activity_log.log_mutation("edit", task.id, task.title, now)
        logger.info("Task edited: #%d", task.id)
        return task

    def _apply_fields(self, task: Task, changes: TaskChanges) -> None:
        """Validate and apply the plain field edits in place."""
        if changes.title is not None:
            title = changes.title.strip()
            if not title:
                raise invalid_input("title cannot be empty")
            task.title = title
        if changes.priority is not None:
            self._validate_priority(changes.priority)
            task.priority = changes.priority
        if changes.class_ is not None:
            if changes.class_:
                self._validate_class(changes.class_)
            task.class_ = changes.class_
        if changes.assignee is not None:
            task.assignee = changes.assignee
        if changes.tags is not None:
            task.tags = list(changes.tags)
        for tag in changes.add_tags:
            if tag not in task.tags:
                task.tags.append(tag)
        if changes.remove_tags:
            task.tags = [t for t in task.tags if t not in changes.remove_tags]
        if changes.due is not None:
            task.due = self._parse_due(changes.due)
        if changes.clear_due:
            task.due = None
        if changes.estimate is not None:
            task.estimate = changes.estimate
        if changes.body is not None:
            task.body = changes.body
        if changes.clear_parent:
            task.parent = None
        if changes.remove_deps:
            task.depends_on = [d for d in task.depends_on if d not in changes.remove_deps]
        if changes.block is not None:
            if not changes.block.strip():
                raise invalid_input("block reason is required")
            task.blocked = True
            task.block_reason = changes.block
        if changes.unblock:
            task.blocked = False
            task.block_reason = ""

    # --- Validation helpers ---

    def _validate_priority(self, priority: str) -> None:
        if priority not in self.config.priorities:
            raise invalid_priority(priority, self.config.priorities)

    def _validate_class(self, class_name: str) -> None:
        if class_name not in self.config.class_names:
            raise invalid_class(class_name, self.config.class_names)

    def _validate_reference(self, task_id: int, ref: int, known_ids: set[int]) -> None:
        if ref == task_id:
            raise self_reference(task_id)
        if ref not in known_ids:
            raise dependency_not_found(ref)

    def _parse_due(self, value: str) -> date:
        try:
            return parse_date(value)
        except ValueError as e:
            raise invalid_date("due", value) from e
