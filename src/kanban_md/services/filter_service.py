"""Service for filtering, sorting and grouping tasks."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from ..models import ARCHIVED_STATUS, BoardConfig, Task
from ..utils import now_utc

SORT_FIELDS = ("id", "status", "priority", "due", "created", "updated")
GROUP_FIELDS = ("assignee", "tag", "class", "priority", "status")

UNASSIGNED = "(unassigned)"
UNTAGGED = "(untagged)"


@dataclass
class Filter:
    """Criteria for selecting tasks. All set criteria must match."""

    statuses: list[str] = field(default_factory=list)
    priorities: list[str] = field(default_factory=list)
    assignee: str = ""
    tag: str = ""
    search: str = ""  # case-insensitive, across title, body and tags
    blocked: bool | None = None  # None = either
    parent: int | None = None
    unclaimed: bool = False
    claim_timeout: timedelta | None = None
    claimed_by: str = ""
    class_: str = ""
    include_archived: bool = False


@dataclass
class TaskGroup:
    """Tasks sharing one value of a grouping field."""

    key: str
    tasks: list[Task]
    status_counts: dict[str, int]

    def to_json(self) -> dict:
        return {
            "key": self.key,
            "total": len(self.tasks),
            "statuses": self.status_counts,
            "tasks": [t.to_json() for t in self.tasks],
        }


class FilterService:
    """Service for querying a loaded set of tasks."""

    def __init__(self, config: BoardConfig) -> None:
        self.config = config

    # --- Filtering ---

    def apply(self, tasks: Iterable[Task], filter_: Filter, now: datetime | None = None) -> list[Task]:
        """Apply filter to a list of tasks."""
        now = now or now_utc()
        return [task for task in tasks if self._matches(task, filter_, now)]

    def _matches(self, task: Task, f: Filter, now: datetime) -> bool:
        """Check if a task matches the filter."""
        # Hide archived unless asked for explicitly
        if (
            task.status == ARCHIVED_STATUS
            and not f.include_archived
            and ARCHIVED_STATUS not in f.statuses
        ):
            return False

        if f.statuses and task.status not in f.statuses:
            return False

        if f.priorities and task.priority not in f.priorities:
            return False

        if f.assignee and task.assignee != f.assignee:
            return False

        if f.tag and f.tag.lower() not in (t.lower() for t in task.tags):
            return False

        if f.search:
            needle = f.search.lower()
            haystacks = [task.title.lower(), task.body.lower(), *(t.lower() for t in task.tags)]
            if not any(needle in h for h in haystacks):
                return False

        if f.blocked is not None and task.blocked != f.blocked:
            return False

        if f.parent is not None and task.parent != f.parent:
            return False

        if f.unclaimed and not task.is_unclaimed(f.claim_timeout, now):
            return False

        if f.claimed_by and task.claimed_by != f.claimed_by:
            return False

        return not f.class_ or self.config.resolve_class(task.class_) == f.class_

    # --- Dependencies ---

    def dependencies_satisfied(self, task: Task, lookup: dict[int, Task]) -> bool:
        """True when every dependency exists and sits at the terminal status."""
        for dep_id in task.depends_on:
            dep = lookup.get(dep_id)
            if dep is None or not self.config.is_terminal_status(dep.status):
                return False
        return True

    def unblocked(self, tasks: Iterable[Task], all_tasks: Iterable[Task] | None = None) -> list[Task]:
        """Keep tasks whose dependencies are all done.

        Dependencies resolve against all_tasks (defaults to tasks).
        """
        tasks = list(tasks)
        lookup = {t.id: t for t in (all_tasks if all_tasks is not None else tasks)}
        return [t for t in tasks if self.dependencies_satisfied(t, lookup)]

    def find_dependents(self, task_id: int, tasks: Iterable[Task]) -> list[str]:
        """Describe tasks that reference task_id as parent or dependency."""
        notes: list[str] = []
        for task in tasks:
            if task.id == task_id or task.status == ARCHIVED_STATUS:
                continue
            if task.parent == task_id:
                notes.append(f"task #{task.id} has #{task_id} as parent")
            if task_id in task.depends_on:
                notes.append(f"task #{task.id} depends on #{task_id}")
        return notes

    # --- Sorting ---

    def sort(self, tasks: Iterable[Task], sort_field: str = "id", reverse: bool = False) -> list[Task]:
        """Stable sort by one of SORT_FIELDS; unknown fields sort by id.

        Tasks without a due date sort after those with one.
        """
        return sorted(tasks, key=lambda t: self._sort_key(t, sort_field), reverse=reverse)

    def _sort_key(self, task: Task, sort_field: str) -> tuple:
        if sort_field == "status":
            return (self._status_rank(task.status),)
        if sort_field == "priority":
            return (self.config.priority_index(task.priority),)
        if sort_field == "due":
            return (task.due is None, task.due or date.min)
        if sort_field == "created":
            return (task.created,)
        if sort_field == "updated":
            return (task.updated,)
        return (task.id,)

    def _status_rank(self, status: str) -> int:
        index = self.config.status_index(status)
        return index if index >= 0 else len(self.config.statuses)

    # --- Grouping ---

    def group_by(self, tasks: Iterable[Task], group_field: str) -> list[TaskGroup]:
        """
        Partition tasks by one of GROUP_FIELDS.

        Tags place a task in every group it carries. Ordered fields (status,
        priority, class) follow the configured order; other fields sort
        alphabetically with the empty-value group first.

        Raises:
            ValueError: If group_field is not a supported field.
        """
        if group_field not in GROUP_FIELDS:
            raise ValueError(f"cannot group by {group_field!r}")

        groups: dict[str, list[Task]] = {}
        for task in tasks:
            for key in self._group_keys(task, group_field):
                groups.setdefault(key, []).append(task)

        return [
            TaskGroup(key=key, tasks=groups[key], status_counts=self._status_counts(groups[key]))
            for key in sorted(groups, key=lambda k: self._group_rank(k, group_field))
        ]

    def _group_keys(self, task: Task, group_field: str) -> list[str]:
        if group_field == "assignee":
            return [task.assignee or UNASSIGNED]
        if group_field == "tag":
            return list(dict.fromkeys(task.tags)) or [UNTAGGED]
        if group_field == "class":
            return [self.config.resolve_class(task.class_)]
        if group_field == "priority":
            return [task.priority]
        return [task.status]

    def _group_rank(self, key: str, group_field: str) -> tuple[int, str]:
        if group_field == "status":
            ordered = self.config.all_statuses
        elif group_field == "priority":
            ordered = self.config.priorities
        elif group_field == "class":
            ordered = self.config.class_names
        else:
            return (0 if key in (UNASSIGNED, UNTAGGED) else 1, key)
        return (ordered.index(key) if key in ordered else len(ordered), key)

    def _status_counts(self, tasks: list[Task]) -> dict[str, int]:
        counts: dict[str, int] = {}
        for status in self.config.all_statuses:
            n = sum(1 for t in tasks if t.status == status)
            if n:
                counts[status] = n
        return counts
