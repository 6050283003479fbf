"""Selection of the next task to work on."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from functools import cmp_to_key

from ..models import BoardConfig, Task
from ..models.config import DEFAULT_CLASS
from ..utils import now_utc
from .filter_service import FilterService

logger = logging.getLogger(__name__)

FIXED_DATE_CLASS = "fixed-date"


@dataclass
class PickOptions:
    """Options controlling which tasks pick considers."""

    statuses: list[str] = field(default_factory=list)  # empty = active statuses
    claim_timeout: timedelta | None = None
    tags: list[str] = field(default_factory=list)  # any-of


class PickService:
    """Finds the most urgent unclaimed, unblocked, ready task."""

    def __init__(self, config: BoardConfig) -> None:
        self.config = config
        self.filter_service = FilterService(config)

    def pick(
        self,
        tasks: list[Task],
        options: PickOptions | None = None,
        now: datetime | None = None,
    ) -> Task | None:
        """
        Select the next task.

        Candidates sit in one of the requested statuses, are unclaimed (or
        hold an expired claim), are not blocked and share a tag with the
        filter when one is given. Candidates with unmet dependencies are
        dropped. The rest are ordered by class of service, then due date
        within the fixed-date class, then priority.

        Returns:
            The chosen task, or None when nothing qualifies.
        """
        options = options or PickOptions()
        now = now or now_utc()

        candidates = self._candidates(tasks, options, now)
        candidates = self._ready(candidates, tasks)
        if not candidates:
            logger.debug("pick: no candidates")
            return None

        candidates.sort(key=cmp_to_key(self._compare))
        picked = candidates[0]
        logger.debug("pick: chose #%d from %d candidates", picked.id, len(candidates))
        return picked

    def _candidates(self, tasks: list[Task], options: PickOptions, now: datetime) -> list[Task]:
        statuses = options.statuses or self.config.active_statuses()
        result = []
        for task in tasks:
            if task.status not in statuses:
                continue
            if not task.is_unclaimed(options.claim_timeout, now):
                continue
            if task.blocked:
                continue
            if options.tags and not set(options.tags) & set(task.tags):
                continue
            result.append(task)
        return result

    def _ready(self, candidates: list[Task], tasks: list[Task]) -> list[Task]:
        if not self.config.statuses:
            return candidates
        return self.filter_service.unblocked(candidates, tasks)

    def _class_order(self, task: Task) -> int:
        """Configured class index; unknown or empty classes rank as standard."""
        index = self.config.class_index(task.class_) if task.class_ else -1
        if index < 0:
            index = self.config.class_index(DEFAULT_CLASS)
        return index

    def _compare(self, a: Task, b: Task) -> int:
        ca, cb = self._class_order(a), self._class_order(b)
        if ca != cb:
            return -1 if ca < cb else 1

        if a.class_ == FIXED_DATE_CLASS and b.class_ == FIXED_DATE_CLASS:
            if _due_before(a.due, b.due):
                return -1
            if _due_before(b.due, a.due):
                return 1

        pa = self.config.priority_index(a.priority)
        pb = self.config.priority_index(b.priority)
        if pa != pb:
            return -1 if pa > pb else 1
        return 0


def _due_before(a: date | None, b: date | None) -> bool:
    """A set due date precedes an unset one; earlier dates come first."""
    if a is None:
        return False
    if b is None:
        return True
    return a < b
