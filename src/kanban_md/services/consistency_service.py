"""Consistency pass reconciling filename ids, preamble ids and next_id."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ..models import Task
from ..utils import extract_id, file_lock
from .activity_log import LOCK_FILE

if TYPE_CHECKING:
    from ..repositories import FilesystemRepository
    from .config_service import ConfigService

logger = logging.getLogger(__name__)


@dataclass
class ConsistencyReport:
    """What a consistency pass found and fixed."""

    warnings: list[str] = field(default_factory=list)
    repairs: list[str] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.warnings and not self.repairs

    def to_json(self) -> dict[str, list[str]]:
        return {"warnings": self.warnings, "repairs": self.repairs}


class ConsistencyService:
    """
    Repairs a board in place.

    The pass holds the board lock for its whole duration, so cooperating
    processes block on their next activity log append until it finishes.
    """

    def __init__(self, repository: FilesystemRepository, config_service: ConfigService) -> None:
        self.repository = repository
        self.config_service = config_service

    def check(self) -> ConsistencyReport:
        """Run the pass under the board lock and return the report."""
        with file_lock(self.config_service.board_dir / LOCK_FILE):
            return self._run()

    def _run(self) -> ConsistencyReport:
        report = ConsistencyReport()
        config = self.config_service.get_config()

        tasks, read_warnings = self.repository.read_all_lenient()
        for warning in read_warnings:
            report.warnings.append(f"skipping malformed file {warning.file.name}: {warning.error}")
        tasks.sort(key=lambda t: str(t.file))

        max_id = max((t.id for t in tasks), default=0)
        candidate_next = max(config.next_id, max_id + 1)

        # Duplicate ids
        by_id: dict[int, list[Task]] = {}
        for task in tasks:
            by_id.setdefault(task.id, []).append(task)
        for task_id, group in by_id.items():
            if len(group) < 2:
                continue
            keeper = next((t for t in group if _filename_id(t) == task_id), group[0])
            for task in group:
                if task is keeper:
                    continue
                task.id = candidate_next
                candidate_next += 1
                name = task.file.name if task.file else "?"
                report.repairs.append(f"reassigned duplicate ID {task_id} in {name} to {task.id}")
                logger.warning("Reassigned duplicate ID %d in %s to %d", task_id, name, task.id)
                if _filename_id(task) == task.id:
                    self.repository.write_task(task)

        # Filename ids
        for task in tasks:
            if _filename_id(task) == task.id:
                continue
            old_name = task.file.name if task.file else "?"
            new_path = self.repository.choose_task_path(task)
            self.repository.move_task_file(task, new_path)
            report.repairs.append(f"renamed {old_name} to {new_path.name} to match task ID {task.id}")
            logger.warning("Renamed %s to %s to match task ID %d", old_name, new_path.name, task.id)

        max_id = max((t.id for t in tasks), default=0)
        next_id = max(candidate_next, max_id + 1)
        if next_id != config.next_id:
            report.repairs.append(f"updated next_id from {config.next_id} to {next_id}")
            logger.warning("Updated next_id from %d to %d", config.next_id, next_id)
            self.config_service.save(config.model_copy(update={"next_id": next_id}))

        logger.info(
            "Consistency pass: %d repairs, %d warnings", len(report.repairs), len(report.warnings)
        )
        return report


def _filename_id(task: Task) -> int | None:
    if task.file is None:
        return None
    try:
        return extract_id(task.file.name)
    except ValueError:
        return None
