"""Filesystem-based repository for task storage."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import yaml
from frontmatter.default_handlers import YAMLHandler

from ..errors import KanbanError, malformed_task, task_not_found
from ..models import Task
from ..utils import atomic_write_text, extract_id, generate_filename, to_iso

logger = logging.getLogger(__name__)

_CLOSING_FENCE = re.compile(r"^---[ \t]*\r?$", re.MULTILINE)


class _TaskDumper(yaml.SafeDumper):
    """SafeDumper that writes timestamps in RFC3339 form with a 'Z' suffix."""

    def ignore_aliases(self, data) -> bool:
        # created/updated/started often share one datetime object
        return True


def _represent_datetime(dumper: yaml.SafeDumper, data: datetime) -> yaml.Node:
    return dumper.represent_scalar("tag:yaml.org,2002:timestamp", to_iso(data))


_TaskDumper.add_representer(datetime, _represent_datetime)

_HANDLER = YAMLHandler()


@dataclass
class ReadWarning:
    """A task file that could not be read."""

    file: Path
    error: str

    def to_json(self) -> dict[str, str]:
        return {"file": str(self.file), "error": self.error}


def parse_task(text: str, path: Path | None = None) -> Task:
    """
    Decode a task file.

    The body is everything after the closing fence line, verbatim.

    Raises:
        KanbanError: MALFORMED_TASK if the fences, YAML or required fields are wrong.
    """
    name = path.name if path is not None else "<text>"
    if not (text.startswith("---\n") or text.startswith("---\r\n")):
        raise malformed_task(name, "missing opening '---' fence")

    rest = text[text.index("\n") + 1 :]
    closing = _CLOSING_FENCE.search(rest)
    if closing is None:
        raise malformed_task(name, "missing closing '---' fence")

    preamble = rest[: closing.start()]
    body = rest[closing.end() :]
    if body.startswith("\n"):
        body = body[1:]

    try:
        metadata = _HANDLER.load(preamble) if preamble.strip() else {}
    except yaml.YAMLError as e:
        raise malformed_task(name, f"invalid YAML preamble: {e}") from e
    if not isinstance(metadata, dict):
        raise malformed_task(name, "preamble is not a mapping")

    try:
        return Task.from_frontmatter(metadata, body, file=path)
    except (ValueError, TypeError) as e:
        raise malformed_task(name, str(e)) from e


def render_task(task: Task) -> str:
    """Encode a task as `---\\n<yaml>\\n---\\n<body>`."""
    preamble = _HANDLER.export(task.to_frontmatter(), Dumper=_TaskDumper, sort_keys=False)
    return f"---\n{preamble}\n---\n{task.body}"


class FilesystemRepository:
    """
    Repository for task files stored on the filesystem.

    Tasks are stored as individual NNN-slug.md files with a YAML preamble.
    """

    def __init__(self, tasks_dir: Path) -> None:
        """
        Initialize repository.

        Args:
            tasks_dir: Path to the tasks directory (e.g., .kanban/tasks/)
        """
        self.tasks_dir = tasks_dir

    def ensure_directory(self) -> None:
        """Create the tasks directory if it doesn't exist."""
        self.tasks_dir.mkdir(parents=True, exist_ok=True)

    # --- Single files ---

    def read_task(self, path: Path) -> Task:
        """Read and decode one task file."""
        try:
            text = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise malformed_task(path.name, f"not valid UTF-8: {e}") from e
        return parse_task(text, path)

    def write_task(self, task: Task, path: Path | None = None) -> Path:
        """
        Atomically write a task.

        Writes to path, else the path it was read from, else its canonical path.
        Sets task.file to the written path.
        """
        target = path or task.file or self.canonical_path(task)
        atomic_write_text(target, render_task(task))
        task.file = target
        logger.debug("Wrote task #%d to %s", task.id, target.name)
        return target

    def move_task_file(self, task: Task, new_path: Path) -> Path:
        """Write task to new_path, then remove the file it came from."""
        old_path = task.file
        self.write_task(task, new_path)
        if old_path is not None and old_path != new_path:
            old_path.unlink(missing_ok=True)
            logger.info("Renamed %s to %s", old_path.name, new_path.name)
        return new_path

    def canonical_path(self, task: Task) -> Path:
        """The NNN-slug.md path for a task."""
        return self.tasks_dir / generate_filename(task.id, task.title)

    def choose_task_path(self, task: Task) -> Path:
        """
        Pick a free canonical path for task.

        Falls back to NNN-slug-1.md, NNN-slug-2.md, ... when another file
        already holds the canonical name. The task's own file counts as free.
        """
        path = self.canonical_path(task)
        if self._is_free(path, task):
            return path
        stem = path.stem
        counter = 1
        while True:
            candidate = self.tasks_dir / f"{stem}-{counter}.md"
            if self._is_free(candidate, task):
                return candidate
            counter += 1

    def _is_free(self, path: Path, task: Task) -> bool:
        return not path.exists() or (task.file is not None and path == task.file)

    # --- Directory scans ---

    def iter_task_files(self) -> Iterator[Path]:
        """Iterate over .md files in the tasks directory, sorted by name."""
        if not self.tasks_dir.is_dir():
            return
        for path in sorted(self.tasks_dir.iterdir()):
            if path.suffix == ".md" and path.is_file():
                yield path

    def read_all(self) -> list[Task]:
        """Read every task file, failing on the first malformed one."""
        return [self.read_task(path) for path in self.iter_task_files()]

    def read_all_lenient(self) -> tuple[list[Task], list[ReadWarning]]:
        """Read every task file, collecting a warning for each one that fails."""
        tasks: list[Task] = []
        warnings: list[ReadWarning] = []
        for path in self.iter_task_files():
            try:
                tasks.append(self.read_task(path))
            except KanbanError as e:
                logger.warning("Skipping malformed file %s: %s", path.name, e.message)
                warnings.append(ReadWarning(path, str(e.details.get("reason", e.message))))
            except OSError as e:
                logger.warning("Skipping unreadable file %s: %s", path.name, e)
                warnings.append(ReadWarning(path, str(e)))
        return tasks, warnings

    def find_by_id(self, task_id: int) -> Task:
        """
        Find a task by its preamble id.

        Tries files whose name carries the id first, then scans every file.

        Raises:
            KanbanError: TASK_NOT_FOUND when no file has that id, or the read
                error of a matching-name file that failed to parse.
        """
        failed: list[KanbanError] = []
        for path in self.iter_task_files():
            try:
                file_id = extract_id(path.name)
            except ValueError:
                continue
            if file_id != task_id:
                continue
            try:
                task = self.read_task(path)
            except KanbanError as e:
                failed.append(e)
                continue
            if task.id == task_id:
                return task

        logger.debug("find_by_id: #%d not found by filename, scanning all files", task_id)
        for path in self.iter_task_files():
            try:
                task = self.read_task(path)
            except KanbanError:
                continue
            if task.id == task_id:
                return task

        if failed:
            raise failed[0]
        raise task_not_found(task_id)
