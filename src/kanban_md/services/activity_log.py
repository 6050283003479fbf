"""Append-only activity log (activity.jsonl) with a line cap and advisory lock."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from ..models import LogEntry
from ..utils import atomic_write_text, file_lock, now_utc

logger = logging.getLogger(__name__)

LOG_FILE = "activity.jsonl"
LOCK_FILE = ".lock"
MAX_LOG_LINES = 10_000
MAX_LINE_BYTES = 1024 * 1024


class ActivityLogError(Exception):
    """The log file holds a line too long to be a valid entry."""


@dataclass
class LogFilter:
    """Filters for reading the activity log (all optional, ANDed)."""

    since: datetime | None = None
    action: str | None = None
    task_id: int | None = None
    limit: int = 0  # 0 = no limit

    def matches(self, entry: LogEntry) -> bool:
        if self.since is not None and entry.timestamp < self.since:
            return False
        if self.action and entry.action != self.action:
            return False
        return self.task_id is None or entry.task_id == self.task_id


class ActivityLog:
    """Reader and writer for the board's activity log."""

    def __init__(self, board_dir: Path, max_lines: int = MAX_LOG_LINES) -> None:
        self.board_dir = board_dir
        self.max_lines = max_lines

    @property
    def path(self) -> Path:
        return self.board_dir / LOG_FILE

    @property
    def lock_path(self) -> Path:
        return self.board_dir / LOCK_FILE

    def append(self, entry: LogEntry) -> None:
        """
        Append one entry under the board lock, dropping the oldest lines at the cap.

        Raises:
            ActivityLogError: If an existing line exceeds MAX_LINE_BYTES.
            OSError: On filesystem failures.
        """
        with file_lock(self.lock_path):
            self._truncate_for_append()
            with self.path.open("a", encoding="utf-8") as f:
                f.write(entry.model_dump_json() + "\n")

    def log_mutation(
        self,
        action: str,
        task_id: int,
        detail: str = "",
        now: datetime | None = None,
    ) -> None:
        """Append an entry; failures are logged and never raised."""
        entry = LogEntry(timestamp=now or now_utc(), action=action, task_id=task_id, detail=detail)
        try:
            self.append(entry)
        except (OSError, ValueError, ActivityLogError) as e:
            logger.warning("Could not append to activity log: %s", e)

    def read(self, filter_: LogFilter | None = None) -> list[LogEntry]:
        """Read entries oldest first, skipping malformed lines (bad UTF-8 included).

        With a limit, only the newest `limit` matches are returned.
        """
        filter_ = filter_ or LogFilter()
        if not self.path.exists():
            return []

        matches: list[LogEntry] = []
        with self.path.open(encoding="utf-8", errors="replace") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    entry = LogEntry.model_validate_json(line)
                except ValidationError:
                    continue
                if filter_.matches(entry):
                    matches.append(entry)

        if filter_.limit > 0:
            return matches[-filter_.limit :]
        return matches

    def _truncate_for_append(self) -> None:
        """Rewrite the file with the newest max_lines - 1 lines if it is full."""
        if not self.path.exists():
            return
        lines = self._scan_lines()
        if len(lines) < self.max_lines:
            return
        keep = lines[len(lines) - (self.max_lines - 1) :] if self.max_lines > 1 else []
        atomic_write_text(self.path, "".join(keep))
        logger.debug("Truncated activity log from %d to %d lines", len(lines), len(keep))

    def _scan_lines(self) -> list[str]:
        lines: list[str] = []
        with self.path.open(encoding="utf-8", errors="replace") as f:
            for number, line in enumerate(f, start=1):
                if len(line.encode("utf-8")) > MAX_LINE_BYTES:
                    raise ActivityLogError(
                        f"{LOG_FILE} line {number} exceeds {MAX_LINE_BYTES} bytes"
                    )
                if not line.endswith("\n"):
                    line += "\n"
                lines.append(line)
        return lines
