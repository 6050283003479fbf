"""Polling file watcher for the interactive board."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from pathlib import Path

from ..models import CONFIG_FILE

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.5  # seconds between snapshots
QUIET_PERIOD = 0.1  # changes must settle this long before a refresh

Snapshot = dict[str, tuple[int, int]]


def snapshot(tasks_dir: Path, board_dir: Path) -> Snapshot:
    """Modification time and size of every task file and config.yml."""
    result: Snapshot = {}
    try:
        with os.scandir(tasks_dir) as entries:
            for entry in entries:
                if entry.name.endswith(".md") and entry.is_file():
                    stat = entry.stat()
                    result[entry.path] = (stat.st_mtime_ns, stat.st_size)
    except FileNotFoundError:
        pass
    config_path = board_dir / CONFIG_FILE
    try:
        stat = config_path.stat()
    except FileNotFoundError:
        return result
    result[str(config_path)] = (stat.st_mtime_ns, stat.st_size)
    return result


async def watch(
    tasks_dir: Path,
    board_dir: Path,
    on_change: Callable[[], None],
    poll_interval: float = POLL_INTERVAL,
    quiet_period: float = QUIET_PERIOD,
) -> None:
    """
    Call on_change once per burst of changes until cancelled.

    After a change is seen, snapshots are retaken every quiet_period until
    two in a row agree, so a burst of writes produces a single callback.
    """
    last = snapshot(tasks_dir, board_dir)
    logger.debug("Watching %s (%d files)", tasks_dir, len(last))
    while True:
        await asyncio.sleep(poll_interval)
        current = snapshot(tasks_dir, board_dir)
        if current == last:
            continue
        while True:
            await asyncio.sleep(quiet_period)
            settled = snapshot(tasks_dir, board_dir)
            if settled == current:
                break
            current = settled
        last = current
        logger.debug("Board files changed")
        on_change()
