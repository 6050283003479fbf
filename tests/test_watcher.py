"""Tests for the polling file watcher."""

import asyncio
import contextlib
from pathlib import Path

from kanban_md.ui.watcher import snapshot, watch


def make_board(tmp_path: Path) -> tuple[Path, Path]:
    board = tmp_path / ".kanban"
    tasks = board / "tasks"
    tasks.mkdir(parents=True)
    (board / "config.yml").write_text("version: 2\n")
    return tasks, board


class TestSnapshot:
    def test_tracks_task_files_and_config(self, tmp_path: Path):
        tasks, board = make_board(tmp_path)
        (tasks / "001-a.md").write_text("---\n---\n")
        (tasks / "notes.txt").write_text("ignored")
        (tasks / "sub").mkdir()

        names = {Path(p).name for p in snapshot(tasks, board)}
        assert names == {"001-a.md", "config.yml"}

    def test_missing_directories(self, tmp_path: Path):
        """A board removed under the watcher yields an empty snapshot."""
        assert snapshot(tmp_path / "gone", tmp_path / "gone") == {}


class TestWatch:
    def test_burst_produces_one_callback(self, tmp_path: Path):
        tasks, board = make_board(tmp_path)
        calls: list[int] = []

        async def scenario() -> None:
            watcher = asyncio.create_task(
                watch(tasks, board, lambda: calls.append(1), poll_interval=0.01, quiet_period=0.05)
            )
            await asyncio.sleep(0.03)
            for i in range(3):
                (tasks / f"00{i}-t.md").write_text("x")
            for _ in range(100):
                await asyncio.sleep(0.01)
                if calls:
                    break
            await asyncio.sleep(0.1)
            watcher.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await watcher

        asyncio.run(scenario())
        assert calls == [1]
