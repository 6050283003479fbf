"""Shared fixtures: a fresh board in a temporary directory."""

from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

import pytest

from kanban_md.models import BoardConfig, Task
from kanban_md.repositories import FilesystemRepository
from kanban_md.services import ActivityLog, BoardService, ConfigService, TaskService

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def now() -> datetime:
    """Fixed reference time for state changes."""
    return NOW


@pytest.fixture
def board_dir(tmp_path: Path) -> Path:
    """Create a default board under tmp_path/.kanban."""
    path = tmp_path / ".kanban"
    ConfigService.create(path, BoardConfig.default("test-board"))
    return path


@pytest.fixture
def config_service(board_dir: Path) -> ConfigService:
    return ConfigService(board_dir)


@pytest.fixture
def repo(config_service: ConfigService) -> FilesystemRepository:
    """Repository over the board's tasks directory."""
    return FilesystemRepository(config_service.tasks_dir)


@pytest.fixture
def activity_log(board_dir: Path) -> ActivityLog:
    return ActivityLog(board_dir)


@pytest.fixture
def board_service(
    repo: FilesystemRepository,
    config_service: ConfigService,
    activity_log: ActivityLog,
) -> BoardService:
    """Board service with the claim guard on, as the CLI uses it."""
    return BoardService(repo, config_service, activity_log)


@pytest.fixture
def task_service(
    repo: FilesystemRepository,
    config_service: ConfigService,
    activity_log: ActivityLog,
    board_service: BoardService,
) -> TaskService:
    return TaskService(repo, config_service, activity_log, board_service)


@pytest.fixture
def update_config(config_service: ConfigService) -> Callable[..., BoardConfig]:
    """Rewrite config.yml with some fields replaced."""

    def update(**fields) -> BoardConfig:
        data = config_service.get_config().model_dump(by_alias=True)
        data.update(fields)
        config = BoardConfig.model_validate(data)
        config_service.save(config)
        return config

    return update


@pytest.fixture
def make_task(repo: FilesystemRepository) -> Callable[..., Task]:
    """Write a task file directly, bypassing the services."""

    def make(task_id: int, title: str = "", **fields) -> Task:
        fields.setdefault("status", "backlog")
        fields.setdefault("priority", "medium")
        fields.setdefault("created", NOW)
        fields.setdefault("updated", NOW)
        task = Task(id=task_id, title=title or f"Task {task_id}", **fields)
        repo.ensure_directory()
        repo.write_task(task)
        return task

    return make
