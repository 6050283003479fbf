"""Init command for creating a new board."""

import logging
from pathlib import Path

from pydantic import ValidationError

from ..errors import ErrorCode, KanbanError, invalid_input
from ..models import CONFIG_FILE, BoardConfig
from ..services import ConfigService

logger = logging.getLogger(__name__)


def _is_valid_tasks_dir(name: str, board_dir: Path) -> bool:
    """Validate the tasks directory stays inside the board directory."""
    path = Path(name)
    if path.is_absolute():
        return False
    try:
        resolved = (board_dir / path).resolve()
        resolved.relative_to(board_dir.resolve())
    except ValueError:
        return False
    return resolved != board_dir.resolve()


def parse_wip_limits(values: list[str]) -> dict[str, int]:
    """Parse repeated STATUS:N arguments.

    Raises:
        KanbanError: INVALID_INPUT for a malformed entry.
    """
    limits: dict[str, int] = {}
    for value in values:
        status, sep, number = value.partition(":")
        if not sep or not status.strip():
            raise invalid_input(f"invalid WIP limit {value!r} (expected STATUS:N)", input=value)
        try:
            limits[status.strip()] = int(number)
        except ValueError as e:
            raise invalid_input(f"invalid WIP limit {value!r} (expected STATUS:N)", input=value) from e
    return limits


def build_config(
    name: str,
    statuses: list[str] | None = None,
    wip_limits: dict[str, int] | None = None,
    tasks_dir: str = "",
) -> BoardConfig:
    """Build the initial configuration from the defaults and overrides.

    Raises:
        KanbanError: INVALID_INPUT when the overrides do not form a valid board.
    """
    config = BoardConfig.default(name)
    data = config.model_dump(by_alias=True)
    if statuses:
        data["statuses"] = statuses
        data["defaults"]["status"] = statuses[0]
    if wip_limits:
        data["wip_limits"] = wip_limits
    if tasks_dir:
        data["tasks_dir"] = tasks_dir
    try:
        return BoardConfig.model_validate(data)
    except ValidationError as e:
        errors = "; ".join(err["msg"] for err in e.errors())
        raise invalid_input(f"invalid board settings: {errors}") from e


def run_init(
    board_dir: Path,
    name: str = "",
    statuses: list[str] | None = None,
    wip_limits: dict[str, int] | None = None,
    tasks_dir: str = "",
) -> BoardConfig:
    """
    Create a board directory with config.yml and an empty tasks directory.

    Args:
        board_dir: Directory to hold config.yml (e.g. ./.kanban)
        name: Board name (default: the project directory's name)
        statuses: Custom ordered statuses
        wip_limits: Per-status WIP limits
        tasks_dir: Tasks directory relative to board_dir

    Returns:
        The saved configuration.

    Raises:
        KanbanError: BOARD_EXISTS when board_dir already holds a board,
            INVALID_INPUT for invalid settings.
    """
    config_path = board_dir / CONFIG_FILE
    if config_path.exists():
        raise KanbanError(
            ErrorCode.BOARD_EXISTS,
            f"board already exists in {board_dir}",
            {"dir": str(board_dir)},
        )

    if tasks_dir and not _is_valid_tasks_dir(tasks_dir, board_dir):
        raise invalid_input(f"invalid tasks directory: {tasks_dir}", tasks_dir=tasks_dir)

    if not name:
        project_dir = board_dir.resolve()
        if project_dir.name.startswith("."):
            project_dir = project_dir.parent
        name = project_dir.name or "kanban"

    config = build_config(name, statuses, wip_limits, tasks_dir)
    ConfigService.create(board_dir, config)
    logger.info("Initialized board %r in %s", name, board_dir)
    return config
