"""Configuration service for locating, loading and saving config.yml."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from ..errors import ConfigError, board_not_found, invalid_input
from ..models import CONFIG_FILE, DEFAULT_DIR, BoardConfig
from ..utils import atomic_write_text

logger = logging.getLogger(__name__)

CONFIG_HEADER = """\
# kanban-md board configuration
#
# statuses: ordered workflow; the first is the initial status, the last is terminal.
#   'archived' is reserved for soft-deleted tasks and is always available.
# priorities: ordered from lowest to highest.
# classes: classes of service, ordered from most to least urgent for `pick`.
# wip_limits: max tasks per status (0 or absent = unlimited).
# claim_timeout: claims older than this are treated as expired (e.g. 1h, 30m).

"""


# Keys shown by `config`, in display order
CONFIG_KEYS = (
    "version",
    "board.name",
    "board.description",
    "tasks_dir",
    "statuses",
    "priorities",
    "defaults.status",
    "defaults.priority",
    "defaults.class",
    "wip_limits",
    "claim_timeout",
    "next_id",
)
# Structural keys stay read-only; changing them would orphan task files
WRITABLE_KEYS = frozenset(
    {
        "board.name",
        "board.description",
        "defaults.status",
        "defaults.priority",
        "defaults.class",
        "claim_timeout",
    }
)


def config_value(config: BoardConfig, key: str) -> Any:
    """
    Look up a dotted config key, using the names written to config.yml.

    Raises:
        KanbanError: INVALID_INPUT for an unknown key.
    """
    if key not in CONFIG_KEYS:
        raise invalid_input(f"unknown config key {key!r}", key=key)
    value: Any = config.model_dump(by_alias=True)
    for part in key.split("."):
        value = value[part]
    return value


def find_board_dir(start: Path) -> Path:
    """
    Walk up from start looking for a board directory.

    At each level, `<dir>/.kanban/config.yml` wins over `<dir>/config.yml`.

    Raises:
        KanbanError: BOARD_NOT_FOUND when no ancestor holds a board.
    """
    current = start.resolve()
    while True:
        if (current / DEFAULT_DIR / CONFIG_FILE).is_file():
            return current / DEFAULT_DIR
        if (current / CONFIG_FILE).is_file():
            return current
        if current.parent == current:
            raise board_not_found(str(start))
        current = current.parent


def resolve_board_dir(dir_override: Path | None, cwd: Path | None = None) -> Path:
    """Resolve the board directory from a --dir override or by discovery."""
    if dir_override is None:
        return find_board_dir(cwd or Path.cwd())
    if (dir_override / CONFIG_FILE).is_file():
        return dir_override.resolve()
    if (dir_override / DEFAULT_DIR / CONFIG_FILE).is_file():
        return (dir_override / DEFAULT_DIR).resolve()
    raise board_not_found(str(dir_override))


class ConfigService:
    """Service for loading and caching board configuration."""

    def __init__(self, board_dir: Path) -> None:
        """Initialize the config service.

        Args:
            board_dir: Path to the board directory holding config.yml
        """
        self.board_dir = board_dir
        self._config: BoardConfig | None = None

    @property
    def config_path(self) -> Path:
        return self.board_dir / CONFIG_FILE

    @property
    def tasks_dir(self) -> Path:
        """Absolute path of the tasks directory."""
        return self.board_dir / self.get_config().tasks_dir

    def get_config(self) -> BoardConfig:
        """Get configuration, loading from file if not cached."""
        if self._config is None:
            self._config = self._load_config()
        return self._config

    def reload(self) -> None:
        """Clear cached configuration, forcing reload on next access."""
        self._config = None

    def save(self, config: BoardConfig) -> None:
        """Atomically write config.yml and refresh the cache."""
        text = yaml.safe_dump(
            config.to_yaml_dict(),
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )
        atomic_write_text(self.config_path, CONFIG_HEADER + text)
        self._config = config
        logger.debug("Saved %s (next_id=%d)", self.config_path, config.next_id)

    def set_value(self, key: str, value: str) -> BoardConfig:
        """
        Change one writable key, validate the whole config and save it.

        Raises:
            KanbanError: INVALID_INPUT for unknown or read-only keys and for
                values the config rejects (e.g. a default status not in
                statuses).
        """
        config = self.get_config()
        config_value(config, key)
        if key not in WRITABLE_KEYS:
            raise invalid_input(f"config key {key!r} is read-only", key=key)

        data = config.model_dump(by_alias=True)
        section, _, name = key.rpartition(".")
        (data[section] if section else data)[name] = value
        try:
            updated = BoardConfig.model_validate(data)
        except ValidationError as e:
            reason = e.errors()[0]["msg"]
            raise invalid_input(f"invalid value for {key}: {reason}", key=key, value=value) from e

        self.save(updated)
        logger.info("Set %s = %r", key, value)
        return updated

    def _load_config(self) -> BoardConfig:
        """Load and validate config.yml."""
        try:
            with self.config_path.open(encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except FileNotFoundError as e:
            raise ConfigError(f"{self.config_path} not found") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {CONFIG_FILE}: {e}") from e

        if data is None:
            raise ConfigError(f"{CONFIG_FILE} is empty")
        if not isinstance(data, dict):
            raise ConfigError(f"{CONFIG_FILE} must be a mapping")

        try:
            config = BoardConfig.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"invalid config: {e}") from e

        logger.info(
            "Loaded %s with %d statuses (next_id=%d)",
            CONFIG_FILE,
            len(config.statuses),
            config.next_id,
        )
        return config

    @classmethod
    def create(cls, board_dir: Path, config: BoardConfig) -> ConfigService:
        """Create a new board: directory, config.yml and tasks directory."""
        board_dir.mkdir(parents=True, exist_ok=True)
        service = cls(board_dir)
        service.save(config)
        (board_dir / config.tasks_dir).mkdir(parents=True, exist_ok=True)
        logger.info("Created board %r in %s", config.board.name, board_dir)
        return service
