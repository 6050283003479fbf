"""Data models."""

from .activity import LogEntry
from .config import (
    ARCHIVED_STATUS,
    CONFIG_FILE,
    DEFAULT_DIR,
    AgeThreshold,
    BoardConfig,
    BoardInfo,
    ClassConfig,
    DefaultsConfig,
    TUIConfig,
)
from .task import Task

__all__ = [
    "ARCHIVED_STATUS",
    "CONFIG_FILE",
    "DEFAULT_DIR",
    "AgeThreshold",
    "BoardConfig",
    "BoardInfo",
    "ClassConfig",
    "DefaultsConfig",
    "LogEntry",
    "TUIConfig",
    "Task",
]
