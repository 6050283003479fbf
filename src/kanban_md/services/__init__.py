"""Service layer for business logic."""

from .activity_log import ActivityLog, ActivityLogError, LogFilter
from .board_service import BatchResult, BoardService, MoveResult
from .config_service import CONFIG_KEYS, ConfigService, config_value, find_board_dir, resolve_board_dir
from .consistency_service import ConsistencyReport, ConsistencyService
from .filter_service import Filter, FilterService, TaskGroup
from .pick_service import PickOptions, PickService
from .report_service import ReportService
from .task_service import TaskChanges, TaskService, parse_tags

__all__ = [
    "CONFIG_KEYS",
    "ActivityLog",
    "ActivityLogError",
    "BatchResult",
    "BoardService",
    "ConfigService",
    "ConsistencyReport",
    "ConsistencyService",
    "Filter",
    "FilterService",
    "LogFilter",
    "MoveResult",
    "PickOptions",
    "PickService",
    "ReportService",
    "TaskChanges",
    "TaskGroup",
    "TaskService",
    "config_value",
    "find_board_dir",
    "parse_tags",
    "resolve_board_dir",
]
