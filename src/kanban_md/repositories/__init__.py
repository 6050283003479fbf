"""Repository layer for data access."""

from .filesystem import FilesystemRepository, ReadWarning, parse_task, render_task

__all__ = [
    "FilesystemRepository",
    "ReadWarning",
    "parse_task",
    "render_task",
]
