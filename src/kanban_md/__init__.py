"""kanban-md - Markdown-file kanban board with a CLI and a terminal UI."""

__version__ = "0.1.0"
