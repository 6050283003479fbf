"""Main kanban board screen."""

from __future__ import annotations

import logging

from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Horizontal
from textual.screen import Screen
from textual.widgets import Static

from ...models import BoardConfig, Task
from ..layout import DIM, BoardLayout, Column, truncate
from ..widgets.column import KanbanColumn

logger = logging.getLogger(__name__)

STATUS_HINT = "←↓↑→:nav c:create e:edit m:move n/p:status +/-:priority d:del ?:help q:quit"


class BoardScreen(Screen):
    """
    Column board with per-column scroll and a single selection.

    Holds all view state: the columns, the active column and row, and the
    error banner. Mutations happen in the app; the screen only reloads.
    """

    DEFAULT_CSS = """
    BoardScreen #columns {
        height: 1fr;
    }

    BoardScreen #spacer {
        height: 1;
    }

    BoardScreen #error-banner {
        height: 1;
        color: $error;
        text-style: bold;
    }

    BoardScreen #status-bar {
        height: 1;
    }
    """

    def __init__(self, config: BoardConfig, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.columns: list[Column] = []
        self.task_count = 0
        self.active_col = 0
        self.active_row = 0
        self.error: str | None = None
        self.layout_engine = BoardLayout(config)
        self._loaded = False

    @property
    def board_config(self) -> BoardConfig:
        """Get board configuration from app."""
        return self.app.config_service.get_config()  # pyrefly: ignore[missing-attribute]

    def compose(self) -> ComposeResult:
        if not self._loaded:
            self._load()
        with Horizontal(id="columns"):
            for index in range(len(self.columns)):
                yield KanbanColumn(index, id=f"column-{index}")
        yield Static("", id="spacer")
        yield Static("", id="error-banner")
        yield Static("", id="status-bar")

    def on_mount(self) -> None:
        self.call_after_refresh(self._paint)

    def on_resize(self) -> None:
        self._sync_size()
        self._ensure_visible()
        self._paint()

    # --- Data ---

    def load_tasks(self) -> None:
        """Re-read tasks and redraw, rebuilding the column widgets if needed."""
        shape_changed = self._load()
        if shape_changed and self.is_mounted:
            self.refresh(recompose=True)
            self.call_after_refresh(self._paint)
        else:
            self._paint()

    def _load(self) -> bool:
        """
        Rebuild the columns from disk, keeping each column's scroll offset.

        Returns:
            True when the number of columns changed.
        """
        self._loaded = True
        self.app.config_service.reload()  # pyrefly: ignore[missing-attribute]
        config = self.board_config
        self.layout_engine.config = config

        tasks, warnings = self.app.board_service.load_tasks()  # pyrefly: ignore[missing-attribute]
        for warning in warnings:
            logger.warning("Skipping malformed file %s: %s", warning.file.name, warning.error)

        visible = [t for t in tasks if not config.is_archived_status(t.status)]
        visible.sort(key=lambda t: (-config.priority_index(t.priority), t.id))
        self.task_count = len(visible)

        statuses = list(config.statuses)
        if config.tui.hide_empty_columns:
            used = {t.status for t in visible}
            non_empty = [s for s in statuses if s in used]
            # An empty board keeps every column so tasks can still be created.
            if non_empty:
                statuses = non_empty

        previous = {c.status: c.scroll_off for c in self.columns}
        shape_changed = len(statuses) != len(self.columns)
        self.columns = [Column(status, scroll_off=previous.get(status, 0)) for status in statuses]
        by_status = {c.status: c for c in self.columns}
        for task in visible:
            column = by_status.get(task.status)
            if column is not None:
                column.tasks.append(task)
        # Tasks may have left columns that are not selected
        for column in self.columns:
            column.clamp_scroll()

        self.clamp_row()
        return shape_changed

    def find_task(self, task_id: int) -> Task | None:
        for column in self.columns:
            for task in column.tasks:
                if task.id == task_id:
                    return task
        return None

    # --- Selection ---

    @property
    def current_column(self) -> Column | None:
        if 0 <= self.active_col < len(self.columns):
            return self.columns[self.active_col]
        return None

    def get_current_task(self) -> Task | None:
        """Get the selected task."""
        column = self.current_column
        if column is None or not column.tasks:
            return None
        if 0 <= self.active_row < len(column.tasks):
            return column.tasks[self.active_row]
        return None

    def clamp_row(self) -> None:
        """Clamp the selection into the board and scroll it into view."""
        if not self.columns:
            self.active_col = 0
            self.active_row = 0
            return
        self.active_col = max(0, min(self.active_col, len(self.columns) - 1))
        column = self.columns[self.active_col]
        if not column.tasks:
            self.active_row = 0
            return
        self.active_row = max(0, min(self.active_row, len(column.tasks) - 1))
        self._ensure_visible()

    def navigate_column(self, delta: int) -> None:
        """Move the selection to a neighbouring column."""
        target = self.active_col + delta
        if 0 <= target < len(self.columns):
            self.active_col = target
            self.clamp_row()
            self._paint()

    def navigate_task(self, delta: int) -> None:
        """Move the selection within the current column."""
        column = self.current_column
        if column is None or not column.tasks:
            return
        target = self.active_row + delta
        if 0 <= target < len(column.tasks):
            self.active_row = target
            self._ensure_visible()
            self._paint()

    def navigate_to_task(self, index: int) -> None:
        """Jump to a row of the current column (-1 for the last)."""
        column = self.current_column
        if column is None or not column.tasks:
            return
        self.active_row = len(column.tasks) - 1 if index < 0 else min(index, len(column.tasks) - 1)
        self._ensure_visible()
        self._paint()

    def select_task(self, task_id: int) -> None:
        """Select a task wherever it is; keep the position when it is gone."""
        for col_index, column in enumerate(self.columns):
            for row, task in enumerate(column.tasks):
                if task.id == task_id:
                    self.active_col = col_index
                    self.active_row = row
                    self._ensure_visible()
                    self._paint()
                    return
        self.clamp_row()
        self._paint()

    # --- Error banner ---

    def set_error(self, message: str) -> None:
        self.error = message
        self._sync_size()
        self._ensure_visible()
        self._paint()

    def clear_error(self) -> None:
        if self.error is None:
            return
        self.error = None
        self._sync_size()
        self._ensure_visible()
        self._paint()

    # --- Rendering ---

    def _sync_size(self) -> None:
        self.layout_engine.width = self.size.width
        self.layout_engine.height = self.size.height
        self.layout_engine.has_error = self.error is not None

    def _ensure_visible(self) -> None:
        column = self.current_column
        if column is None:
            return
        width = self.layout_engine.column_width(len(self.columns))
        self.layout_engine.ensure_visible(column, self.active_row, width)

    def column_lines(self, index: int) -> list[Text]:
        """Rendered lines of one column for its widget."""
        if index >= len(self.columns):
            return []
        width = self.layout_engine.column_width(len(self.columns))
        active = index == self.active_col
        return self.layout_engine.render_column(
            self.columns[index],
            width,
            active=active,
            active_row=self.active_row if active else -1,
        )

    def status_text(self) -> str:
        text = f" {self.board_config.board.name} | {self.task_count} tasks | {STATUS_HINT}"
        return truncate(text, self.layout_engine.width) if self.layout_engine.width else text

    def _paint(self) -> None:
        """Push the current state to the widgets."""
        if not self.is_mounted:
            return
        self._sync_size()
        width = self.layout_engine.column_width(len(self.columns))
        for widget in self.query(KanbanColumn):
            widget.styles.width = width
            widget.refresh()

        banner = self.query_one("#error-banner", Static)
        banner.display = self.error is not None
        if self.error is not None:
            message = f"Error: {self.error}"
            if self.layout_engine.width:
                message = truncate(message, self.layout_engine.width)
            banner.update(Text(message))
        self.query_one("#status-bar", Static).update(Text(self.status_text(), DIM))
