"""kanban-md TUI Application."""

from __future__ import annotations

import logging
from collections.abc import Callable

from textual import work
from textual.app import App
from textual.binding import Binding
from textual.message import Message

from .cli import output
from .config import Settings
from .errors import ConfigError, KanbanError
from .models import ARCHIVED_STATUS, Task
from .repositories import FilesystemRepository
from .services import (
    ActivityLog,
    ActivityLogError,
    BoardService,
    ConfigService,
    TaskService,
    resolve_board_dir,
)
from .ui.screens.board import BoardScreen
from .ui.screens.help import HelpScreen
from .ui.watcher import watch
from .ui.widgets import ConfirmModal, DetailModal, MoveModal, TaskForm, TaskFormModal, form_changes

logger = logging.getLogger(__name__)

AGE_REFRESH_SECONDS = 30


class BoardChanged(Message):
    """Posted by the file watcher after task files or config.yml change."""


class KanbanApp(App):
    """kanban-md - Terminal Kanban TUI."""

    TITLE = "kanban-md"

    BINDINGS = [
        # Core bindings
        Binding("q", "quit", "Quit", show=True),
        Binding("ctrl+c", "quit", "Quit", show=False, priority=True),
        Binding("?", "help", "Help", show=True),
        Binding("r", "refresh", "Reload", show=True),
        Binding("escape", "dismiss_error", "Dismiss", show=False),
        # Navigation - vim style
        Binding("h", "nav_left", "← Column", show=False),
        Binding("j", "nav_down", "↓ Task", show=False),
        Binding("k", "nav_up", "↑ Task", show=False),
        Binding("l", "nav_right", "→ Column", show=False),
        # Navigation - arrow keys
        Binding("left", "nav_left", "← Column", show=False),
        Binding("down", "nav_down", "↓ Task", show=False),
        Binding("up", "nav_up", "↑ Task", show=False),
        Binding("right", "nav_right", "→ Column", show=False),
        # Jump navigation
        Binding("g", "nav_first", "First", show=False),
        Binding("G", "nav_last", "Last", show=False),
        # Task actions
        Binding("enter", "show_detail", "Detail", show=False),
        Binding("m", "move_task", "Move", show=True),
        Binding("n", "move_next", "Next status", show=False),
        Binding("p", "move_prev", "Previous status", show=False),
        Binding("plus,equals_sign", "raise_priority", "Raise priority", show=False),
        Binding("minus,underscore", "lower_priority", "Lower priority", show=False),
        Binding("c", "new_task", "Create", show=True),
        Binding("e", "edit_task", "Edit", show=True),
        Binding("d", "delete_task", "Delete", show=True),
    ]

    def __init__(self, settings: Settings | None = None) -> None:
        super().__init__()
        self.settings = settings or Settings()
        self._init_services()

    def _init_services(self) -> None:
        """Initialize repository and services."""
        self.board_dir = resolve_board_dir(self.settings.dir)
        self.config_service = ConfigService(self.board_dir)
        self.repository = FilesystemRepository(self.config_service.tasks_dir)
        self.activity_log = ActivityLog(self.board_dir)
        # The interactive board is driven by a person: no claim guard.
        self.board_service = BoardService(
            self.repository,
            self.config_service,
            self.activity_log,
            enforce_claims=False,
        )
        self.task_service = TaskService(
            self.repository,
            self.config_service,
            self.activity_log,
            self.board_service,
        )

    def on_mount(self) -> None:
        """Called when app is mounted."""
        self.repository.ensure_directory()
        self.push_screen(BoardScreen(self.config_service.get_config()))
        self.set_interval(AGE_REFRESH_SECONDS, self._refresh_ages)
        self._watch_files()

    @work(exclusive=True, group="watcher")
    async def _watch_files(self) -> None:
        """Post BoardChanged whenever the files on disk change."""
        await watch(
            self.repository.tasks_dir,
            self.board_dir,
            lambda: self.post_message(BoardChanged()),
        )

    def on_board_changed(self, message: BoardChanged) -> None:
        logger.debug("Reloading after file change")
        self._reload()

    def _refresh_ages(self) -> None:
        screen = self._board_screen()
        if screen is not None:
            screen.load_tasks()

    def _board_screen(self) -> BoardScreen | None:
        """The board screen when it is the active screen."""
        screen = self.screen
        if isinstance(screen, BoardScreen):
            return screen
        return None

    def _selected(self) -> tuple[BoardScreen, Task] | None:
        """The board screen and its selected task, if both exist."""
        screen = self._board_screen()
        if screen is None:
            return None
        task = screen.get_current_task()
        if task is None:
            return None
        return screen, task

    def _find_board(self) -> BoardScreen | None:
        """The board screen even when a modal is on top of it."""
        for screen in reversed(self.screen_stack):
            if isinstance(screen, BoardScreen):
                return screen
        return None

    def _reload(self) -> None:
        board = self._find_board()
        if board is None:
            return
        board.load_tasks()
        if isinstance(self.screen, DetailModal):
            task = board.find_task(self.screen.task.id)
            if task is None:
                # Deleted or archived while open
                self.screen.dismiss(None)
            else:
                self.screen.set_task(task)

    def _mutate(self, screen: BoardScreen, operation: Callable[[], Task | None]) -> None:
        """
        Run a service call; show failures in the error banner.

        On success the banner is cleared, the board reloads and the
        selection follows the returned task.
        """
        try:
            task = operation()
        except KanbanError as e:
            logger.info("TUI action failed: %s (%s)", e.message, e.code.value)
            screen.set_error(e.message)
            return
        except (OSError, ActivityLogError) as e:
            logger.exception("TUI action failed")
            screen.set_error(str(e))
            return
        screen.clear_error()
        screen.load_tasks()
        if task is not None:
            screen.select_task(task.id)

    def action_refresh(self) -> None:
        """Reload the board from disk."""
        screen = self._board_screen()
        if screen is not None:
            screen.load_tasks()

    def action_help(self) -> None:
        """Show help screen."""
        if self._board_screen() is not None:
            self.push_screen(HelpScreen())

    def action_dismiss_error(self) -> None:
        screen = self._board_screen()
        if screen is not None:
            screen.clear_error()

    # Navigation actions
    def action_nav_left(self) -> None:
        """Navigate to previous column."""
        screen = self._board_screen()
        if screen is not None:
            screen.navigate_column(-1)

    def action_nav_right(self) -> None:
        """Navigate to next column."""
        screen = self._board_screen()
        if screen is not None:
            screen.navigate_column(1)

    def action_nav_up(self) -> None:
        """Navigate to previous task."""
        screen = self._board_screen()
        if screen is not None:
            screen.navigate_task(-1)

    def action_nav_down(self) -> None:
        """Navigate to next task."""
        screen = self._board_screen()
        if screen is not None:
            screen.navigate_task(1)

    def action_nav_first(self) -> None:
        """Navigate to first task in column."""
        screen = self._board_screen()
        if screen is not None:
            screen.navigate_to_task(0)

    def action_nav_last(self) -> None:
        """Navigate to last task in column."""
        screen = self._board_screen()
        if screen is not None:
            screen.navigate_to_task(-1)

    # Task actions
    def action_show_detail(self) -> None:
        """Show the detail view of the selected task."""
        screen = self._board_screen()
        if screen is None:
            return
        task = screen.get_current_task()
        if task is not None:
            self.push_screen(DetailModal(task))

    def action_move_task(self) -> None:
        """Open the status picker for the selected task."""
        screen = self._board_screen()
        if screen is None:
            return
        task = screen.get_current_task()
        if task is None:
            return
        statuses = self.config_service.get_config().statuses
        self.push_screen(  # pyrefly: ignore[no-matching-overload]
            MoveModal(task.id, statuses, task.status),
            callback=lambda status: self._handle_move(task.id, status),
        )

    def _handle_move(self, task_id: int, status: str | None) -> None:
        screen = self._board_screen()
        if screen is None or status is None:
            return
        self._mutate(screen, lambda: self.board_service.move(task_id, status).task)

    def action_move_next(self) -> None:
        """Move the selected task one status right."""
        selected = self._selected()
        if selected is not None:
            screen, task = selected
            self._mutate(screen, lambda: self.board_service.move_next(task.id).task)

    def action_move_prev(self) -> None:
        """Move the selected task one status left."""
        selected = self._selected()
        if selected is not None:
            screen, task = selected
            self._mutate(screen, lambda: self.board_service.move_prev(task.id).task)

    def action_raise_priority(self) -> None:
        selected = self._selected()
        if selected is not None:
            screen, task = selected
            self._mutate(screen, lambda: self.board_service.raise_priority(task.id))

    def action_lower_priority(self) -> None:
        selected = self._selected()
        if selected is not None:
            screen, task = selected
            self._mutate(screen, lambda: self.board_service.lower_priority(task.id))

    def action_new_task(self) -> None:
        """Open the wizard to create a task in the current column."""
        screen = self._board_screen()
        if screen is None or screen.current_column is None:
            return
        status = screen.current_column.status
        config = self.config_service.get_config()
        self.push_screen(  # pyrefly: ignore[no-matching-overload]
            TaskFormModal(
                f"New task in {status}",
                config.priorities,
                TaskForm(title="", priority=config.defaults.priority),
            ),
            callback=lambda form: self._handle_create(status, form),
        )

    def _handle_create(self, status: str, form: TaskForm | None) -> None:
        screen = self._board_screen()
        if screen is None or form is None:
            return
        self._mutate(
            screen,
            lambda: self.task_service.create_task(
                form.title,
                status=status,
                priority=form.priority,
                tags=form.tags,
                body=form.body.strip(),
            ),
        )

    def action_edit_task(self) -> None:
        """Open the wizard prefilled with the selected task."""
        selected = self._selected()
        if selected is None:
            return
        _, task = selected
        config = self.config_service.get_config()
        initial = TaskForm(
            title=task.title,
            body=task.body.rstrip("\n"),
            priority=task.priority if task.priority in config.priorities else config.defaults.priority,
            tags=list(task.tags),
        )
        self.push_screen(  # pyrefly: ignore[no-matching-overload]
            TaskFormModal(f"Edit #{task.id}", config.priorities, initial),
            callback=lambda form: self._handle_edit(task.id, initial, form),
        )

    def _handle_edit(self, task_id: int, initial: TaskForm, form: TaskForm | None) -> None:
        screen = self._board_screen()
        if screen is None or form is None:
            return
        changes = form_changes(initial, form)
        if changes.is_empty():
            logger.debug("edit: #%d unchanged", task_id)
            return
        self._mutate(screen, lambda: self.task_service.edit_task(task_id, changes))

    def action_delete_task(self) -> None:
        """Soft-delete the selected task after confirmation."""
        selected = self._selected()
        if selected is None:
            return
        _, task = selected
        self.push_screen(  # pyrefly: ignore[no-matching-overload]
            ConfirmModal(f"Delete task #{task.id} '{task.title}'? (moves to {ARCHIVED_STATUS})"),
            callback=lambda confirmed: self._handle_delete(task.id, confirmed),
        )

    def _handle_delete(self, task_id: int, confirmed: bool | None) -> None:
        screen = self._board_screen()
        if screen is None or not confirmed:
            return
        self._mutate(screen, lambda: self._delete(task_id))

    def _delete(self, task_id: int) -> None:
        self.board_service.delete(task_id)


def run(settings: Settings | None = None) -> int:
    """Run the kanban-md application."""
    try:
        app = KanbanApp(settings)
    except KanbanError as e:
        output.error(e.message)
        return e.exit_code
    except ConfigError as e:
        output.error(str(e))
        return 1
    app.run()
    return app.return_code or 0
