"""Status picker for moving a task."""

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.screen import ModalScreen
from textual.widgets import Label, OptionList
from textual.widgets.option_list import Option


class MoveModal(ModalScreen[str | None]):
    """Pick a target status; dismisses with the status or None."""

    DEFAULT_CSS = """
    MoveModal {
        align: center middle;
    }

    MoveModal > Vertical {
        width: 40;
        height: auto;
        max-height: 80%;
        padding: 1 2;
        background: $surface;
        border: round $primary;
    }

    MoveModal Label {
        width: 100%;
        text-align: center;
        margin-bottom: 1;
        text-style: bold;
    }

    MoveModal OptionList {
        height: auto;
        max-height: 12;
    }
    """

    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
        Binding("q", "cancel", "Cancel", show=False),
        Binding("j", "cursor_down", "Down", show=False),
        Binding("k", "cursor_up", "Up", show=False),
    ]

    def __init__(self, task_id: int, statuses: list[str], current: str) -> None:
        """Initialize the picker.

        Args:
            task_id: Task being moved (shown in the title)
            statuses: Statuses to offer, in board order
            current: The task's current status, highlighted initially
        """
        super().__init__()
        self._task_id = task_id
        self._statuses = statuses
        self._current = current

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Label(f"Move #{self._task_id} to:")
            option_list = OptionList(id="status-list")
            for status in self._statuses:
                marker = " (current)" if status == self._current else ""
                option_list.add_option(Option(f"{status}{marker}", id=status))
            yield option_list

    def on_mount(self) -> None:
        option_list = self.query_one(OptionList)
        if self._current in self._statuses:
            option_list.highlighted = self._statuses.index(self._current)
        option_list.focus()

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        self.dismiss(event.option.id)

    def action_cursor_down(self) -> None:
        self.query_one(OptionList).action_cursor_down()

    def action_cursor_up(self) -> None:
        self.query_one(OptionList).action_cursor_up()

    def action_cancel(self) -> None:
        self.dismiss(None)
