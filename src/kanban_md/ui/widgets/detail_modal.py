"""Full-screen task detail view with line scrolling."""

from __future__ import annotations

from rich.console import Console
from rich.markdown import Markdown
from rich.text import Text
from textual.app import ComposeResult
from textual.binding import Binding
from textual.screen import ModalScreen
from textual.widgets import Static

from ...models import Task
from ...utils import format_date, format_duration
from ..layout import CLAIM_STYLE, DIM, DetailViewport

TIME_FORMAT = "%Y-%m-%d %H:%M"
LABEL_WIDTH = 14


def _field(label: str, value: str | Text) -> Text:
    return Text.assemble((f"{label}:".ljust(LABEL_WIDTH), "bold"), "  ", value)


def unescape_body(body: str) -> str:
    """Turn literal \\n and \\t typed on a command line into real whitespace."""
    return (
        body.replace("\\n", "\n").replace("\\t", "\t").replace("\\r", "").replace("\\\\", "\\")
    )


def render_markdown(body: str, width: int) -> list[Text]:
    """Render a markdown body to styled lines of at most width cells."""
    console = Console(width=max(width, 1), force_terminal=True, color_system="truecolor")
    options = console.options.update(width=max(width, 1))
    rendered = console.render_lines(Markdown(body), options, pad=False)
    lines = []
    for segments in rendered:
        line = Text()
        for segment in segments:
            line.append(segment.text, segment.style)
        lines.append(line)
    while lines and not lines[-1].plain.strip():
        lines.pop()
    return lines


def detail_lines(task: Task, width: int) -> list[Text]:
    """All lines of the detail view before scrolling."""
    header = f"Task #{task.id}: {task.title}"
    header_text = Text(header, style="bold")
    lines = list(header_text.wrap(Console(width=max(width, 1)), max(width, 1)))
    lines.append(Text("─" * min(len(header), max(width, 1))))
    lines.append(Text(""))
    lines.append(_field("Status", task.status))
    lines.append(_field("Priority", task.priority))

    if task.class_:
        lines.append(_field("Class", task.class_))
    if task.assignee:
        lines.append(_field("Assignee", task.assignee))
    if task.tags:
        lines.append(_field("Tags", ", ".join(task.tags)))
    if task.parent is not None:
        lines.append(_field("Parent", f"#{task.parent}"))
    if task.depends_on:
        lines.append(_field("Depends on", ", ".join(f"#{d}" for d in task.depends_on)))
    if task.due is not None:
        lines.append(_field("Due", format_date(task.due)))
    if task.estimate:
        lines.append(_field("Estimate", task.estimate))

    lines.append(_field("Created", task.created.strftime(TIME_FORMAT)))
    lines.append(_field("Updated", task.updated.strftime(TIME_FORMAT)))
    if task.claimed_by:
        lines.append(_field("Claimed", Text(task.claimed_by, CLAIM_STYLE)))
    if task.claimed_at is not None:
        lines.append(_field("Claimed at", task.claimed_at.strftime(TIME_FORMAT)))
    if task.started is not None:
        lines.append(_field("Started", task.started.strftime(TIME_FORMAT)))
    if task.completed is not None:
        lines.append(_field("Completed", task.completed.strftime(TIME_FORMAT)))
    if task.started is not None and task.completed is not None:
        lines.append(_field("Duration", format_duration(task.completed - task.started)))

    if task.blocked:
        lines.append(Text(""))
        lines.append(Text(f"BLOCKED: {task.block_reason}", "bold red"))
    if task.body.strip():
        lines.append(Text(""))
        lines.extend(render_markdown(unescape_body(task.body), width))
    return lines


class DetailModal(ModalScreen[None]):
    """Scrollable view of every field of one task."""

    DEFAULT_CSS = """
    DetailModal {
        background: $background;
    }

    DetailModal #detail-content {
        height: 1fr;
        padding: 0 1;
    }

    DetailModal #detail-hint {
        height: 1;
        margin-top: 1;
        color: $text-muted;
    }
    """

    BINDINGS = [
        Binding("q", "close", "Back"),
        Binding("escape", "close", "Back", show=False),
        Binding("backspace", "close", "Back", show=False),
        Binding("j", "scroll_lines(1)", "Down", show=False),
        Binding("down", "scroll_lines(1)", "Down", show=False),
        Binding("k", "scroll_lines(-1)", "Up", show=False),
        Binding("up", "scroll_lines(-1)", "Up", show=False),
        Binding("g", "top", "Top", show=False),
        Binding("G", "bottom", "Bottom", show=False),
    ]

    def __init__(self, task_data: Task) -> None:
        super().__init__()
        self._task_data = task_data
        self.viewport = DetailViewport()
        self._lines: list[Text] = []

    @property
    def task(self) -> Task:  # pyrefly: ignore[bad-override]
        return self._task_data

    def compose(self) -> ComposeResult:
        yield Static("", id="detail-content")
        yield Static("", id="detail-hint")

    def on_mount(self) -> None:
        self._rebuild()

    def on_resize(self) -> None:
        self._rebuild()

    def set_task(self, task: Task) -> None:
        """Show a fresh copy of the task after a reload."""
        self._task_data = task
        self._rebuild()

    @property
    def view_height(self) -> int:
        # blank separator + hint line
        return max(self.size.height - 2, 1)

    def _rebuild(self) -> None:
        width = max(self.size.width - 2, 20)
        self._lines = detail_lines(self._task_data, width)
        self._paint()

    def _paint(self) -> None:
        visible = self.viewport.window(self._lines, self.view_height)
        self.query_one("#detail-content", Static).update(Text("\n").join(visible))
        hint = "q/esc:back"
        if len(self._lines) > self.view_height:
            hint += "  j/k:scroll  g/G:top/bottom"
        self.query_one("#detail-hint", Static).update(Text(hint, DIM))

    def action_scroll_lines(self, delta: int) -> None:
        self.viewport.scroll(delta)
        self._paint()

    def action_top(self) -> None:
        self.viewport.top()
        self._paint()

    def action_bottom(self) -> None:
        self.viewport.bottom()
        self._paint()

    def action_close(self) -> None:
        self.dismiss(None)
