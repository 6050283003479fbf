"""Create/edit wizard: title, body, priority and tags."""

from __future__ import annotations

from dataclasses import dataclass, field

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.screen import ModalScreen
from textual.widgets import Input, Label, OptionList, TextArea
from textual.widgets.option_list import Option

from ...services import TaskChanges, parse_tags

STEPS = ("title", "body", "priority", "tags")
STEP_NAMES = {
    "title": "Title",
    "body": "Body",
    "priority": "Priority",
    "tags": "Tags (comma separated)",
}


@dataclass
class TaskForm:
    """Values collected by the wizard."""

    title: str
    body: str = ""
    priority: str = ""
    tags: list[str] = field(default_factory=list)


def form_changes(initial: TaskForm, form: TaskForm) -> TaskChanges:
    """Edits for the fields that differ from the prefilled values."""
    changes = TaskChanges()
    if form.title != initial.title:
        changes.title = form.title
    if form.body != initial.body:
        # Bodies are stored newline-terminated
        changes.body = f"{form.body.rstrip()}\n" if form.body.strip() else ""
    if form.priority != initial.priority:
        changes.priority = form.priority
    if form.tags != initial.tags:
        changes.tags = form.tags
    return changes


class TaskFormModal(ModalScreen[TaskForm | None]):
    """
    Four-step wizard used for both create and edit.

    Tab and Shift+Tab move between steps, Enter submits from any step and
    Escape cancels. Submitting an empty title also cancels.
    """

    DEFAULT_CSS = """
    TaskFormModal {
        align: center middle;
    }

    TaskFormModal > Vertical {
        width: 70;
        height: auto;
        padding: 1 2;
        background: $surface;
        border: round $primary;
    }

    TaskFormModal .form-title {
        text-style: bold;
        margin-bottom: 1;
    }

    TaskFormModal .step-label {
        color: $primary;
    }

    TaskFormModal TextArea {
        height: 8;
    }

    TaskFormModal OptionList {
        height: auto;
        max-height: 8;
    }

    TaskFormModal .hint {
        color: $text-muted;
        margin-top: 1;
    }
    """

    BINDINGS = [
        Binding("enter", "submit", "Save", priority=True),
        Binding("tab", "next_step", "Next", priority=True),
        Binding("shift+tab", "prev_step", "Back", priority=True),
        Binding("escape", "cancel", "Cancel", priority=True),
    ]

    def __init__(
        self,
        heading: str,
        priorities: list[str],
        initial: TaskForm,
    ) -> None:
        """Initialize the wizard.

        Args:
            heading: Dialog title, e.g. "New task in todo" or "Edit #4"
            priorities: Configured priorities, lowest first
            initial: Prefilled values; priority must be one of priorities
        """
        super().__init__()
        self._heading = heading
        self._priorities = priorities
        self._initial = initial
        self.step = 0

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Label(self._heading, classes="form-title", markup=False)
            yield Label("", id="step-label", classes="step-label")
            yield Input(value=self._initial.title, id="field-title")
            yield TextArea(self._initial.body, id="field-body")
            priority_list = OptionList(id="field-priority")
            for priority in self._priorities:
                priority_list.add_option(Option(priority, id=priority))
            yield priority_list
            yield Input(value=", ".join(self._initial.tags), id="field-tags")
            yield Label(
                "tab:next  shift+tab:back  enter:save  esc:cancel",
                classes="hint",
            )

    def on_mount(self) -> None:
        priority_list = self.query_one("#field-priority", OptionList)
        if self._initial.priority in self._priorities:
            priority_list.highlighted = self._priorities.index(self._initial.priority)
        self._show_step()

    def _show_step(self) -> None:
        current = STEPS[self.step]
        for name in STEPS:
            self.query_one(f"#field-{name}").display = name == current
        self.query_one("#step-label", Label).update(
            f"Step {self.step + 1}/{len(STEPS)}: {STEP_NAMES[current]}"
        )
        self.query_one(f"#field-{current}").focus()

    def action_next_step(self) -> None:
        if self.step < len(STEPS) - 1:
            self.step += 1
        self._show_step()

    def action_prev_step(self) -> None:
        if self.step > 0:
            self.step -= 1
        self._show_step()

    def collect(self) -> TaskForm:
        """Read the current field values."""
        priority_list = self.query_one("#field-priority", OptionList)
        index = priority_list.highlighted
        priority = self._priorities[index] if index is not None else self._initial.priority
        return TaskForm(
            title=self.query_one("#field-title", Input).value.strip(),
            body=self.query_one("#field-body", TextArea).text,
            priority=priority,
            tags=parse_tags(self.query_one("#field-tags", Input).value),
        )

    def action_submit(self) -> None:
        form = self.collect()
        self.dismiss(form if form.title else None)

    def action_cancel(self) -> None:
        self.dismiss(None)
