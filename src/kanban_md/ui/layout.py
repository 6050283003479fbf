"""
Viewport math for the column board.

Everything here is pure: given the tasks of a column, the terminal size and
the selection, decide which cards are visible and render them as rich Text
lines. The Textual widgets only paint what this module returns.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from rich.cells import cell_len
from rich.text import Text

from ..models import BoardConfig, Task
from ..utils import format_age, format_date, now_utc

BOARD_CHROME = 2  # blank line + status bar below the columns
ERROR_CHROME = 1
MAX_COLUMN_WIDTH = 50
DEFAULT_COLUMN_WIDTH = 30
CARD_CHROME = 4  # border (2) + padding (2)
TAG_MAX_FRACTION = 2  # tags get at most half the card width
SCROLL_TO_BOTTOM = 2**31 - 1

PRIORITY_STYLES = {
    "critical": "bold red",
    "high": "dark_orange",
    "medium": "yellow",
    "low": "grey50",
}
DIM = "grey50"
CLAIM_STYLE = "bold cyan"
HEADER_STYLE = "bold grey85 on grey19"
ACTIVE_HEADER_STYLE = "bold white on slate_blue3"
CARD_BORDER = "grey42"
ACTIVE_CARD_BORDER = "slate_blue1"
BLOCKED_CARD_BORDER = "red"


def truncate(text: str, max_len: int) -> str:
    """Shorten text to max_len cells, ending with '...'."""
    max_len = max(max_len, 4)
    if cell_len(text) <= max_len:
        return text
    target = min(max_len - 3, len(text))
    while target > 0 and cell_len(text[:target]) > max_len - 3:
        target -= 1
    return text[:target] + "..."


def wrap_title(title: str, first_width: int, rest_width: int, max_lines: int) -> list[str]:
    """
    Word-wrap a title over at most max_lines lines.

    The first line is narrower because it shares space with the id prefix.
    Words left over for the last line are joined onto it and truncated.
    """
    max_lines = max(max_lines, 1)
    if cell_len(title) <= first_width or max_lines == 1:
        return [truncate(title, first_width)]

    words = title.split()
    lines: list[str] = []
    current = ""
    for i, word in enumerate(words):
        width = first_width if not lines else rest_width
        if not current:
            current = word
        elif cell_len(current) + 1 + cell_len(word) <= width:
            current = f"{current} {word}"
        else:
            lines.append(truncate(current, width))
            current = word
            if len(lines) == max_lines - 1:
                current = " ".join(words[i:])
                break
    if current:
        lines.append(truncate(current, first_width if not lines else rest_width))
    return lines


@dataclass
class Column:
    """Tasks shown under one status, plus that column's scroll position."""

    status: str
    tasks: list[Task] = field(default_factory=list)
    scroll_off: int = 0  # first visible row

    def clamp_scroll(self) -> None:
        """Keep the first visible row inside the task list."""
        self.scroll_off = max(0, min(self.scroll_off, len(self.tasks) - 1))


class BoardLayout:
    """Card sizing, visible-count and selection tracking for a board."""

    def __init__(
        self,
        config: BoardConfig,
        width: int = 0,
        height: int = 0,
        now: Callable[[], datetime] = now_utc,
    ) -> None:
        self.config = config
        self.width = width
        self.height = height
        self.has_error = False
        self.now = now

    # --- Geometry ---

    def chrome_height(self) -> int:
        """Lines used below the columns: blank + status bar (+ error banner)."""
        return BOARD_CHROME + (ERROR_CHROME if self.has_error else 0)

    def board_height(self) -> int:
        """Lines available to the columns."""
        return self.height - self.chrome_height()

    def column_width(self, column_count: int) -> int:
        if self.width == 0 or column_count == 0:
            return DEFAULT_COLUMN_WIDTH
        return min(self.width // column_count, MAX_COLUMN_WIDTH)

    # --- Cards ---

    def card_content(self, task: Task, width: int) -> list[Text]:
        """Lines inside a card's border: title, details and optional claim."""
        card_width = max(width - CARD_CHROME, 1)
        id_label = f"#{task.id}"
        first_width = max(card_width - len(id_label) - 1, 1)

        title_lines = wrap_title(task.title, first_width, card_width, self.config.tui.title_lines)
        lines = [Text.assemble((id_label, DIM), " ", title_lines[0])]
        lines.extend(Text(line) for line in title_lines[1:])

        details = Text()
        details.append(task.priority, PRIORITY_STYLES.get(task.priority, DIM))
        if task.tags:
            tags = ",".join(task.tags)
            tag_max = card_width // TAG_MAX_FRACTION
            if len(tags) > tag_max:
                tags = tags[: max(tag_max - 3, 0)] + "..."
            details.append(" ")
            details.append(tags, DIM)
        if task.due is not None:
            details.append(" ")
            details.append(f"due:{format_date(task.due)}", DIM)
        if self.config.shows_duration(task.status):
            age = self.now() - task.updated
            details.append(" ")
            details.append(format_age(age), self.age_style(age))
        lines.append(details)

        if task.claimed_by:
            lines.append(Text(f"@{task.claimed_by}", CLAIM_STYLE))
        return lines

    def card_height(self, task: Task, width: int) -> int:
        """Rendered card height including the top and bottom border."""
        return len(self.card_content(task, width)) + 2

    def age_style(self, age: timedelta) -> str:
        """Color of the highest age threshold reached."""
        for threshold in reversed(self.config.tui.age_thresholds):
            if age >= threshold.after_delta:
                return threshold.color
        return DIM

    def render_card(self, task: Task, active: bool, width: int) -> list[Text]:
        border = CARD_BORDER
        if task.blocked:
            border = BLOCKED_CARD_BORDER
        if active:
            border = ACTIVE_CARD_BORDER

        inner = max(width - CARD_CHROME, 1)
        lines = [Text("╭" + "─" * (inner + 2) + "╮", border)]
        for content in self.card_content(task, width):
            content = content.copy()
            content.truncate(inner, overflow="ellipsis", pad=True)
            lines.append(Text.assemble(("│ ", border), content, (" │", border)))
        lines.append(Text("╰" + "─" * (inner + 2) + "╯", border))
        return lines

    # --- Visible count and selection ---

    def fit_cards(self, column: Column, avail: int, width: int) -> int:
        """How many cards from scroll_off fit in avail lines (at least one)."""
        if not column.tasks or avail < 1:
            return 1
        used = 0
        count = 0
        for task in column.tasks[column.scroll_off :]:
            height = self.card_height(task, width)
            if count and used + height > avail:
                break
            count += 1
            used += height
            if used >= avail:
                break
        return max(count, 1)

    def visible_count(self, column: Column, width: int) -> int:
        """
        Number of cards shown in a column.

        The header always takes one line; the up indicator takes one when
        scrolled; when cards remain below, the count is recomputed with one
        line fewer so the down indicator fits too.
        """
        budget = self.board_height()
        if budget < 1:
            return 1
        avail = budget - 1
        if column.scroll_off > 0:
            avail -= 1
        n = self.fit_cards(column, avail, width)
        if column.scroll_off + n < len(column.tasks):
            n = max(self.fit_cards(column, avail - 1, width), 1)
        return n

    def ensure_visible(self, column: Column, active_row: int, width: int) -> None:
        """
        Adjust column.scroll_off so active_row is inside the visible window.

        The visible count depends on scroll_off, so one adjustment may expose
        cards of a different height; repeat until stable.
        """
        if not column.tasks:
            column.scroll_off = 0
            return
        for _ in range(len(column.tasks) + 1):
            shown = self.visible_count(column, width)
            if active_row >= column.scroll_off + shown:
                column.scroll_off = active_row - shown + 1
            elif active_row < column.scroll_off:
                column.scroll_off = active_row
            else:
                return

    # --- Rendering ---

    def header_text(self, column: Column) -> str:
        limit = self.config.wip_limit(column.status)
        if limit:
            return f"{column.status} ({len(column.tasks)}/{limit})"
        return f"{column.status} ({len(column.tasks)})"

    def render_column(
        self,
        column: Column,
        width: int,
        active: bool = False,
        active_row: int = -1,
    ) -> list[Text]:
        """
        Render one column as lines: header, indicators and cards.

        The result never exceeds board_height() lines and is padded to it.
        """
        header = Text(" " + truncate(self.header_text(column), width - 2))
        header.truncate(width, pad=True)
        header.stylize(ACTIVE_HEADER_STYLE if active else HEADER_STYLE)
        lines = [header]

        total = len(column.tasks)
        start = min(column.scroll_off, total)
        end = min(start + self.visible_count(column, width), total)

        if start > 0:
            lines.append(Text(truncate(f"  ↑ {start} more", width), DIM))
        if not column.tasks:
            lines.append(Text("  (empty)", DIM))
        for row in range(start, end):
            lines.extend(self.render_card(column.tasks[row], active and row == active_row, width))
        if end < total:
            lines.append(Text(truncate(f"  ↓ {total - end} more", width), DIM))

        target = self.board_height()
        if target > 0:
            # A single tall card can exceed a tiny terminal; keep the top.
            lines = lines[:target]
            lines.extend(Text("") for _ in range(target - len(lines)))
        return lines


class DetailViewport:
    """
    Scroll state of the task detail view.

    bottom() stores a sentinel; clamp() turns it into the real bottom offset
    and keeps it, so the next up-scroll moves from the true bottom.
    """

    def __init__(self) -> None:
        self.offset = 0

    def scroll(self, delta: int) -> None:
        self.offset = max(self.offset + delta, 0)

    def top(self) -> None:
        self.offset = 0

    def bottom(self) -> None:
        self.offset = SCROLL_TO_BOTTOM

    def clamp(self, line_count: int, view_height: int) -> int:
        """Clamp and persist the offset for the current content size."""
        max_offset = max(line_count - view_height, 0)
        if self.offset > max_offset:
            self.offset = max_offset
        return self.offset

    def window(self, lines: list, view_height: int) -> list:
        """Slice of lines visible at the clamped offset."""
        if view_height < 1:
            return list(lines)
        start = self.clamp(len(lines), view_height)
        return lines[start : start + view_height]
