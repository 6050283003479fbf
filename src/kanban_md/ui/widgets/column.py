"""Kanban column widget."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.text import Text
from textual.widget import Widget

if TYPE_CHECKING:
    from ..screens.board import BoardScreen


class KanbanColumn(Widget):
    """
    One status column.

    The column does not lay out its own cards: it paints the lines the
    board's layout computes, so scroll state lives in one place.
    """

    DEFAULT_CSS = """
    KanbanColumn {
        height: 100%;
    }
    """

    def __init__(self, index: int, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.index = index

    @property
    def board(self) -> BoardScreen:
        return self.screen  # pyrefly: ignore[bad-return]

    def render(self) -> Text:
        return Text("\n").join(self.board.column_lines(self.index))
