"""Tests for the board viewport math and card rendering."""

from datetime import UTC, datetime, timedelta

import pytest

from kanban_md.models import BoardConfig, Task
from kanban_md.ui.layout import (
    DEFAULT_COLUMN_WIDTH,
    DIM,
    MAX_COLUMN_WIDTH,
    SCROLL_TO_BOTTOM,
    BoardLayout,
    Column,
    DetailViewport,
    truncate,
    wrap_title,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)
WIDTH = 30


def make_task(task_id: int, title: str = "", **fields) -> Task:
    fields.setdefault("status", "backlog")
    fields.setdefault("priority", "medium")
    return Task(id=task_id, title=title or f"Task {task_id}", created=NOW, updated=NOW, **fields)


def make_layout(height: int = 20, width: int = 150, config: BoardConfig | None = None) -> BoardLayout:
    return BoardLayout(config or BoardConfig.default("test"), width=width, height=height, now=lambda: NOW)


def plain(lines) -> list[str]:
    return [line.plain for line in lines]


class TestText:
    """Tests for truncate and wrap_title."""

    def test_truncate(self):
        assert truncate("hello world", 8) == "hello..."
        assert truncate("short", 8) == "short"

    def test_truncate_minimum(self):
        """Widths below four still leave one character and the ellipsis."""
        assert truncate("abcdef", 2) == "a..."

    def test_wrap_fits_first_line(self):
        assert wrap_title("Short title", 20, 20, 2) == ["Short title"]

    def test_wrap_two_lines(self):
        assert wrap_title("alpha beta gamma delta", 10, 12, 2) == ["alpha beta", "gamma delta"]

    def test_wrap_truncates_last_line(self):
        lines = wrap_title("alpha beta gamma delta epsilon", 10, 12, 2)
        assert lines == ["alpha beta", "gamma del..."]

    def test_single_line_limit(self):
        assert wrap_title("alpha beta gamma", 10, 10, 1) == ["alpha b..."]


class TestGeometry:
    """Tests for board and column sizing."""

    def test_column_width(self):
        assert make_layout(width=0).column_width(5) == DEFAULT_COLUMN_WIDTH
        assert make_layout(width=200).column_width(5) == 40
        assert make_layout(width=400).column_width(4) == MAX_COLUMN_WIDTH

    def test_board_height_reserves_chrome(self):
        layout = make_layout(height=20)
        assert layout.board_height() == 18
        layout.has_error = True
        assert layout.board_height() == 17


class TestCards:
    """Tests for card content and height."""

    def test_minimal_card(self):
        layout = make_layout()
        task = make_task(1, "Short")
        assert plain(layout.card_content(task, WIDTH)) == ["#1 Short", "medium"]
        assert layout.card_height(task, WIDTH) == 4

    def test_details_and_claim(self):
        layout = make_layout()
        task = make_task(2, "Fix", tags=["ui"], claimed_by="agent", claimed_at=NOW)
        task.due = datetime(2025, 7, 1).date()
        lines = plain(layout.card_content(task, WIDTH))
        assert lines == ["#2 Fix", "medium ui due:2025-07-01", "@agent"]
        assert layout.card_height(task, WIDTH) == 5

    def test_long_tags_truncated(self):
        layout = make_layout()
        task = make_task(3, "X", tags=["alpha", "beta", "gamma", "delta"])
        details = plain(layout.card_content(task, WIDTH))[1]
        assert details == "medium alpha,beta..."

    def test_wrapped_title_adds_line(self):
        layout = make_layout()
        task = make_task(4, "A rather long title that wraps onto a second line")
        assert layout.card_height(task, WIDTH) == 5

    def test_title_lines_setting(self):
        config = BoardConfig(board={"name": "x"}, tui={"title_lines": 1})
        task = make_task(4, "A rather long title that wraps onto a second line")
        assert make_layout(config=config).card_height(task, WIDTH) == 4

    def test_age_label_for_active_status(self):
        layout = make_layout()
        task = make_task(5, "Work", status="in-progress")
        task.updated = NOW - timedelta(hours=30)
        assert plain(layout.card_content(task, WIDTH))[1] == "medium 1d"

    def test_age_style_thresholds(self):
        layout = make_layout()
        assert layout.age_style(timedelta(hours=1)) == DIM
        assert layout.age_style(timedelta(hours=30)) == "yellow"
        assert layout.age_style(timedelta(hours=80)) == "red"

    def test_render_card_matches_height(self):
        layout = make_layout()
        task = make_task(6, "Boxed", claimed_by="a", claimed_at=NOW)
        lines = layout.render_card(task, active=True, width=WIDTH)
        assert len(lines) == layout.card_height(task, WIDTH)
        assert all(line.cell_len == WIDTH for line in lines)
        assert lines[0].plain.startswith("╭")
        assert lines[-1].plain.startswith("╰")


class TestVisibility:
    """Tests for the visible count and scroll tracking."""

    def test_empty_column_fits_one(self):
        layout = make_layout()
        assert layout.fit_cards(Column("backlog"), 10, WIDTH) == 1
        assert layout.visible_count(Column("backlog"), WIDTH) == 1

    def test_down_indicator_reserves_a_line(self):
        """Four 4-line cards fit in 17 lines, but only with no indicator below."""
        layout = make_layout(height=20)
        column = Column("backlog", [make_task(i) for i in range(1, 11)])
        assert layout.visible_count(column, WIDTH) == 4

        column.scroll_off = 3
        assert layout.visible_count(column, WIDTH) == 3

    def test_ensure_visible_scrolls_down_and_up(self):
        layout = make_layout(height=20)
        column = Column("backlog", [make_task(i) for i in range(1, 11)])

        layout.ensure_visible(column, 9, WIDTH)
        assert column.scroll_off > 0
        assert column.scroll_off <= 9 < column.scroll_off + layout.visible_count(column, WIDTH)

        layout.ensure_visible(column, 0, WIDTH)
        assert column.scroll_off == 0

    @pytest.mark.parametrize("height", range(4, 40, 3))
    @pytest.mark.parametrize("has_error", [False, True])
    def test_selection_always_visible(self, height: int, has_error: bool):
        """For any terminal height, the selected card is in the visible window."""
        tasks = [
            make_task(i, "A long title that needs wrapping" if i % 3 == 0 else "", claimed_by="a" if i % 4 == 0 else "")
            for i in range(1, 13)
        ]
        layout = make_layout(height=height)
        layout.has_error = has_error
        column = Column("backlog", tasks)

        for row in [*range(len(tasks)), *reversed(range(len(tasks)))]:
            layout.ensure_visible(column, row, WIDTH)
            shown = layout.visible_count(column, WIDTH)
            assert column.scroll_off <= row < column.scroll_off + shown

            lines = layout.render_column(column, WIDTH, active=True, active_row=row)
            assert len(lines) == layout.board_height()
            assert len(lines) + layout.chrome_height() == height


class TestRenderColumn:
    """Tests for column rendering."""

    def test_header_counts(self):
        config = BoardConfig(board={"name": "x"}, wip_limits={"todo": 3})
        layout = make_layout(config=config)
        assert layout.header_text(Column("todo", [make_task(1), make_task(2)])) == "todo (2/3)"
        assert layout.header_text(Column("backlog", [make_task(1)])) == "backlog (1)"

    def test_empty_column(self):
        layout = make_layout(height=10)
        lines = plain(layout.render_column(Column("backlog"), WIDTH))
        assert lines[0].strip() == "backlog (0)"
        assert lines[1] == "  (empty)"
        assert len(lines) == 8

    def test_indicators(self):
        layout = make_layout(height=20)
        column = Column("backlog", [make_task(i) for i in range(1, 11)])

        lines = plain(layout.render_column(column, WIDTH))
        assert lines[-1] == "  ↓ 6 more"
        assert not any("↑" in line for line in lines)

        column.scroll_off = 3
        lines = plain(layout.render_column(column, WIDTH))
        assert lines[1] == "  ↑ 3 more"
        assert "  ↓ 4 more" in lines
        assert len(lines) == 18

    def test_tiny_terminal_clips(self):
        """A card taller than the board is cut rather than overflowing."""
        layout = make_layout(height=5)
        column = Column("backlog", [make_task(1), make_task(2)])
        assert len(layout.render_column(column, WIDTH)) == 3


class TestDetailViewport:
    """Tests for detail view scrolling."""

    def test_scroll_floors_at_zero(self):
        viewport = DetailViewport()
        viewport.scroll(-3)
        assert viewport.offset == 0

    def test_bottom_then_up_moves_from_real_bottom(self):
        """After G, one k scrolls up a single line from the true bottom."""
        viewport = DetailViewport()
        viewport.bottom()
        assert viewport.offset == SCROLL_TO_BOTTOM

        assert viewport.clamp(100, 20) == 80
        viewport.scroll(-1)
        assert viewport.clamp(100, 20) == 79

    def test_window(self):
        viewport = DetailViewport()
        lines = list(range(10))
        viewport.scroll(3)
        assert viewport.window(lines, 4) == [3, 4, 5, 6]
        viewport.bottom()
        assert viewport.window(lines, 4) == [6, 7, 8, 9]
        viewport.top()
        assert viewport.window(lines, 4) == [0, 1, 2, 3]

    def test_short_content_never_scrolls(self):
        viewport = DetailViewport()
        viewport.scroll(5)
        assert viewport.window([1, 2], 10) == [1, 2]
        assert viewport.offset == 0
