"""Output format resolution and renderers for CLI results."""

from __future__ import annotations

import json
import sys
from collections.abc import Iterable
from datetime import timedelta
from enum import Enum
from typing import Any, TextIO

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..models import LogEntry, Task
from ..utils import format_date, format_duration, to_iso
from .output import color_enabled


class OutputFormat(str, Enum):
    """Supported output formats."""

    JSON = "json"
    TABLE = "table"
    COMPACT = "compact"


def resolve_format(
    flag: str | None,
    env_value: str | None = None,
    stream: TextIO | None = None,
) -> OutputFormat:
    """
    Pick the output format.

    Precedence: explicit flag, then KANBAN_OUTPUT, then table on a
    terminal and JSON otherwise.
    """
    if flag:
        return OutputFormat(flag)
    if env_value:
        return OutputFormat(env_value)
    stream = stream or sys.stdout
    if hasattr(stream, "isatty") and stream.isatty():
        return OutputFormat.TABLE
    return OutputFormat.JSON


def make_console() -> Console:
    """Console bound to the current stdout."""
    return Console(
        file=sys.stdout,
        no_color=not color_enabled(sys.stdout),
        highlight=False,
        soft_wrap=True,
    )


def print_json(data: Any) -> None:
    """Pretty-print data as JSON with two-space indentation."""
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


# --- Tasks ---


def compact_task(task: Task) -> str:
    """One-line form: #ID [status/priority] title @assignee (tags) due:DATE."""
    parts = [f"#{task.id}", f"[{task.status}/{task.priority}]", task.title]
    if task.assignee:
        parts.append(f"@{task.assignee}")
    if task.tags:
        parts.append(f"({', '.join(task.tags)})")
    if task.due is not None:
        parts.append(f"due:{format_date(task.due)}")
    return " ".join(parts)


def task_table(tasks: Iterable[Task]) -> Table:
    """Build a rich table of tasks."""
    table = Table(box=None, header_style="bold", pad_edge=False)
    for column in ("ID", "STATUS", "PRIORITY", "TITLE", "ASSIGNEE", "TAGS", "DUE", "CLAIMED"):
        table.add_column(column, no_wrap=column != "TITLE")
    for task in tasks:
        title = escape(task.title)
        if task.blocked:
            title = f"[red]BLOCKED[/red] {title}"
        table.add_row(
            str(task.id),
            task.status,
            task.priority,
            title,
            task.assignee or "--",
            ", ".join(task.tags) or "--",
            format_date(task.due) if task.due else "--",
            task.claimed_by or "--",
        )
    return table


def render_tasks(tasks: list[Task], fmt: OutputFormat) -> None:
    """Render a task list."""
    if fmt is OutputFormat.JSON:
        print_json([t.to_json() for t in tasks])
    elif fmt is OutputFormat.COMPACT:
        for task in tasks:
            print(compact_task(task))
    elif not tasks:
        print("No tasks found.")
    else:
        make_console().print(task_table(tasks))


def render_task(task: Task, fmt: OutputFormat, extra: dict[str, Any] | None = None) -> None:
    """Render one task in full."""
    if fmt is OutputFormat.JSON:
        data = task.to_json()
        data.update(extra or {})
        print_json(data)
        return
    if fmt is OutputFormat.COMPACT:
        print(compact_task(task))
        return

    console = make_console()
    console.print(f"[bold]Task #{task.id}: {escape(task.title)}[/bold]", markup=True)
    console.print()
    fields = [
        ("Status", task.status),
        ("Priority", task.priority),
        ("Class", task.class_),
        ("Assignee", task.assignee),
        ("Tags", ", ".join(task.tags)),
        ("Due", format_date(task.due) if task.due else ""),
        ("Estimate", task.estimate),
        ("Parent", f"#{task.parent}" if task.parent is not None else ""),
        ("Depends on", ", ".join(f"#{d}" for d in task.depends_on)),
        ("Blocked", task.block_reason if task.blocked else ""),
        ("Claimed by", task.claimed_by),
        ("Claimed at", to_iso(task.claimed_at) if task.claimed_at else ""),
        ("Branch", task.branch),
        ("Worktree", task.worktree),
        ("Created", to_iso(task.created)),
        ("Updated", to_iso(task.updated)),
        ("Started", to_iso(task.started) if task.started else ""),
        ("Completed", to_iso(task.completed) if task.completed else ""),
    ]
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold")
    table.add_column()
    for label, value in fields:
        if value:
            table.add_row(f"{label}:", value)
    console.print(table)
    if task.body.strip():
        console.print()
        console.print(task.body.rstrip("\n"), markup=False)


def render_groups(groups: list[Any], fmt: OutputFormat) -> None:
    """Render grouped tasks."""
    if fmt is OutputFormat.JSON:
        print_json([g.to_json() for g in groups])
        return
    for i, group in enumerate(groups):
        counts = ", ".join(f"{status}: {n}" for status, n in group.status_counts.items())
        if fmt is OutputFormat.COMPACT:
            print(f"{group.key} ({len(group.tasks)}) {counts}")
            for task in group.tasks:
                print(f"  {compact_task(task)}")
            continue
        if i:
            print()
        console = make_console()
        console.print(f"[bold]{escape(group.key)}[/bold] ({len(group.tasks)}) {counts}", markup=True)
        console.print(task_table(group.tasks))


# --- Board reports ---


def render_summary(summary: Any, fmt: OutputFormat) -> None:
    """Render the board overview."""
    if fmt is OutputFormat.JSON:
        print_json(summary.to_json())
        return
    if fmt is OutputFormat.COMPACT:
        print(f"{summary.board_name}: {summary.total_tasks} tasks")
        for s in summary.statuses:
            limit = f"/{s.wip_limit}" if s.wip_limit else ""
            print(f"  {s.status}: {s.count}{limit} (blocked {s.blocked}, overdue {s.overdue})")
        for warning in summary.wip_warnings:
            print(f"  WIP limit reached: {warning}")
        return

    console = make_console()
    console.print(f"[bold]{escape(summary.board_name)}[/bold] ({summary.total_tasks} tasks)", markup=True)
    table = Table(box=None, header_style="bold", pad_edge=False)
    for column in ("STATUS", "COUNT", "WIP", "BLOCKED", "OVERDUE"):
        table.add_column(column)
    for s in summary.statuses:
        table.add_row(
            s.status,
            str(s.count),
            f"{s.count}/{s.wip_limit}" if s.wip_limit else "--",
            str(s.blocked),
            str(s.overdue),
        )
    console.print(table)
    console.print()
    priorities = ", ".join(f"{p['priority']}: {p['count']}" for p in summary.priorities)
    console.print(f"Priorities: {priorities}")
    if summary.classes:
        classes = ", ".join(f"{c['class']}: {c['count']}" for c in summary.classes)
        console.print(f"Classes: {classes}")
    for warning in summary.wip_warnings:
        console.print(f"[yellow]WIP limit reached: {warning}[/yellow]", markup=True)


def render_metrics(metrics: Any, fmt: OutputFormat) -> None:
    """Render flow metrics."""
    if fmt is OutputFormat.JSON:
        print_json(metrics.to_json())
        return

    def hours(value: float | None) -> str:
        if value is None:
            return "--"
        return format_duration_hours(value)

    lines = [
        f"Throughput (7d): {metrics.throughput_7d}",
        f"Throughput (30d): {metrics.throughput_30d}",
        f"Avg lead time: {hours(metrics.avg_lead_time_hours)}",
        f"Avg cycle time: {hours(metrics.avg_cycle_time_hours)}",
        "Flow efficiency: "
        + (f"{metrics.flow_efficiency:.0%}" if metrics.flow_efficiency is not None else "--"),
    ]
    for line in lines:
        print(line)
    if not metrics.aging_items:
        return
    print()
    print("Aging work:")
    for item in metrics.aging_items:
        print(f"  #{item.id} {item.title} [{item.status}] {format_duration_hours(item.age_hours)}")


def format_duration_hours(value: float) -> str:
    """Format a fractional hour count as "2d 3h" or "5h 30m"."""
    return format_duration(timedelta(hours=value))


def render_log(entries: list[LogEntry], fmt: OutputFormat) -> None:
    """Render activity log entries."""
    if fmt is OutputFormat.JSON:
        print_json([e.model_dump(mode="json") for e in entries])
        return
    if not entries:
        print("No activity found.")
        return
    for entry in entries:
        stamp = entry.timestamp.strftime("%Y-%m-%d %H:%M:%S")
        detail = f"  {entry.detail}" if entry.detail else ""
        print(f"{stamp}  {entry.action:<8} #{entry.task_id}{detail}")


def render_batch(results: list[Any], fmt: OutputFormat) -> None:
    """Render per-id batch results and the completion line."""
    if fmt is OutputFormat.JSON:
        print_json([r.to_json() for r in results])
        return
    for r in results:
        if not r.ok:
            print(f"Error #{r.id}: {r.error}", file=sys.stderr)
    ok = sum(1 for r in results if r.ok)
    print(f"Completed {ok}/{len(results)} operations")
