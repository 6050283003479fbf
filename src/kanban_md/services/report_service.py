"""Service for board summaries, agent context documents and flow metrics."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from pathlib import Path

from ..models import ARCHIVED_STATUS, BoardConfig, Task
from ..utils import atomic_write_text, date_before, format_date, now_utc, to_iso
from .filter_service import FilterService

logger = logging.getLogger(__name__)

CONTEXT_BEGIN = "<!-- BEGIN kanban-md context -->"
CONTEXT_END = "<!-- END kanban-md context -->"

CONTEXT_SECTIONS = ("in-progress", "blocked", "ready", "overdue", "recently-completed")
SECTION_TITLES = {
    "in-progress": "In Progress",
    "blocked": "Blocked",
    "ready": "Ready to Start",
    "overdue": "Overdue",
    "recently-completed": "Recently Completed",
}
DEFAULT_CONTEXT_DAYS = 7


@dataclass
class StatusSummary:
    status: str
    count: int
    wip_limit: int
    blocked: int
    overdue: int


@dataclass
class Summary:
    """Board overview."""

    board_name: str
    total_tasks: int
    statuses: list[StatusSummary]
    priorities: list[dict[str, int | str]]
    classes: list[dict[str, int | str]]
    wip_warnings: list[str] = field(default_factory=list)

    def to_json(self) -> dict:
        return asdict(self)


@dataclass
class ContextItem:
    id: int
    title: str
    status: str
    priority: str
    detail: str = ""


@dataclass
class ContextSection:
    name: str
    title: str
    items: list[ContextItem]


@dataclass
class ContextDocument:
    """Structured snapshot of the board for agents and humans."""

    board_name: str
    generated: datetime
    summary: dict[str, int | str]
    sections: list[ContextSection]

    def to_json(self) -> dict:
        data = asdict(self)
        data["generated"] = to_iso(self.generated)
        return data


@dataclass
class AgingItem:
    id: int
    title: str
    status: str
    age_hours: float


@dataclass
class Metrics:
    """Flow metrics."""

    throughput_7d: int
    throughput_30d: int
    avg_lead_time_hours: float | None
    avg_cycle_time_hours: float | None
    flow_efficiency: float | None
    aging_items: list[AgingItem]

    def to_json(self) -> dict:
        return asdict(self)


def is_overdue(task: Task, config: BoardConfig, now: datetime) -> bool:
    """Due date has passed and the task is not done or archived."""
    if task.due is None:
        return False
    if config.is_terminal_status(task.status) or config.is_archived_status(task.status):
        return False
    return date_before(task.due, now)


class ReportService:
    """Service for read-only board reports."""

    def __init__(self, config: BoardConfig) -> None:
        self.config = config
        self.filter_service = FilterService(config)

    # --- Summary ---

    def summary(self, tasks: list[Task], now: datetime | None = None) -> Summary:
        """Per-status, per-priority and per-class counts of non-archived tasks."""
        now = now or now_utc()
        live = [t for t in tasks if t.status != ARCHIVED_STATUS]

        statuses = []
        for status in self.config.statuses:
            in_status = [t for t in live if t.status == status]
            statuses.append(
                StatusSummary(
                    status=status,
                    count=len(in_status),
                    wip_limit=self.config.wip_limit(status),
                    blocked=sum(1 for t in in_status if t.blocked),
                    overdue=sum(1 for t in in_status if is_overdue(t, self.config, now)),
                )
            )

        priorities: list[dict[str, int | str]] = [
            {"priority": p, "count": sum(1 for t in live if t.priority == p)}
            for p in self.config.priorities
        ]
        classes: list[dict[str, int | str]] = []
        for name in self.config.class_names:
            count = sum(1 for t in live if self.config.resolve_class(t.class_) == name)
            if count:
                classes.append({"class": name, "count": count})

        return Summary(
            board_name=self.config.board.name,
            total_tasks=len(live),
            statuses=statuses,
            priorities=priorities,
            classes=classes,
            wip_warnings=self.wip_warnings(statuses),
        )

    def wip_warnings(self, statuses: list[StatusSummary]) -> list[str]:
        """One 'status (count/limit)' entry per status at or over its limit."""
        return [
            f"{s.status} ({s.count}/{s.wip_limit})"
            for s in statuses
            if s.wip_limit > 0 and s.count >= s.wip_limit
        ]

    # --- Context ---

    def context(
        self,
        tasks: list[Task],
        sections: list[str] | None = None,
        days: int = DEFAULT_CONTEXT_DAYS,
        now: datetime | None = None,
    ) -> ContextDocument:
        """
        Build the context document.

        Args:
            tasks: All tasks on the board
            sections: Section names to include (default: all, in canonical order)
            days: Window for recently completed tasks
            now: Reference time

        Raises:
            ValueError: If a section name is unknown.
        """
        now = now or now_utc()
        wanted = sections or list(CONTEXT_SECTIONS)
        for name in wanted:
            if name not in CONTEXT_SECTIONS:
                raise ValueError(f"unknown context section {name!r}")

        live = [t for t in tasks if t.status != ARCHIVED_STATUS]
        lookup = {t.id: t for t in tasks}
        active = set(self.config.active_statuses())

        builders = {
            "in-progress": lambda: self._in_progress(live, active),
            "blocked": lambda: [
                self._item(t, t.block_reason)
                for t in live
                if t.blocked and not self.config.is_terminal_status(t.status)
            ],
            "ready": lambda: self._ready(live, lookup),
            "overdue": lambda: [
                self._item(t, f"due {format_date(t.due)}")
                for t in live
                if t.due is not None and is_overdue(t, self.config, now)
            ],
            "recently-completed": lambda: self._recently_completed(live, now - timedelta(days=days)),
        }

        built = [
            ContextSection(name=name, title=SECTION_TITLES[name], items=builders[name]())
            for name in CONTEXT_SECTIONS
            if name in wanted
        ]

        statuses = self.summary(tasks, now).statuses
        warnings = self.wip_warnings(statuses)
        summary: dict[str, int | str] = {
            "total_tasks": len(live),
            "active": sum(1 for t in live if t.status in active),
            "blocked": sum(1 for t in live if t.blocked),
            "overdue": sum(1 for t in live if is_overdue(t, self.config, now)),
            "wip_warning": f"WIP limit reached: {', '.join(warnings)}" if warnings else "",
        }
        return ContextDocument(
            board_name=self.config.board.name,
            generated=now,
            summary=summary,
            sections=built,
        )

    def _item(self, task: Task, detail: str = "") -> ContextItem:
        return ContextItem(
            id=task.id,
            title=task.title,
            status=task.status,
            priority=task.priority,
            detail=detail,
        )

    def _in_progress(self, live: list[Task], active: set[str]) -> list[ContextItem]:
        working = [t for t in live if t.status in active and not t.blocked]
        working.sort(key=lambda t: -self.config.priority_index(t.priority))
        return [self._item(t, t.claimed_by or t.assignee) for t in working]

    def _ready(self, live: list[Task], lookup: dict[int, Task]) -> list[ContextItem]:
        if len(self.config.statuses) < 2:
            return []
        ready_status = self.config.statuses[1]
        candidates = [t for t in live if t.status == ready_status and not t.blocked]
        ready = [t for t in candidates if self.filter_service.dependencies_satisfied(t, lookup)]
        ready.sort(key=lambda t: -self.config.priority_index(t.priority))
        return [self._item(t) for t in ready]

    def _recently_completed(self, live: list[Task], cutoff: datetime) -> list[ContextItem]:
        done = [
            t
            for t in live
            if self.config.is_terminal_status(t.status)
            and t.completed is not None
            and t.completed >= cutoff
        ]
        done.sort(key=lambda t: t.completed, reverse=True)  # type: ignore[arg-type, return-value]
        return [self._item(t, f"completed {format_date(t.completed.date())}") for t in done]  # type: ignore[union-attr]

    def render_context_markdown(self, doc: ContextDocument) -> str:
        """Render the context document as a marked markdown block."""
        lines = [CONTEXT_BEGIN, f"## Board: {doc.board_name}", ""]
        s = doc.summary
        lines.append(
            f"{s['total_tasks']} tasks | {s['active']} active | "
            f"{s['blocked']} blocked | {s['overdue']} overdue"
        )
        if s["wip_warning"]:
            lines.append(str(s["wip_warning"]))

        for section in doc.sections:
            if not section.items:
                continue
            lines.extend(["", f"### {section.title}", ""])
            for item in section.items:
                line = f"- #{item.id} {item.title} [{item.priority}]"
                if item.detail:
                    line += f" ({item.detail})"
                lines.append(line)

        lines.append(CONTEXT_END)
        return "\n".join(lines) + "\n"

    def write_context_to_file(self, path: Path, markdown: str) -> None:
        """Replace the marked context block in path, or append one."""
        existing = path.read_text(encoding="utf-8") if path.exists() else ""
        start = existing.find(CONTEXT_BEGIN)
        end = existing.find(CONTEXT_END, start + 1) if start >= 0 else -1

        if start >= 0 and end >= 0:
            end += len(CONTEXT_END)
            if existing[end : end + 1] == "\n":
                end += 1
            content = existing[:start] + markdown + existing[end:]
        elif existing:
            separator = "" if existing.endswith("\n\n") else ("\n" if existing.endswith("\n") else "\n\n")
            content = existing + separator + markdown
        else:
            content = markdown

        atomic_write_text(path, content)
        logger.info("Wrote context block to %s", path)

    # --- Metrics ---

    def metrics(
        self,
        tasks: list[Task],
        now: datetime | None = None,
        since: datetime | None = None,
    ) -> Metrics:
        """Throughput, lead and cycle time, flow efficiency and aging work.

        With since, lead and cycle times only cover tasks completed from then on.
        """
        now = now or now_utc()
        completed = [t for t in tasks if t.completed is not None]
        averaged = [t for t in completed if since is None or t.completed >= since]  # type: ignore[operator]

        def throughput(days: int) -> int:
            cutoff = now - timedelta(days=days)
            return sum(1 for t in completed if t.completed >= cutoff)  # type: ignore[operator]

        lead = [(t.completed - t.created).total_seconds() / 3600 for t in averaged]  # type: ignore[operator]
        cycle = [
            (t.completed - t.started).total_seconds() / 3600  # type: ignore[operator]
            for t in averaged
            if t.started is not None
        ]
        avg_lead = sum(lead) / len(lead) if lead else None
        avg_cycle = sum(cycle) / len(cycle) if cycle else None
        efficiency = avg_cycle / avg_lead if avg_lead and avg_cycle is not None else None

        active = set(self.config.active_statuses())
        aging = [
            AgingItem(
                id=t.id,
                title=t.title,
                status=t.status,
                age_hours=round((now - t.started).total_seconds() / 3600, 2),
            )
            for t in tasks
            if t.status in active and t.started is not None and t.completed is None
        ]
        aging.sort(key=lambda a: a.age_hours, reverse=True)

        return Metrics(
            throughput_7d=throughput(7),
            throughput_30d=throughput(30),
            avg_lead_time_hours=round(avg_lead, 2) if avg_lead is not None else None,
            avg_cycle_time_hours=round(avg_cycle, 2) if avg_cycle is not None else None,
            flow_efficiency=round(efficiency, 4) if efficiency is not None else None,
            aging_items=aging,
        )
