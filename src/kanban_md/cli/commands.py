"""Verb handlers for the non-interactive CLI."""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from ..config import Settings
from ..errors import (
    ConfigError,
    ErrorCode,
    KanbanError,
    invalid_date,
    invalid_input,
    invalid_task_id,
)
from ..models import DEFAULT_DIR, BoardConfig, Task
from ..repositories import FilesystemRepository, ReadWarning
from ..services import (
    CONFIG_KEYS,
    ActivityLog,
    ActivityLogError,
    BoardService,
    ConfigService,
    ConsistencyService,
    Filter,
    FilterService,
    LogFilter,
    MoveResult,
    PickOptions,
    ReportService,
    TaskChanges,
    TaskService,
    config_value,
    parse_tags,
    resolve_board_dir,
)
from ..utils import parse_date, start_of_day
from . import output
from .formatters import (
    OutputFormat,
    print_json,
    render_batch,
    render_groups,
    render_log,
    render_metrics,
    render_summary,
    render_task,
    render_tasks,
)
from .init import parse_wip_limits, run_init

logger = logging.getLogger(__name__)


@dataclass
class BoardContext:
    """Services bound to one board directory for the duration of a command."""

    board_dir: Path
    config_service: ConfigService
    repository: FilesystemRepository
    activity_log: ActivityLog
    board_service: BoardService
    task_service: TaskService

    @property
    def config(self) -> BoardConfig:
        return self.config_service.get_config()

    @classmethod
    def open(cls, dir_override: Path | None) -> BoardContext:
        """Locate the board and wire up its services."""
        board_dir = resolve_board_dir(dir_override)
        config_service = ConfigService(board_dir)
        repository = FilesystemRepository(config_service.tasks_dir)
        activity_log = ActivityLog(board_dir)
        board_service = BoardService(repository, config_service, activity_log)
        task_service = TaskService(repository, config_service, activity_log, board_service)
        logger.debug("Using board at %s", board_dir)
        return cls(
            board_dir=board_dir,
            config_service=config_service,
            repository=repository,
            activity_log=activity_log,
            board_service=board_service,
            task_service=task_service,
        )

    def load_tasks(self) -> list[Task]:
        """Lenient read; skipped files are reported on stderr."""
        tasks, warnings = self.repository.read_all_lenient()
        print_read_warnings(warnings)
        return tasks


Handler = Callable[[argparse.Namespace, Settings, OutputFormat], int]


# --- Argument helpers ---


def print_read_warnings(warnings: list[ReadWarning]) -> None:
    for warning in warnings:
        output.warning(f"skipping malformed file {warning.file.name}: {warning.error}")


def parse_id(value: str) -> int:
    """Parse one task id (a leading '#' is allowed)."""
    text = value.strip().lstrip("#")
    try:
        task_id = int(text)
    except ValueError as e:
        raise invalid_task_id(value) from e
    if task_id < 1:
        raise invalid_task_id(value)
    return task_id


def parse_ids(value: str) -> list[int]:
    """Parse a comma separated id list, deduplicated with order kept."""
    ids = [parse_id(part) for part in value.split(",") if part.strip()]
    if not ids:
        raise KanbanError(ErrorCode.INVALID_TASK_ID, "no valid task IDs provided", {"input": value})
    return list(dict.fromkeys(ids))


def parse_csv(value: str | None) -> list[str]:
    return parse_tags(value) if value else []


def parse_since(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return start_of_day(parse_date(value))
    except ValueError as e:
        raise invalid_date("since", value) from e


def run_batch(
    ctx: BoardContext,
    args: argparse.Namespace,
    fmt: OutputFormat,
    operation: Callable[[int], object],
    on_single: Callable[[int], int],
) -> int:
    """Run a single-id operation directly, or a multi-id one as a batch."""
    ids = parse_ids(args.ids)
    if len(ids) == 1:
        return on_single(ids[0])
    results = ctx.board_service.batch(ids, operation)
    render_batch(results, fmt)
    return 0 if all(r.ok for r in results) else 1


def report_move(result: MoveResult, fmt: OutputFormat, verb: str = "Moved") -> int:
    for warning in result.warnings:
        output.warning(warning)
    task = result.task
    if fmt is OutputFormat.JSON:
        print_json(result.to_json())
    elif fmt is OutputFormat.COMPACT:
        output.message(f"#{task.id} {result.from_status} -> {task.status}")
    elif result.changed:
        output.message(f"{verb} task #{task.id}: {result.from_status} -> {task.status}")
    else:
        output.message(f"Task #{task.id} is already at {task.status}")
    return 0


def report_task(task: Task, fmt: OutputFormat, text: str) -> int:
    if fmt is OutputFormat.TABLE:
        output.message(text)
    else:
        render_task(task, fmt)
    return 0


# --- Verbs ---


def cmd_init(args: argparse.Namespace, settings: Settings, fmt: OutputFormat) -> int:
    base = settings.dir if settings.dir is not None else Path.cwd()
    board_dir = base if settings.dir is not None else base / DEFAULT_DIR
    config = run_init(
        board_dir,
        name=args.name or "",
        statuses=parse_csv(args.statuses) or None,
        wip_limits=parse_wip_limits(args.wip_limit or []),
        tasks_dir=args.tasks_dir or "",
    )
    if fmt is OutputFormat.JSON:
        print_json({"status": "initialized", "dir": str(board_dir), "name": config.board.name})
    else:
        output.success(f"Initialized board {config.board.name!r} in {board_dir}")
        output.info(f"Statuses: {', '.join(config.statuses)}")
    return 0


def cmd_add(args: argparse.Namespace, settings: Settings, fmt: OutputFormat) -> int:
    ctx = BoardContext.open(settings.dir)
    task = ctx.task_service.create_task(
        title=args.title,
        status=args.status,
        priority=args.priority,
        class_=args.class_,
        assignee=args.assignee or "",
        tags=parse_csv(args.tags),
        due=args.due,
        estimate=args.estimate or "",
        body=args.body or "",
        parent=parse_id(args.parent) if args.parent else None,
        depends_on=[parse_id(v) for v in parse_csv(args.depends_on)],
    )
    name = task.file.name if task.file else ""
    return report_task(task, fmt, f"Created task #{task.id}: {task.title} ({name})")


def cmd_list(args: argparse.Namespace, settings: Settings, fmt: OutputFormat) -> int:
    ctx = BoardContext.open(settings.dir)
    config = ctx.config
    tasks = ctx.load_tasks()
    service = FilterService(config)

    blocked = True if args.blocked else (False if args.not_blocked else None)
    filter_ = Filter(
        statuses=parse_csv(args.status),
        priorities=parse_csv(args.priority),
        assignee=args.assignee or "",
        tag=args.tag or "",
        search=args.search or "",
        blocked=blocked,
        parent=parse_id(args.parent) if args.parent else None,
        unclaimed=args.unclaimed,
        claim_timeout=config.claim_timeout_delta(),
        claimed_by=args.claimed_by or "",
        class_=args.class_ or "",
        include_archived=args.archived,
    )
    for status in filter_.statuses:
        ctx.board_service.validate_status(status)

    selected = service.apply(tasks, filter_)
    if args.unblocked:
        selected = service.unblocked(selected, tasks)
    selected = service.sort(selected, args.sort, reverse=args.reverse)
    if args.limit:
        selected = selected[: args.limit]

    if args.group_by:
        try:
            groups = service.group_by(selected, args.group_by)
        except ValueError as e:
            raise invalid_input(str(e), group_by=args.group_by) from e
        render_groups(groups, fmt)
    else:
        render_tasks(selected, fmt)
    return 0


def cmd_show(args: argparse.Namespace, settings: Settings, fmt: OutputFormat) -> int:
    ctx = BoardContext.open(settings.dir)
    task = ctx.board_service.get_task(parse_id(args.id))
    render_task(task, fmt)
    return 0


def cmd_move(args: argparse.Namespace, settings: Settings, fmt: OutputFormat) -> int:
    ctx = BoardContext.open(settings.dir)
    service = ctx.board_service
    if not args.status and not args.next and not args.prev:
        raise invalid_input("provide a target status or use --next/--prev")
    if args.status and (args.next or args.prev):
        raise invalid_input("cannot combine a target status with --next/--prev")

    def move(task_id: int) -> MoveResult:
        kwargs = {"claim": args.claim or "", "release": args.release, "force": args.force}
        if args.next:
            return service.move_next(task_id, **kwargs)
        if args.prev:
            return service.move_prev(task_id, **kwargs)
        return service.move(task_id, args.status, **kwargs)

    return run_batch(ctx, args, fmt, move, lambda task_id: report_move(move(task_id), fmt))


def cmd_pick(args: argparse.Namespace, settings: Settings, fmt: OutputFormat) -> int:
    ctx = BoardContext.open(settings.dir)
    options = PickOptions(statuses=parse_csv(args.status), tags=parse_csv(args.tags))
    result = ctx.board_service.pick(args.claim, options, move_to=args.move or "")
    for warning in result.warnings:
        output.warning(warning)
    task = result.task
    if fmt is not OutputFormat.TABLE:
        render_task(task, fmt)
    elif result.changed:
        output.message(
            f"Picked and moved task #{task.id}: {task.title} "
            f"({result.from_status} -> {task.status}, claimed by {args.claim})"
        )
    else:
        output.message(
            f"Picked task #{task.id}: {task.title} ({task.status}, claimed by {args.claim})"
        )
    return 0


def cmd_claim(args: argparse.Namespace, settings: Settings, fmt: OutputFormat) -> int:
    ctx = BoardContext.open(settings.dir)

    def claim(task_id: int) -> Task:
        return ctx.board_service.claim(task_id, args.agent, force=args.force)

    def single(task_id: int) -> int:
        task = claim(task_id)
        return report_task(task, fmt, f"Claimed task #{task.id} for {args.agent}")

    return run_batch(ctx, args, fmt, claim, single)


def cmd_release(args: argparse.Namespace, settings: Settings, fmt: OutputFormat) -> int:
    ctx = BoardContext.open(settings.dir)

    def single(task_id: int) -> int:
        task = ctx.board_service.release(task_id)
        return report_task(task, fmt, f"Released task #{task.id}")

    return run_batch(ctx, args, fmt, ctx.board_service.release, single)


def cmd_block(args: argparse.Namespace, settings: Settings, fmt: OutputFormat) -> int:
    ctx = BoardContext.open(settings.dir)

    def block(task_id: int) -> Task:
        return ctx.board_service.block(task_id, args.reason, agent=args.claim or "", force=args.force)

    def single(task_id: int) -> int:
        task = block(task_id)
        return report_task(task, fmt, f"Blocked task #{task.id}: {task.block_reason}")

    return run_batch(ctx, args, fmt, block, single)


def cmd_unblock(args: argparse.Namespace, settings: Settings, fmt: OutputFormat) -> int:
    ctx = BoardContext.open(settings.dir)

    def unblock(task_id: int) -> Task:
        return ctx.board_service.unblock(task_id, agent=args.claim or "", force=args.force)

    def single(task_id: int) -> int:
        task = unblock(task_id)
        return report_task(task, fmt, f"Unblocked task #{task.id}")

    return run_batch(ctx, args, fmt, unblock, single)


def cmd_priority(args: argparse.Namespace, settings: Settings, fmt: OutputFormat) -> int:
    ctx = BoardContext.open(settings.dir)
    service = ctx.board_service
    chosen = [bool(args.priority), args.raise_, args.lower]
    if sum(chosen) != 1:
        raise invalid_input("provide exactly one of PRIORITY, --raise or --lower")

    def change(task_id: int) -> Task:
        agent = args.claim or ""
        if args.raise_:
            return service.raise_priority(task_id, agent=agent, force=args.force)
        if args.lower:
            return service.lower_priority(task_id, agent=agent, force=args.force)
        return service.set_priority(task_id, args.priority, agent=agent, force=args.force)

    def single(task_id: int) -> int:
        task = change(task_id)
        return report_task(task, fmt, f"Task #{task.id} priority: {task.priority}")

    return run_batch(ctx, args, fmt, change, single)


def confirm(prompt: str) -> bool:
    """Ask a yes/no question on the terminal."""
    print(f"{prompt} [y/N] ", end="", flush=True)
    return input().strip().lower() in ("y", "yes")


def _archive_command(action: str) -> Handler:
    def handler(args: argparse.Namespace, settings: Settings, fmt: OutputFormat) -> int:
        ctx = BoardContext.open(settings.dir)
        service = ctx.board_service
        operation = service.delete if action == "delete" else service.archive
        ids = parse_ids(args.ids)

        if action == "delete" and not args.force:
            if not sys.stdin.isatty():
                raise invalid_input("cannot prompt for confirmation (not a terminal); use --force")
            label = ", ".join(f"#{i}" for i in ids)
            if not confirm(f"Delete {label}?"):
                output.info("Cancelled")
                return 0

        def run(task_id: int) -> MoveResult:
            return operation(task_id, force=args.force)

        def single(task_id: int) -> int:
            result = run(task_id)
            for note in result.warnings:
                output.warning(note)
            verb = "Deleted" if action == "delete" else "Archived"
            return report_task(result.task, fmt, f"{verb} task #{task_id}: {result.task.title}")

        return run_batch(ctx, args, fmt, run, single)

    return handler


cmd_delete = _archive_command("delete")
cmd_archive = _archive_command("archive")


def cmd_edit(args: argparse.Namespace, settings: Settings, fmt: OutputFormat) -> int:
    ctx = BoardContext.open(settings.dir)
    changes = TaskChanges(
        title=args.title,
        status=args.status,
        priority=args.priority,
        class_=args.class_,
        assignee=args.assignee,
        add_tags=parse_csv(args.add_tag),
        remove_tags=parse_csv(args.remove_tag),
        due=args.due,
        clear_due=args.clear_due,
        estimate=args.estimate,
        body=args.body,
        parent=parse_id(args.parent) if args.parent else None,
        clear_parent=args.clear_parent,
        add_deps=[parse_id(v) for v in parse_csv(args.add_dep)],
        remove_deps=[parse_id(v) for v in parse_csv(args.remove_dep)],
        block=args.block,
        unblock=args.unblock,
        claim=args.claim or "",
        release=args.release,
        force=args.force,
    )
    task = ctx.task_service.edit_task(parse_id(args.id), changes)
    return report_task(task, fmt, f"Updated task #{task.id}: {task.title}")


def cmd_handoff(args: argparse.Namespace, settings: Settings, fmt: OutputFormat) -> int:
    ctx = BoardContext.open(settings.dir)
    result = ctx.board_service.handoff(
        parse_id(args.id),
        args.claim or "",
        note=args.note or "",
        block_reason=args.block,
        release=args.release,
        timestamp=args.timestamp,
    )
    for warning in result.warnings:
        output.warning(warning)
    task = result.task
    parts = [f"Handed off task #{task.id} -> {task.status}"]
    if task.blocked:
        parts.append(f"(blocked: {task.block_reason})")
    if not task.claimed_by:
        parts.append("(claim released)")
    return report_task(task, fmt, " ".join(parts))


def cmd_board(args: argparse.Namespace, settings: Settings, fmt: OutputFormat) -> int:
    ctx = BoardContext.open(settings.dir)
    summary = ReportService(ctx.config).summary(ctx.load_tasks())
    render_summary(summary, fmt)
    return 0


def cmd_metrics(args: argparse.Namespace, settings: Settings, fmt: OutputFormat) -> int:
    ctx = BoardContext.open(settings.dir)
    metrics = ReportService(ctx.config).metrics(ctx.load_tasks(), since=parse_since(args.since))
    render_metrics(metrics, fmt)
    return 0


def cmd_context(args: argparse.Namespace, settings: Settings, fmt: OutputFormat) -> int:
    ctx = BoardContext.open(settings.dir)
    service = ReportService(ctx.config)
    if args.days < 0:
        raise invalid_input("--days must be >= 0", days=args.days)
    try:
        doc = service.context(ctx.load_tasks(), sections=parse_csv(args.sections), days=args.days)
    except ValueError as e:
        raise invalid_input(str(e), sections=args.sections) from e

    markdown = service.render_context_markdown(doc)
    if args.write_to:
        service.write_context_to_file(Path(args.write_to), markdown)
        if fmt is OutputFormat.JSON:
            print_json({"status": "written", "file": args.write_to})
        else:
            output.success(f"Wrote context to {args.write_to}")
        return 0

    if fmt is OutputFormat.JSON:
        print_json(doc.to_json())
    else:
        sys.stdout.write(markdown)
    return 0


def cmd_log(args: argparse.Namespace, settings: Settings, fmt: OutputFormat) -> int:
    ctx = BoardContext.open(settings.dir)
    filter_ = LogFilter(
        since=parse_since(args.since),
        action=args.action,
        task_id=parse_id(args.task) if args.task else None,
        limit=args.limit,
    )
    render_log(ctx.activity_log.read(filter_), fmt)
    return 0


def cmd_check(args: argparse.Namespace, settings: Settings, fmt: OutputFormat) -> int:
    ctx = BoardContext.open(settings.dir)
    report = ConsistencyService(ctx.repository, ctx.config_service).check()
    if fmt is OutputFormat.JSON:
        print_json(report.to_json())
        return 0
    for warning in report.warnings:
        output.warning(warning)
    for repair in report.repairs:
        output.success(repair)
    if report.clean:
        output.message("Board is consistent.")
    return 0


def format_config_value(value: object) -> str:
    if isinstance(value, list):
        return ", ".join(str(v) for v in value)
    if isinstance(value, dict):
        return ", ".join(f"{k}={v}" for k, v in value.items()) or "--"
    return str(value)


def cmd_config(args: argparse.Namespace, settings: Settings, fmt: OutputFormat) -> int:
    ctx = BoardContext.open(settings.dir)
    if args.action is None:
        values = {key: config_value(ctx.config, key) for key in CONFIG_KEYS}
        if fmt is OutputFormat.JSON:
            print_json(values)
        else:
            for key, value in values.items():
                output.message(f"{key:<20} {format_config_value(value)}")
        return 0

    if args.key is None:
        raise invalid_input(f"config {args.action} needs a KEY")

    if args.action == "get":
        value = config_value(ctx.config, args.key)
        if fmt is OutputFormat.JSON:
            print_json(value)
        else:
            output.message(format_config_value(value))
        return 0

    if args.value is None:
        raise invalid_input("config set needs a KEY and a VALUE", key=args.key)
    ctx.config_service.set_value(args.key, args.value)
    if fmt is OutputFormat.JSON:
        print_json({"key": args.key, "value": args.value})
    else:
        output.message(f"Set {args.key} = {args.value}")
    return 0


COMMANDS: dict[str, Handler] = {
    "init": cmd_init,
    "add": cmd_add,
    "list": cmd_list,
    "show": cmd_show,
    "move": cmd_move,
    "pick": cmd_pick,
    "claim": cmd_claim,
    "release": cmd_release,
    "edit": cmd_edit,
    "block": cmd_block,
    "unblock": cmd_unblock,
    "priority": cmd_priority,
    "delete": cmd_delete,
    "archive": cmd_archive,
    "handoff": cmd_handoff,
    "board": cmd_board,
    "metrics": cmd_metrics,
    "context": cmd_context,
    "log": cmd_log,
    "check": cmd_check,
    "config": cmd_config,
}


def run_command(args: argparse.Namespace, settings: Settings, fmt: OutputFormat) -> int:
    """
    Dispatch a verb and map failures to exit codes.

    Returns:
        0 on success, 1 for classified errors, 2 for internal errors.
    """
    handler = COMMANDS[args.command]
    try:
        return handler(args, settings, fmt)
    except KanbanError as e:
        logger.debug("%s failed: %s (%s)", args.command, e.message, e.code.value)
        _report_error(e.to_envelope(), fmt)
        return e.exit_code
    except (ConfigError, ActivityLogError, OSError, ValueError) as e:
        logger.exception("%s failed", args.command)
        _report_error({"error": str(e), "code": ErrorCode.INTERNAL_ERROR.value, "details": {}}, fmt)
        return 2


def _report_error(envelope: dict, fmt: OutputFormat) -> None:
    if fmt is OutputFormat.JSON:
        print_json(envelope)
    else:
        output.error(envelope["error"])

