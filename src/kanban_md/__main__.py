"""CLI entry point for kanban-md."""

import argparse
import sys
from pathlib import Path

from . import __version__
from .config import Settings
from .logging import setup_logging


def _global_options(suppress: bool) -> argparse.ArgumentParser:
    """Options accepted both before and after the verb."""
    default = argparse.SUPPRESS if suppress else None
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument(
        "--dir",
        type=Path,
        default=default,
        help="Board directory (default: search upward from the current directory)",
    )
    fmt = parser.add_mutually_exclusive_group()
    fmt.add_argument(
        "--json",
        dest="format",
        action="store_const",
        const="json",
        default=default,
        help="Output JSON",
    )
    fmt.add_argument(
        "--table",
        dest="format",
        action="store_const",
        const="table",
        default=default,
        help="Output tables",
    )
    fmt.add_argument(
        "--compact",
        "--oneline",
        dest="format",
        action="store_const",
        const="compact",
        default=default,
        help="Output one line per record",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        default=argparse.SUPPRESS if suppress else False,
        help="Disable colored output",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=argparse.SUPPRESS if suppress else 0,
        help="Increase logging verbosity (-v for INFO, -vv for DEBUG)",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=default,
        help="Path to write logs to file",
    )
    return parser


def _add_claim_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--claim", metavar="AGENT", help="Act as AGENT for claimed tasks")
    parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Override WIP limits and other agents' claims",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with every verb."""
    common = _global_options(suppress=True)
    parser = argparse.ArgumentParser(
        prog="kanban-md",
        description="Markdown-file kanban board with a CLI and a terminal UI",
        parents=[_global_options(suppress=False)],
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    def verb(name: str, help_text: str) -> argparse.ArgumentParser:
        return sub.add_parser(name, help=help_text, description=help_text, parents=[common])

    p = verb("init", "Create a new board")
    p.add_argument("--name", help="Board name (default: project directory name)")
    p.add_argument("--statuses", help="Comma separated statuses, first to last")
    p.add_argument(
        "--wip-limit",
        action="append",
        metavar="STATUS:N",
        help="WIP limit for a status (repeatable)",
    )
    p.add_argument("--tasks-dir", help="Tasks directory relative to the board")

    p = verb("add", "Create a task")
    p.add_argument("title")
    p.add_argument("--status")
    p.add_argument("--priority")
    p.add_argument("--class", dest="class_", metavar="CLASS")
    p.add_argument("--assignee")
    p.add_argument("--tags", help="Comma separated tags")
    p.add_argument("--due", metavar="YYYY-MM-DD")
    p.add_argument("--estimate")
    p.add_argument("--body")
    p.add_argument("--parent", metavar="ID")
    p.add_argument("--depends-on", metavar="IDS", help="Comma separated task ids")

    p = verb("list", "List tasks")
    p.add_argument("--status", help="Comma separated statuses")
    p.add_argument("--priority", help="Comma separated priorities")
    p.add_argument("--assignee")
    p.add_argument("--tag")
    p.add_argument("--search", help="Case-insensitive text in title, body or tags")
    blocked = p.add_mutually_exclusive_group()
    blocked.add_argument("--blocked", action="store_true", help="Only blocked tasks")
    blocked.add_argument("--not-blocked", action="store_true", help="Only unblocked tasks")
    p.add_argument("--parent", metavar="ID")
    p.add_argument("--unclaimed", action="store_true", help="Unclaimed or expired claims")
    p.add_argument("--claimed-by", metavar="AGENT")
    p.add_argument("--class", dest="class_", metavar="CLASS")
    p.add_argument("--archived", action="store_true", help="Include archived tasks")
    p.add_argument("--unblocked", action="store_true", help="Only tasks with all dependencies done")
    p.add_argument(
        "--sort",
        default="status",
        choices=["id", "status", "priority", "due", "created", "updated"],
    )
    p.add_argument("-r", "--reverse", action="store_true")
    p.add_argument("-n", "--limit", type=int, default=0)
    p.add_argument(
        "--group-by",
        choices=["assignee", "tag", "class", "priority", "status"],
    )

    p = verb("show", "Show one task")
    p.add_argument("id")

    p = verb("move", "Change task status")
    p.add_argument("ids", metavar="ID[,ID...]")
    p.add_argument("status", nargs="?")
    p.add_argument("--next", action="store_true", help="Move to the next status")
    p.add_argument("--prev", action="store_true", help="Move to the previous status")
    p.add_argument("--release", action="store_true", help="Release the claim first")
    _add_claim_options(p)

    p = verb("pick", "Claim the next task to work on")
    p.add_argument("--claim", metavar="AGENT", required=True)
    p.add_argument("--status", help="Comma separated statuses to pick from")
    p.add_argument("--tags", help="Comma separated tags (any)")
    p.add_argument("--move", metavar="STATUS", help="Also move the picked task")

    p = verb("claim", "Claim tasks for an agent")
    p.add_argument("ids", metavar="ID[,ID...]")
    p.add_argument("agent")
    p.add_argument("-f", "--force", action="store_true", help="Take over another agent's claim")

    p = verb("release", "Release claims")
    p.add_argument("ids", metavar="ID[,ID...]")

    p = verb("edit", "Edit task fields")
    p.add_argument("id")
    p.add_argument("--title")
    p.add_argument("--status")
    p.add_argument("--priority")
    p.add_argument("--class", dest="class_", metavar="CLASS")
    p.add_argument("--assignee")
    p.add_argument("--add-tag", help="Comma separated tags to add")
    p.add_argument("--remove-tag", help="Comma separated tags to remove")
    p.add_argument("--due", metavar="YYYY-MM-DD")
    p.add_argument("--clear-due", action="store_true")
    p.add_argument("--estimate")
    p.add_argument("--body")
    p.add_argument("--parent", metavar="ID")
    p.add_argument("--clear-parent", action="store_true")
    p.add_argument("--add-dep", metavar="IDS")
    p.add_argument("--remove-dep", metavar="IDS")
    p.add_argument("--block", metavar="REASON")
    p.add_argument("--unblock", action="store_true")
    p.add_argument("--release", action="store_true")
    _add_claim_options(p)

    p = verb("block", "Mark tasks blocked")
    p.add_argument("ids", metavar="ID[,ID...]")
    p.add_argument("reason")
    _add_claim_options(p)

    p = verb("unblock", "Clear the blocked flag")
    p.add_argument("ids", metavar="ID[,ID...]")
    _add_claim_options(p)

    p = verb("priority", "Set, raise or lower priority")
    p.add_argument("ids", metavar="ID[,ID...]")
    p.add_argument("priority", nargs="?")
    p.add_argument("--raise", dest="raise_", action="store_true")
    p.add_argument("--lower", action="store_true")
    _add_claim_options(p)

    p = verb("delete", "Soft-delete tasks (move to archived)")
    p.add_argument("ids", metavar="ID[,ID...]")
    p.add_argument("-f", "--force", action="store_true", help="Skip confirmation")

    p = verb("archive", "Move tasks to archived")
    p.add_argument("ids", metavar="ID[,ID...]")
    p.add_argument("-f", "--force", action="store_true", help="Override other agents' claims")

    p = verb("handoff", "Move a task to review with a note")
    p.add_argument("id")
    p.add_argument("--claim", metavar="AGENT", required=True)
    p.add_argument("--note")
    p.add_argument("-t", "--timestamp", action="store_true", help="Prefix the note with a timestamp")
    p.add_argument("--block", metavar="REASON")
    p.add_argument("--release", action="store_true", help="Release the claim afterwards")

    verb("board", "Board overview")

    p = verb("metrics", "Flow metrics")
    p.add_argument("--since", metavar="YYYY-MM-DD")

    p = verb("context", "Board context document for agents")
    p.add_argument("--sections", help="Comma separated sections")
    p.add_argument("--days", type=int, default=7, help="Window for recently completed tasks")
    p.add_argument("--write-to", metavar="FILE", help="Write or replace the block in FILE")

    p = verb("log", "Show the activity log")
    p.add_argument("--since", metavar="YYYY-MM-DD")
    p.add_argument("-n", "--limit", type=int, default=0)
    p.add_argument("--action")
    p.add_argument("--task", metavar="ID")

    verb("check", "Repair ids, filenames and next_id")

    p = verb("config", "Show or change board settings")
    p.add_argument("action", nargs="?", choices=["get", "set"])
    p.add_argument("key", nargs="?", help="Dotted key, e.g. board.name")
    p.add_argument("value", nargs="?")

    verb("tui", "Open the interactive board")

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    return build_parser().parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = parse_args(argv)

    # Flags override the environment
    settings_kwargs: dict = {}
    if args.dir:
        settings_kwargs["dir"] = args.dir
    if args.format:
        settings_kwargs["output"] = args.format
    if args.no_color:
        settings_kwargs["no_color"] = True
    if args.verbose:
        settings_kwargs["verbose"] = args.verbose
    if args.log_file:
        settings_kwargs["log_file"] = args.log_file

    settings = Settings(**settings_kwargs)
    setup_logging(settings.verbose, settings.log_file)

    from .cli import output

    output.set_color(not settings.no_color)

    if args.command in (None, "tui"):
        # Import here so CLI verbs never load Textual
        from .app import run

        raise SystemExit(run(settings))

    from .cli.commands import run_command
    from .cli.formatters import resolve_format

    fmt = resolve_format(args.format, settings.output, sys.stdout)
    raise SystemExit(run_command(args, settings, fmt))


if __name__ == "__main__":
    main()
