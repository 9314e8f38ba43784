"""TaskNotifier main application."""

import argparse
import logging
import sys
from pathlib import Path

import uvicorn

from task_notifier.exceptions import EndpointNotConfiguredError, PlanFormatError
from task_notifier.factory import (
    create_app,
    get_archiver,
    get_config,
    get_importer,
    get_scanner,
    get_task_table,
    handle_notify_edit,
)

logger = logging.getLogger(__name__)

# Create app instance for uvicorn
app = create_app()


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser."""
    parser = argparse.ArgumentParser(
        prog="task-notifier",
        description="Chat notifications, reminders and archiving for a task table",
    )
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("serve", help="Run the HTTP API and table watcher (default)")
    subparsers.add_parser("scan", help="Send reminders for due and overdue tasks")
    subparsers.add_parser("archive", help="Move completed tasks to the archive")

    import_parser = subparsers.add_parser("import", help="Import tasks from a plan file")
    import_parser.add_argument("file", help="Plan file containing a JSON array ('-' for stdin)")

    trigger_parser = subparsers.add_parser("trigger", help="Set the notify flag on a row")
    trigger_parser.add_argument("row", type=int, help="0-based row position")

    return parser


def run_command(args: argparse.Namespace) -> int:
    """Run one interactive command and print its result."""
    if args.command == "scan":
        if get_task_table().row_count() == 0:
            print("The task table has no tasks.")
            return 0
        try:
            sent = get_scanner().scan()
        except EndpointNotConfiguredError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        if sent == 0:
            print("No tasks are due or overdue.")
        else:
            print(f"Sent {sent} reminder(s).")
        return 0

    if args.command == "archive":
        moved = get_archiver().archive_terminal()
        if moved == 0:
            print("No completed tasks to archive.")
        else:
            print(f"Archived {moved} completed task(s).")
        return 0

    if args.command == "import":
        text = sys.stdin.read() if args.file == "-" else Path(args.file).read_text(encoding="utf-8")
        try:
            tasks = get_importer().import_plan(text)
        except PlanFormatError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        print(f"Imported {len(tasks)} task(s): {', '.join(task.id for task in tasks)}")
        return 0

    if args.command == "trigger":
        try:
            triggered = handle_notify_edit(args.row, True)
        except IndexError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        if not triggered:
            print(f"Error: task table busy, trigger for row {args.row} dropped", file=sys.stderr)
            return 1
        print(f"Processed notify flag on row {args.row}; see the audit log for the outcome.")
        return 0

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: list[str] | None = None) -> int:
    """Run the application."""
    args = build_parser().parse_args(argv)
    config = get_config()

    # Configure logging
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)-8s [%(name)s:%(lineno)d] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if args.command not in (None, "serve"):
        return run_command(args)

    # Run server with app from module level
    uvicorn.run(
        app,
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )

    return 0


if __name__ == "__main__":
    sys.exit(main())
