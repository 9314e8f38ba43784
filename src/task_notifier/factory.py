"""Dependency injection factory."""

import asyncio
import logging
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI

from task_notifier.config import Config
from task_notifier.dispatch.dispatcher import WebhookDispatcher
from task_notifier.exceptions import EndpointNotConfiguredError
from task_notifier.lifecycle.archiver import Archiver
from task_notifier.lifecycle.importer import IdAllocator, PlanImporter
from task_notifier.lifecycle.notifier import SingleFlightNotifier
from task_notifier.lifecycle.scanner import ReminderScanner
from task_notifier.store.audit_log import YamlAuditLog
from task_notifier.store.table_watcher import TableWatcher
from task_notifier.store.task_table import YamlTaskTable

logger = logging.getLogger(__name__)

# Global config instance for dependency injection
_config: Config | None = None

# Global dispatcher and table watcher
_dispatcher: WebhookDispatcher | None = None
_watcher: TableWatcher | None = None


def get_config() -> Config:
    """Get or create Config instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def get_task_table() -> YamlTaskTable:
    """Create the live task table."""
    return YamlTaskTable(get_config().table_path)


def get_archive() -> YamlTaskTable:
    """Create the archive store."""
    return YamlTaskTable(get_config().archive_path)


def get_audit_log() -> YamlAuditLog:
    """Create the audit log sink."""
    return YamlAuditLog(get_config().audit_log_path)


def get_dispatcher() -> WebhookDispatcher:
    """Get or create the WebhookDispatcher singleton."""
    global _dispatcher
    if _dispatcher is None:
        config = get_config()
        _dispatcher = WebhookDispatcher(
            retry=config.retry, timeout_seconds=config.request_timeout_seconds
        )
    return _dispatcher


def close_dispatcher() -> None:
    """Close the dispatcher's HTTP client if one was created."""
    global _dispatcher
    if _dispatcher is not None:
        _dispatcher.close()
        _dispatcher = None


def get_notifier() -> SingleFlightNotifier:
    """Create SingleFlightNotifier for dependency injection."""
    return SingleFlightNotifier(get_config(), get_task_table(), get_dispatcher(), get_audit_log())


def get_scanner() -> ReminderScanner:
    """Create ReminderScanner for dependency injection."""
    return ReminderScanner(get_config(), get_task_table(), get_dispatcher(), get_audit_log())


def get_archiver() -> Archiver:
    """Create Archiver for dependency injection."""
    return Archiver(get_task_table(), get_archive())


def get_importer() -> PlanImporter:
    """Create PlanImporter for dependency injection."""
    table = get_task_table()
    return PlanImporter(table, IdAllocator(table, get_archive()))


def get_table_watcher() -> TableWatcher | None:
    """Get the running table watcher, if any."""
    return _watcher


def handle_notify_edit(row_index: int, value: bool) -> bool:
    """Apply an edit to the trigger column of one row.

    Writes the new value, then runs the notifier if the value is true. When
    the table watcher is running it gets the first look at the write, so an
    edit it turns into a trigger is not notified a second time. An edit it
    does not report, because the flag was already set, is notified directly.

    Returns:
        Whether a notification was handled for the row

    Raises:
        IndexError: If there is no row at that position
    """
    table = get_task_table()
    table.set_notify_flag(row_index, value)
    if not value:
        return False

    watcher = get_table_watcher()
    if watcher is not None:
        if row_index in watcher.check_for_triggers():
            return True
        # The observer thread may have handled this write already
        return get_notifier().handle_trigger(row_index, only_if_flagged=True)
    return get_notifier().handle_trigger(row_index)


def _on_watched_trigger(row_index: int) -> bool:
    """Notify for a flag the watcher saw turn true.

    The edit endpoint may have handled the same write first, in which case
    the flag is already reset and nothing is sent.
    """
    return get_notifier().handle_trigger(row_index, only_if_flagged=True)


def start_table_watcher() -> None:
    """Start the file watcher for the live table."""
    global _watcher
    config = get_config()
    if not config.watch_table or _watcher is not None:
        return

    try:
        watcher = TableWatcher(get_task_table(), _on_watched_trigger)
        watcher.start()
        _watcher = watcher
    except Exception as e:
        logger.error(f"[Factory] Failed to start table watcher: {e}", exc_info=True)


def stop_table_watcher() -> None:
    """Stop the table watcher if it is running."""
    global _watcher
    if _watcher is None:
        return
    try:
        _watcher.stop()
    except Exception as e:
        logger.error(f"[Factory] Failed to stop table watcher: {e}")
    _watcher = None


async def run_reminder_loop(
    interval_minutes: int,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> None:
    """Run the reminder scanner every interval_minutes until cancelled.

    Args:
        interval_minutes: Minutes between scans (at least 1)
        sleep: Async sleep function, replaced in tests
    """
    interval = max(1, interval_minutes) * 60
    while True:
        await sleep(interval)
        try:
            sent = await asyncio.to_thread(get_scanner().scan)
            logger.info(f"[Scheduler] Reminder scan sent {sent} notifications")
        except EndpointNotConfiguredError as e:
            logger.warning(f"[Scheduler] Skipping reminder scan: {e}")
        except Exception as e:
            logger.error(f"[Scheduler] Reminder scan failed: {e}", exc_info=True)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifecycle - startup and shutdown."""
    config = get_config()

    logger.info("[Lifespan] Starting table watcher...")
    start_table_watcher()

    reminder_task: asyncio.Task[None] | None = None
    if config.reminder_interval_minutes > 0:
        logger.info(
            f"[Lifespan] Scheduling reminders every {config.reminder_interval_minutes} minutes"
        )
        reminder_task = asyncio.create_task(
            run_reminder_loop(config.reminder_interval_minutes), name="reminder-loop"
        )

    try:
        yield
    finally:
        if reminder_task is not None:
            reminder_task.cancel()
            with suppress(asyncio.CancelledError):
                await reminder_task
        logger.info("[Lifespan] Stopping table watcher...")
        stop_table_watcher()
        close_dispatcher()


def create_app() -> FastAPI:
    """Create FastAPI application (composition root)."""
    from task_notifier.api.tasks import router as tasks_router

    app = FastAPI(
        title="TaskNotifier",
        description="Chat notifications, reminders and archiving for a task table",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.include_router(tasks_router, prefix="/api")

    return app
