"""File system watcher that turns trigger-column edits into notifications."""

import logging
import threading
from collections.abc import Callable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from task_notifier.models import Task
from task_notifier.store.task_table import YamlTaskTable

logger = logging.getLogger(__name__)


def _flag_key(index: int, task: Task) -> str:
    """Identify a row by task ID, falling back to its position."""
    return task.id or f"#{index}"


class TableWatcher:
    """Watches the task table file and fires on notify flags turning true.

    Only a false→true transition of a row's notify flag triggers the
    callback. Clearing a flag, including the notifier's own reset, and any
    other edit are ignored.
    """

    def __init__(self, table: YamlTaskTable, on_trigger: Callable[[int], object]) -> None:
        """Initialize watcher.

        Args:
            table: Task table whose file is watched
            on_trigger: Called with the row position of each newly set flag
        """
        self.table = table
        self._on_trigger = on_trigger
        self._observer: BaseObserver | None = None
        self._flags: dict[str, bool] = {}
        self._scan_lock = threading.Lock()

    def start(self) -> None:
        """Snapshot current flags and start watching in a background thread."""
        self._flags = self._read_flags()
        watch_dir = self.table.path.parent
        watch_dir.mkdir(parents=True, exist_ok=True)

        handler = _TableEventHandler(self.table.path, self.check_for_triggers)
        self._observer = Observer()
        self._observer.schedule(handler, str(watch_dir), recursive=False)
        self._observer.daemon = True
        self._observer.start()
        logger.info(f"[TableWatcher] Watching {self.table.path}")

    def stop(self) -> None:
        """Stop watching and clean up resources."""
        if self._observer:
            logger.info(f"[TableWatcher] Stopping watcher for {self.table.path}")
            self._observer.stop()
            self._observer.join(timeout=2)
            self._observer = None

    def check_for_triggers(self) -> list[int]:
        """Compare flags with the last snapshot and fire for rising edges.

        Returns:
            Row positions that were triggered
        """
        with self._scan_lock:
            try:
                tasks = self.table.list_tasks()
            except Exception as e:
                # Editors may leave the file half-written; the next event retries
                logger.warning(f"[TableWatcher] Could not read table: {e}")
                return []

            triggered: list[int] = []
            current: dict[str, bool] = {}
            for index, task in enumerate(tasks):
                key = _flag_key(index, task)
                current[key] = task.notify_flag
                if task.notify_flag and not self._flags.get(key, False):
                    triggered.append(index)
            self._flags = current

        for index in triggered:
            logger.info(f"[TableWatcher] Notify flag set on row {index}")
            try:
                self._on_trigger(index)
            except Exception as e:
                logger.error(f"[TableWatcher] Trigger callback error: {e}", exc_info=True)
        return triggered

    def _read_flags(self) -> dict[str, bool]:
        try:
            tasks = self.table.list_tasks()
        except Exception as e:
            logger.warning(f"[TableWatcher] Could not read table: {e}")
            return {}
        return {_flag_key(index, task): task.notify_flag for index, task in enumerate(tasks)}


class _TableEventHandler(FileSystemEventHandler):
    """Internal handler that filters events down to the table file."""

    def __init__(self, table_path: Path, callback: Callable[[], object]):
        """Initialize event handler.

        Args:
            table_path: Path of the watched table file
            callback: Called when the table file changes
        """
        self.table_name = table_path.name
        self.callback = callback

    def _is_table(self, path: str | bytes) -> bool:
        if isinstance(path, bytes):
            path = path.decode("utf-8")
        return Path(path).name == self.table_name

    def _handle_event(self, event_type: str, event: FileSystemEvent) -> None:
        if event.is_directory:
            return

        # Atomic saves show up as a move onto the table file
        paths = [event.src_path, getattr(event, "dest_path", "") or ""]
        if not any(path and self._is_table(path) for path in paths):
            return

        logger.debug(f"[TableEventHandler] {event_type}: {self.table_name}")
        self.callback()

    def on_modified(self, event: FileSystemEvent) -> None:
        """Handle file modification events."""
        self._handle_event("modified", event)

    def on_created(self, event: FileSystemEvent) -> None:
        """Handle file creation events."""
        self._handle_event("created", event)

    def on_moved(self, event: FileSystemEvent) -> None:
        """Handle file move/rename events."""
        self._handle_event("moved", event)
