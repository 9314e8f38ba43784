"""Single-flight notifier for trigger-column edits."""

import logging
from collections.abc import Callable

from task_notifier.cards.renderer import CardRenderer
from task_notifier.config import Config
from task_notifier.directory import AssigneeDirectory, load_directory
from task_notifier.dispatch.dispatcher import Dispatcher
from task_notifier.models import ReasonKind, Task
from task_notifier.store.audit_log import (
    OUTCOME_NOT_CONFIGURED,
    OUTCOME_SUCCESS,
    AuditLog,
    build_entry,
    error_outcome,
    failure_outcome,
)
from task_notifier.store.task_table import TaskTable
from task_notifier.timeutil import resolve_time_zone

logger = logging.getLogger(__name__)


class SingleFlightNotifier:
    """Sends one status-change card per trigger, one trigger at a time.

    The lock is scoped to the whole table: a trigger on any row waits behind
    the one in flight. The row's notify flag is reset after every attempt,
    whatever the outcome, so a later edit can trigger again and a re-delivered
    edit event does not send twice.
    """

    def __init__(
        self,
        config: Config,
        table: TaskTable,
        dispatcher: Dispatcher,
        audit_log: AuditLog,
        directory_loader: Callable[[], AssigneeDirectory] | None = None,
    ) -> None:
        """Initialize notifier.

        Args:
            config: Application config (endpoint, time zone, lock timeout, table URL)
            table: Live task table
            dispatcher: Webhook dispatcher
            audit_log: Audit log sink
            directory_loader: Loads the assignee directory once per trigger
        """
        self._config = config
        self._table = table
        self._dispatcher = dispatcher
        self._audit_log = audit_log
        self._tz = resolve_time_zone(config.time_zone)
        self._load_directory = directory_loader or (lambda: load_directory(config))

    def handle_trigger(self, row_index: int, only_if_flagged: bool = False) -> bool:
        """Notify for one row whose trigger flag was just set.

        The caller has already checked that the edit set the trigger column
        to true. If the table lock cannot be acquired within the configured
        timeout the trigger is dropped without a log entry. Never raises.

        Args:
            row_index: 0-based row position in the live table
            only_if_flagged: Skip the row if its flag was already reset by
                a trigger that ran while this one waited for the lock

        Returns:
            False if the trigger was dropped because the lock stayed busy
        """
        lock = self._table.lock
        timeout = max(0, self._config.lock_timeout_ms) / 1000
        if not lock.acquire(timeout=timeout):
            logger.debug(f"[Notifier] Lock busy, dropping trigger for row {row_index}")
            return False
        try:
            if only_if_flagged and not self._still_flagged(row_index):
                logger.debug(f"[Notifier] Row {row_index} already handled")
                return True
            self._notify_row(row_index)
            return True
        finally:
            lock.release()

    def _still_flagged(self, row_index: int) -> bool:
        try:
            return self._table.read_row(row_index).notify_flag
        except (IndexError, ValueError):
            # Let _notify_row record the failure
            return True

    def _notify_row(self, row_index: int) -> None:
        context = f"trigger row={row_index}"
        try:
            task = self._table.read_row(row_index)
            renderer = CardRenderer(self._config.table_url, self._tz, self._load_directory())
            card = renderer.render(task, ReasonKind.STATUS_CHANGE)

            endpoint = self._config.get_webhook_url()
            if endpoint is None:
                logger.warning(f"[Notifier] Webhook URL not configured, skipping '{task.name}'")
                self._audit(task, OUTCOME_NOT_CONFIGURED, context)
            else:
                result = self._dispatcher.send(endpoint, card)
                if result.ok:
                    logger.info(f"[Notifier] Sent status card for '{task.name}' (row {row_index})")
                    self._audit(task, OUTCOME_SUCCESS, context)
                else:
                    logger.warning(f"[Notifier] Failed to send '{task.name}': {result.error}")
                    self._audit(task, failure_outcome(result.error), context)
        except Exception as e:
            logger.error(f"[Notifier] Trigger for row {row_index} failed: {e}", exc_info=True)
            self._record_system_error(e, context)
        finally:
            self._reset_flag(row_index)

    def _audit(self, task: Task, outcome: str, context: str) -> None:
        entry = build_entry(
            self._tz, task.name, task.status.value, task.assignee, outcome, context
        )
        self._audit_log.append(entry)

    def _record_system_error(self, error: Exception, context: str) -> None:
        try:
            entry = build_entry(
                self._tz, "system error", "error", "unknown", error_outcome(error), context
            )
            self._audit_log.append(entry)
        except Exception:
            logger.exception("[Notifier] Failed to write error entry to audit log")

    def _reset_flag(self, row_index: int) -> None:
        try:
            self._table.set_notify_flag(row_index, False)
        except Exception:
            logger.exception(f"[Notifier] Failed to reset notify flag for row {row_index}")
