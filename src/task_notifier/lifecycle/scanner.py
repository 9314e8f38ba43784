"""Deadline reminder scanner."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime

from task_notifier.cards.renderer import CardRenderer
from task_notifier.config import Config
from task_notifier.directory import AssigneeDirectory, load_directory
from task_notifier.dispatch.dispatcher import Dispatcher
from task_notifier.exceptions import EndpointNotConfiguredError
from task_notifier.models import ReasonKind, Task
from task_notifier.store.audit_log import (
    OUTCOME_SUCCESS,
    AuditLog,
    build_entry,
    error_outcome,
    failure_outcome,
)
from task_notifier.store.task_table import TaskTable
from task_notifier.timeutil import midnight, resolve_time_zone, today_midnight

logger = logging.getLogger(__name__)


@dataclass
class ReminderMatch:
    """A row whose deadline warrants a reminder."""

    row_index: int
    task: Task
    reason: ReasonKind


def classify_deadline(due: date | datetime, today: date | datetime) -> ReasonKind | None:
    """Classify a due date relative to today, by whole days.

    Both values are expected at midnight in the table's zone; only the
    calendar dates are compared.

    Returns:
        DEADLINE_OVERDUE if due is before today, DEADLINE_TODAY if it is
        today, DEADLINE_TOMORROW if it is tomorrow, otherwise None
    """
    due_day = due.date() if isinstance(due, datetime) else due
    today_day = today.date() if isinstance(today, datetime) else today
    days = (due_day - today_day).days
    if days < 0:
        return ReasonKind.DEADLINE_OVERDUE
    if days == 0:
        return ReasonKind.DEADLINE_TODAY
    if days == 1:
        return ReasonKind.DEADLINE_TOMORROW
    return None


class ReminderScanner:
    """Scans the whole table and sends one reminder card per due task.

    Read-only over the table and keeps no memory between runs, so two scans
    with no change in between send the same reminders. Takes no lock; scans
    are assumed not to overlap with each other.
    """

    def __init__(
        self,
        config: Config,
        table: TaskTable,
        dispatcher: Dispatcher,
        audit_log: AuditLog,
        directory_loader: Callable[[], AssigneeDirectory] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize scanner.

        Args:
            config: Application config (endpoint, time zone, pacing, table URL)
            table: Live task table
            dispatcher: Webhook dispatcher
            audit_log: Audit log sink
            directory_loader: Loads the assignee directory once per scan
            sleep: Sleep function used for pacing, replaced in tests
        """
        self._config = config
        self._table = table
        self._dispatcher = dispatcher
        self._audit_log = audit_log
        self._tz = resolve_time_zone(config.time_zone)
        self._load_directory = directory_loader or (lambda: load_directory(config))
        self._sleep = sleep

    def find_due(self, now: datetime | None = None) -> list[ReminderMatch]:
        """Find rows that are overdue, due today or due tomorrow.

        Done rows, rows without a name and rows without a due date are skipped.

        Args:
            now: Current time (defaults to now in the table's zone)
        """
        today = today_midnight(self._tz, now)
        matches: list[ReminderMatch] = []
        for index, task in enumerate(self._table.list_tasks()):
            if task.status.is_terminal or not task.name or task.due_date is None:
                continue
            reason = classify_deadline(midnight(task.due_date, self._tz), today)
            if reason is not None:
                matches.append(ReminderMatch(row_index=index, task=task, reason=reason))
        return matches

    def scan(self, now: datetime | None = None) -> int:
        """Send reminders for all due rows.

        A failed delivery is audited and the scan moves on to the next row.

        Args:
            now: Current time (defaults to now in the table's zone)

        Returns:
            Number of reminders delivered

        Raises:
            EndpointNotConfiguredError: If no webhook URL is configured
        """
        endpoint = self._config.get_webhook_url()
        if endpoint is None:
            raise EndpointNotConfiguredError()

        matches = self.find_due(now)
        if not matches:
            logger.info("[Scanner] No tasks due or overdue")
            return 0

        renderer = CardRenderer(self._config.table_url, self._tz, self._load_directory())
        pacing = max(0, self._config.reminder_pacing_ms) / 1000
        sent = 0

        for position, match in enumerate(matches):
            if position > 0:
                self._sleep(pacing)
            if self._remind(renderer, endpoint, match):
                sent += 1

        logger.info(f"[Scanner] Sent {sent}/{len(matches)} reminders")
        return sent

    def _remind(self, renderer: CardRenderer, endpoint: str, match: ReminderMatch) -> bool:
        """Render, dispatch and audit one reminder; True if delivered."""
        task = match.task
        context = f"reminder {match.reason.value}"
        try:
            card = renderer.render(task, match.reason)
            result = self._dispatcher.send(endpoint, card)
            outcome = OUTCOME_SUCCESS if result.ok else failure_outcome(result.error)
        except Exception as e:
            logger.error(f"[Scanner] Reminder for '{task.name}' failed: {e}", exc_info=True)
            result = None
            outcome = error_outcome(e)

        try:
            self._audit_log.append(
                build_entry(self._tz, task.name, task.status.value, task.assignee, outcome, context)
            )
        except Exception:
            logger.exception(f"[Scanner] Failed to write audit entry for '{task.name}'")

        return result is not None and result.ok
