"""Chat card rendering for task notifications."""

from datetime import tzinfo
from typing import Any

from task_notifier.directory import AssigneeDirectory
from task_notifier.models import ReasonKind, Task, TaskStatus
from task_notifier.timeutil import format_date

ICON_PERSON = "👤"
ICON_CHECK = "✅"
ICON_WARNING = "⚠️"
ICON_ALARM = "⏰"
ICON_CALENDAR = "📅"
ICON_BELL = "🔔"

DUE_DATE_UNSET = "(not set)"

_DEADLINE_HEADERS = {
    ReasonKind.DEADLINE_OVERDUE: (ICON_WARNING, "Deadline passed"),
    ReasonKind.DEADLINE_TODAY: (ICON_ALARM, "Due today"),
    ReasonKind.DEADLINE_TOMORROW: (ICON_CALENDAR, "Due tomorrow"),
}

_STATUS_HEADERS = {
    TaskStatus.AWAITING_CONFIRMATION: (ICON_PERSON, "Confirmation requested"),
    TaskStatus.DONE: (ICON_CHECK, "Task completed"),
    TaskStatus.IN_PROGRESS: (ICON_BELL, "Task started"),
}


def header_for(task: Task, reason: ReasonKind) -> tuple[str, str]:
    """Pick the header icon and title.

    Deadline reasons decide the header on their own; status-change cards
    follow the task's status.

    Returns:
        Tuple of (icon, title)
    """
    if reason in _DEADLINE_HEADERS:
        return _DEADLINE_HEADERS[reason]
    return _STATUS_HEADERS.get(task.status, (ICON_BELL, "Task updated"))


class CardRenderer:
    """Builds cardsV2 webhook payloads from task snapshots. No I/O."""

    def __init__(self, table_url: str, tz: tzinfo, directory: AssigneeDirectory) -> None:
        """Initialize renderer.

        Args:
            table_url: Link target for the "Open task list" button (omitted if empty)
            tz: Table time zone for date formatting
            directory: Assignee directory for mention tokens
        """
        self._table_url = table_url
        self._tz = tz
        self._directory = directory

    def render(self, task: Task, reason: ReasonKind) -> dict[str, Any]:
        """Render a notification card for one task."""
        icon, title = header_for(task, reason)

        widgets: list[dict[str, Any]] = [
            _decorated_text("Task", task.name or "(untitled)"),
            _decorated_text("Assignee", self._assignee_text(task.assignee)),
            _decorated_text("Status", task.status.label),
            _decorated_text("Due date", self._due_text(task)),
        ]
        if self._table_url:
            widgets.append(
                {
                    "buttonList": {
                        "buttons": [
                            {
                                "text": "Open task list",
                                "onClick": {"openLink": {"url": self._table_url}},
                            }
                        ]
                    }
                }
            )

        return {
            "cardsV2": [
                {
                    "cardId": f"{task.id or 'task'}-{reason.value}",
                    "card": {
                        "header": {"title": f"{icon} {title}", "subtitle": task.name},
                        "sections": [{"widgets": widgets}],
                    },
                }
            ]
        }

    def _assignee_text(self, assignee: str) -> str:
        address = self._directory.resolve(assignee)
        if address:
            return f"<users/{address}>"
        return assignee or "(unassigned)"

    def _due_text(self, task: Task) -> str:
        if task.due_date is None:
            return DUE_DATE_UNSET
        return format_date(task.due_date, self._tz)


def _decorated_text(label: str, text: str) -> dict[str, Any]:
    return {"decoratedText": {"topLabel": label, "text": text}}
