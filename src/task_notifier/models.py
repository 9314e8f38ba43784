"""Domain models for TaskNotifier."""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum

logger = logging.getLogger(__name__)

TASK_ID_PREFIX = "TASK-"
TASK_ID_WIDTH = 3


class TaskStatus(str, Enum):
    """Task status (closed set)."""

    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    AWAITING_CONFIRMATION = "awaiting-confirmation"
    DONE = "done"

    @property
    def is_terminal(self) -> bool:
        """Whether the task is complete and eligible for archiving."""
        return self is TaskStatus.DONE

    @property
    def label(self) -> str:
        """Human-readable label used on cards and in the audit log."""
        return _STATUS_LABELS[self]

    @classmethod
    def parse(cls, raw: object) -> "TaskStatus":
        """Normalize a stored status value.

        Accepts the canonical values, underscore/space/no-separator variants
        and the display labels. Missing or unknown values load as NOT_STARTED.
        """
        if isinstance(raw, TaskStatus):
            return raw
        if raw is None:
            return cls.NOT_STARTED
        key = "".join(ch for ch in str(raw).strip().lower() if ch.isalnum())
        if not key:
            return cls.NOT_STARTED
        status = _STATUS_ALIASES.get(key)
        if status is None:
            logger.warning(f"[TaskStatus] Unknown status '{raw}', treating as not-started")
            return cls.NOT_STARTED
        return status


_STATUS_LABELS = {
    TaskStatus.NOT_STARTED: "Not started",
    TaskStatus.IN_PROGRESS: "In progress",
    TaskStatus.AWAITING_CONFIRMATION: "Awaiting confirmation",
    TaskStatus.DONE: "Done",
}

# Keys are lowercase with separators and emoji stripped
_STATUS_ALIASES = {
    "notstarted": TaskStatus.NOT_STARTED,
    "todo": TaskStatus.NOT_STARTED,
    "inprogress": TaskStatus.IN_PROGRESS,
    "started": TaskStatus.IN_PROGRESS,
    "awaitingconfirmation": TaskStatus.AWAITING_CONFIRMATION,
    "awaitingreview": TaskStatus.AWAITING_CONFIRMATION,
    "review": TaskStatus.AWAITING_CONFIRMATION,
    "done": TaskStatus.DONE,
    "completed": TaskStatus.DONE,
    "complete": TaskStatus.DONE,
    # Japanese sheet labels
    "未着手": TaskStatus.NOT_STARTED,
    "進行中": TaskStatus.IN_PROGRESS,
    "作業中": TaskStatus.IN_PROGRESS,
    "確認待ち": TaskStatus.AWAITING_CONFIRMATION,
    "完了": TaskStatus.DONE,
}


class ReasonKind(str, Enum):
    """Why a card is being sent."""

    STATUS_CHANGE = "status-change"
    DEADLINE_OVERDUE = "deadline-overdue"
    DEADLINE_TODAY = "deadline-today"
    DEADLINE_TOMORROW = "deadline-tomorrow"


DateValue = date | datetime


@dataclass
class Task:
    """One row of the task table."""

    id: str
    name: str
    assignee: str = ""
    start_date: DateValue | None = None
    due_date: DateValue | None = None
    status: TaskStatus = TaskStatus.NOT_STARTED
    notify_flag: bool = False
    note: str = ""


@dataclass
class AuditLogEntry:
    """One append-only audit log row."""

    timestamp: str
    task_name: str
    status: str
    assignee: str
    outcome: str
    context: str

    def to_row(self) -> list[str]:
        """Audit row in column order."""
        return [
            self.timestamp,
            self.task_name,
            self.status,
            self.assignee,
            self.outcome,
            self.context,
        ]


@dataclass
class DispatchResult:
    """Outcome of a webhook delivery."""

    ok: bool
    error: str | None = None
    attempts: int = 0


@dataclass
class PlanItem:
    """One record from an imported plan, before an ID is assigned."""

    task_name: str = ""
    assignee_name: str = ""
    start_date: date | None = None
    due_date: date | None = None
    description: str = ""
