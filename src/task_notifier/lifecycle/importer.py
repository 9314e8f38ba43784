"""Plan import and task ID allocation."""

import json
import logging
import re
from collections.abc import Sequence
from datetime import date, datetime
from typing import Any

from task_notifier.exceptions import PlanFormatError
from task_notifier.models import TASK_ID_PREFIX, TASK_ID_WIDTH, PlanItem, Task, TaskStatus
from task_notifier.store.task_table import TaskTable
from task_notifier.timeutil import parse_date_value

logger = logging.getLogger(__name__)

TASK_ID_PATTERN = re.compile(rf"^{re.escape(TASK_ID_PREFIX)}(\d+)$")

_PLAN_FIELDS = {"task_name", "assignee_name", "start_date", "due_date", "description"}


def format_task_id(number: int) -> str:
    """Format a task ID, e.g. 4 -> TASK-004."""
    return f"{TASK_ID_PREFIX}{number:0{TASK_ID_WIDTH}d}"


def parse_plan(text: str) -> list[PlanItem]:
    """Parse the JSON array of task objects embedded in free text.

    Text around the outermost [...] is ignored, so a plan pasted together
    with prose still imports.

    Raises:
        PlanFormatError: If there is no bracketed array, the JSON is invalid,
            the array is empty, or an item is not a valid task object
    """
    start = text.find("[")
    end = text.rfind("]")
    if start == -1 or end == -1 or end < start:
        raise PlanFormatError("No JSON array found: expected the plan inside [ ... ]")

    try:
        data = json.loads(text[start : end + 1])
    except json.JSONDecodeError as e:
        raise PlanFormatError(f"Invalid JSON in plan: {e}") from e

    if not isinstance(data, list):
        raise PlanFormatError("Plan must be a JSON array of task objects")
    if not data:
        raise PlanFormatError("Plan is empty: the array contains no tasks")

    return [_parse_item(position, item) for position, item in enumerate(data, start=1)]


def _parse_item(position: int, item: Any) -> PlanItem:
    if not isinstance(item, dict):
        raise PlanFormatError(f"Plan item {position} must be an object")

    unknown = set(item) - _PLAN_FIELDS
    if unknown:
        logger.debug(f"[Importer] Ignoring fields {sorted(unknown)} in plan item {position}")

    return PlanItem(
        task_name=_text(item.get("task_name")),
        assignee_name=_text(item.get("assignee_name")),
        start_date=_plan_date(position, "start_date", item.get("start_date")),
        due_date=_plan_date(position, "due_date", item.get("due_date")),
        description=_text(item.get("description")),
    )


def _plan_date(position: int, key: str, value: Any) -> date | None:
    try:
        parsed = parse_date_value(value)
    except ValueError as e:
        raise PlanFormatError(f"Plan item {position}: invalid {key} {value!r}") from e
    if isinstance(parsed, datetime):
        return parsed.date()
    return parsed


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


class IdAllocator:
    """Assigns TASK-NNN identifiers above the highest one in use.

    IDs in both the live table and the archive count as in use. Allocation is
    dense from the current maximum; gaps left by deleted IDs are never reused.
    Takes no lock, so two imports running at the same time can collide.
    """

    def __init__(self, table: TaskTable, archive: TaskTable | None = None) -> None:
        """Initialize allocator with the live table and optional archive."""
        self._table = table
        self._archive = archive

    def current_max(self) -> int:
        """Highest numeric ID suffix in use, or 0 if none."""
        tasks = list(self._table.list_tasks())
        if self._archive is not None and self._archive.exists():
            tasks.extend(self._archive.list_tasks())

        highest = 0
        for task in tasks:
            match = TASK_ID_PATTERN.match(task.id)
            if match:
                highest = max(highest, int(match.group(1)))
        return highest

    def allocate(self, new_records: Sequence[PlanItem]) -> list[Task]:
        """Build tasks for new records, assigning IDs in input order.

        Returns:
            New tasks with status not-started and notify flag cleared
        """
        base = self.current_max()
        return [
            Task(
                id=format_task_id(base + offset),
                name=item.task_name,
                assignee=item.assignee_name,
                start_date=item.start_date,
                due_date=item.due_date,
                status=TaskStatus.NOT_STARTED,
                notify_flag=False,
                note=item.description,
            )
            for offset, item in enumerate(new_records, start=1)
        ]


class PlanImporter:
    """Imports a plan into the live table."""

    def __init__(self, table: TaskTable, allocator: IdAllocator) -> None:
        """Initialize importer."""
        self._table = table
        self._allocator = allocator

    def import_plan(self, text: str) -> list[Task]:
        """Parse plan text, assign IDs and append the new rows.

        Nothing is written if the plan is malformed.

        Raises:
            PlanFormatError: If the plan text is malformed
        """
        items = parse_plan(text)
        tasks = self._allocator.allocate(items)
        self._table.append_rows(tasks)
        logger.info(
            f"[Importer] Imported {len(tasks)} tasks ({tasks[0].id} to {tasks[-1].id})"
        )
        return tasks
