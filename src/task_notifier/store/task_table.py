"""Task table backed by a YAML file."""

import logging
import os
import tempfile
import threading
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Protocol

import yaml

from task_notifier.models import Task, TaskStatus
from task_notifier.timeutil import parse_date_value

logger = logging.getLogger(__name__)

DEFAULT_HEADER = ["id", "name", "assignee", "start_date", "due_date", "status", "notify", "note"]

_TRUE_VALUES = {"true", "1", "yes", "on", "checked"}

# Locks per table file for the whole process: the single-flight lock held
# for a whole trigger, and the I/O lock held for each load-modify-write
_table_locks: dict[Path, threading.Lock] = {}
_io_locks: dict[Path, Any] = {}
_locks_guard = threading.Lock()


def get_table_lock(path: Path) -> threading.Lock:
    """Get the process-wide single-flight lock for a table file."""
    key = Path(path).resolve()
    with _locks_guard:
        lock = _table_locks.get(key)
        if lock is None:
            lock = threading.Lock()
            _table_locks[key] = lock
        return lock


def get_io_lock(path: Path) -> Any:
    """Get the process-wide reentrant I/O lock for a table file.

    Every YamlTaskTable on the same file shares it, so concurrent writes
    through different instances cannot overwrite each other.
    """
    key = Path(path).resolve()
    with _locks_guard:
        lock = _io_locks.get(key)
        if lock is None:
            lock = threading.RLock()
            _io_locks[key] = lock
        return lock


class TaskTable(Protocol):
    """Protocol for an ordered task table addressed by 0-based row position."""

    @property
    def lock(self) -> threading.Lock:
        """Single-flight lock scoped to this table."""
        ...

    def exists(self) -> bool:
        """Whether the backing table exists yet."""
        ...

    def create(self, header: list[str]) -> None:
        """Create an empty table with the given header."""
        ...

    def header(self) -> list[str]:
        """Column names of the table."""
        ...

    def list_tasks(self) -> list[Task]:
        """All rows in order."""
        ...

    def read_row(self, index: int) -> Task:
        """Read one row."""
        ...

    def row_count(self) -> int:
        """Number of rows."""
        ...

    def set_notify_flag(self, index: int, value: bool) -> None:
        """Set the trigger column of one row."""
        ...

    def append_rows(self, tasks: Iterable[Task]) -> None:
        """Append rows in one write."""
        ...

    def delete_rows(self, indices: Iterable[int]) -> None:
        """Delete rows by position."""
        ...

    def list_raw_rows(self) -> list[dict[str, Any]]:
        """All rows in order, as stored."""
        ...

    def append_raw_rows(self, rows: Iterable[dict[str, Any]]) -> None:
        """Append stored rows unchanged in one write."""
        ...


class YamlTaskTable:
    """Task table stored as a YAML document with a header and a list of rows.

    File layout:

        header: [id, name, assignee, start_date, due_date, status, notify, note]
        rows:
          - {id: TASK-001, name: ..., status: in-progress, notify: false, ...}

    Rows are converted to Task records here and nowhere else. Every mutation
    is a load-modify-write of the whole file, replaced atomically.
    """

    def __init__(self, path: str | Path) -> None:
        """Initialize table for the given YAML file path."""
        self._path = Path(path)
        self._io_lock = get_io_lock(self._path)

    @property
    def path(self) -> Path:
        """Path of the backing YAML file."""
        return self._path

    @property
    def lock(self) -> threading.Lock:
        """Single-flight lock scoped to this table."""
        return get_table_lock(self._path)

    def exists(self) -> bool:
        """Whether the table file exists."""
        return self._path.exists()

    def create(self, header: list[str]) -> None:
        """Create an empty table file with the given header."""
        with self._io_lock:
            self._save(list(header), [])
            logger.info(f"[TaskTable] Created {self._path}")

    def header(self) -> list[str]:
        """Column names, or the default header if the file has none."""
        header, _ = self._load()
        return header

    def list_tasks(self) -> list[Task]:
        """All rows in order."""
        _, rows = self._load()
        return [self._row_to_task(row) for row in rows]

    def row_count(self) -> int:
        """Number of rows."""
        _, rows = self._load()
        return len(rows)

    def read_row(self, index: int) -> Task:
        """Read one row.

        Raises:
            IndexError: If there is no row at that position
        """
        _, rows = self._load()
        self._check_index(index, len(rows))
        return self._row_to_task(rows[index])

    def set_notify_flag(self, index: int, value: bool) -> None:
        """Set the trigger column of one row.

        Raises:
            IndexError: If there is no row at that position
        """
        with self._io_lock:
            header, rows = self._load()
            self._check_index(index, len(rows))
            rows[index]["notify"] = bool(value)
            self._save(header, rows)

    def append_rows(self, tasks: Iterable[Task]) -> None:
        """Append rows in one write, creating the file if needed."""
        new_rows = [self._task_to_row(task) for task in tasks]
        if not new_rows:
            return
        with self._io_lock:
            header, rows = self._load()
            rows.extend(new_rows)
            self._save(header, rows)
        logger.debug(f"[TaskTable] Appended {len(new_rows)} rows to {self._path.name}")

    def delete_rows(self, indices: Iterable[int]) -> None:
        """Delete rows by position.

        Deletion runs from the highest position to the lowest so that
        removing a row never shifts a row still waiting to be removed.

        Raises:
            IndexError: If any position is out of range (nothing is deleted)
        """
        ordered = sorted(set(indices), reverse=True)
        if not ordered:
            return
        with self._io_lock:
            header, rows = self._load()
            for index in ordered:
                self._check_index(index, len(rows))
            for index in ordered:
                del rows[index]
            self._save(header, rows)
        logger.debug(f"[TaskTable] Deleted {len(ordered)} rows from {self._path.name}")

    def list_raw_rows(self) -> list[dict[str, Any]]:
        """All rows in order, exactly as stored, including unknown columns."""
        _, rows = self._load()
        return rows

    def append_raw_rows(self, rows: Iterable[dict[str, Any]]) -> None:
        """Append stored rows unchanged in one write, creating the file if needed."""
        new_rows = [dict(row) for row in rows]
        if not new_rows:
            return
        with self._io_lock:
            header, existing = self._load()
            existing.extend(new_rows)
            self._save(header, existing)
        logger.debug(f"[TaskTable] Appended {len(new_rows)} stored rows to {self._path.name}")

    def _load(self) -> tuple[list[str], list[dict[str, Any]]]:
        """Load header and raw rows; a missing file is an empty table."""
        if not self._path.exists():
            return list(DEFAULT_HEADER), []

        content = self._path.read_text(encoding="utf-8")
        try:
            data = yaml.safe_load(content) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in task table {self._path}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Task table {self._path} must be a mapping with 'rows'")

        header = data.get("header") or list(DEFAULT_HEADER)
        rows = data.get("rows") or []
        if not isinstance(rows, list):
            raise ValueError(f"Task table {self._path}: 'rows' must be a list")
        # Non-mapping rows become empty records so positions stay stable
        return list(header), [row if isinstance(row, dict) else {} for row in rows]

    def _save(self, header: list[str], rows: list[dict[str, Any]]) -> None:
        """Write the whole table atomically."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        content = yaml.safe_dump(
            {"header": header, "rows": rows},
            allow_unicode=True,
            default_flow_style=None,
            sort_keys=False,
        )
        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(content)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    @staticmethod
    def _check_index(index: int, count: int) -> None:
        if index < 0 or index >= count:
            raise IndexError(f"No task at row {index} (table has {count} rows)")

    def _row_to_task(self, row: dict[str, Any]) -> Task:
        """Convert a raw YAML row into a Task."""
        return Task(
            id=_text(row.get("id")),
            name=_text(row.get("name")),
            assignee=_text(row.get("assignee")),
            start_date=self._date_field(row, "start_date"),
            due_date=self._date_field(row, "due_date"),
            status=TaskStatus.parse(row.get("status")),
            notify_flag=_to_bool(row.get("notify")),
            note=_text(row.get("note")),
        )

    def _date_field(self, row: dict[str, Any], key: str) -> Any:
        try:
            return parse_date_value(row.get(key))
        except ValueError:
            logger.warning(
                f"[TaskTable] Ignoring invalid {key} {row.get(key)!r} for task {row.get('id')}"
            )
            return None

    @staticmethod
    def _task_to_row(task: Task) -> dict[str, Any]:
        """Convert a Task into a raw YAML row."""
        return {
            "id": task.id,
            "name": task.name,
            "assignee": task.assignee,
            "start_date": task.start_date,
            "due_date": task.due_date,
            "status": task.status.value,
            "notify": task.notify_flag,
            "note": task.note,
        }


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in _TRUE_VALUES
