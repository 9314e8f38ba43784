"""Test fixtures for TaskNotifier."""

from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest
import yaml

from task_notifier.config import Config
from task_notifier.models import DispatchResult
from task_notifier.store.audit_log import YamlAuditLog
from task_notifier.store.task_table import DEFAULT_HEADER, YamlTaskTable

JST = timezone(timedelta(hours=9), "JST")

# Fixed "now" for scanner tests: 2026-10-19 09:30 JST
NOW = datetime(2026, 10, 19, 9, 30, tzinfo=JST)
TODAY = NOW.date()

WEBHOOK_URL = "https://chat.example.com/v1/spaces/AAA/messages?key=k"
TABLE_URL = "https://sheets.example.com/d/tasks"


class FakeDispatcher:
    """Dispatcher that records sends and returns canned results."""

    def __init__(self, results: list[DispatchResult] | None = None) -> None:
        self.sent: list[tuple[str, dict[str, Any]]] = []
        self._results = list(results or [])

    def send(self, endpoint: str, payload: dict[str, Any]) -> DispatchResult:
        self.sent.append((endpoint, payload))
        if self._results:
            return self._results.pop(0)
        return DispatchResult(ok=True, attempts=1)

    def close(self) -> None:
        pass


def write_table(path: Path, rows: list[dict[str, Any]]) -> None:
    """Write a task table file with the default header."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        yaml.safe_dump({"header": DEFAULT_HEADER, "rows": rows}, allow_unicode=True, sort_keys=False)
    )


def row(
    task_id: str,
    name: str,
    status: str = "not-started",
    due: date | None = None,
    assignee: str = "Alice",
    notify: bool = False,
) -> dict[str, Any]:
    """Build a raw table row."""
    return {
        "id": task_id,
        "name": name,
        "assignee": assignee,
        "start_date": None,
        "due_date": due,
        "status": status,
        "notify": notify,
        "note": "",
    }


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """Directory holding the table, archive and audit log."""
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def config(data_dir: Path) -> Config:
    """Config pointing at temporary files."""
    return Config(
        webhook_url=WEBHOOK_URL,
        assignees={"Alice": "alice@example.com"},
        time_zone="Asia/Tokyo",
        reminder_pacing_ms=500,
        table_path=data_dir / "tasks.yaml",
        archive_path=data_dir / "archive.yaml",
        audit_log_path=data_dir / "audit_log.yaml",
        table_url=TABLE_URL,
        watch_table=False,
    )


@pytest.fixture
def sample_rows() -> list[dict[str, Any]]:
    """Rows covering every status and deadline class relative to TODAY."""
    return [
        row("TASK-001", "Write plan", "done", TODAY - timedelta(days=3)),
        row("TASK-002", "Spec review", "awaiting-confirmation", TODAY + timedelta(days=5)),
        row("TASK-003", "Fix login bug", "in-progress", TODAY - timedelta(days=1), "Bob"),
        row("TASK-004", "Release notes", "not-started", TODAY),
        row("TASK-005", "Ship build", "done", TODAY),
        row("TASK-006", "Demo prep", "in-progress", TODAY + timedelta(days=1), "Carol"),
        row("TASK-007", "Retro", "not-started", TODAY + timedelta(days=2)),
        row("TASK-008", "", "not-started", TODAY - timedelta(days=1)),
        row("TASK-009", "Budget", "in-progress", None),
    ]


@pytest.fixture
def table(config: Config, sample_rows: list[dict[str, Any]]) -> YamlTaskTable:
    """Live table seeded with sample rows."""
    write_table(config.table_path, sample_rows)
    return YamlTaskTable(config.table_path)


@pytest.fixture
def archive(config: Config) -> YamlTaskTable:
    """Archive store (file does not exist yet)."""
    return YamlTaskTable(config.archive_path)


@pytest.fixture
def audit_log(config: Config) -> YamlAuditLog:
    """Audit log sink."""
    return YamlAuditLog(config.audit_log_path)


@pytest.fixture
def dispatcher() -> FakeDispatcher:
    """Dispatcher that always succeeds."""
    return FakeDispatcher()


@pytest.fixture
def sleeps() -> list[float]:
    """Records sleep durations instead of sleeping."""
    return []
