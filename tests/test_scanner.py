"""Tests for ReminderScanner."""

from datetime import date, timedelta

import pytest

from conftest import NOW, TODAY, FakeDispatcher
from task_notifier.config import Config
from task_notifier.exceptions import EndpointNotConfiguredError
from task_notifier.lifecycle.scanner import ReminderScanner, classify_deadline
from task_notifier.models import DispatchResult, ReasonKind
from task_notifier.store.audit_log import YamlAuditLog
from task_notifier.store.task_table import YamlTaskTable


@pytest.mark.parametrize(
    ("offset", "expected"),
    [
        (-30, ReasonKind.DEADLINE_OVERDUE),
        (-1, ReasonKind.DEADLINE_OVERDUE),
        (0, ReasonKind.DEADLINE_TODAY),
        (1, ReasonKind.DEADLINE_TOMORROW),
        (2, None),
        (7, None),
    ],
)
def test_classify_deadline(offset: int, expected: ReasonKind | None) -> None:
    """Test classification by whole days between due date and today."""
    today = date(2026, 10, 19)
    assert classify_deadline(today + timedelta(days=offset), today) is expected


def _scanner(
    config: Config,
    table: YamlTaskTable,
    dispatcher: FakeDispatcher,
    audit_log: YamlAuditLog,
    sleeps: list[float],
) -> ReminderScanner:
    return ReminderScanner(config, table, dispatcher, audit_log, sleep=sleeps.append)


def test_find_due(
    config: Config,
    table: YamlTaskTable,
    dispatcher: FakeDispatcher,
    audit_log: YamlAuditLog,
    sleeps: list[float],
) -> None:
    """Test which sample rows match, skipping done, nameless and undated rows."""
    matches = _scanner(config, table, dispatcher, audit_log, sleeps).find_due(NOW)

    assert [(m.row_index, m.task.id, m.reason) for m in matches] == [
        (2, "TASK-003", ReasonKind.DEADLINE_OVERDUE),
        (3, "TASK-004", ReasonKind.DEADLINE_TODAY),
        (5, "TASK-006", ReasonKind.DEADLINE_TOMORROW),
    ]


def test_scan_dispatches_and_audits(
    config: Config,
    table: YamlTaskTable,
    dispatcher: FakeDispatcher,
    audit_log: YamlAuditLog,
    sleeps: list[float],
) -> None:
    """Test one card, one audit entry and fixed pacing per match."""
    sent = _scanner(config, table, dispatcher, audit_log, sleeps).scan(NOW)

    assert sent == 3
    assert len(dispatcher.sent) == 3
    assert sleeps == [0.5, 0.5]

    titles = [p["cardsV2"][0]["card"]["header"]["title"] for _, p in dispatcher.sent]
    assert "Deadline passed" in titles[0]
    assert "Due today" in titles[1]
    assert "Due tomorrow" in titles[2]

    entries = audit_log.read_entries()
    assert [e.task_name for e in entries] == ["Fix login bug", "Release notes", "Demo prep"]
    assert [e.context for e in entries] == [
        "reminder deadline-overdue",
        "reminder deadline-today",
        "reminder deadline-tomorrow",
    ]
    assert all(e.outcome == "success" for e in entries)


def test_scan_is_read_only_and_repeatable(
    config: Config,
    table: YamlTaskTable,
    dispatcher: FakeDispatcher,
    audit_log: YamlAuditLog,
    sleeps: list[float],
) -> None:
    """Test that scanning twice sends the same reminders and leaves the table unchanged."""
    before = table.list_tasks()
    scanner = _scanner(config, table, dispatcher, audit_log, sleeps)

    first = scanner.scan(NOW)
    second = scanner.scan(NOW)

    assert first == second == 3
    payloads = [p for _, p in dispatcher.sent]
    assert payloads[:3] == payloads[3:]
    assert table.list_tasks() == before


def test_scan_continues_after_failure(
    config: Config, table: YamlTaskTable, audit_log: YamlAuditLog, sleeps: list[float]
) -> None:
    """Test that one failed reminder does not stop the rest."""
    dispatcher = FakeDispatcher(
        [
            DispatchResult(ok=True, attempts=1),
            DispatchResult(ok=False, error="HTTP 500: oops", attempts=3),
            DispatchResult(ok=True, attempts=1),
        ]
    )
    sent = _scanner(config, table, dispatcher, audit_log, sleeps).scan(NOW)

    assert sent == 2
    assert len(dispatcher.sent) == 3
    outcomes = [e.outcome for e in audit_log.read_entries()]
    assert outcomes == ["success", "failure: HTTP 500: oops", "success"]


def test_scan_without_endpoint_raises(
    config: Config,
    table: YamlTaskTable,
    dispatcher: FakeDispatcher,
    audit_log: YamlAuditLog,
    sleeps: list[float],
) -> None:
    """Test that the interactive scan reports a missing webhook URL."""
    config.webhook_url = None

    with pytest.raises(EndpointNotConfiguredError):
        _scanner(config, table, dispatcher, audit_log, sleeps).scan(NOW)

    assert dispatcher.sent == []


def test_two_days_out_never_matches(
    config: Config,
    table: YamlTaskTable,
    dispatcher: FakeDispatcher,
    audit_log: YamlAuditLog,
    sleeps: list[float],
) -> None:
    """Test that the row due in two days is not reminded."""
    matches = _scanner(config, table, dispatcher, audit_log, sleeps).find_due(NOW)

    assert TODAY + timedelta(days=2) not in [m.task.due_date for m in matches]
    assert "TASK-007" not in [m.task.id for m in matches]
