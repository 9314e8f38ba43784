"""Tests for plan parsing, ID allocation and import."""

import json
from datetime import date
from pathlib import Path

import pytest

from conftest import row, write_table
from task_notifier.exceptions import PlanFormatError
from task_notifier.lifecycle.importer import (
    IdAllocator,
    PlanImporter,
    format_task_id,
    parse_plan,
)
from task_notifier.models import PlanItem, TaskStatus
from task_notifier.store.task_table import YamlTaskTable

PLAN = [
    {
        "task_name": "Draft agenda",
        "assignee_name": "Alice",
        "start_date": "2026/10/20",
        "due_date": "2026-10-25",
        "description": "First pass",
    },
    {"task_name": "Book room", "assignee_name": "Bob", "due_date": "2026/11/1"},
]


@pytest.fixture
def live(tmp_path: Path) -> YamlTaskTable:
    """Live table holding TASK-001 and TASK-003."""
    write_table(
        tmp_path / "tasks.yaml",
        [row("TASK-001", "First"), row("TASK-003", "Third")],
    )
    return YamlTaskTable(tmp_path / "tasks.yaml")


def test_format_task_id() -> None:
    """Test zero-padded ID formatting."""
    assert format_task_id(4) == "TASK-004"
    assert format_task_id(1234) == "TASK-1234"


def test_parse_plan_with_surrounding_text() -> None:
    """Test that prose around the array is ignored."""
    text = "Here is the plan:\n```json\n" + json.dumps(PLAN) + "\n```\nThanks!"

    items = parse_plan(text)

    assert items == [
        PlanItem(
            task_name="Draft agenda",
            assignee_name="Alice",
            start_date=date(2026, 10, 20),
            due_date=date(2026, 10, 25),
            description="First pass",
        ),
        PlanItem(
            task_name="Book room",
            assignee_name="Bob",
            start_date=None,
            due_date=date(2026, 11, 1),
            description="",
        ),
    ]


@pytest.mark.parametrize(
    ("text", "message"),
    [
        ("no array here", "No JSON array"),
        ("[{'task_name': 'x'}]", "Invalid JSON"),
        ("[]", "empty"),
        ('["just a string"]', "must be an object"),
        ('[{"task_name": "x", "due_date": "next week"}]', "invalid due_date"),
    ],
)
def test_parse_plan_errors(text: str, message: str) -> None:
    """Test malformed plans are rejected with a readable message."""
    with pytest.raises(PlanFormatError, match=message):
        parse_plan(text)


def test_allocate_above_current_max(live: YamlTaskTable) -> None:
    """Test IDs continue from the highest in use, not filling gaps."""
    allocator = IdAllocator(live)

    tasks = allocator.allocate(parse_plan(json.dumps(PLAN)))

    assert [task.id for task in tasks] == ["TASK-004", "TASK-005"]
    assert all(task.status is TaskStatus.NOT_STARTED for task in tasks)
    assert all(task.notify_flag is False for task in tasks)
    assert tasks[0].note == "First pass"


def test_allocate_counts_archived_ids(live: YamlTaskTable, tmp_path: Path) -> None:
    """Test that IDs moved to the archive are never handed out again."""
    write_table(tmp_path / "archive.yaml", [row("TASK-010", "Archived", "done")])
    allocator = IdAllocator(live, YamlTaskTable(tmp_path / "archive.yaml"))

    assert allocator.current_max() == 10
    assert allocator.allocate(parse_plan(json.dumps(PLAN)))[0].id == "TASK-011"


def test_allocate_ignores_foreign_ids(tmp_path: Path) -> None:
    """Test that IDs not matching the TASK-NNN pattern are ignored."""
    write_table(
        tmp_path / "tasks.yaml",
        [row("TASK-002", "A"), row("BUG-099", "B"), row("", "C"), row("TASK-abc", "D")],
    )
    assert IdAllocator(YamlTaskTable(tmp_path / "tasks.yaml")).current_max() == 2


def test_allocate_empty_table(tmp_path: Path) -> None:
    """Test that the first ID on an empty table is TASK-001."""
    write_table(tmp_path / "tasks.yaml", [])
    allocator = IdAllocator(YamlTaskTable(tmp_path / "tasks.yaml"))

    assert allocator.allocate(parse_plan('[{"task_name": "Only"}]'))[0].id == "TASK-001"


def test_import_appends_rows(live: YamlTaskTable, tmp_path: Path) -> None:
    """Test that imported tasks are appended after existing rows."""
    importer = PlanImporter(live, IdAllocator(live, YamlTaskTable(tmp_path / "archive.yaml")))

    tasks = importer.import_plan(json.dumps(PLAN))

    assert [task.id for task in tasks] == ["TASK-004", "TASK-005"]
    stored = live.list_tasks()
    assert [task.id for task in stored] == ["TASK-001", "TASK-003", "TASK-004", "TASK-005"]
    assert stored[2].name == "Draft agenda"
    assert stored[2].due_date == date(2026, 10, 25)
    assert stored[3].assignee == "Bob"


def test_import_malformed_writes_nothing(live: YamlTaskTable) -> None:
    """Test that a rejected plan leaves the table unchanged."""
    before = live.list_tasks()
    bad = json.dumps(PLAN[:1] + [{"task_name": "Broken", "due_date": "31/31/2026"}])

    with pytest.raises(PlanFormatError):
        PlanImporter(live, IdAllocator(live)).import_plan(bad)

    assert live.list_tasks() == before
