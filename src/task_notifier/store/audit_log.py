"""Append-only audit log."""

import logging
import threading
from datetime import datetime, tzinfo
from pathlib import Path
from typing import Protocol

import yaml

from task_notifier.models import AuditLogEntry
from task_notifier.timeutil import format_timestamp

logger = logging.getLogger(__name__)

OUTCOME_SUCCESS = "success"
OUTCOME_NOT_CONFIGURED = "error: endpoint not configured"


def failure_outcome(error: str | None) -> str:
    """Outcome text for a delivery that exhausted its retries."""
    return f"failure: {error or 'unknown error'}"


def error_outcome(exc: BaseException) -> str:
    """Outcome text for an unexpected exception."""
    return f"error: {exc}"


class AuditLog(Protocol):
    """Protocol for the audit log sink."""

    def append(self, entry: AuditLogEntry) -> None:
        """Append one entry."""
        ...


def build_entry(
    tz: tzinfo,
    task_name: str,
    status: str,
    assignee: str,
    outcome: str,
    context: str,
    now: datetime | None = None,
) -> AuditLogEntry:
    """Build an audit entry timestamped in the table's zone."""
    moment = now if now is not None else datetime.now(tz)
    return AuditLogEntry(
        timestamp=format_timestamp(moment, tz),
        task_name=task_name,
        status=status,
        assignee=assignee,
        outcome=outcome,
        context=context,
    )


class YamlAuditLog:
    """Audit log stored as a YAML sequence, one flow list per entry.

    Each append writes a single line, so the file stays a valid YAML list:

        - [2026/10/19 09:00:00, Spec review, awaiting-confirmation, Alice, success, trigger row=3]
    """

    def __init__(self, path: str | Path) -> None:
        """Initialize audit log at the given YAML file path."""
        self._path = Path(path)
        self._lock = threading.Lock()

    def append(self, entry: AuditLogEntry) -> None:
        """Append one entry to the log file."""
        line = yaml.safe_dump(
            [entry.to_row()], allow_unicode=True, default_flow_style=None, width=10_000
        )
        with self._lock:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as handle:
                handle.write(line)
        logger.debug(f"[AuditLog] {entry.task_name}: {entry.outcome} ({entry.context})")

    def read_entries(self) -> list[AuditLogEntry]:
        """Read all entries in append order."""
        if not self._path.exists():
            return []
        data = yaml.safe_load(self._path.read_text(encoding="utf-8")) or []
        entries: list[AuditLogEntry] = []
        for row in data:
            if not isinstance(row, list) or len(row) != 6:
                logger.warning(f"[AuditLog] Skipping malformed entry: {row!r}")
                continue
            entries.append(AuditLogEntry(*(str(value) for value in row)))
        return entries
