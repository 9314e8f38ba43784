"""Moves completed tasks from the live table to the archive."""

import logging
from typing import Any

from task_notifier.models import TaskStatus
from task_notifier.store.task_table import TaskTable

logger = logging.getLogger(__name__)


class Archiver:
    """Archives done rows.

    Rows are collected from the bottom of the table up, so the collected
    positions are already in descending order for deletion and the batch
    (built by prepending) keeps the table's top-to-bottom order. Rows are
    moved as stored, so columns the task model does not know about and
    values it cannot parse reach the archive unchanged.
    """

    def __init__(self, table: TaskTable, archive: TaskTable) -> None:
        """Initialize archiver with the live table and the archive store."""
        self._table = table
        self._archive = archive

    def archive_terminal(self) -> int:
        """Move every done row to the archive.

        Returns:
            Number of rows moved (0 if there were none)
        """
        rows = self._table.list_raw_rows()
        batch: list[dict[str, Any]] = []
        indices: list[int] = []

        for index in range(len(rows) - 1, -1, -1):
            row = rows[index]
            if TaskStatus.parse(row.get("status")).is_terminal:
                batch.insert(0, row)
                indices.append(index)

        if not batch:
            logger.info("[Archiver] No completed tasks to archive")
            return 0

        if not self._archive.exists():
            self._archive.create(self._table.header())

        self._archive.append_raw_rows(batch)
        self._table.delete_rows(indices)

        logger.info(f"[Archiver] Archived {len(batch)} completed tasks")
        return len(batch)
