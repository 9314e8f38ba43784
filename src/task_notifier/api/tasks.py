"""Task API endpoints."""

import asyncio
import logging

from fastapi import APIRouter, HTTPException

from task_notifier.api.models import (
    ArchiveResponse,
    AuditEntryResponse,
    ImportRequest,
    ImportResponse,
    NotifyEditRequest,
    NotifyEditResponse,
    ScanResponse,
    TaskResponse,
)
from task_notifier.exceptions import EndpointNotConfiguredError, PlanFormatError
from task_notifier.factory import (
    get_archiver,
    get_audit_log,
    get_importer,
    get_scanner,
    get_task_table,
    handle_notify_edit,
)
from task_notifier.models import Task

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/tasks", response_model=list[TaskResponse])
async def list_tasks() -> list[TaskResponse]:
    """List all rows of the live task table.

    Returns:
        Tasks in table order with their row positions
    """
    try:
        tasks = await asyncio.to_thread(get_task_table().list_tasks)
    except ValueError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e
    return [_task_to_response(index, task) for index, task in enumerate(tasks)]


@router.patch("/tasks/{row}/notify", response_model=NotifyEditResponse)
async def edit_notify_flag(row: int, request: NotifyEditRequest) -> NotifyEditResponse:
    """Edit the trigger column of one row.

    Setting the flag to true sends a status card for the row (outcome goes to
    the audit log only). Clearing it does nothing else.

    Args:
        row: 0-based row position
        request: New flag value

    Returns:
        The edit and whether a notification was handled (false if the
        trigger was dropped because the table stayed busy)

    Raises:
        HTTPException: If the row does not exist
    """
    table = get_task_table()
    count = await asyncio.to_thread(table.row_count)
    if row < 0 or row >= count:
        raise HTTPException(status_code=404, detail=f"No task at row {row}")

    try:
        triggered = await asyncio.to_thread(handle_notify_edit, row, request.value)
    except IndexError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e

    return NotifyEditResponse(row=row, notify=request.value, triggered=triggered)


@router.post("/reminders/scan", response_model=ScanResponse)
async def scan_reminders() -> ScanResponse:
    """Send reminder cards for overdue tasks and tasks due today or tomorrow.

    Returns:
        Number of reminders sent and a message for the user

    Raises:
        HTTPException: 409 if no webhook URL is configured
    """
    table = get_task_table()
    if await asyncio.to_thread(table.row_count) == 0:
        return ScanResponse(sent=0, message="The task table has no tasks.")

    try:
        sent = await asyncio.to_thread(get_scanner().scan)
    except EndpointNotConfiguredError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e

    if sent == 0:
        return ScanResponse(sent=0, message="No tasks are due or overdue.")
    return ScanResponse(sent=sent, message=f"Sent {sent} reminder(s).")


@router.post("/archive", response_model=ArchiveResponse)
async def archive_completed() -> ArchiveResponse:
    """Move completed tasks to the archive.

    Returns:
        Number of tasks moved and a message for the user
    """
    moved = await asyncio.to_thread(get_archiver().archive_terminal)
    if moved == 0:
        return ArchiveResponse(moved=0, message="No completed tasks to archive.")
    return ArchiveResponse(moved=moved, message=f"Archived {moved} completed task(s).")


@router.post("/import", response_model=ImportResponse)
async def import_plan(request: ImportRequest) -> ImportResponse:
    """Import tasks from plan text containing a JSON array.

    Args:
        request: Plan text

    Returns:
        IDs assigned to the imported tasks

    Raises:
        HTTPException: 400 if the plan is malformed (nothing is imported)
    """
    try:
        tasks = await asyncio.to_thread(get_importer().import_plan, request.plan)
    except PlanFormatError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    ids = [task.id for task in tasks]
    return ImportResponse(imported=ids, message=f"Imported {len(ids)} task(s).")


@router.get("/audit", response_model=list[AuditEntryResponse])
async def list_audit_entries() -> list[AuditEntryResponse]:
    """List audit log entries in append order."""
    entries = await asyncio.to_thread(get_audit_log().read_entries)
    return [
        AuditEntryResponse(
            timestamp=entry.timestamp,
            task_name=entry.task_name,
            status=entry.status,
            assignee=entry.assignee,
            outcome=entry.outcome,
            context=entry.context,
        )
        for entry in entries
    ]


def _task_to_response(index: int, task: Task) -> TaskResponse:
    """Convert Task to TaskResponse."""
    return TaskResponse(
        row=index,
        id=task.id,
        name=task.name,
        assignee=task.assignee,
        start_date=task.start_date,
        due_date=task.due_date,
        status=task.status.value,
        notify=task.notify_flag,
        note=task.note,
    )
