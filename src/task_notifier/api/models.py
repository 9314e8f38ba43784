"""API models for TaskNotifier."""

from datetime import date, datetime

from pydantic import BaseModel


class TaskResponse(BaseModel):
    """API response model for a task row."""

    row: int  # 0-based position in the live table
    id: str
    name: str
    assignee: str
    start_date: datetime | date | None
    due_date: datetime | date | None
    status: str
    notify: bool
    note: str


class NotifyEditRequest(BaseModel):
    """Edit of the trigger column of one row."""

    value: bool


class NotifyEditResponse(BaseModel):
    """Result of a trigger-column edit."""

    row: int
    notify: bool
    triggered: bool


class ScanResponse(BaseModel):
    """Result of a reminder scan."""

    sent: int
    message: str


class ArchiveResponse(BaseModel):
    """Result of archiving completed tasks."""

    moved: int
    message: str


class ImportRequest(BaseModel):
    """Plan text containing a JSON array of task objects."""

    plan: str


class ImportResponse(BaseModel):
    """Result of a plan import."""

    imported: list[str]
    message: str


class AuditEntryResponse(BaseModel):
    """API response model for an audit log entry."""

    timestamp: str
    task_name: str
    status: str
    assignee: str
    outcome: str
    context: str
