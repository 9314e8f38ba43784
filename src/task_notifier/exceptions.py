"""Exceptions raised by TaskNotifier."""


class TaskNotifierError(Exception):
    """Base class for TaskNotifier errors."""


class EndpointNotConfiguredError(TaskNotifierError):
    """No outbound webhook URL is configured."""

    def __init__(self) -> None:
        super().__init__("Webhook URL is not configured (set TASK_NOTIFIER_WEBHOOK_URL)")


class PlanFormatError(TaskNotifierError, ValueError):
    """Imported plan text is not a usable JSON array of task objects."""
