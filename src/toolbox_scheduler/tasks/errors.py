# src/toolbox_scheduler/tasks/errors.py

from __future__ import annotations


class SchedulerError(Exception):
    """Base class for every error raised by the task scheduler."""


class TaskNotFoundError(SchedulerError):
    def __init__(self, task_id: int) -> None:
        super().__init__(f"Task with ID {task_id} not found")
        self.task_id = task_id


class ReminderNotFoundError(TaskNotFoundError):
    def __init__(self, task_id: int, index: int) -> None:
        SchedulerError.__init__(
            self, f"Reminder index {index} out of bounds for task {task_id}"
        )
        self.task_id = task_id
        self.index = index


class ConfigurationError(SchedulerError):
    """Email/SMS configuration is missing, incomplete or unusable."""


class DeliveryError(SchedulerError):
    """A delivery channel (SMTP, desktop notifier) failed to deliver."""
