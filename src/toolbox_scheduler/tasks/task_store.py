# src/toolbox_scheduler/tasks/task_store.py

from __future__ import annotations

import contextlib
import json
import logging
import os
import time
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from ..delivery.channels import (
    OutgoingMail,
    ReminderChannels,
    build_reminder_mail,
    build_sms_mail,
    build_test_mail,
)
from ..delivery.providers import troubleshooting_hint
from .errors import DeliveryError, ReminderNotFoundError, TaskNotFoundError
from .reminder_trigger import PendingNotification, RetryPolicy, TriggerResult, scan_reminders
from .task_models import (
    DeliveryChannel,
    EmailConfig,
    Reminder,
    ReminderState,
    ReminderType,
    SmsConfig,
    Task,
    TaskPriority,
    TaskStatus,
    TriggeredReminder,
)

logger = logging.getLogger(__name__)

EMAIL_CONFIG_FILENAME = "email_config.json"
SMS_CONFIG_FILENAME = "sms_config.json"


def _write_json(path: Path, data: Any, *, private: bool = False) -> None:
    """
    Write data as JSON through a temp file + os.replace.

    private=True creates the temp file as 0600 before any byte is written, so
    the file that replaces path is never readable by other users.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    text = json.dumps(data, ensure_ascii=False, indent=2)
    if private:
        # O_CREAT keeps the mode of an existing file: drop any stale temp first.
        with contextlib.suppress(FileNotFoundError):
            tmp.unlink()
        fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
    else:
        tmp.write_text(text, "utf-8")
    os.replace(tmp, path)


def _read_json(path: Path) -> Any | None:
    """Parsed JSON from path, or None when the file is missing or blank."""
    if not path.exists():
        return None
    raw = path.read_text("utf-8")
    if not raw.strip():
        return None
    return json.loads(raw)


class TaskStore:
    """
    JSON-file task store.

    Holds every Task (and, through them, every Reminder) plus the optional
    email/SMS delivery configs. Every mutation rewrites the whole tasks file;
    write failures are logged and the in-memory state stays authoritative.

    Thread-safety:
    - none of its own; callers share one instance behind AppState.lock and must
      not hold that lock across network I/O (see compose_* / send_*).
    """

    def __init__(
        self,
        file_path: str | Path = "tasks.json",
        *,
        channels: ReminderChannels | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self._path = Path(file_path)
        self._tasks: dict[int, Task] = {}
        self._next_id = 1
        self._email_config: EmailConfig | None = None
        self._sms_config: SmsConfig | None = None
        self._policy = retry_policy or RetryPolicy()

        if channels is None:
            from ..delivery.notifier import DesktopNotifier
            from ..delivery.smtp_transport import SmtpMailTransport

            channels = ReminderChannels(DesktopNotifier(), SmtpMailTransport())
        self._channels = channels

        self._load_tasks()
        self._load_email_config()
        self._load_sms_config()
        logger.info(
            "TaskStore ready file=%s total=%s next_id=%s",
            self._path,
            len(self._tasks),
            self._next_id,
        )

    # ---- properties ----

    @property
    def file_path(self) -> Path:
        return self._path

    @property
    def channels(self) -> ReminderChannels:
        return self._channels

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._policy

    @property
    def email_config(self) -> EmailConfig | None:
        return self._email_config

    @property
    def sms_config(self) -> SmsConfig | None:
        return self._sms_config

    @property
    def next_id(self) -> int:
        return self._next_id

    # ---- persistence ----

    def _config_path(self, name: str) -> Path:
        return self._path.parent / name

    def _save_tasks(self) -> None:
        payload = {
            "tasks": {str(tid): task.to_dict() for tid, task in sorted(self._tasks.items())},
            "next_id": self._next_id,
        }
        try:
            _write_json(self._path, payload)
        except Exception:
            logger.exception("Failed to save tasks to %s", self._path)

    @staticmethod
    def _unpack(data: Any) -> tuple[dict[str, Any], int | None]:
        # Current layout: {"tasks": {...}, "next_id": N}
        if isinstance(data, dict) and isinstance(data.get("tasks"), dict):
            return data["tasks"], data.get("next_id")
        # Tuple encoding: [{...}, N]
        if isinstance(data, list) and len(data) == 2 and isinstance(data[0], dict):
            return data[0], data[1]
        # Bare id -> task map.
        if isinstance(data, dict):
            return data, None
        raise ValueError(f"unrecognised tasks file layout ({type(data).__name__})")

    def _load_tasks(self) -> None:
        try:
            data = _read_json(self._path)
            if data is None:
                return
            raw_tasks, raw_next_id = self._unpack(data)
        except Exception:
            logger.exception("Failed to load tasks from %s; starting empty", self._path)
            return

        for key, raw in raw_tasks.items():
            if not isinstance(raw, dict):
                continue
            try:
                task = Task.from_dict({**raw, "id": raw.get("id", key)})
            except Exception:
                logger.warning("Skipping malformed task entry %r in %s", key, self._path)
                continue
            self._tasks[task.id] = task

        highest = max(self._tasks, default=0)
        try:
            stored_next = int(raw_next_id) if raw_next_id is not None else 1
        except (TypeError, ValueError):
            stored_next = 1
        self._next_id = max(stored_next, highest + 1)

    def _load_email_config(self) -> None:
        path = self._config_path(EMAIL_CONFIG_FILENAME)
        try:
            data = _read_json(path)
            if not isinstance(data, dict):
                return
            config = EmailConfig.from_dict(data)
        except Exception:
            logger.exception("Failed to load email config from %s", path)
            return
        if not config.email or not config.smtp_server:
            logger.warning("Email config %s is missing required fields; ignoring it", path)
            return
        self._email_config = config
        logger.info("Loaded email config server=%s port=%s", config.smtp_server, config.smtp_port)

    def _load_sms_config(self) -> None:
        path = self._config_path(SMS_CONFIG_FILENAME)
        try:
            data = _read_json(path)
            if not isinstance(data, dict):
                return
            self._sms_config = SmsConfig.from_dict(data)
        except Exception:
            logger.exception("Failed to load SMS config from %s", path)
            return
        logger.info("Loaded SMS config carrier=%s", self._sms_config.carrier)

    # ---- lookups ----

    def _require(self, task_id: int) -> Task:
        task = self._tasks.get(int(task_id))
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def _require_reminder(self, task_id: int, index: int) -> Reminder:
        task = self._require(task_id)
        if not 0 <= index < len(task.reminders):
            raise ReminderNotFoundError(task_id, index)
        return task.reminders[index]

    # ---- task CRUD ----

    def count_tasks(self) -> int:
        return len(self._tasks)

    def add_task(
        self,
        title: str,
        description: str,
        due_date: int,
        priority: TaskPriority = TaskPriority.MEDIUM,
        tags: list[str] | None = None,
    ) -> int:
        task_id = self._next_id
        self._next_id += 1
        self._tasks[task_id] = Task(
            id=task_id,
            title=title.strip(),
            description=description.strip(),
            due_date=int(due_date),
            priority=priority,
            tags=[t.strip() for t in tags or [] if t.strip()],
        )
        self._save_tasks()
        logger.debug("Task added id=%s priority=%s due=%s", task_id, priority.value, due_date)
        return task_id

    def get_task(self, task_id: int) -> Task | None:
        return self._tasks.get(int(task_id))

    def get_all_tasks(self) -> list[Task]:
        return list(self._tasks.values())

    def update_task(self, task_id: int, task: Task) -> None:
        """Replace a task wholesale. The id and created_at of the stored task are kept."""
        current = self._require(task_id)
        task.id = current.id
        task.created_at = current.created_at
        task.touch()
        self._tasks[current.id] = task
        self._save_tasks()
        logger.debug("Task updated id=%s status=%s", task_id, task.status.value)

    def set_task_status(self, task_id: int, status: TaskStatus) -> None:
        self._require(task_id).set_status(status)
        self._save_tasks()

    def delete_task(self, task_id: int) -> None:
        if self._tasks.pop(int(task_id), None) is None:
            raise TaskNotFoundError(task_id)
        self._save_tasks()
        logger.debug("Task deleted id=%s", task_id)

    # ---- queries ----

    def get_pending_tasks(self) -> list[Task]:
        return self.get_tasks_by_status(TaskStatus.PENDING)

    def get_tasks_by_status(self, status: TaskStatus) -> list[Task]:
        return [t for t in self._tasks.values() if t.status == status]

    def get_tasks_by_priority(self, priority: TaskPriority) -> list[Task]:
        return [t for t in self._tasks.values() if t.priority == priority]

    def get_due_tasks(self, now: int | None = None) -> list[Task]:
        return [t for t in self._tasks.values() if t.is_due(now)]

    def get_tasks_with_pending_reminders(self, now: int | None = None) -> list[Task]:
        return [t for t in self._tasks.values() if t.has_pending_reminders(now)]

    def search_tasks(self, query: str) -> list[Task]:
        q = query.strip().lower()
        if not q:
            return []
        return [
            t
            for t in self._tasks.values()
            if q in t.title.lower()
            or q in t.description.lower()
            or any(q in tag.lower() for tag in t.tags)
        ]

    def list_exhausted_reminders(self) -> list[tuple[Task, int, Reminder]]:
        """Reminders that ran out of attempts without being delivered."""
        out: list[tuple[Task, int, Reminder]] = []
        for task in self._tasks.values():
            for index, reminder in enumerate(task.reminders):
                if reminder.state(self._policy.max_retries) is ReminderState.EXHAUSTED:
                    out.append((task, index, reminder))
        return out

    # ---- reminders ----

    def add_reminder_to_task(
        self, task_id: int, reminder_time: int, reminder_type: ReminderType
    ) -> None:
        self._require(task_id).add_reminder(reminder_time, reminder_type)
        self._save_tasks()

    def scan_due_reminders(self, now: int | None = None) -> TriggerResult:
        """
        Record the attempt on every eligible reminder and persist it.

        Nothing is delivered here: the returned notifications are meant for
        show_notifications(), called once the store lock is released.
        """
        now_ts = int(time.time()) if now is None else int(now)
        result = scan_reminders(self._tasks.values(), now_ts, self._policy)
        if result.triggered or result.closed:
            logger.info("%s reminder deliveries triggered", len(result.triggered))
            self._save_tasks()
        return result

    def show_notifications(self, notifications: Iterable[PendingNotification]) -> None:
        """Desktop notifications are fire-and-forget: failures are only logged."""
        for note in notifications:
            try:
                self._channels.notify(note.title, note.body)
            except Exception as e:
                logger.warning("Failed to send notification for task %s: %s", note.task_id, e)

    def check_reminders(self, now: int | None = None) -> list[TriggeredReminder]:
        """
        Run one trigger scan and show its desktop notifications right away.

        Returns the deliveries the caller still has to perform (plus the
        notification entries, with index None).
        """
        result = self.scan_due_reminders(now)
        self.show_notifications(result.notifications)
        return result.triggered

    def mark_reminder_as_sent(self, task_id: int, index: int) -> None:
        reminder = self._require_reminder(task_id, index)
        reminder.sent = True
        reminder.error_message = None
        self._save_tasks()
        logger.info("Marked reminder #%s for task %s as sent", index + 1, task_id)

    def record_reminder_failure(
        self,
        task_id: int,
        index: int,
        error: str,
        delivered: Iterable[DeliveryChannel] = (),
    ) -> None:
        """
        Record a failed attempt. delivered lists the legs of a combined reminder
        that did go through; later attempts will not send them again.
        """
        reminder = self._require_reminder(task_id, index)
        reminder.error_message = error
        for channel in delivered:
            if channel not in reminder.delivered_channels:
                reminder.delivered_channels.append(channel)
        self._save_tasks()
        if reminder.state(self._policy.max_retries) is ReminderState.EXHAUSTED:
            logger.warning(
                "Reminder #%s for task %s gave up after %s attempts: %s",
                index + 1,
                task_id,
                reminder.retry_count,
                error,
            )

    # ---- delivery config ----

    def set_email_config(self, config: EmailConfig) -> None:
        self._email_config = config
        path = self._config_path(EMAIL_CONFIG_FILENAME)
        try:
            _write_json(path, config.to_dict(), private=True)
            logger.info("Saved email config to %s", path)
        except Exception:
            logger.exception("Failed to save email config to %s", path)

    def set_sms_config(self, config: SmsConfig) -> None:
        self._sms_config = config
        path = self._config_path(SMS_CONFIG_FILENAME)
        try:
            _write_json(path, config.to_dict())
            logger.info("Saved SMS config to %s", path)
        except Exception:
            logger.exception("Failed to save SMS config to %s", path)

    # ---- delivery ----

    def compose_reminder_email(self, task_id: int) -> OutgoingMail:
        return build_reminder_mail(self._require(task_id), self._email_config)

    def compose_sms_reminder(self, task_id: int, message: str) -> OutgoingMail:
        self._require(task_id)
        return build_sms_mail(self._sms_config, self._email_config, message)

    def send_reminder_email(self, task_id: int) -> None:
        """Compose and send the reminder email for a task. Does not mark anything sent."""
        self._channels.send_mail(self.compose_reminder_email(task_id))

    def send_sms_reminder(self, task_id: int, message: str) -> None:
        self._channels.send_mail(self.compose_sms_reminder(task_id, message))

    def compose_test_email(self) -> OutgoingMail:
        return build_test_mail(self._email_config)

    def test_email_config(self, outgoing: OutgoingMail | None = None) -> None:
        """
        Send one test message synchronously; failures carry provider troubleshooting text.

        Pass a message from compose_test_email() to send it without holding the
        store lock (only the compose step reads store state).
        """
        if outgoing is None:
            outgoing = self.compose_test_email()
        try:
            self._channels.send_mail(outgoing)
        except DeliveryError as e:
            hint = troubleshooting_hint(outgoing.config.smtp_server)
            if not hint:
                raise
            raise DeliveryError(f"{e}\n{hint}") from e
