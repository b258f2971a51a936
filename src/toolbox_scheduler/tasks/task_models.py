# src/toolbox_scheduler/tasks/task_models.py

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, NamedTuple


def _now() -> int:
    return int(time.time())


class TaskPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @classmethod
    def from_raw(cls, raw: str | None) -> TaskPriority:
        if not raw:
            return cls.MEDIUM
        value = str(raw).strip().lower()
        # Older task files spell the top level "critical".
        if value == "critical":
            return cls.URGENT
        try:
            return cls(value)
        except ValueError:
            return cls.MEDIUM


class TaskStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @classmethod
    def from_raw(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.PENDING
        value = str(raw).strip().lower()
        if value == "inprogress":
            return cls.IN_PROGRESS
        try:
            return cls(value)
        except ValueError:
            return cls.PENDING


class DeliveryChannel(StrEnum):
    NOTIFICATION = "notification"
    EMAIL = "email"
    SMS = "sms"


_CHANNEL_VALUES = frozenset(c.value for c in DeliveryChannel)


class ReminderType(StrEnum):
    """
    What a reminder delivers through.

    BOTH is email + desktop notification, ALL is email + SMS + desktop notification.
    """

    EMAIL = "email"
    NOTIFICATION = "notification"
    SMS = "sms"
    BOTH = "both"
    ALL = "all"

    @classmethod
    def from_raw(cls, raw: str | None) -> ReminderType:
        if not raw:
            return cls.EMAIL
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            return cls.EMAIL

    @property
    def channels(self) -> tuple[DeliveryChannel, ...]:
        return _CHANNELS[self]


_CHANNELS: dict[ReminderType, tuple[DeliveryChannel, ...]] = {
    ReminderType.NOTIFICATION: (DeliveryChannel.NOTIFICATION,),
    ReminderType.EMAIL: (DeliveryChannel.EMAIL,),
    ReminderType.SMS: (DeliveryChannel.SMS,),
    ReminderType.BOTH: (DeliveryChannel.NOTIFICATION, DeliveryChannel.EMAIL),
    ReminderType.ALL: (DeliveryChannel.NOTIFICATION, DeliveryChannel.EMAIL, DeliveryChannel.SMS),
}


class ReminderState(StrEnum):
    """Derived delivery state of a reminder (not persisted)."""

    PENDING = "pending"
    RETRYING = "retrying"
    SENT = "sent"
    EXHAUSTED = "exhausted"


@dataclass(slots=True)
class Reminder:
    reminder_time: int
    reminder_type: ReminderType
    sent: bool = False
    retry_count: int = 0
    last_attempt: int | None = None
    error_message: str | None = None
    # Legs of a combined reminder already delivered; retries skip them.
    delivered_channels: list[DeliveryChannel] = field(default_factory=list)

    def state(self, max_retries: int) -> ReminderState:
        if self.sent:
            return ReminderState.SENT
        if self.retry_count >= max_retries:
            return ReminderState.EXHAUSTED
        if self.retry_count > 0:
            return ReminderState.RETRYING
        return ReminderState.PENDING

    def to_dict(self) -> dict[str, Any]:
        return {
            "reminder_time": self.reminder_time,
            "reminder_type": self.reminder_type.value,
            "sent": self.sent,
            "retry_count": self.retry_count,
            "last_attempt": self.last_attempt,
            "error_message": self.error_message,
            "delivered_channels": [c.value for c in self.delivered_channels],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Reminder:
        last_attempt = data.get("last_attempt")
        delivered = [c for c in data.get("delivered_channels") or [] if c in _CHANNEL_VALUES]
        return cls(
            reminder_time=int(data.get("reminder_time") or 0),
            reminder_type=ReminderType.from_raw(data.get("reminder_type")),
            sent=bool(data.get("sent", False)),
            retry_count=int(data.get("retry_count") or 0),
            last_attempt=int(last_attempt) if last_attempt is not None else None,
            error_message=data.get("error_message"),
            delivered_channels=[DeliveryChannel(c) for c in delivered],
        )


@dataclass(slots=True)
class Task:
    id: int
    title: str
    description: str
    due_date: int
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING
    created_at: int = field(default_factory=_now)
    updated_at: int = field(default_factory=_now)
    tags: list[str] = field(default_factory=list)
    reminders: list[Reminder] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.tags = _unique(self.tags)

    def add_reminder(self, reminder_time: int, reminder_type: ReminderType) -> Reminder:
        reminder = Reminder(reminder_time=int(reminder_time), reminder_type=reminder_type)
        self.reminders.append(reminder)
        self.touch()
        return reminder

    def add_tag(self, tag: str) -> None:
        tag = tag.strip()
        if tag and tag not in self.tags:
            self.tags.append(tag)
            self.touch()

    def set_status(self, status: TaskStatus) -> None:
        self.status = status
        self.touch()

    def set_priority(self, priority: TaskPriority) -> None:
        self.priority = priority
        self.touch()

    def is_due(self, now: int | None = None) -> bool:
        return self.due_date <= (_now() if now is None else now)

    def has_pending_reminders(self, now: int | None = None) -> bool:
        now = _now() if now is None else now
        return any(not r.sent and r.reminder_time <= now for r in self.reminders)

    def touch(self) -> None:
        self.updated_at = _now()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "due_date": self.due_date,
            "priority": self.priority.value,
            "status": self.status.value,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "tags": list(self.tags),
            "reminders": [r.to_dict() for r in self.reminders],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Task:
        created_at = int(data.get("created_at") or 0)
        reminders = data.get("reminders") or []
        tags = data.get("tags") or []
        return cls(
            id=int(data["id"]),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            due_date=int(data.get("due_date") or 0),
            priority=TaskPriority.from_raw(data.get("priority")),
            status=TaskStatus.from_raw(data.get("status")),
            created_at=created_at,
            updated_at=int(data.get("updated_at") or created_at),
            tags=[str(t) for t in tags],
            reminders=[Reminder.from_dict(r) for r in reminders if isinstance(r, dict)],
        )


def _unique(items: list[str]) -> list[str]:
    out: list[str] = []
    for item in items:
        if item not in out:
            out.append(item)
    return out


class TriggeredReminder(NamedTuple):
    """
    One delivery queued by a trigger scan.

    reminder_index is None for desktop notifications: they are marked sent during
    the scan and need no later confirmation.
    """

    task_id: int
    title: str
    channel: DeliveryChannel
    reminder_index: int | None


@dataclass(slots=True)
class EmailConfig:
    email: str
    smtp_server: str
    smtp_port: int = 587
    username: str = ""
    password: str = field(default="", repr=False)
    retry_attempts: int = 3
    retry_delay_seconds: int = 5

    def is_complete(self) -> bool:
        return bool(self.email and self.smtp_server and self.username)

    def to_dict(self) -> dict[str, Any]:
        return {
            "email": self.email,
            "smtp_server": self.smtp_server,
            "smtp_port": self.smtp_port,
            "username": self.username,
            "password": self.password,
            "retry_attempts": self.retry_attempts,
            "retry_delay_seconds": self.retry_delay_seconds,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EmailConfig:
        return cls(
            email=str(data.get("email") or "").strip(),
            smtp_server=str(data.get("smtp_server") or "").strip(),
            smtp_port=int(data.get("smtp_port") or 587),
            username=str(data.get("username") or "").strip(),
            password=str(data.get("password") or ""),
            retry_attempts=int(data.get("retry_attempts", 3)),
            retry_delay_seconds=int(data.get("retry_delay_seconds", 5)),
        )


@dataclass(slots=True)
class SmsConfig:
    phone_number: str
    carrier: str
    enabled: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "phone_number": self.phone_number,
            "carrier": self.carrier,
            "enabled": self.enabled,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SmsConfig:
        return cls(
            phone_number=str(data.get("phone_number") or "").strip(),
            carrier=str(data.get("carrier") or "").strip(),
            enabled=bool(data.get("enabled", True)),
        )
