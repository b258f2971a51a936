# src/toolbox_scheduler/tasks/reminder_trigger.py

from __future__ import annotations

"""
Reminder trigger scan.

Walks every reminder of every task, picks the ones that are retry-eligible,
records the attempt on them and expands each reminder type into the deliveries
it implies:

- notification -> marked sent right away, delivered as a desktop notification
- email / sms  -> queued for the scheduler loop, marked sent only after the
                  loop confirms delivery
- both / all   -> one desktop notification plus the deferred email (and sms);
                  a leg already delivered on an earlier attempt is not queued again

Attempts are counted, not failures: a reminder stops being eligible after
max_retries attempts no matter why the earlier ones failed.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from .task_models import DeliveryChannel, Reminder, Task, TriggeredReminder

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_DELAY_SECONDS = 300


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    max_retries: int = MAX_RETRIES
    retry_delay_seconds: int = RETRY_DELAY_SECONDS


@dataclass(slots=True, frozen=True)
class PendingNotification:
    task_id: int
    title: str
    body: str


@dataclass(slots=True)
class TriggerResult:
    triggered: list[TriggeredReminder] = field(default_factory=list)
    notifications: list[PendingNotification] = field(default_factory=list)
    # Combined reminders closed during the scan because every leg already went out.
    closed: int = 0


def is_retry_eligible(reminder: Reminder, now: int, policy: RetryPolicy) -> bool:
    if reminder.sent or reminder.reminder_time > now:
        return False
    if reminder.retry_count >= policy.max_retries:
        return False
    return reminder.last_attempt is None or now - reminder.last_attempt > policy.retry_delay_seconds


def attempt_and_record(reminder: Reminder, now: int, policy: RetryPolicy) -> bool:
    """
    Record a delivery attempt on an eligible reminder.

    Returns False (and leaves the reminder untouched) when it is not eligible.
    """
    if not is_retry_eligible(reminder, now, policy):
        return False
    reminder.last_attempt = now
    reminder.retry_count += 1
    return True


def scan_reminders(tasks: Iterable[Task], now: int, policy: RetryPolicy) -> TriggerResult:
    result = TriggerResult()

    for task in tasks:
        for index, reminder in enumerate(task.reminders):
            if not attempt_and_record(reminder, now, policy):
                if reminder.sent:
                    continue
                if reminder.retry_count >= policy.max_retries:
                    logger.debug(
                        "Reminder #%s of task %s exceeded retry limit", index + 1, task.id
                    )
                continue

            logger.debug(
                "Reminder #%s of task %s due (type=%s attempt=%s)",
                index + 1,
                task.id,
                reminder.reminder_type.value,
                reminder.retry_count,
            )

            channels = reminder.reminder_type.channels
            deferred = [
                c
                for c in channels
                if c is not DeliveryChannel.NOTIFICATION and c not in reminder.delivered_channels
            ]
            if len(channels) > 1 and not deferred:
                # Every deferred leg already went out on an earlier attempt.
                reminder.sent = True
                result.closed += 1
                continue

            for channel in channels:
                if channel is not DeliveryChannel.NOTIFICATION:
                    if channel in deferred:
                        result.triggered.append(TriggeredReminder(task.id, task.title, channel, index))
                    continue

                # The notification leg is done once dispatched, so email/sms retries of
                # a combined reminder do not pop the desktop notification again.
                if len(channels) > 1 and reminder.retry_count > 1:
                    continue
                if len(channels) == 1:
                    reminder.sent = True
                result.notifications.append(
                    PendingNotification(task_id=task.id, title=task.title, body=task.description)
                )
                result.triggered.append(TriggeredReminder(task.id, task.title, channel, None))

    return result
