# tests/test_reminder_trigger.py

from __future__ import annotations

import pytest

from toolbox_scheduler.tasks.reminder_trigger import (
    RetryPolicy,
    attempt_and_record,
    is_retry_eligible,
    scan_reminders,
)
from toolbox_scheduler.tasks.task_models import (
    DeliveryChannel,
    Reminder,
    ReminderState,
    ReminderType,
    Task,
    TriggeredReminder,
)
from toolbox_scheduler.tasks.task_store import TaskStore

POLICY = RetryPolicy(max_retries=3, retry_delay_seconds=300)


def _task(*reminders: Reminder, task_id: int = 1, title: str = "Dentist") -> Task:
    return Task(
        id=task_id,
        title=title,
        description="call the clinic",
        due_date=10_000,
        reminders=list(reminders),
    )


def test_future_reminder_is_not_eligible() -> None:
    reminder = Reminder(reminder_time=1_001, reminder_type=ReminderType.EMAIL)
    assert not is_retry_eligible(reminder, 1_000, POLICY)
    assert is_retry_eligible(reminder, 1_001, POLICY)


def test_sent_reminder_never_triggers_again() -> None:
    reminder = Reminder(reminder_time=0, reminder_type=ReminderType.EMAIL, sent=True)
    task = _task(reminder)

    for now in (1_000, 100_000, 10_000_000):
        assert scan_reminders([task], now, POLICY).triggered == []
    assert reminder.retry_count == 0
    assert reminder.last_attempt is None


def test_retry_spacing_is_strictly_greater_than_delay() -> None:
    reminder = Reminder(reminder_time=0, reminder_type=ReminderType.EMAIL)

    assert attempt_and_record(reminder, 1_000, POLICY)
    assert not attempt_and_record(reminder, 1_000, POLICY)
    assert not attempt_and_record(reminder, 1_300, POLICY)
    assert attempt_and_record(reminder, 1_301, POLICY)
    assert reminder.retry_count == 2
    assert reminder.last_attempt == 1_301


def test_retry_bound_holds_no_matter_how_often_scanned() -> None:
    reminder = Reminder(reminder_time=0, reminder_type=ReminderType.EMAIL)
    task = _task(reminder)

    attempts = 0
    for step in range(20):
        attempts += len(scan_reminders([task], 1_000 + step * 301, POLICY).triggered)

    assert attempts == 3
    assert reminder.retry_count == 3
    assert not reminder.sent
    assert reminder.state(POLICY.max_retries) is ReminderState.EXHAUSTED


def test_policy_controls_the_bound() -> None:
    policy = RetryPolicy(max_retries=1, retry_delay_seconds=0)
    reminder = Reminder(reminder_time=0, reminder_type=ReminderType.SMS)
    task = _task(reminder)

    assert len(scan_reminders([task], 10, policy).triggered) == 1
    assert scan_reminders([task], 20, policy).triggered == []


def test_notification_is_sent_during_the_scan() -> None:
    reminder = Reminder(reminder_time=500, reminder_type=ReminderType.NOTIFICATION)
    task = _task(reminder)

    result = scan_reminders([task], 1_000, POLICY)

    assert reminder.sent
    assert reminder.retry_count == 1
    assert result.triggered == [
        TriggeredReminder(1, "Dentist", DeliveryChannel.NOTIFICATION, None)
    ]
    (note,) = result.notifications
    assert (note.task_id, note.title, note.body) == (1, "Dentist", "call the clinic")
    assert scan_reminders([task], 5_000, POLICY).triggered == []


def test_email_reminder_stays_unsent_until_confirmed() -> None:
    reminder = Reminder(reminder_time=500, reminder_type=ReminderType.EMAIL)
    task = _task(reminder, task_id=7)

    result = scan_reminders([task], 1_000, POLICY)

    assert result.triggered == [TriggeredReminder(7, "Dentist", DeliveryChannel.EMAIL, 0)]
    assert result.notifications == []
    assert not reminder.sent
    assert (reminder.retry_count, reminder.last_attempt) == (1, 1_000)


def test_all_expands_to_three_deliveries() -> None:
    task = _task(Reminder(reminder_time=0, reminder_type=ReminderType.ALL), task_id=3)

    result = scan_reminders([task], 100, POLICY)

    assert result.triggered == [
        TriggeredReminder(3, "Dentist", DeliveryChannel.NOTIFICATION, None),
        TriggeredReminder(3, "Dentist", DeliveryChannel.EMAIL, 0),
        TriggeredReminder(3, "Dentist", DeliveryChannel.SMS, 0),
    ]
    assert len(result.notifications) == 1
    assert task.reminders[0].retry_count == 1
    assert not task.reminders[0].sent


def test_both_skips_the_notification_on_retries() -> None:
    reminder = Reminder(reminder_time=0, reminder_type=ReminderType.BOTH)
    task = _task(reminder)

    first = scan_reminders([task], 100, POLICY)
    retry = scan_reminders([task], 500, POLICY)

    assert [t.channel for t in first.triggered] == [DeliveryChannel.NOTIFICATION, DeliveryChannel.EMAIL]
    assert [t.channel for t in retry.triggered] == [DeliveryChannel.EMAIL]
    assert retry.notifications == []
    assert reminder.retry_count == 2


def test_all_retry_queues_only_the_undelivered_legs() -> None:
    reminder = Reminder(
        reminder_time=0,
        reminder_type=ReminderType.ALL,
        retry_count=1,
        last_attempt=100,
        delivered_channels=[DeliveryChannel.EMAIL],
    )
    task = _task(reminder)

    result = scan_reminders([task], 500, POLICY)

    assert result.triggered == [TriggeredReminder(1, "Dentist", DeliveryChannel.SMS, 0)]
    assert result.notifications == []
    assert reminder.retry_count == 2


def test_combined_reminder_with_every_leg_delivered_is_closed() -> None:
    reminder = Reminder(
        reminder_time=0,
        reminder_type=ReminderType.BOTH,
        retry_count=1,
        last_attempt=100,
        delivered_channels=[DeliveryChannel.EMAIL],
    )

    result = scan_reminders([_task(reminder)], 500, POLICY)

    assert result.triggered == []
    assert result.closed == 1
    assert reminder.sent


def test_reminder_without_delivered_channels_loads_empty() -> None:
    reminder = Reminder.from_dict({"reminder_time": 0, "reminder_type": "all"})
    assert reminder.delivered_channels == []

    data = Reminder(
        reminder_time=0, reminder_type=ReminderType.ALL, delivered_channels=[DeliveryChannel.SMS]
    ).to_dict()
    assert data["delivered_channels"] == ["sms"]
    assert Reminder.from_dict({**data, "delivered_channels": ["sms", "pigeon"]}).delivered_channels == [
        DeliveryChannel.SMS
    ]


def test_reminder_indexes_follow_list_positions() -> None:
    task = _task(
        Reminder(reminder_time=0, reminder_type=ReminderType.EMAIL, sent=True),
        Reminder(reminder_time=0, reminder_type=ReminderType.SMS),
        Reminder(reminder_time=9_999, reminder_type=ReminderType.EMAIL),
        Reminder(reminder_time=0, reminder_type=ReminderType.EMAIL),
    )

    result = scan_reminders([task], 100, POLICY)

    assert [(t.channel, t.reminder_index) for t in result.triggered] == [
        (DeliveryChannel.SMS, 1),
        (DeliveryChannel.EMAIL, 3),
    ]


def test_store_scan_shows_notifications_and_marks_them_sent(store: TaskStore, notifier) -> None:
    task_id = store.add_task("Standup", "daily", 2_000)
    store.add_reminder_to_task(task_id, 1_000, ReminderType.NOTIFICATION)

    triggered = store.check_reminders(now=1_000)

    assert triggered == [
        TriggeredReminder(task_id, "Standup", DeliveryChannel.NOTIFICATION, None)
    ]
    (shown,) = notifier.shown
    assert shown.title == "Task Reminder: Standup"
    assert shown.body == "daily"
    assert shown.timeout == 5
    assert store.get_task(task_id).reminders[0].sent


def test_store_scan_survives_notifier_failure(store: TaskStore, notifier) -> None:
    notifier.fail = True
    task_id = store.add_task("Standup", "", 2_000)
    store.add_reminder_to_task(task_id, 0, ReminderType.NOTIFICATION)

    triggered = store.check_reminders(now=1_000)

    assert len(triggered) == 1
    assert notifier.shown == []


def test_store_scan_persists_attempts(store: TaskStore, channels) -> None:
    task_id = store.add_task("t", "", 0)
    store.add_reminder_to_task(task_id, 0, ReminderType.EMAIL)
    store.check_reminders(now=1_000)

    reloaded = TaskStore(store.file_path, channels=channels)
    reminder = reloaded.get_task(task_id).reminders[0]
    assert (reminder.retry_count, reminder.last_attempt) == (1, 1_000)


@pytest.mark.parametrize(
    ("reminder", "expected"),
    [
        (Reminder(0, ReminderType.EMAIL), ReminderState.PENDING),
        (Reminder(0, ReminderType.EMAIL, retry_count=2), ReminderState.RETRYING),
        (Reminder(0, ReminderType.EMAIL, retry_count=3), ReminderState.EXHAUSTED),
        (Reminder(0, ReminderType.EMAIL, sent=True, retry_count=3), ReminderState.SENT),
    ],
)
def test_reminder_state(reminder: Reminder, expected: ReminderState) -> None:
    assert reminder.state(3) is expected
