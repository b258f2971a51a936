# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from toolbox_scheduler.core.state import AppState
from toolbox_scheduler.delivery.channels import ReminderChannels
from toolbox_scheduler.tasks.reminder_trigger import RetryPolicy
from toolbox_scheduler.tasks.task_models import EmailConfig, SmsConfig
from toolbox_scheduler.tasks.task_store import TaskStore

from .fakes import FakeMailTransport, FakeNotifier


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """Settings stand-in rooted in tmp_path; the environment is never read."""
    return SimpleNamespace(
        app_name="toolbox-test",
        log_level="DEBUG",
        console_enabled=False,
        scheduler_enabled=False,
        data_dir=tmp_path,
        tasks_path=tmp_path / "tasks.json",
        log_dir=tmp_path / "logs",
        reminder_check_interval_seconds=30,
        reminder_max_retries=3,
        reminder_retry_delay_seconds=300,
        default_reminder_advance_minutes=15,
        email_timeout_seconds=30,
        notification_timeout_seconds=5,
    )


@pytest.fixture()
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture()
def transport() -> FakeMailTransport:
    return FakeMailTransport()


@pytest.fixture()
def channels(notifier: FakeNotifier, transport: FakeMailTransport) -> ReminderChannels:
    return ReminderChannels(notifier, transport, notification_timeout=5)


@pytest.fixture()
def store(settings: SimpleNamespace, channels: ReminderChannels) -> TaskStore:
    """Real JSON TaskStore in tmp_path, wired to fake delivery channels."""
    return TaskStore(settings.tasks_path, channels=channels, retry_policy=RetryPolicy())


@pytest.fixture()
def email_config() -> EmailConfig:
    return EmailConfig(
        email="me@example.com",
        smtp_server="smtp.example.com",
        smtp_port=465,
        username="me@example.com",
        password="s3cret-app-password",
    )


@pytest.fixture()
def sms_config() -> SmsConfig:
    return SmsConfig(phone_number="555-123-4567", carrier="verizon", enabled=True)


@pytest.fixture()
def state(settings: SimpleNamespace, store: TaskStore) -> AppState:
    return AppState(settings=settings, task_store=store)
