# src/toolbox_scheduler/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the concrete delivery channels (plyer notifier, SMTP transport) and
  retry policy into the TaskStore held by AppState.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.state import AppState
from ..delivery.channels import ReminderChannels
from ..delivery.notifier import DesktopNotifier
from ..delivery.smtp_transport import SmtpMailTransport
from ..tasks.reminder_trigger import RetryPolicy
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_path.parent.mkdir(parents=True, exist_ok=True)
    settings.log_dir.mkdir(parents=True, exist_ok=True)


def build_channels(settings) -> ReminderChannels:
    return ReminderChannels(
        DesktopNotifier(app_name=settings.app_name),
        SmtpMailTransport(timeout=settings.email_timeout_seconds),
        notification_timeout=settings.notification_timeout_seconds,
    )


def create_initial_state(*, settings=None, channels: ReminderChannels | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings (and channels) injectable makes the app easier to test and
    avoids hidden global config reads. If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = TaskStore(
        settings.tasks_path,
        channels=channels or build_channels(settings),
        retry_policy=RetryPolicy(
            max_retries=settings.reminder_max_retries,
            retry_delay_seconds=settings.reminder_retry_delay_seconds,
        ),
    )
    logger.debug("AppState created tasks_path=%s", settings.tasks_path)
    return AppState(settings=settings, task_store=store)
