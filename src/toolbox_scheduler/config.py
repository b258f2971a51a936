# src/toolbox_scheduler/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app, passed explicitly to whoever needs it.
- No secrets in settings: SMTP credentials live in the email config file that
  the task store manages.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TOOLBOX"

MIN_CHECK_INTERVAL_SECONDS = 10


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Switches ----
    console_enabled: bool
    scheduler_enabled: bool

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    tasks_path: Path
    log_dir: Path

    # ---- Reminders ----
    reminder_check_interval_seconds: int
    reminder_max_retries: int
    reminder_retry_delay_seconds: int
    default_reminder_advance_minutes: int

    # ---- Delivery ----
    email_timeout_seconds: int
    notification_timeout_seconds: int

    @staticmethod
    def from_env(*, load_env_file: bool = True) -> "Settings":
        if load_env_file:
            load_dotenv(override=False)

        app_name = _env(_k("APP_NAME"), "toolbox") or "toolbox"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)
        scheduler_enabled = _env_bool(_k("SCHEDULER_ENABLED"), True)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/toolbox"))
        tasks_path = _env_path(_k("TASKS_PATH"), data_dir / "tasks.json")
        log_dir = _env_path(_k("LOG_DIR"), data_dir / "logs")

        # Each cycle rewrites the tasks file; never poll faster than every 10s.
        check_interval = max(
            MIN_CHECK_INTERVAL_SECONDS,
            _env_int(_k("REMINDER_CHECK_INTERVAL_SECONDS"), 30),
        )
        max_retries = max(1, _env_int(_k("REMINDER_MAX_RETRIES"), 3))
        retry_delay = max(0, _env_int(_k("REMINDER_RETRY_DELAY_SECONDS"), 300))
        advance_minutes = max(0, _env_int(_k("DEFAULT_REMINDER_ADVANCE_MINUTES"), 15))

        email_timeout = max(1, _env_int(_k("EMAIL_TIMEOUT_SECONDS"), 30))
        notification_timeout = max(1, _env_int(_k("NOTIFICATION_TIMEOUT_SECONDS"), 5))

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            scheduler_enabled=scheduler_enabled,
            data_dir=data_dir,
            tasks_path=tasks_path,
            log_dir=log_dir,
            reminder_check_interval_seconds=check_interval,
            reminder_max_retries=max_retries,
            reminder_retry_delay_seconds=retry_delay,
            default_reminder_advance_minutes=advance_minutes,
            email_timeout_seconds=email_timeout,
            notification_timeout_seconds=notification_timeout,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
