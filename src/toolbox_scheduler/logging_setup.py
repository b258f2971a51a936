# src/toolbox_scheduler/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FILENAME = "toolbox.log"

# These run on the scheduler thread; below WARNING they would interleave with the prompt.
BACKGROUND_LOGGERS: tuple[str, ...] = (
    "toolbox_scheduler.tasks.task_scheduler",
    "toolbox_scheduler.tasks.reminder_trigger",
    "toolbox_scheduler.delivery.",
)


class _ConsoleNoiseFilter(logging.Filter):
    """
    Console-only filter:
    - toolbox_scheduler records pass, except the background ones below WARNING
    - everything else (plyer backends, smtplib, py.warnings) needs ERROR+
    """

    def __init__(self, background: tuple[str, ...] = BACKGROUND_LOGGERS) -> None:
        super().__init__()
        self._background = background

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if not name.startswith("toolbox_scheduler."):
            return record.levelno >= logging.ERROR
        if name.startswith(self._background):
            return record.levelno >= logging.WARNING
        return True


def parse_level(level: str | int, default: int = logging.INFO) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).strip().upper())
    return value if isinstance(value, int) else default


def setup_logging(
    *,
    log_dir: str | Path = ".local/toolbox/logs",
    console_level: str | int = logging.INFO,
    file_level: str | int = logging.DEBUG,
) -> Path:
    """
    Install the console handler (filtered, stderr) and a file handler
    that gets everything down to file_level.

    Call once at startup. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILENAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s [%(threadName)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(parse_level(console_level))
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    to_file = logging.FileHandler(log_file, encoding="utf-8")
    to_file.setLevel(parse_level(file_level, logging.DEBUG))
    to_file.setFormatter(fmt)
    root.addHandler(to_file)

    logging.captureWarnings(True)

    # plyer backends log on their own loggers.
    logging.getLogger("plyer").setLevel(logging.WARNING)
    return log_file
