# src/toolbox_scheduler/core/state.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

from ..tasks.task_store import TaskStore


@dataclass
class AppState:
    """
    Everything the console and the background scheduler share.

    task_store is NOT thread-safe on its own: every access goes through `lock`,
    and the lock is never held across network I/O.
    """

    settings: Any
    task_store: TaskStore
    lock: threading.Lock = field(default_factory=threading.Lock)

    # Last user-visible status line (e.g. "2 reminders triggered").
    status_message: str | None = None
