# src/toolbox_scheduler/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then starts:
- the reminder scheduler in a background thread (optional),
- the console REPL in the main thread (optional).
"""

from __future__ import annotations

import logging
import signal
import threading

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.state import AppState
from ..logging_setup import setup_logging
from ..tasks.task_scheduler import CycleReport, SchedulerBackgroundRunner, start_scheduler_in_background

logger = logging.getLogger(__name__)


def _status_updater(state: AppState):
    def on_cycle(report: CycleReport) -> None:
        if not report.triggered:
            return
        n = report.triggered
        message = f"{n} reminder{'' if n == 1 else 's'} triggered"
        if report.failed:
            message += f" ({report.failed} failed, see /show or /failed)"
        with state.lock:
            state.status_message = message

    return on_cycle


def main() -> None:
    settings = get_settings()

    log_file = setup_logging(log_dir=settings.log_dir, console_level=settings.log_level)

    logger.info("Starting %s (log file: %s)...", settings.app_name, log_file)

    state = create_initial_state(settings=settings)

    scheduler: SchedulerBackgroundRunner | None = None
    if settings.scheduler_enabled:
        scheduler = start_scheduler_in_background(state, on_cycle=_status_updater(state))

    # Use an Event so main can wait without a busy while-loop.
    stop_main = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    # With the console up, Ctrl+C reaches input() as KeyboardInterrupt instead.
    signums = [signal.SIGTERM] if settings.console_enabled else [signal.SIGINT, signal.SIGTERM]
    try:
        for signum in signums:
            signal.signal(signum, _handle_signal)
    except (ValueError, OSError, AttributeError):
        # Not in the main thread, or the platform lacks SIGTERM.
        logger.debug("Signal handlers not installed.", exc_info=True)

    try:
        if settings.console_enabled:
            run_console_loop(state)
            stop_main.set()
        else:
            logger.info("Console disabled. Running the reminder scheduler only. Press Ctrl+C to stop.")
            stop_main.wait()
    finally:
        if scheduler is not None:
            scheduler.stop()
            scheduler.join(timeout=10.0)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
