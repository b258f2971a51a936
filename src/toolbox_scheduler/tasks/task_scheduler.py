# src/toolbox_scheduler/tasks/task_scheduler.py

from __future__ import annotations

"""
Reminder scheduler.

A small polling loop that, every interval:
- scans the store for due reminders (store lock held briefly),
- composes each deferred email/SMS under the lock,
- sends it with the lock released (SMTP can be slow or hang until timeout),
- commits success/failure back into the store under the lock.

One reminder failing never stops the cycle or the loop. Desktop notifications
found by the scan are shown right after it, with the lock released.
"""

import asyncio
import contextlib
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..delivery.channels import OutgoingMail, ReminderChannels
from .errors import TaskNotFoundError
from .task_models import DeliveryChannel, TriggeredReminder
from .task_store import TaskStore

if TYPE_CHECKING:
    from ..core.state import AppState

logger = logging.getLogger(__name__)

CHECK_INTERVAL_SECONDS = 30.0


@dataclass(slots=True)
class CycleReport:
    triggered: int = 0
    notified: int = 0
    delivered: int = 0
    failed: int = 0
    skipped: int = 0


def _group_deferred(
    triggered: list[TriggeredReminder],
) -> dict[tuple[int, int], list[TriggeredReminder]]:
    """Deferred legs keyed by (task_id, reminder_index), in trigger order."""
    groups: dict[tuple[int, int], list[TriggeredReminder]] = {}
    for item in triggered:
        if item.reminder_index is None:
            continue
        groups.setdefault((item.task_id, item.reminder_index), []).append(item)
    return groups


def _compose(store: TaskStore, item: TriggeredReminder) -> OutgoingMail:
    if item.channel is DeliveryChannel.EMAIL:
        return store.compose_reminder_email(item.task_id)
    if item.channel is DeliveryChannel.SMS:
        return store.compose_sms_reminder(item.task_id, f"Task Reminder: {item.title}")
    raise ValueError(f"channel {item.channel.value} has no deferred delivery")


def run_reminder_cycle(
    store: TaskStore,
    lock: threading.Lock,
    channels: ReminderChannels | None = None,
    *,
    now: int | None = None,
) -> CycleReport:
    """
    One trigger cycle: scan, dispatch every deferred leg, commit results.

    Legs of the same reminder (email + sms of an "all" reminder) are committed
    together: the reminder is marked sent only when every leg went through.
    Legs that did go through are recorded on a failure and not sent again.
    Desktop notifications are shown after the scan, outside the lock.
    """
    channels = channels or store.channels
    report = CycleReport()

    with lock:
        scan = store.scan_due_reminders(now)
    store.show_notifications(scan.notifications)
    triggered = scan.triggered

    report.triggered = len(triggered)
    report.notified = sum(1 for t in triggered if t.channel is DeliveryChannel.NOTIFICATION)

    for (task_id, index), legs in _group_deferred(triggered).items():
        errors: list[str] = []
        delivered: list[DeliveryChannel] = []
        task_gone = False

        for leg in legs:
            logger.info("Sending %s reminder for task %s", leg.channel.value, task_id)
            try:
                with lock:
                    outgoing = _compose(store, leg)
                channels.send_mail(outgoing)
                delivered.append(leg.channel)
            except TaskNotFoundError:
                logger.info("Task %s was deleted before its reminder went out; skipping", task_id)
                task_gone = True
                break
            except Exception as e:
                logger.warning("Failed to send %s for task %s: %s", leg.channel.value, task_id, e)
                errors.append(str(e))

        if task_gone:
            report.skipped += 1
            continue

        try:
            with lock:
                if errors:
                    store.record_reminder_failure(task_id, index, "; ".join(errors), delivered)
                else:
                    store.mark_reminder_as_sent(task_id, index)
        except TaskNotFoundError:
            logger.info("Task %s was deleted while its reminder was in flight", task_id)
            report.skipped += 1
            continue
        except Exception:
            logger.exception("Failed to commit reminder result task_id=%s index=%s", task_id, index)
            report.failed += 1
            continue

        if errors:
            report.failed += 1
        else:
            report.delivered += 1

    if report.triggered:
        logger.info(
            "Reminder cycle: triggered=%s delivered=%s failed=%s skipped=%s",
            report.triggered,
            report.delivered,
            report.failed,
            report.skipped,
        )
    return report


async def run_reminder_scheduler(
        store: TaskStore,
        lock: threading.Lock,
        channels: ReminderChannels | None = None,
        *,
        interval_seconds: float = CHECK_INTERVAL_SECONDS,
        stop_event: asyncio.Event | None = None,
        on_cycle: Callable[[CycleReport], None] | None = None,
) -> None:
    """
    Perpetual polling scheduler.

    Every interval_seconds: run one reminder cycle in a worker thread, so the
    blocking SMTP calls never stall the event loop.

    To stop the scheduler, set stop_event or cancel the coroutine/task.
    """
    sleep_s = max(0.01, float(interval_seconds))
    stop = stop_event if stop_event is not None else asyncio.Event()

    logger.info("Reminder scheduler started (interval=%ss)", sleep_s)
    while not stop.is_set():
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(stop.wait(), timeout=sleep_s)
        if stop.is_set():
            break

        try:
            report = await asyncio.to_thread(run_reminder_cycle, store, lock, channels)
        except Exception:
            logger.exception("Reminder cycle failed")
            continue

        if on_cycle is not None:
            try:
                on_cycle(report)
            except Exception:
                logger.exception("on_cycle callback failed")

    logger.info("Reminder scheduler stopped")


@dataclass(slots=True)
class SchedulerBackgroundRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except Exception:
            logger.debug("Failed to signal scheduler stop.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)

    def is_alive(self) -> bool:
        return self.thread.is_alive()


def start_scheduler_in_background(
    state: AppState,
    *,
    on_cycle: Callable[[CycleReport], None] | None = None,
) -> SchedulerBackgroundRunner | None:
    """
    Start the reminder scheduler in a background thread with its own event loop,
    so the blocking console REPL can run in the main thread.
    """
    interval = float(getattr(state.settings, "reminder_check_interval_seconds", CHECK_INTERVAL_SECONDS))

    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(
                run_reminder_scheduler(
                    state.task_store,
                    state.lock,
                    interval_seconds=interval,
                    stop_event=stop_event,
                    on_cycle=on_cycle,
                )
            )
        finally:
            with contextlib.suppress(Exception):
                loop.run_until_complete(loop.shutdown_default_executor())
            with contextlib.suppress(Exception):
                loop.close()

    t = threading.Thread(target=runner, name="reminder-scheduler", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Scheduler thread did not initialize properly.")
        return None

    logger.info("Reminder scheduler background thread started.")
    return SchedulerBackgroundRunner(thread=t, loop=loop, stop_event=stop_event)
