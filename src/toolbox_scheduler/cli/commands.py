# src/toolbox_scheduler/cli/commands.py

from __future__ import annotations

import contextlib
import inspect
import logging
from collections.abc import Callable
from datetime import datetime
from typing import cast

from ..core.state import AppState
from ..delivery.channels import format_timestamp
from ..delivery.sms_gateway import CARRIER_GATEWAYS
from ..tasks.errors import SchedulerError, TaskNotFoundError
from ..tasks.task_models import (
    EmailConfig,
    ReminderType,
    SmsConfig,
    Task,
    TaskPriority,
    TaskStatus,
)
from ..tasks.task_scheduler import run_reminder_cycle

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d %H:%M"


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except Exception:
            nparams = 3

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, handler)
                return h3(state, args, emit)
            h2 = cast(CommandHandler2, handler)
            return h2(state, args)
        except SchedulerError as e:
            # NotFound / configuration problems are status messages, never fatal.
            return f"Error: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- helpers ----


def _parse_id(args: list[str], usage: str) -> int:
    if not args:
        raise ValueError(usage)
    try:
        return int(args[0].lstrip("#"))
    except ValueError:
        raise ValueError(usage) from None


def _parse_when(day: str, clock: str) -> int:
    return int(datetime.strptime(f"{day} {clock}", DATE_FORMAT).timestamp())


def _task_line(task: Task, max_retries: int) -> str:
    marks = ""
    if task.reminders:
        states = [r.state(max_retries).value for r in task.reminders]
        marks = f" [reminders: {', '.join(states)}]"
    tags = f" #{' #'.join(task.tags)}" if task.tags else ""
    return (
        f"#{task.id} {task.status.value:<11} {task.priority.value:<6} "
        f"due {format_timestamp(task.due_date)}  {task.title}{tags}{marks}"
    )


def _usage_errors(fn: CommandHandler) -> CommandHandler:
    """Turn ValueError raised by argument parsing into the usage text."""

    def wrapper(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
        try:
            return cast(CommandHandler3, fn)(state, args, emit)
        except ValueError as e:
            return str(e)

    wrapper.__name__ = getattr(fn, "__name__", "command")
    wrapper.__doc__ = fn.__doc__
    return wrapper


# ---- commands ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    settings = state.settings
    with state.lock:
        store = state.task_store
        total = store.count_tasks()
        pending = len(store.get_pending_tasks())
        exhausted = len(store.list_exhausted_reminders())
        email = store.email_config
        sms = store.sms_config
    email_s = f"{email.email} via {email.smtp_server}:{email.smtp_port}" if email else "not set"
    sms_s = f"{sms.carrier} ({'on' if sms.enabled else 'off'})" if sms else "not set"
    return (
        "Status:\n"
        f"  Tasks: {total} ({pending} pending)\n"
        f"  Reminder check interval: {getattr(settings, 'reminder_check_interval_seconds', '?')}s\n"
        f"  Email: {email_s}\n"
        f"  SMS: {sms_s}\n"
        f"  Failed reminders: {exhausted}"
    )


@_usage_errors
def cmd_add(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /add YYYY-MM-DD HH:MM <priority> <title> [| description] [#tag ...]
    """
    usage = "Usage: /add YYYY-MM-DD HH:MM <low|medium|high|urgent> <title> [| description] [#tag ...]"
    if len(args) < 4:
        raise ValueError(usage)

    try:
        due = _parse_when(args[0], args[1])
    except ValueError:
        raise ValueError(usage) from None

    priority = TaskPriority.from_raw(args[2])
    words = [w for w in args[3:] if not w.startswith("#")]
    tags = [w[1:] for w in args[3:] if w.startswith("#") and len(w) > 1]
    title, _, description = " ".join(words).partition("|")
    if not title.strip():
        raise ValueError(usage)

    with state.lock:
        task_id = state.task_store.add_task(title, description, due, priority, tags)
    return f"Task #{task_id} added (due {format_timestamp(due)})."


def cmd_list(state: AppState, args: list[str]) -> str:
    """
    /list           -> all tasks by due date
    /list <status>  -> only tasks with that status
    """
    with state.lock:
        store = state.task_store
        if args:
            tasks = store.get_tasks_by_status(TaskStatus.from_raw(args[0]))
        else:
            tasks = store.get_all_tasks()
        lines = [_task_line(t, store.retry_policy.max_retries) for t in sorted(tasks, key=lambda t: t.due_date)]
    if not lines:
        return "No tasks."
    return "\n".join(lines)


@_usage_errors
def cmd_show(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    task_id = _parse_id(args, "Usage: /show <task_id>")
    with state.lock:
        task = state.task_store.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        max_retries = state.task_store.retry_policy.max_retries
        lines = [
            _task_line(task, max_retries),
            f"  {task.description}" if task.description else "  (no description)",
            f"  created {format_timestamp(task.created_at)}, updated {format_timestamp(task.updated_at)}",
        ]
        for i, r in enumerate(task.reminders, start=1):
            err = f" error: {r.error_message}" if r.error_message else ""
            lines.append(
                f"  reminder {i}: {r.reminder_type.value} at {format_timestamp(r.reminder_time)}"
                f" [{r.state(max_retries).value}, attempts {r.retry_count}]{err}"
            )
    return "\n".join(lines)


@_usage_errors
def cmd_remind(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /remind <id> <type>                  -> default advance before the due date
    /remind <id> <type> <minutes>        -> N minutes before the due date
    /remind <id> <type> YYYY-MM-DD HH:MM -> at an explicit time
    """
    usage = (
        "Usage: /remind <task_id> <email|notification|sms|both|all> "
        "[minutes_before | YYYY-MM-DD HH:MM]"
    )
    task_id = _parse_id(args, usage)
    if len(args) < 2 or args[1].lower() not in {t.value for t in ReminderType}:
        raise ValueError(usage)
    reminder_type = ReminderType(args[1].lower())
    rest = args[2:]

    with state.lock:
        task = state.task_store.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)

        if len(rest) >= 2:
            try:
                when = _parse_when(rest[0], rest[1])
            except ValueError:
                raise ValueError(usage) from None
        else:
            default_minutes = int(getattr(state.settings, "default_reminder_advance_minutes", 15))
            try:
                minutes = int(rest[0]) if rest else default_minutes
            except ValueError:
                raise ValueError(usage) from None
            when = task.due_date - max(0, minutes) * 60

        state.task_store.add_reminder_to_task(task_id, when, reminder_type)
    return f"{reminder_type.value.capitalize()} reminder for task #{task_id} set for {format_timestamp(when)}."


def _status_command(status: TaskStatus, verb: str) -> CommandHandler:
    @_usage_errors
    def handler(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
        task_id = _parse_id(args, f"Usage: /{verb} <task_id>")
        with state.lock:
            state.task_store.set_task_status(task_id, status)
        return f"Task #{task_id} marked as {status.value}."

    return handler


@_usage_errors
def cmd_delete(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    task_id = _parse_id(args, "Usage: /delete <task_id>")
    with state.lock:
        state.task_store.delete_task(task_id)
    return f"Task #{task_id} deleted."


def cmd_search(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /search <text>"
    with state.lock:
        store = state.task_store
        found = store.search_tasks(" ".join(args))
        lines = [_task_line(t, store.retry_policy.max_retries) for t in sorted(found, key=lambda t: t.due_date)]
    return "\n".join(lines) if lines else "No matching tasks."


@_usage_errors
def cmd_email(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /email <address> <smtp_server> <port> <username> <password>
    """
    usage = "Usage: /email <address> <smtp_server> <port> <username> <password>"
    if len(args) < 5:
        raise ValueError(usage)
    try:
        port = int(args[2])
    except ValueError:
        raise ValueError(usage) from None
    if not 0 < port < 65536:
        return f"Invalid SMTP port: {port}"

    config = EmailConfig(
        email=args[0],
        smtp_server=args[1],
        smtp_port=port,
        username=args[3],
        password=" ".join(args[4:]),
    )
    with state.lock:
        state.task_store.set_email_config(config)
    return f"Email configuration saved ({config.email} via {config.smtp_server}:{port})."


@_usage_errors
def cmd_sms(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /sms <phone> <carrier> [on|off]
    """
    usage = f"Usage: /sms <phone> <carrier> [on|off]  (carriers: {', '.join(sorted(CARRIER_GATEWAYS))})"
    if len(args) < 2:
        raise ValueError(usage)
    enabled = not (len(args) > 2 and args[2].lower() in ("off", "0", "false", "no"))
    config = SmsConfig(phone_number=args[0], carrier=args[1].lower(), enabled=enabled)
    with state.lock:
        state.task_store.set_sms_config(config)
    note = "" if config.carrier in CARRIER_GATEWAYS else " Warning: unknown carrier, SMS will fail."
    return f"SMS configuration saved ({config.carrier}, {'on' if enabled else 'off'}).{note}"


def cmd_testemail(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    with state.lock:
        outgoing = state.task_store.compose_test_email()

    if emit:
        with contextlib.suppress(Exception):
            emit(f"[EMAIL] Connecting to {outgoing.config.smtp_server}:{outgoing.config.smtp_port}...")

    # SMTP runs without the lock; test_email_config adds the provider hint on failure.
    try:
        state.task_store.test_email_config(outgoing)
    except SchedulerError as e:
        return f"Test email failed: {e}"
    return f"Test email sent to {outgoing.recipient}."


def cmd_failed(state: AppState, args: list[str]) -> str:
    with state.lock:
        exhausted = state.task_store.list_exhausted_reminders()
        lines = [
            f"#{task.id} {task.title}: reminder {index + 1} ({r.reminder_type.value}) "
            f"gave up after {r.retry_count} attempts: {r.error_message or 'unknown error'}"
            for task, index, r in exhausted
        ]
    if not lines:
        return "No failed reminders."
    return "Reminders that could not be delivered:\n" + "\n".join(lines)


def cmd_check(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if emit:
        with contextlib.suppress(Exception):
            emit("[REMINDERS] Checking now...")
    report = run_reminder_cycle(state.task_store, state.lock)
    if not report.triggered:
        return "No reminders due."
    return (
        f"{report.triggered} reminder deliveries triggered: "
        f"{report.delivered} delivered, {report.notified} notifications, "
        f"{report.failed} failed, {report.skipped} skipped."
    )


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show task counts and delivery configuration.")
registry.register("add", cmd_add, help_text="Add a task: /add YYYY-MM-DD HH:MM <priority> <title> [| description] [#tag].")
registry.register("list", cmd_list, help_text="List tasks by due date: /list [status].", aliases=["ls"])
registry.register("show", cmd_show, help_text="Show a task with its reminders: /show <id>.")
registry.register("remind", cmd_remind, help_text="Attach a reminder: /remind <id> <type> [minutes | date time].")
registry.register("done", _status_command(TaskStatus.COMPLETED, "done"), help_text="Complete a task: /done <id>.")
registry.register("start", _status_command(TaskStatus.IN_PROGRESS, "start"), help_text="Start a task: /start <id>.")
registry.register("cancel", _status_command(TaskStatus.CANCELLED, "cancel"), help_text="Cancel a task: /cancel <id>.")
registry.register("delete", cmd_delete, help_text="Delete a task and its reminders: /delete <id>.", aliases=["rm"])
registry.register("search", cmd_search, help_text="Search title, description and tags: /search <text>.")
registry.register("email", cmd_email, help_text="Configure email: /email <address> <server> <port> <user> <password>.")
registry.register("sms", cmd_sms, help_text="Configure SMS gateway: /sms <phone> <carrier> [on|off].")
registry.register("testemail", cmd_testemail, help_text="Send a test email with the current configuration.")
registry.register("failed", cmd_failed, help_text="List reminders that ran out of retries.")
registry.register("check", cmd_check, help_text="Run a reminder check now.")
