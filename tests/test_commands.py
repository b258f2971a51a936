# tests/test_commands.py

from __future__ import annotations

from datetime import datetime

from toolbox_scheduler.cli.commands import CommandRegistry, registry
from toolbox_scheduler.core.state import AppState
from toolbox_scheduler.tasks.task_models import ReminderType, TaskPriority, TaskStatus


def _ts(text: str) -> int:
    return int(datetime.strptime(text, "%Y-%m-%d %H:%M").timestamp())


def test_command_registry_routes_2_and_3_params(state) -> None:
    reg = CommandRegistry()
    called = {"h2": 0, "h3": 0}
    notes: list[str] = []

    def h2(state, args):
        called["h2"] += 1
        return "h2:" + ",".join(args)

    def h3(state, args, emit):
        called["h3"] += 1
        if emit is not None:
            emit("note")
        return "h3"

    reg.register("a", h2, "a", aliases=["alpha"])
    reg.register("b", h3, "b")

    assert reg.handle(state, "/a x y") == "h2:x,y"
    assert reg.handle(state, "/ALPHA") == "h2:"
    assert reg.handle(state, "/b", emit=notes.append) == "h3"
    assert called == {"h2": 2, "h3": 1}
    assert notes == ["note"]


def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert reg.handle(state, "hello") is None
    assert "Unknown command" in (reg.handle(state, "/nope") or "")
    assert "Empty command" in (reg.handle(state, "/") or "")


def test_help_lists_commands(state) -> None:
    text = registry.handle(state, "/help")
    for name in ("/add", "/remind", "/failed", "/testemail"):
        assert name in text


def test_add_parses_priority_description_and_tags(state: AppState) -> None:
    reply = registry.handle(state, "/add 2030-01-02 09:30 high Dentist appointment | call the clinic #health")

    assert reply.startswith("Task #1 added")
    task = state.task_store.get_task(1)
    assert task.title == "Dentist appointment"
    assert task.description == "call the clinic"
    assert task.priority is TaskPriority.HIGH
    assert task.tags == ["health"]
    assert task.due_date == _ts("2030-01-02 09:30")


def test_add_usage_errors(state: AppState) -> None:
    assert registry.handle(state, "/add tomorrow").startswith("Usage: /add")
    assert registry.handle(state, "/add 2030-13-45 09:30 high x").startswith("Usage: /add")
    assert state.task_store.count_tasks() == 0


def test_list_and_status_filter(state: AppState) -> None:
    store = state.task_store
    later = store.add_task("Later", "", _ts("2030-01-03 10:00"))
    sooner = store.add_task("Sooner", "", _ts("2030-01-01 10:00"))
    store.set_task_status(later, TaskStatus.COMPLETED)

    lines = registry.handle(state, "/list").splitlines()
    assert [line.split()[0] for line in lines] == [f"#{sooner}", f"#{later}"]
    assert registry.handle(state, "/ls completed").startswith(f"#{later}")
    assert registry.handle(state, "/list cancelled") == "No tasks."


def test_remind_default_minutes_and_explicit_time(state: AppState) -> None:
    due = _ts("2030-01-02 09:30")
    task_id = state.task_store.add_task("Dentist", "", due)

    assert "Email reminder" in registry.handle(state, f"/remind {task_id} email")
    registry.handle(state, f"/remind {task_id} sms 60")
    registry.handle(state, f"/remind {task_id} all 2030-01-01 20:00")

    reminders = state.task_store.get_task(task_id).reminders
    assert [(r.reminder_type, r.reminder_time) for r in reminders] == [
        (ReminderType.EMAIL, due - 15 * 60),
        (ReminderType.SMS, due - 60 * 60),
        (ReminderType.ALL, _ts("2030-01-01 20:00")),
    ]


def test_remind_rejects_unknown_type_and_missing_task(state: AppState) -> None:
    assert registry.handle(state, "/remind 1 pager").startswith("Usage: /remind")
    assert registry.handle(state, "/remind 99 email") == "Error: Task with ID 99 not found"


def test_status_changes_and_delete(state: AppState) -> None:
    task_id = state.task_store.add_task("t", "", 0)

    assert registry.handle(state, f"/start {task_id}") == f"Task #{task_id} marked as in_progress."
    assert registry.handle(state, f"/done #{task_id}") == f"Task #{task_id} marked as completed."
    assert state.task_store.get_task(task_id).status is TaskStatus.COMPLETED

    assert registry.handle(state, f"/rm {task_id}") == f"Task #{task_id} deleted."
    assert registry.handle(state, f"/delete {task_id}") == f"Error: Task with ID {task_id} not found"
    assert registry.handle(state, "/done abc") == "Usage: /done <task_id>"


def test_show_lists_reminder_state(state: AppState) -> None:
    task_id = state.task_store.add_task("Dentist", "call the clinic", 0)
    state.task_store.add_reminder_to_task(task_id, 0, ReminderType.EMAIL)
    state.task_store.record_reminder_failure(task_id, 0, "smtp down")

    text = registry.handle(state, f"/show {task_id}")

    assert "call the clinic" in text
    assert "reminder 1: email" in text
    assert "error: smtp down" in text


def test_search(state: AppState) -> None:
    state.task_store.add_task("Pay rent", "", 0, tags=["home"])
    assert "Pay rent" in registry.handle(state, "/search HOME")
    assert registry.handle(state, "/search nothing-here") == "No matching tasks."


def test_email_and_sms_configuration(state: AppState) -> None:
    reply = registry.handle(state, "/email me@example.com smtp.example.com 587 me@example.com app pass")
    assert reply.startswith("Email configuration saved")
    config = state.task_store.email_config
    assert config.smtp_port == 587
    assert config.password == "app pass"
    assert "app pass" not in reply

    assert registry.handle(state, "/email a b 99999 c d") == "Invalid SMTP port: 99999"

    assert registry.handle(state, "/sms 555-123-4567 Verizon").startswith("SMS configuration saved (verizon, on)")
    assert "unknown carrier" in registry.handle(state, "/sms 5551234567 pigeon off")
    assert state.task_store.sms_config.enabled is False


def test_testemail_reports_success_and_failure(state: AppState, transport, email_config) -> None:
    assert registry.handle(state, "/testemail") == "Error: Email configuration not set"

    state.task_store.set_email_config(email_config)
    notes: list[str] = []
    assert registry.handle(state, "/testemail", emit=notes.append) == "Test email sent to me@example.com."
    assert notes == ["[EMAIL] Connecting to smtp.example.com:465..."]

    transport.fail_when = lambda message: True
    assert registry.handle(state, "/testemail").startswith("Test email failed: Failed to send test")


def test_testemail_failure_carries_the_provider_hint_once(
    state: AppState, transport, email_config
) -> None:
    email_config.smtp_server = "smtp.gmail.com"
    email_config.smtp_port = 587
    state.task_store.set_email_config(email_config)
    transport.fail_when = lambda message: True

    reply = registry.handle(state, "/testemail")

    assert reply.startswith("Test email failed:")
    assert reply.count("GMAIL TROUBLESHOOTING:") == 1
    assert transport.sent == []


def test_check_runs_a_cycle_and_failed_lists_exhausted(state: AppState, transport) -> None:
    store = state.task_store
    task_id = store.add_task("Dentist", "", 0)
    store.add_reminder_to_task(task_id, 0, ReminderType.EMAIL)

    # No email configuration: the attempt fails and is recorded.
    assert "1 failed" in registry.handle(state, "/check")
    assert registry.handle(state, "/check") == "No reminders due."
    assert registry.handle(state, "/failed") == "No failed reminders."

    reminder = store.get_task(task_id).reminders[0]
    reminder.retry_count = 3
    text = registry.handle(state, "/failed")
    assert f"#{task_id} Dentist: reminder 1 (email) gave up after 3 attempts" in text
    assert "Email configuration not set" in text
    assert "Failed reminders: 1" in registry.handle(state, "/status")
