"""
Task subsystem.

Components:
- task_models.py: data structures (Task, Reminder, configs, enums)
- errors.py: exception types raised by the store and delivery code
- task_store.py: JSON-file storage + CRUD/query helpers + delivery config
- reminder_trigger.py: due/retry-eligible reminder scan
- task_scheduler.py: polling loop that dispatches triggered reminders
"""
