# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
SMTP credentials are NOT environment variables: set them with /email in the console,
they are stored in <tasks dir>/email_config.json (file mode 0600).

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "TOOLBOX_APP_NAME": "App display name, also used as the desktop notification app name (default: toolbox).",
    "TOOLBOX_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Switches
    "TOOLBOX_CONSOLE_ENABLED": "Run the interactive console (true/false, default true).",
    "TOOLBOX_SCHEDULER_ENABLED": "Run the background reminder scheduler (true/false, default true).",
    # Paths (gitignored)
    "TOOLBOX_DATA_DIR": "Local data directory (default: .local/toolbox).",
    "TOOLBOX_TASKS_PATH": "Tasks JSON file (default: <data_dir>/tasks.json). Email/SMS configs live next to it.",
    "TOOLBOX_LOG_DIR": "Log directory (default: <data_dir>/logs).",
    # Reminders
    "TOOLBOX_REMINDER_CHECK_INTERVAL_SECONDS": "Seconds between reminder checks (default: 30, minimum 10).",
    "TOOLBOX_REMINDER_MAX_RETRIES": "Delivery attempts per reminder before giving up (default: 3).",
    "TOOLBOX_REMINDER_RETRY_DELAY_SECONDS": "Minimum gap between two attempts of one reminder (default: 300).",
    "TOOLBOX_DEFAULT_REMINDER_ADVANCE_MINUTES": "Default /remind lead time before the due date (default: 15).",
    # Delivery
    "TOOLBOX_EMAIL_TIMEOUT_SECONDS": "SMTP connect/operation timeout (default: 30).",
    "TOOLBOX_NOTIFICATION_TIMEOUT_SECONDS": "Desktop notification display time (default: 5).",
}
