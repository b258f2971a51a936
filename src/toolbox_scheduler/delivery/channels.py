# src/toolbox_scheduler/delivery/channels.py

from __future__ import annotations

"""
Delivery channels for reminders.

Three independently failable capabilities:
- notify(): local desktop notification (fire-and-forget, never retried)
- send_mail(): a composed message through the provider-aware SMTP transport
- send_sms(): an email to the carrier's email-to-SMS gateway, same transport

Composition (building EmailMessage objects) is kept apart from sending so the
scheduler can compose while holding the store lock and send after releasing it.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from email.message import EmailMessage
from email.utils import formataddr, parseaddr

from ..core.ports import MailTransport, Notifier
from ..tasks.errors import ConfigurationError, DeliveryError
from ..tasks.task_models import EmailConfig, SmsConfig, Task
from .providers import troubleshooting_hint
from .sms_gateway import get_sms_gateway_email, truncate_sms

logger = logging.getLogger(__name__)

NOTIFICATION_TIMEOUT_SECONDS = 5.0


@dataclass(slots=True, frozen=True)
class OutgoingMail:
    """A composed message plus the SMTP settings it must be sent with."""

    message: EmailMessage
    config: EmailConfig
    kind: str = "email"

    @property
    def recipient(self) -> str:
        return str(self.message["To"])


def format_timestamp(ts: int) -> str:
    try:
        return datetime.fromtimestamp(int(ts)).astimezone().strftime("%Y-%m-%d %H:%M:%S")
    except (OverflowError, OSError, ValueError):
        return "Invalid date"


def require_email_config(config: EmailConfig | None) -> EmailConfig:
    if config is None:
        raise ConfigurationError("Email configuration not set")
    if not config.is_complete():
        raise ConfigurationError("Email configuration is incomplete. Please check your settings.")
    if not 0 < int(config.smtp_port) < 65536:
        raise ConfigurationError(f"Invalid SMTP port: {config.smtp_port}")
    return config


def _address(raw: str, role: str) -> str:
    _, addr = parseaddr(raw or "")
    local, sep, domain = addr.partition("@")
    if not sep or not local or "." not in domain:
        raise DeliveryError(f"Invalid {role} email: {raw!r}")
    return addr


def _message(sender_name: str, config: EmailConfig, to: str, subject: str, body: str) -> EmailMessage:
    msg = EmailMessage()
    msg["From"] = formataddr((sender_name, _address(config.email, "sender")))
    msg["To"] = _address(to, "recipient")
    msg["Subject"] = subject
    msg.set_content(body)
    return msg


def build_reminder_mail(task: Task, config: EmailConfig | None) -> OutgoingMail:
    config = require_email_config(config)
    body = (
        f"This is a reminder for your task: {task.title}\n\n"
        f"Description: {task.description}\n\n"
        f"Due: {format_timestamp(task.due_date)}\n\n"
        f"Priority: {task.priority.value.capitalize()}"
    )
    if task.tags:
        body += f"\n\nTags: {', '.join(task.tags)}"
    msg = _message("Task Scheduler", config, config.email, f"Reminder: {task.title}", body)
    return OutgoingMail(message=msg, config=config)


def build_test_mail(config: EmailConfig | None) -> OutgoingMail:
    config = require_email_config(config)
    msg = _message(
        "Task Scheduler",
        config,
        config.email,
        "Test Email from Task Scheduler",
        "This is a test email to verify your email configuration is working correctly.",
    )
    return OutgoingMail(message=msg, config=config, kind="test")


def build_sms_mail(
    sms_config: SmsConfig | None,
    email_config: EmailConfig | None,
    message: str,
) -> OutgoingMail:
    if sms_config is None:
        raise ConfigurationError("SMS configuration not set")
    if not sms_config.enabled:
        raise ConfigurationError("SMS is disabled in configuration")
    if email_config is None:
        raise ConfigurationError("Email configuration required for SMS (uses email-to-SMS gateway)")
    email_config = require_email_config(email_config)

    gateway = get_sms_gateway_email(sms_config.phone_number, sms_config.carrier)
    if gateway is None:
        raise ConfigurationError(f"Unsupported carrier: {sms_config.carrier}")

    # Gateways ignore (or reject) subjects.
    msg = _message("Task Reminder", email_config, gateway, "", truncate_sms(message))
    return OutgoingMail(message=msg, config=email_config, kind="sms")


class ReminderChannels:
    def __init__(
        self,
        notifier: Notifier,
        transport: MailTransport,
        *,
        notification_timeout: float = NOTIFICATION_TIMEOUT_SECONDS,
    ) -> None:
        self._notifier = notifier
        self._transport = transport
        self._notification_timeout = float(notification_timeout)

    def notify(self, title: str, body: str) -> None:
        self._notifier.notify(
            f"Task Reminder: {title}", body, timeout=self._notification_timeout
        )

    def send_mail(self, outgoing: OutgoingMail) -> None:
        try:
            self._transport.send(outgoing.message, outgoing.config)
        except DeliveryError as e:
            hint = troubleshooting_hint(outgoing.config.smtp_server)
            if hint:
                logger.warning("%s delivery to %s failed.\n%s", outgoing.kind, outgoing.recipient, hint)
            raise DeliveryError(f"Failed to send {outgoing.kind}: {e}") from e
        logger.info("%s sent to %s", outgoing.kind, outgoing.recipient)

    def send_sms(
        self,
        sms_config: SmsConfig | None,
        email_config: EmailConfig | None,
        message: str,
    ) -> None:
        self.send_mail(build_sms_mail(sms_config, email_config, message))
