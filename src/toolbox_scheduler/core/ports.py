# src/toolbox_scheduler/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the scheduler core.

The store and the scheduler loop depend on these Protocols instead of concrete
SMTP / desktop notification code. This keeps transports swappable and makes
testing easier.
"""

from email.message import EmailMessage
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from ..tasks.task_models import EmailConfig


class Notifier(Protocol):
    """Local desktop notification (fire-and-forget)."""

    def notify(self, title: str, body: str, *, timeout: float) -> None: ...


class MailTransport(Protocol):
    """
    Sends one composed message through the SMTP server described by config.

    Implementations pick the TLS mode / auth mechanism for the server and
    raise DeliveryError on any failure.
    """

    def send(self, message: EmailMessage, config: EmailConfig) -> None: ...
