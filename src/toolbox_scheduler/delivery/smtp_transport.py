# src/toolbox_scheduler/delivery/smtp_transport.py

from __future__ import annotations

import logging
import smtplib
import ssl
from email.message import EmailMessage

from ..tasks.errors import DeliveryError
from ..tasks.task_models import EmailConfig
from .providers import TransportConfig, classify_provider, transport_for

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


class SmtpMailTransport:
    """
    Blocking SMTP sender (stdlib smtplib).

    The TLS mode and auth mechanism come from the provider strategy table in
    providers.py. Every connection uses the same connect/operation timeout.
    Never call this while holding the store lock.
    """

    def __init__(self, *, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        self._timeout = float(timeout)

    def send(self, message: EmailMessage, config: EmailConfig) -> None:
        transport = transport_for(config.smtp_server)
        logger.debug(
            "SMTP send host=%s port=%s provider=%s starttls=%s user=%s",
            config.smtp_server,
            config.smtp_port,
            classify_provider(config.smtp_server).value,
            transport.starttls,
            config.username,
        )

        try:
            with self._connect(config, transport) as server:
                if config.username:
                    self._login(server, config, transport)
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            raise DeliveryError(
                f"SMTP delivery via {config.smtp_server}:{config.smtp_port} failed: {e}"
            ) from e

    def _connect(self, config: EmailConfig, transport: TransportConfig) -> smtplib.SMTP:
        context = ssl.create_default_context()
        if not transport.starttls:
            return smtplib.SMTP_SSL(
                config.smtp_server, config.smtp_port, timeout=self._timeout, context=context
            )

        server = smtplib.SMTP(config.smtp_server, config.smtp_port, timeout=self._timeout)
        try:
            server.ehlo()
            server.starttls(context=context)
            server.ehlo()
        except BaseException:
            server.close()
            raise
        return server

    @staticmethod
    def _login(server: smtplib.SMTP, config: EmailConfig, transport: TransportConfig) -> None:
        mechanism = transport.auth_mechanism
        if mechanism is None:
            server.login(config.username, config.password)
            return

        # smtplib.login() negotiates the mechanism; forcing one goes through auth().
        server.ehlo_or_helo_if_needed()
        server.user, server.password = config.username, config.password
        authobject = getattr(server, f"auth_{mechanism.lower().replace('-', '_')}")
        server.auth(mechanism, authobject)
