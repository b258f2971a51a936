# src/toolbox_scheduler/delivery/providers.py

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class MailProvider(StrEnum):
    GMAIL = "gmail"
    OUTLOOK = "outlook"
    YAHOO = "yahoo"
    GENERIC = "generic"


@dataclass(slots=True, frozen=True)
class TransportConfig:
    """
    How to talk to a provider's SMTP server.

    starttls=False means implicit TLS (SMTP over SSL from the first byte).
    auth_mechanism forces a single SASL mechanism; None lets smtplib pick.
    """

    starttls: bool
    auth_mechanism: str | None = None


TRANSPORTS: dict[MailProvider, TransportConfig] = {
    MailProvider.GMAIL: TransportConfig(starttls=True, auth_mechanism="PLAIN"),
    MailProvider.OUTLOOK: TransportConfig(starttls=True),
    MailProvider.YAHOO: TransportConfig(starttls=False),
    MailProvider.GENERIC: TransportConfig(starttls=False),
}

TROUBLESHOOTING: dict[MailProvider, tuple[str, ...]] = {
    MailProvider.GMAIL: (
        "If 2FA is enabled you must use an App Password (https://myaccount.google.com/apppasswords).",
        "Without 2FA, 'Less secure app access' must be ON (https://myaccount.google.com/lesssecureapps).",
        "Gmail often blocks unusual sign-in attempts: check your inbox for security alerts.",
        "Try testing with another email provider like Outlook or Yahoo.",
    ),
    MailProvider.OUTLOOK: (
        "Use your full Outlook/Hotmail email address as the username.",
        "If 2FA is enabled you might need an app password.",
        "Try smtp-mail.outlook.com with port 587.",
    ),
    MailProvider.YAHOO: (
        "Use your full Yahoo email address as the username.",
        "You might need to create an app password if 2FA is enabled.",
        "Try smtp.mail.yahoo.com with port 465.",
    ),
    MailProvider.GENERIC: (),
}


def classify_provider(smtp_server: str) -> MailProvider:
    host = (smtp_server or "").strip().lower()
    if "gmail" in host:
        return MailProvider.GMAIL
    if "outlook" in host or "hotmail" in host:
        return MailProvider.OUTLOOK
    if "yahoo" in host:
        return MailProvider.YAHOO
    return MailProvider.GENERIC


def transport_for(smtp_server: str) -> TransportConfig:
    return TRANSPORTS[classify_provider(smtp_server)]


def troubleshooting_hint(smtp_server: str) -> str:
    """Multi-line troubleshooting text for the server's provider ('' for generic servers)."""
    provider = classify_provider(smtp_server)
    tips = TROUBLESHOOTING[provider]
    if not tips:
        return ""
    lines = [f"{provider.value.upper()} TROUBLESHOOTING:"]
    lines.extend(f"{i}. {tip}" for i, tip in enumerate(tips, start=1))
    return "\n".join(lines)
