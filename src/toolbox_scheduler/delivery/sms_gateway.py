# src/toolbox_scheduler/delivery/sms_gateway.py

from __future__ import annotations

SMS_MAX_LENGTH = 160

CARRIER_GATEWAYS: dict[str, str] = {
    "att": "txt.att.net",
    "at&t": "txt.att.net",
    "verizon": "vtext.com",
    "tmobile": "tmomail.net",
    "t-mobile": "tmomail.net",
    "sprint": "messaging.sprintpcs.com",
    "boost": "myboostmobile.com",
    "cricket": "sms.cricketwireless.net",
    "metropcs": "mymetropcs.com",
    "virgin": "vmobl.com",
    "uscellular": "email.uscc.net",
}


def get_sms_gateway_email(phone_number: str, carrier: str) -> str | None:
    """
    Email-to-SMS gateway address for a phone number, e.g.
    ("555-123-4567", "verizon") -> "5551234567@vtext.com".

    Returns None for unknown carriers.
    """
    domain = CARRIER_GATEWAYS.get((carrier or "").strip().lower())
    if domain is None:
        return None
    digits = "".join(ch for ch in phone_number or "" if ch.isdigit())
    return f"{digits}@{domain}"


def truncate_sms(message: str, limit: int = SMS_MAX_LENGTH) -> str:
    if len(message) <= limit:
        return message
    return message[: limit - 3] + "..."
