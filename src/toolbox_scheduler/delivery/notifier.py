# src/toolbox_scheduler/delivery/notifier.py

from __future__ import annotations

import logging

from plyer import notification

from ..tasks.errors import DeliveryError

logger = logging.getLogger(__name__)


class DesktopNotifier:
    """OS desktop notifications through plyer."""

    def __init__(self, *, app_name: str = "toolbox") -> None:
        self._app_name = app_name

    def notify(self, title: str, body: str, *, timeout: float) -> None:
        try:
            notification.notify(
                title=title,
                message=body or title,
                app_name=self._app_name,
                timeout=int(timeout),
            )
        except Exception as e:
            # plyer raises NotImplementedError (or backend errors) on headless hosts.
            raise DeliveryError(f"Desktop notification failed: {e}") from e
        logger.debug("Desktop notification shown title=%r", title)
