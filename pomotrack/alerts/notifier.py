"""
Tray Notifier — desktop notifications through the system tray icon.

Implements the notifier interface the timer expects: notify(title, body)
and cancel(). Delivery is best-effort.
"""

from __future__ import annotations

import logging
from typing import Optional

from PySide6.QtWidgets import QSystemTrayIcon

logger = logging.getLogger(__name__)

MESSAGE_TIMEOUT_MS = 8000


class TrayNotifier:
    """Shows timer alerts as tray balloon messages."""

    def __init__(self, tray: QSystemTrayIcon, timeout_ms: int = MESSAGE_TIMEOUT_MS) -> None:
        self.tray = tray
        self.timeout_ms = timeout_ms
        self.last_message: Optional[tuple] = None

    def notify(self, title: str, body: str) -> None:
        if not QSystemTrayIcon.supportsMessages():
            logger.warning("Tray messages not supported; dropped %r.", title)
            return
        self.tray.showMessage(
            title, body, QSystemTrayIcon.MessageIcon.Information, self.timeout_ms
        )
        self.last_message = (title, body)
        logger.info("Notified: %s", title)

    def cancel(self) -> None:
        # Balloons are delivered immediately; nothing is ever pending.
        self.last_message = None
