"""
pomotrack — Pomodoro timer in the system tray
Entry point for the application.
"""

import faulthandler
import logging
import sys
from pathlib import Path

faulthandler.enable()

# Ensure pomotrack is importable
sys.path.insert(0, str(Path(__file__).resolve().parent))

from PySide6.QtWidgets import QApplication, QSystemTrayIcon

from pomotrack.ui.tray_app import TrayController


def setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler("pomotrack.log", encoding="utf-8"),
        ],
    )


def main() -> None:
    setup_logging()
    logger = logging.getLogger(__name__)
    logger.info("Starting pomotrack...")

    app = QApplication(sys.argv)
    app.setApplicationName("pomotrack")
    app.setOrganizationName("pomotrack")

    # No windows: closing a dialog must not end the app
    app.setQuitOnLastWindowClosed(False)

    if not QSystemTrayIcon.isSystemTrayAvailable():
        logger.warning("No system tray detected; the icon may not be visible.")

    controller = TrayController()  # noqa: F841  keeps the tray alive

    logger.info("Application started.")
    sys.exit(app.exec())


if __name__ == "__main__":
    main()


# ---------------------------------------------------------------------------
# Explanation (for interviews)
# ---------------------------------------------------------------------------
# What this file does:
#   The entry point. Sets up logging, creates the Qt application and hands
#   control to the tray controller.
#
# Key points:
#   - setQuitOnLastWindowClosed(False): a tray app has no main window, so
#     closing the Statistics dialog would otherwise quit the program.
#   - app.exec(): starts the Qt event loop. The 1-second QTimer ticks and
#     every menu click are processed here.
#   - Logging to both console and file: console for development, file
#     for debugging user-reported issues.
