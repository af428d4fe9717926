"""Shared fixtures for tests that need a Qt event loop."""

import os

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from PySide6.QtWidgets import QApplication


@pytest.fixture(scope="session")
def qapp():
    """One QApplication for the whole run (tray widgets need the GUI flavour)."""
    app = QApplication.instance() or QApplication([])
    yield app
