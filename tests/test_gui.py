# tests/test_gui.py
import os

# Widgets are built without a display.
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PySide6.QtCore import QTimer
from PySide6.QtWidgets import QApplication

from conftest import FastDriver
from ec_demo.core.config_manager import AppConfig
from ec_demo.core.errors import ReceiverDisconnected
from ec_demo.core.notifications import NotificationService
from ec_demo.core.sources import MockSource
from ec_demo.gui.main_window import MainWindow


# pytest fixture to create a QApplication instance, required for any Qt widget tests.
@pytest.fixture(scope="session")
def qapp():
    """Creates a QApplication instance for the test session."""
    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    return app


@pytest.fixture
def window(qapp, mock_service):
    win = MainWindow(AppConfig(tick_ms=50), mock_service, MockSource())
    yield win
    win.close()


def test_main_window_creation(window):
    assert window.windowTitle() == "EC Demo"
    assert window.tab_widget.count() == 2
    assert window.tab_widget.tabText(0) == "Debug"
    assert window.tab_widget.tabText(1) == "Thermal"
    assert window.debug_tab.title == "Debug Information (None)"
    assert window.timer.interval() == 50


def test_tick_samples_temperature(window):
    window.tick()
    window.tick()
    assert len(window.thermal_tab.samples) == 2
    assert window.thermal_tab.reading_label.text().startswith("Current:")


def test_command_box_attaches_elf(window, mock_elf_path):
    line_edit = window.debug_tab.command_input.line_edit
    line_edit.setText(f"attach {mock_elf_path}")
    line_edit.returnPressed.emit()

    assert line_edit.text() == ""
    assert window.debug_tab.logs_group.title() == "Debug Information (mock-bin)"
    assert window.debug_tab.session.receiver.running


def test_close_releases_receivers(window):
    receiver = window.debug_tab.session.receiver
    window.close()
    assert receiver.closed


class DeadDriver(FastDriver):
    def wait(self, event_code: int) -> int:
        raise RuntimeError("driver went away")


def test_lost_worker_ends_event_loop(qapp, mock_elf_path):
    with NotificationService(DeadDriver()) as service:
        win = MainWindow(AppConfig(tick_ms=20, bin_path=mock_elf_path), service, MockSource())
        assert win.debug_tab.session.receiver.running

        # Fallback so a missed disconnect fails the test instead of hanging it.
        QTimer.singleShot(3000, lambda: qapp.exit(0))
        status = qapp.exec()
        win.close()

    assert status == 1
    assert not win.timer.isActive()
    assert isinstance(win.fatal_error, ReceiverDisconnected)
