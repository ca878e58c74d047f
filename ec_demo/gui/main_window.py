# ec_demo/gui/main_window.py

import logging
import sys
from pathlib import Path
from typing import Optional

from PySide6.QtCore import QTimer, Slot
from PySide6.QtGui import QKeySequence, QShortcut
from PySide6.QtWidgets import QApplication, QMainWindow, QMessageBox, QTabWidget

from .tabs.debug_tab import DebugTab
from .tabs.thermal_tab import ThermalTab
from ec_demo.core.config_manager import DEFAULT_CONFIG_PATH, AppConfig, load_config
from ec_demo.core.drivers import create_driver
from ec_demo.core.errors import LifecycleError, ReceiverDisconnected
from ec_demo.core.notifications import NotificationService
from ec_demo.core.sources import MockSource, Source
from ec_demo.utils.logger import setup_logging

logger = logging.getLogger(__name__)


class MainWindow(QMainWindow):
    """
    The dashboard shell: a tab per module and a single timer that ticks them.
    The window borrows the notification service; whoever created it closes it.
    """

    def __init__(self, settings: AppConfig, service: NotificationService, source: Source):
        super().__init__()
        self.setWindowTitle("EC Demo")
        self.setGeometry(100, 100, 1000, 700)

        self.tab_widget = QTabWidget()
        self.debug_tab = DebugTab(source, service, bin_path=settings.bin_path, max_logs=settings.max_logs)
        self.thermal_tab = ThermalTab(source, max_samples=settings.max_samples)
        self.tabs = [self.debug_tab, self.thermal_tab]

        self.tab_widget.addTab(self.debug_tab, "Debug")
        self.tab_widget.addTab(self.thermal_tab, "Thermal")
        self.setCentralWidget(self.tab_widget)
        self.statusBar().showMessage(self.debug_tab.title)

        self.debug_tab.title_changed.connect(self.statusBar().showMessage)

        quit_shortcut = QShortcut(QKeySequence("Esc"), self)
        quit_shortcut.activated.connect(self.close)

        self.timer = QTimer(self)
        self.timer.setInterval(settings.tick_ms)
        self.timer.timeout.connect(self.tick)
        self.fatal_error: Optional[ReceiverDisconnected] = None
        self.timer.start()

    @Slot()
    def tick(self):
        """
        Updates every tab, visible or not, so no history is missed.

        Losing a notification worker is fatal: the ticks stop and the event
        loop ends with status 1.
        """
        try:
            for tab in self.tabs:
                tab.update_tab()
        except ReceiverDisconnected as e:
            logger.critical(f"Notification stream lost: {e}")
            self.timer.stop()
            self.fatal_error = e
            QApplication.exit(1)

    def closeEvent(self, event):
        self.timer.stop()
        for tab in self.tabs:
            tab.close_tab()
        logger.info("Main window closed.")
        event.accept()


def run_gui(bin_path: Optional[Path] = None, driver: Optional[str] = None,
            config_path: Path = DEFAULT_CONFIG_PATH):
    """
    Entry point for the dashboard: logging, settings, the notification
    service, then the Qt event loop.
    """
    setup_logging()
    settings = load_config(config_path).with_overrides(bin_path=bin_path, driver=driver)

    app = QApplication.instance() or QApplication(sys.argv)

    try:
        service = NotificationService(create_driver(settings.driver), queue_capacity=settings.queue_capacity)
    except LifecycleError as e:
        logger.critical(f"Could not start the notification service: {e}")
        QMessageBox.critical(None, "Startup Failed", str(e))
        sys.exit(1)

    with service:
        window = MainWindow(settings, service, MockSource())
        window.show()
        status = app.exec()

    sys.exit(status)
