# ec_demo/gui/tabs/debug_tab.py

import logging
from pathlib import Path
from typing import Optional

from PySide6.QtCore import Qt, Signal, Slot
from PySide6.QtGui import QKeySequence, QShortcut
from PySide6.QtWidgets import QGroupBox, QVBoxLayout, QWidget

from ec_demo.core.debug_session import DebugSession
from ec_demo.core.log_view import MAX_LOGS
from ec_demo.core.notifications import NotificationService
from ec_demo.core.sources import Source
from ..log_viewer import LogViewer
from ..widgets import CommandInput

logger = logging.getLogger(__name__)


class DebugTab(QWidget):
    """
    The defmt log pane plus its command box.
    All state lives in the DebugSession; this tab only forwards input and repaints.
    """
    title_changed = Signal(str)

    def __init__(self, source: Source, service: NotificationService, bin_path: Optional[Path] = None,
                 max_logs: int = MAX_LOGS, parent=None):
        super().__init__(parent)
        self.session = DebugSession(source, service, bin_path=bin_path, max_logs=max_logs)

        main_layout = QVBoxLayout(self)
        main_layout.setContentsMargins(10, 10, 10, 10)

        self.logs_group = QGroupBox(self.session.title)
        logs_layout = QVBoxLayout(self.logs_group)
        self.log_viewer = LogViewer(self.session.log_view)
        logs_layout.addWidget(self.log_viewer)

        self.command_input = CommandInput()

        main_layout.addWidget(self.logs_group, stretch=1)
        main_layout.addWidget(self.command_input)

        # Shift + arrows scroll the logs even while the command box has focus.
        for keys, action in (("Shift+Up", self.log_viewer.scroll_up),
                             ("Shift+Down", self.log_viewer.scroll_down),
                             ("Shift+Left", self.log_viewer.scroll_left),
                             ("Shift+Right", self.log_viewer.scroll_right)):
            shortcut = QShortcut(QKeySequence(keys), self)
            shortcut.setContext(Qt.WidgetWithChildrenShortcut)
            shortcut.activated.connect(action)

        self.command_input.command_entered.connect(self._on_command)
        self.log_viewer.refresh()

    @property
    def title(self) -> str:
        return self.session.title

    def _refresh_title(self):
        if self.logs_group.title() != self.session.title:
            self.logs_group.setTitle(self.session.title)
            self.title_changed.emit(self.session.title)

    @Slot(str)
    def _on_command(self, line: str):
        logger.debug(f"Debug command: {line!r}")
        self.session.handle_command(line)
        self._refresh_title()
        self.log_viewer.refresh()

    def update_tab(self):
        """Called once per tick by the main window."""
        if self.session.update():
            self.log_viewer.refresh()
        self._refresh_title()

    def close_tab(self):
        self.session.close()
