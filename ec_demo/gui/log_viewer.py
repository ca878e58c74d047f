# ec_demo/gui/log_viewer.py

from PySide6.QtCore import Qt, Slot
from PySide6.QtGui import QColor, QFont, QFontDatabase, QPainter
from PySide6.QtWidgets import QAbstractScrollArea

from ec_demo.core.defmt_table import Level
from ec_demo.core.log_view import LEVEL_WIDTH, LineKind, LogView

LEVEL_COLORS = {
    Level.TRACE: QColor("gray"),
    Level.DEBUG: QColor("white"),
    Level.INFO: QColor("limegreen"),
    Level.WARN: QColor("gold"),
    Level.ERROR: QColor("red"),
}
META_COLOR = QColor("cyan")
TEXT_COLOR = QColor("gainsboro")
BACKGROUND_COLOR = QColor(24, 24, 24)


class LogViewer(QAbstractScrollArea):
    """
    Paints the rows of a LogView in a fixed-pitch font.

    Scrolling is counted in rows and characters, not pixels: the scrollbars
    only mirror the two ScrollStates, which remain the single source of truth
    (so auto-follow keeps working while the user is not touching them).
    """

    def __init__(self, log_view: LogView, parent=None):
        super().__init__(parent)
        self._log_view = log_view
        self._syncing = False

        font = QFontDatabase.systemFont(QFontDatabase.FixedFont)
        font.setStyleHint(QFont.TypeWriter)
        self.setFont(font)
        self.setFocusPolicy(Qt.StrongFocus)
        self.setHorizontalScrollBarPolicy(Qt.ScrollBarAsNeeded)
        self.setVerticalScrollBarPolicy(Qt.ScrollBarAsNeeded)
        self.setToolTip("Use Shift + arrow keys to scroll")

        self.verticalScrollBar().valueChanged.connect(self._on_vertical_moved)
        self.horizontalScrollBar().valueChanged.connect(self._on_horizontal_moved)

    @property
    def log_view(self) -> LogView:
        return self._log_view

    def _cell_size(self):
        metrics = self.fontMetrics()
        return max(1, metrics.horizontalAdvance("M")), max(1, metrics.height())

    # --- Keeping the scrollbars in step with the model ---

    def refresh(self):
        """Pushes the scroll states into the scrollbars and repaints."""
        y_scroll = self._log_view.y_scroll
        x_scroll = self._log_view.x_scroll

        self._syncing = True
        try:
            bar = self.verticalScrollBar()
            bar.setRange(0, y_scroll.max_position)
            bar.setPageStep(max(1, y_scroll.viewport_extent))
            bar.setValue(y_scroll.position)

            bar = self.horizontalScrollBar()
            bar.setRange(0, x_scroll.max_position)
            bar.setPageStep(max(1, x_scroll.viewport_extent))
            bar.setValue(x_scroll.position)
        finally:
            self._syncing = False
        self.viewport().update()

    @Slot(int)
    def _on_vertical_moved(self, value: int):
        if not self._syncing:
            self._log_view.y_scroll.scroll_to(value)
            self.viewport().update()

    @Slot(int)
    def _on_horizontal_moved(self, value: int):
        if not self._syncing:
            self._log_view.x_scroll.scroll_to(value)
            self.viewport().update()

    # --- Scrolling by keyboard ---

    def scroll_up(self):
        self._log_view.scroll_up()
        self.refresh()

    def scroll_down(self):
        self._log_view.scroll_down()
        self.refresh()

    def scroll_left(self):
        self._log_view.scroll_left()
        self.refresh()

    def scroll_right(self):
        self._log_view.scroll_right()
        self.refresh()

    def keyPressEvent(self, event):
        actions = {
            Qt.Key_Up: self.scroll_up,
            Qt.Key_Down: self.scroll_down,
            Qt.Key_Left: self.scroll_left,
            Qt.Key_Right: self.scroll_right,
        }
        action = actions.get(event.key())
        if action is None:
            super().keyPressEvent(event)
            return
        action()
        event.accept()

    # --- Qt events ---

    def resizeEvent(self, event):
        super().resizeEvent(event)
        char_width, line_height = self._cell_size()
        size = self.viewport().size()
        self._log_view.resize(max(1, size.height() // line_height), max(1, size.width() // char_width))
        self.refresh()

    def paintEvent(self, event):
        char_width, line_height = self._cell_size()
        ascent = self.fontMetrics().ascent()
        x_origin = -self._log_view.x_scroll.position * char_width

        painter = QPainter(self.viewport())
        painter.fillRect(self.viewport().rect(), BACKGROUND_COLOR)
        painter.setFont(self.font())

        for row, line in enumerate(self._log_view.visible_lines()):
            baseline = row * line_height + ascent
            if line.kind is LineKind.META:
                painter.setPen(META_COLOR)
                painter.drawText(x_origin, baseline, line.text)
                continue

            painter.setPen(TEXT_COLOR)
            if line.level is None:
                painter.drawText(x_origin, baseline, line.text)
                continue

            # Timestamp, coloured level column, message.
            start, end = line.level_offset, line.level_offset + LEVEL_WIDTH
            painter.drawText(x_origin, baseline, line.text[:start])
            painter.setPen(LEVEL_COLORS[line.level])
            painter.drawText(x_origin + start * char_width, baseline, line.text[start:end])
            painter.setPen(TEXT_COLOR)
            painter.drawText(x_origin + end * char_width, baseline, line.text[end:])

        painter.end()
