# ec_demo/gui/widgets.py

from typing import Optional

from PySide6.QtCore import QPointF, Qt, Signal, Slot
from PySide6.QtGui import QColor, QPainter, QPen, QPolygonF
from PySide6.QtWidgets import QGroupBox, QLabel, QLineEdit, QSizePolicy, QVBoxLayout, QWidget

from ec_demo.core.ring_buffer import RingBuffer


# --- Custom Widget 1: The Command Box ---
class CommandInput(QGroupBox):
    """
    A single-line command box titled "Command <ENTER>".
    Emits `command_entered` with the typed text and clears itself.
    """
    command_entered = Signal(str)

    def __init__(self, parent=None):
        super().__init__("Command <ENTER>", parent)
        layout = QVBoxLayout(self)
        layout.setContentsMargins(4, 4, 4, 4)

        self.line_edit = QLineEdit()
        self.line_edit.setPlaceholderText("help")
        layout.addWidget(self.line_edit)

        self.line_edit.returnPressed.connect(self._submit)

    @Slot()
    def _submit(self):
        text = self.line_edit.text()
        self.line_edit.clear()
        self.command_entered.emit(text)


# --- Custom Widget 2: The Sample Chart ---
class SampleChart(QWidget):
    """
    Draws the contents of a numeric RingBuffer as a line, oldest sample on
    the left. The x axis always spans the buffer's full capacity so the line
    grows from the left until the history is full, then scrolls.
    """

    def __init__(self, samples: RingBuffer, unit: str = "", floor: Optional[float] = None,
                 ceiling: Optional[float] = None, parent=None):
        super().__init__(parent)
        self._samples = samples
        self._unit = unit
        self._floor = floor
        self._ceiling = ceiling
        self.line_color = QColor("orange")
        self.setMinimumHeight(160)
        self.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Expanding)

    def _value_range(self, values):
        low = min(values) if self._floor is None else min(self._floor, min(values))
        high = max(values) if self._ceiling is None else max(self._ceiling, max(values))
        if high - low < 1e-9:
            high = low + 1.0
        return low, high

    def paintEvent(self, event):
        painter = QPainter(self)
        painter.setRenderHint(QPainter.Antialiasing)
        rect = self.rect().adjusted(40, 10, -10, -20)
        painter.fillRect(self.rect(), QColor(24, 24, 24))
        painter.setPen(QColor("dimgray"))
        painter.drawRect(rect)

        values = self._samples.snapshot()
        if values:
            low, high = self._value_range(values)
            painter.setPen(QColor("gainsboro"))
            painter.drawText(2, rect.top() + 10, f"{high:.0f}{self._unit}")
            painter.drawText(2, rect.bottom(), f"{low:.0f}{self._unit}")

            step = rect.width() / max(1, self._samples.capacity - 1)
            points = QPolygonF()
            for i, value in enumerate(values):
                x = rect.left() + i * step
                y = rect.bottom() - (value - low) / (high - low) * rect.height()
                points.append(QPointF(x, y))

            pen = QPen(self.line_color)
            pen.setWidth(2)
            painter.setPen(pen)
            painter.drawPolyline(points)

        painter.end()


# --- Custom Widget 3: The Reading Label ---
class ReadingLabel(QLabel):
    """A label for the latest reading; turns red when showing an error."""

    def __init__(self, parent=None):
        super().__init__("No data yet", parent)
        self.setAlignment(Qt.AlignCenter)

    def set_reading(self, message: str, is_error: bool = False):
        self.setText(message)
        self.setStyleSheet("color: #e74c3c;" if is_error else "")
