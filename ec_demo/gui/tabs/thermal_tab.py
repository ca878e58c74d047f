# ec_demo/gui/tabs/thermal_tab.py

import logging

from PySide6.QtWidgets import QGroupBox, QVBoxLayout, QWidget

from ec_demo.core.errors import SourceError
from ec_demo.core.ring_buffer import RingBuffer
from ec_demo.core.sources import Source
from ..widgets import ReadingLabel, SampleChart

logger = logging.getLogger(__name__)

MAX_SAMPLES = 60


class ThermalTab(QWidget):
    """Samples the temperature once per tick and charts the last minute of readings."""

    def __init__(self, source: Source, max_samples: int = MAX_SAMPLES, parent=None):
        super().__init__(parent)
        self.source = source
        self.samples: RingBuffer[float] = RingBuffer(max_samples)

        main_layout = QVBoxLayout(self)
        main_layout.setContentsMargins(10, 10, 10, 10)

        chart_group = QGroupBox(f"Temperature (last {max_samples} samples)")
        chart_layout = QVBoxLayout(chart_group)
        self.chart = SampleChart(self.samples, unit="°C", floor=0.0, ceiling=50.0)
        chart_layout.addWidget(self.chart)

        self.reading_label = ReadingLabel()

        main_layout.addWidget(chart_group, stretch=1)
        main_layout.addWidget(self.reading_label)

    @property
    def title(self) -> str:
        return "Thermal"

    def update_tab(self):
        try:
            celsius = self.source.get_temperature()
        except SourceError as e:
            logger.warning(f"Temperature read failed: {e}")
            self.reading_label.set_reading(f"Read failed: {e}", is_error=True)
            return

        self.samples.insert(celsius)
        history = self.samples.snapshot()
        self.reading_label.set_reading(
            f"Current: {celsius:.1f} °C   Min: {min(history):.1f} °C   Max: {max(history):.1f} °C")
        self.chart.update()

    def close_tab(self):
        pass
