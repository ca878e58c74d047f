# ec_demo/core/log_view.py

import datetime
import enum
import logging
from dataclasses import dataclass
from typing import List, Optional

from .defmt_table import Level
from .frame_decoder import Frame
from .ring_buffer import RingBuffer
from .scroll import ScrollState

logger = logging.getLogger(__name__)

MAX_LOGS = 1000
LEVEL_WIDTH = 7
META_TIME_FORMAT = "%H:%M:%S"

HELP_LINES = (
    "Commands supported:",
    "help (Display help)",
    "attach <elf-path> (Attach an ELF file to view defmt logs)",
    "detach (Detach ELF)",
)


class LineKind(enum.Enum):
    LOG = "log"
    META = "meta"


@dataclass(frozen=True)
class LogLine:
    """
    One rendered row of the log pane.

    For the first row of a log frame, `level` is set and the level column
    starts at `level_offset` and spans LEVEL_WIDTH characters.
    """
    text: str
    kind: LineKind = LineKind.LOG
    level: Optional[Level] = None
    level_offset: int = 0

    def __str__(self) -> str:
        return self.text


def frame_to_lines(frame: Frame) -> List[LogLine]:
    """Renders a frame as `<timestamp> <LEVEL  ><message>`, one row per message line."""
    timestamp = frame.display_timestamp()
    ts = f"{timestamp} " if timestamp is not None else " "
    level = frame.level.value if frame.level is not None else " "
    # Only "\n" breaks a row; a "\r" ahead of it is dropped. Other control
    # characters stay inside the row.
    message = [piece.removesuffix("\r") for piece in f"{frame.display_message()} ".split("\n")]

    lines = [LogLine(text=f"{ts}{level:<{LEVEL_WIDTH}}{message[0]}", level=frame.level,
                     level_offset=len(ts))]
    # Continuation rows line up with the first row's message column.
    padding = " " * (len(ts) + LEVEL_WIDTH)
    for text in message[1:]:
        lines.append(LogLine(text=f"{padding}{text}"))
    return lines


class LogView:
    """
    Headless state of the log pane: the retained lines plus one scroll state
    per axis. Owned by the consumer thread.
    """

    def __init__(self, max_logs: int = MAX_LOGS):
        self.logs: RingBuffer[LogLine] = RingBuffer(max_logs)
        self.y_scroll = ScrollState()
        self.x_scroll = ScrollState(sticky=False)
        # Never shrinks, even once the widest line has been evicted.
        self.max_line_len = 0

    def log_frame(self, frame: Frame) -> List[LogLine]:
        lines = frame_to_lines(frame)
        self._insert(lines)
        return lines

    def log_meta(self, message) -> LogLine:
        """Adds an inline diagnostic, shown as `HH:MM:SS <message>` in wall-clock time."""
        now = datetime.datetime.now().strftime(META_TIME_FORMAT)
        line = LogLine(text=f"{now} <{message}>", kind=LineKind.META)
        self._insert([line])
        return line

    def display_help(self) -> List[LogLine]:
        lines = [LogLine(text=text) for text in HELP_LINES]
        self._insert(lines)
        return lines

    def _insert(self, lines: List[LogLine]) -> None:
        for line in lines:
            self.max_line_len = max(self.max_line_len, len(line.text))
            self.logs.insert(line)
        self.update_scroll()

    def update_scroll(self) -> None:
        """Recomputes both axes after the content changed."""
        self.x_scroll.update(self.max_line_len)
        self.y_scroll.update(len(self.logs))

    def resize(self, rows: int, columns: int) -> None:
        self.y_scroll.resize(rows)
        self.x_scroll.resize(columns)

    def scroll_up(self) -> None:
        self.y_scroll.scroll_back()

    def scroll_down(self) -> None:
        self.y_scroll.scroll_forward()

    def scroll_left(self) -> None:
        self.x_scroll.scroll_back()

    def scroll_right(self) -> None:
        self.x_scroll.scroll_forward()

    def snapshot(self) -> List[LogLine]:
        return self.logs.snapshot()

    def visible_lines(self) -> List[LogLine]:
        """The rows inside the vertical viewport, before horizontal clipping."""
        lines = self.snapshot()
        start = self.y_scroll.position
        return lines[start:start + self.y_scroll.viewport_extent]
