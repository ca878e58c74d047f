# tests/test_core.py

import json
import logging
import re

import pytest

from conftest import untimed
from ec_demo.core.config_manager import AppConfig, load_config
from ec_demo.core.log_view import HELP_LINES, LineKind, LogView
from ec_demo.core.ring_buffer import RingBuffer
from ec_demo.core.scroll import ScrollState
from ec_demo.core.sources import MockSource, dk_to_c
from ec_demo.utils.logger import LoggerManager, file_handler


def _holds_invariant(state: ScrollState) -> bool:
    return 0 <= state.position <= max(0, state.content_extent - state.viewport_extent)


# --- Tests for ring_buffer.py ---

def test_ring_buffer_keeps_last_items_in_order():
    buffer = RingBuffer(3)
    for i in range(1, 6):
        buffer.insert(i)
    assert buffer.snapshot() == [3, 4, 5]
    assert len(buffer) == 3
    assert buffer.latest() == 5


def test_ring_buffer_below_capacity():
    buffer = RingBuffer(5)
    buffer.insert("a")
    buffer.insert("b")
    assert buffer.snapshot() == ["a", "b"]
    assert list(buffer) == ["a", "b"]


def test_ring_buffer_snapshot_is_a_copy():
    buffer = RingBuffer(2)
    buffer.insert(1)
    snapshot = buffer.snapshot()
    buffer.insert(2)
    buffer.insert(3)
    assert snapshot == [1]


def test_ring_buffer_rejects_zero_capacity():
    with pytest.raises(ValueError):
        RingBuffer(0)


# --- Tests for scroll.py ---

def test_unsized_viewport_never_scrolls():
    state = ScrollState()
    state.update(500)
    state.scroll_forward()
    assert state.position == 0


def test_position_follows_tail_once_content_overflows():
    state = ScrollState(viewport_extent=10)
    for extent in range(1, 11):
        state.update(extent)
        assert state.position == 0
    for extent in range(11, 30):
        state.update(extent)
        assert state.position == extent - 10


def test_scrolled_away_position_is_left_alone():
    state = ScrollState(viewport_extent=10)
    state.update(20)
    assert state.position == 10

    state.scroll_back()
    state.scroll_back()
    state.update(25)
    assert state.position == 8


def test_returning_to_bottom_resumes_tracking():
    state = ScrollState(viewport_extent=10)
    state.update(20)
    state.scroll_back()
    state.scroll_forward()
    state.update(30)
    assert state.position == 20


def test_scrolling_saturates():
    state = ScrollState(viewport_extent=10)
    state.update(12)
    for _ in range(5):
        state.scroll_forward()
    assert state.position == 2
    for _ in range(5):
        state.scroll_back()
    assert state.position == 0


def test_scroll_forward_is_noop_when_content_fits():
    state = ScrollState(viewport_extent=10)
    state.update(5)
    state.scroll_forward()
    assert state.position == 0


def test_resize_keeps_invariant():
    state = ScrollState(viewport_extent=10)
    state.update(20)
    state.resize(5)
    assert state.position == 15

    state.scroll_back()
    state.resize(30)
    assert state.position == 0
    assert _holds_invariant(state)


def test_non_sticky_axis_is_only_clamped():
    state = ScrollState(viewport_extent=10, sticky=False)
    state.update(30)
    assert state.position == 0
    state.resize(5)
    assert state.position == 0

    state.scroll_to(25)
    state.update(40)
    assert state.position == 25
    state.resize(20)
    assert state.position == 20
    assert _holds_invariant(state)


def test_invariant_holds_for_mixed_operations():
    state = ScrollState(viewport_extent=4)
    operations = [
        lambda: state.update(state.content_extent + 3),
        state.scroll_back,
        state.scroll_forward,
        lambda: state.resize(state.viewport_extent + 1),
        lambda: state.resize(max(1, state.viewport_extent - 2)),
        lambda: state.scroll_to(100),
        lambda: state.scroll_to(-3),
    ]
    for step in range(70):
        operations[step % len(operations)]()
        assert _holds_invariant(state)


# --- Tests for log_view.py ---

def test_log_view_tracks_tail_under_eviction():
    view = LogView(max_logs=20)
    view.resize(10, 80)
    for i in range(25):
        view.log_meta(f"line {i}")
    assert len(view.snapshot()) == 20
    assert view.y_scroll.position == 10

    view.scroll_up()
    view.log_meta("one more")
    assert view.y_scroll.position == 9
    assert untimed(view.snapshot()[-1].text) == "<one more>"


def test_log_view_width_is_monotonic():
    view = LogView(max_logs=2)
    view.resize(10, 5)
    view.log_meta("x" * 30)
    view.log_meta("short")
    view.log_meta("short")
    # "HH:MM:SS <" + 30 characters + ">"
    assert view.max_line_len == 41
    assert view.x_scroll.content_extent == 41


def test_wide_line_does_not_scroll_horizontally():
    view = LogView()
    view.resize(10, 20)
    view.log_meta("x" * 60)
    assert view.x_scroll.position == 0
    assert view.y_scroll.position == 0

    view.scroll_right()
    view.scroll_right()
    assert view.x_scroll.position == 2
    view.log_meta("y" * 80)
    assert view.x_scroll.position == 2


def test_first_layout_keeps_left_edge():
    view = LogView()
    view.log_meta("x" * 60)
    view.resize(10, 20)
    assert view.x_scroll.position == 0

    view.resize(10, 80)
    view.resize(10, 20)
    assert view.x_scroll.position == 0


def test_meta_lines_are_marked():
    view = LogView()
    line = view.log_meta("Invalid command")
    assert untimed(line.text) == "<Invalid command>"
    assert re.fullmatch(r"\d{2}:\d{2}:\d{2} <Invalid command>", line.text)
    assert line.kind is LineKind.META


def test_help_lines():
    view = LogView()
    view.display_help()
    assert [line.text for line in view.snapshot()] == list(HELP_LINES)


def test_visible_lines_follow_scroll():
    view = LogView()
    view.resize(2, 80)
    for i in range(5):
        view.log_meta(i)
    assert [untimed(line.text) for line in view.visible_lines()] == ["<3>", "<4>"]
    view.scroll_up()
    assert [untimed(line.text) for line in view.visible_lines()] == ["<2>", "<3>"]


# --- Tests for sources.py ---

def test_dk_to_c():
    assert dk_to_c(2732) == 0.0
    assert dk_to_c(3232) == 50.0


def test_mock_temperature_stays_in_range():
    source = MockSource()
    readings = [source.get_temperature() for _ in range(150)]
    assert all(0.0 <= value <= 50.0 for value in readings)
    assert max(readings) == 50.0
    # The sweep turns around at the top.
    top = readings.index(50.0)
    assert readings[top + 1] < 50.0


# --- Tests for config_manager.py ---

def test_missing_config_gives_defaults(tmp_path):
    assert load_config(tmp_path / "nope.json") == AppConfig()


def test_corrupt_config_gives_defaults(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{not json")
    assert load_config(path) == AppConfig()


def test_config_values_and_validation(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({
        "_metadata": {"version": "1.0"},
        "tick_ms": 250,
        "max_logs": -5,
        "driver": "nonsense",
        "bin_path": "firmware.elf",
        "colour": "blue",
    }))
    config = load_config(path)
    assert config.tick_ms == 250
    assert config.max_logs == 1000
    assert config.driver == "mock"
    assert config.bin_path.name == "firmware.elf"


def test_command_line_overrides_win():
    config = AppConfig(tick_ms=250).with_overrides(tick_ms=None, driver="eclib")
    assert config.tick_ms == 250
    assert config.driver == "eclib"


# --- Tests for logger.py ---

def test_file_handler_records_debug_with_thread(tmp_path):
    path = tmp_path / "ec_demo.log"
    handler = file_handler(path)
    record = logging.LogRecord("ec_demo.core.notifications", logging.DEBUG, __file__, 1,
                               "Discarding unknown notification code %d", (7,), None)
    handler.handle(record)
    handler.close()

    text = path.read_text(encoding="utf-8")
    assert "[DEBUG]" in text
    assert "MainThread - ec_demo.core.notifications" in text
    assert "Discarding unknown notification code 7" in text


def test_setup_leaves_configured_root_alone(tmp_path, caplog):
    # caplog has already put a handler on the root logger.
    assert LoggerManager(log_dir=tmp_path).setup() is False
    assert not (tmp_path / "ec_demo.log").exists()
