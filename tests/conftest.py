# tests/conftest.py

import re
import threading
import time

import pytest

from ec_demo.core.drivers import MockDriver, NotificationDriver
from ec_demo.core.mock_elf import write_mock_elf
from ec_demo.core.notifications import NotificationService


class FastDriver(NotificationDriver):
    """Fires almost immediately and counts how often it was waited on."""

    def __init__(self, init_status: int = 0):
        self.init_status = init_status
        self.wait_calls = 0
        self.cleanup_calls = 0
        self._lock = threading.Lock()

    def init(self) -> int:
        return self.init_status

    def wait(self, event_code: int) -> int:
        time.sleep(0.001)
        with self._lock:
            self.wait_calls += 1
        return event_code

    def cleanup(self) -> None:
        self.cleanup_calls += 1


def poll(receiver, timeout: float = 2.0):
    """Polls a receiver until it yields a value or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        value = receiver.receive()
        if value is not None:
            return value
        time.sleep(0.005)
    return None


META_PREFIX = re.compile(r"^\d{2}:\d{2}:\d{2} (?=<)")


def untimed(text: str) -> str:
    """Drops the wall-clock prefix of a diagnostic row so it can be compared."""
    return META_PREFIX.sub("", text, count=1)


def drain(receiver) -> list:
    values = []
    while True:
        value = receiver.receive()
        if value is None:
            return values
        values.append(value)


@pytest.fixture
def fast_driver():
    return FastDriver()


@pytest.fixture
def service(fast_driver):
    """A live notification service; always released so the next test can create one."""
    svc = NotificationService(fast_driver, queue_capacity=8)
    yield svc
    svc.close()


@pytest.fixture
def mock_service():
    """A service driven by the stock mock driver with a short delay."""
    svc = NotificationService(MockDriver(delay=0.05))
    yield svc
    svc.close()


@pytest.fixture
def mock_elf_path(tmp_path):
    return write_mock_elf(tmp_path / "mock-bin")
