# tests/test_notifications.py

import threading
import time

import pytest

from conftest import FastDriver, drain, poll
from ec_demo.core.drivers import NotificationDriver
from ec_demo.core.errors import LifecycleError, ReceiverDisconnected, SourceError
from ec_demo.core.notifications import Event, NotificationService


class ScriptedDriver(NotificationDriver):
    """Returns the scripted codes in order, then blocks until cleanup."""

    def __init__(self, codes):
        self.codes = list(codes)
        self.released = threading.Event()

    def init(self) -> int:
        return 0

    def wait(self, event_code: int) -> int:
        if self.codes:
            return self.codes.pop(0)
        self.released.wait()
        return event_code

    def cleanup(self) -> None:
        self.released.set()


class FailingDriver(FastDriver):
    def wait(self, event_code: int) -> int:
        raise RuntimeError("driver went away")


class RaisingInitDriver(FastDriver):
    def init(self) -> int:
        raise OSError("no such device")


# --- Lifecycle ---

def test_only_one_service_at_a_time(fast_driver):
    with NotificationService(fast_driver) as service:
        assert NotificationService.is_active()
        with pytest.raises(LifecycleError):
            NotificationService(FastDriver())
        assert not service.closed

    assert not NotificationService.is_active()
    # The flag was released, so a new service can be created.
    with NotificationService(FastDriver()):
        assert NotificationService.is_active()


def test_init_failure_releases_flag():
    with pytest.raises(LifecycleError):
        NotificationService(FastDriver(init_status=-1))
    assert not NotificationService.is_active()

    with pytest.raises(LifecycleError):
        NotificationService(RaisingInitDriver())
    assert not NotificationService.is_active()


def test_close_is_idempotent(fast_driver):
    service = NotificationService(fast_driver)
    service.close()
    service.close()
    assert fast_driver.cleanup_calls == 1
    assert not NotificationService.is_active()


def test_closed_service_refuses_new_receivers(fast_driver):
    service = NotificationService(fast_driver)
    service.close()
    with pytest.raises(LifecycleError):
        service.event_receiver(Event.DBG_FRAME_AVAILABLE, lambda event: event)


def test_closing_service_closes_its_receivers(service):
    rx = service.event_receiver(Event.BATTERY_TRIP_POINT, lambda event: event)
    assert not rx.closed
    service.close()
    assert rx.closed


# --- Receiver behaviour ---

def test_receiver_starts_paused(service, fast_driver):
    rx = service.event_receiver(Event.DBG_FRAME_AVAILABLE, lambda event: b"frame")
    assert not rx.running
    time.sleep(0.1)
    assert fast_driver.wait_calls == 0
    assert rx.receive() is None


def test_pause_and_resume(service):
    rx = service.event_receiver(Event.DBG_FRAME_AVAILABLE, lambda event: event)
    rx.start()
    assert poll(rx) is Event.DBG_FRAME_AVAILABLE

    rx.stop()
    # Let the in-flight wait and any blocked push complete, then empty the queue.
    for _ in range(3):
        time.sleep(0.2)
        drain(rx)
    time.sleep(0.2)
    assert rx.receive() is None

    rx.start()
    assert poll(rx) is Event.DBG_FRAME_AVAILABLE


def test_values_arrive_in_order(service):
    counter = iter(range(1000))
    rx = service.event_receiver(Event.DBG_FRAME_AVAILABLE, lambda event: next(counter))
    rx.start()
    time.sleep(0.1)
    rx.stop()

    received = []
    deadline = time.monotonic() + 1.0
    while time.monotonic() < deadline:
        received.extend(drain(rx))
        time.sleep(0.02)
    assert received == list(range(len(received)))
    assert len(received) > 0


def test_unknown_event_codes_are_discarded():
    driver = ScriptedDriver([99, 7, int(Event.DBG_FRAME_AVAILABLE)])
    calls = []
    with NotificationService(driver) as service:
        rx = service.event_receiver(Event.DBG_FRAME_AVAILABLE, lambda event: calls.append(event) or event)
        rx.start()
        assert poll(rx) is Event.DBG_FRAME_AVAILABLE
        time.sleep(0.05)
        assert rx.receive() is None
    assert calls == [Event.DBG_FRAME_AVAILABLE]


def test_callback_failure_is_raised_to_consumer(service):
    def sample(event):
        raise SourceError("sensor offline")

    rx = service.event_receiver(Event.BATTERY_TRIP_POINT, sample)
    rx.start()
    with pytest.raises(SourceError, match="sensor offline"):
        poll(rx)


def test_receive_after_worker_death_is_fatal():
    with NotificationService(FailingDriver()) as service:
        rx = service.event_receiver(Event.DBG_FRAME_AVAILABLE, lambda event: event)
        rx.start()
        with pytest.raises(ReceiverDisconnected):
            deadline = time.monotonic() + 2.0
            while time.monotonic() < deadline:
                rx.receive()
                time.sleep(0.01)


def test_close_releases_worker_blocked_on_full_queue(fast_driver):
    with NotificationService(fast_driver, queue_capacity=1) as service:
        rx = service.event_receiver(Event.DBG_FRAME_AVAILABLE, lambda event: event)
        rx.start()
        time.sleep(0.2)

        rx.close()
        rx._thread.join(timeout=2.0)
        assert not rx._thread.is_alive()
        # A consumer-initiated close is not a disconnect.
        drain(rx)
        assert rx.receive() is None
