# ec_demo/core/notifications.py

"""
Notification bridge: turns the driver's blocking wait into pausable,
non-blocking event streams.

One NotificationService exists per process. Each EventReceiver it hands out
owns a dedicated worker thread that blocks in `driver.wait()`, runs a
sampling callback on every wakeup and pushes the result onto a bounded queue.
The consumer polls `receive()` once per UI tick.
"""

import enum
import logging
import queue
import threading
import weakref
from typing import Callable, Generic, Optional, TypeVar

from .drivers import NotificationDriver
from .errors import LifecycleError, ReceiverDisconnected

logger = logging.getLogger(__name__)

T = TypeVar("T")

RX_BUF_SZ = 128
# How often a worker blocked on a full queue re-checks whether the consumer left.
PUSH_RECHECK_INTERVAL = 0.1


class Event(enum.IntEnum):
    """Notification kinds and their wire codes."""
    BATTERY_TRIP_POINT = 1
    DBG_FRAME_AVAILABLE = 20


# --- Process-wide singleton flag ---

_state_lock = threading.Lock()
_initialized = False


def _try_acquire() -> bool:
    """Compare-and-set the flag from False to True."""
    global _initialized
    with _state_lock:
        if _initialized:
            return False
        _initialized = True
        return True


def _release() -> None:
    global _initialized
    with _state_lock:
        _initialized = False


# --- Worker side ---

class _Failure:
    """Carries an exception raised by the sampling callback to the consumer."""

    def __init__(self, error: Exception):
        self.error = error


class _Channel:
    """State shared by one receiver and its worker: the queue and the pause gate."""

    def __init__(self, capacity: int):
        self.queue: queue.Queue = queue.Queue(maxsize=capacity)
        self.gate = threading.Condition()
        self.running = False
        self.closed = False

    def set_running(self, running: bool) -> None:
        with self.gate:
            self.running = running
            self.gate.notify_all()

    def close(self) -> None:
        with self.gate:
            self.closed = True
            self.gate.notify_all()

    def wait_until_running(self) -> bool:
        """Parks while paused. Returns False once the consumer has closed the channel."""
        with self.gate:
            while not self.running and not self.closed:
                self.gate.wait()
            return not self.closed

    def push(self, item) -> bool:
        """Blocks while the queue is full. Returns False if the consumer went away."""
        while not self.closed:
            try:
                self.queue.put(item, timeout=PUSH_RECHECK_INTERVAL)
                return True
            except queue.Full:
                continue
        return False


def _worker_loop(channel: _Channel, driver: NotificationDriver, event: Event, callback: Callable) -> None:
    while channel.wait_until_running():
        code = driver.wait(int(event))
        if channel.closed:
            break

        try:
            received = Event(code)
        except ValueError:
            logger.debug(f"Discarding unknown notification code {code} (waiting for {event.name})")
            continue

        try:
            item = callback(received)
        except Exception as e:
            logger.debug(f"Sampling callback for {received.name} failed: {e}")
            item = _Failure(e)

        if not channel.push(item):
            break

    logger.debug(f"Notification worker for {event.name} exiting")


def _run_worker(channel: _Channel, driver: NotificationDriver, event: Event, callback: Callable) -> None:
    try:
        _worker_loop(channel, driver, event, callback)
    except Exception:
        # The consumer learns about this through ReceiverDisconnected.
        logger.exception(f"Notification worker for {event.name} terminated unexpectedly")


# --- Consumer side ---

class EventReceiver(Generic[T]):
    """
    One consumer's pausable stream of callback results for a single event kind.

    Receivers start Paused: the worker does not call into the driver until
    `start()` is called, and parks again before its next wait after `stop()`.
    """

    def __init__(self, event: Event, channel: _Channel, thread: threading.Thread):
        self._event = event
        self._channel = channel
        self._thread = thread

    @property
    def event(self) -> Event:
        return self._event

    @property
    def running(self) -> bool:
        return self._channel.running

    @property
    def closed(self) -> bool:
        return self._channel.closed

    def start(self) -> None:
        """Paused -> Running. Wakes the worker so it proceeds to its next wait."""
        self._channel.set_running(True)
        logger.debug(f"Receiver for {self._event.name} started.")

    def stop(self) -> None:
        """Running -> Paused. An in-flight wait still completes and is delivered."""
        self._channel.set_running(False)
        logger.debug(f"Receiver for {self._event.name} paused.")

    def receive(self) -> Optional[T]:
        """
        Returns the next queued value without blocking, or None if there is none.

        Raises:
            Exception: whatever the sampling callback raised for this wakeup.
            ReceiverDisconnected: the worker died without the consumer closing
                the receiver. This cannot happen under correct use.
        """
        try:
            item = self._channel.queue.get_nowait()
        except queue.Empty:
            if not self._channel.closed and not self._thread.is_alive():
                raise ReceiverDisconnected(
                    f"Polled receiver for {self._event.name} after its worker terminated") from None
            return None

        if isinstance(item, _Failure):
            raise item.error
        return item

    def close(self) -> None:
        """Drops the consumer end. The worker exits quietly at its next gate check or push."""
        self._channel.close()

    def __enter__(self) -> "EventReceiver[T]":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __del__(self):
        channel = getattr(self, "_channel", None)
        if channel is not None:
            channel.close()


class NotificationService:
    """
    Process-wide owner of the native notification resource.

    Construction fails with LifecycleError when another service is alive or
    the driver fails to initialize. `close()` (or leaving the `with` block)
    releases the driver and the singleton flag exactly once.
    """

    def __init__(self, driver: NotificationDriver, queue_capacity: int = RX_BUF_SZ):
        if not _try_acquire():
            raise LifecycleError("Only one notification service must exist at a time")

        try:
            status = driver.init()
        except Exception as e:
            _release()
            raise LifecycleError(f"Failed to initialize notification service: {e}") from e
        if status != 0:
            _release()
            raise LifecycleError(f"Failed to initialize notification service (status {status})")

        self._driver = driver
        self._queue_capacity = queue_capacity
        self._channels = weakref.WeakSet()
        self._close_lock = threading.Lock()
        self._closed = False
        logger.info(f"Notification service initialized with {type(driver).__name__}.")

    @staticmethod
    def is_active() -> bool:
        with _state_lock:
            return _initialized

    @property
    def closed(self) -> bool:
        return self._closed

    def event_receiver(self, event: Event, callback: Callable[[Event], T]) -> EventReceiver[T]:
        """
        Spawns a worker bound to `event` and returns its paused receiver.

        `callback` runs on the worker thread once per wakeup; its return value
        (or the exception it raises) is what the consumer receives.
        """
        if self._closed:
            raise LifecycleError("Notification service has been closed")

        channel = _Channel(self._queue_capacity)
        thread = threading.Thread(
            target=_run_worker,
            args=(channel, self._driver, event, callback),
            name=f"notify-{event.name.lower()}",
            daemon=True,
        )
        thread.start()
        self._channels.add(channel)
        logger.debug(f"Spawned notification worker '{thread.name}'.")
        return EventReceiver(event, channel, thread)

    def close(self) -> None:
        """Releases the driver and the singleton flag. Safe to call more than once."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        for channel in list(self._channels):
            channel.close()
        try:
            self._driver.cleanup()
        finally:
            _release()
            logger.info("Notification service shut down.")

    def __enter__(self) -> "NotificationService":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __del__(self):
        if not getattr(self, "_closed", True):
            self.close()
