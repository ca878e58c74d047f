# ec_demo/core/drivers.py

import ctypes
import logging
import time
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class NotificationDriver(ABC):
    """
    The native notification primitive the service bridges.

    Implementations must tolerate `wait()` being called concurrently from
    several worker threads.
    """

    @abstractmethod
    def init(self) -> int:
        """Initializes the native resource. Returns 0 on success."""

    @abstractmethod
    def wait(self, event_code: int) -> int:
        """Blocks until a notification arrives and returns its event code."""

    @abstractmethod
    def cleanup(self) -> None:
        """Releases the native resource."""


class MockDriver(NotificationDriver):
    """Echoes the requested event back after a fixed delay."""

    def __init__(self, delay: float = 0.5):
        self.delay = delay

    def init(self) -> int:
        return 0

    def wait(self, event_code: int) -> int:
        time.sleep(self.delay)
        return event_code

    def cleanup(self) -> None:
        pass


class EclibDriver(NotificationDriver):
    """ctypes binding to the notification entry points exported by eclib."""

    def __init__(self, library: str = "eclib.dll"):
        self.library = library
        self._lib = None

    def _load(self):
        if self._lib is None:
            logger.info(f"Loading native notification library: {self.library}")
            lib = ctypes.CDLL(self.library)
            lib.InitializeNotification.restype = ctypes.c_int
            lib.InitializeNotification.argtypes = []
            lib.WaitForNotification.restype = ctypes.c_uint32
            lib.WaitForNotification.argtypes = [ctypes.c_uint32]
            lib.CleanupNotification.restype = None
            lib.CleanupNotification.argtypes = []
            self._lib = lib
        return self._lib

    def init(self) -> int:
        try:
            lib = self._load()
        except OSError as e:
            logger.error(f"Could not load '{self.library}': {e}")
            return -1
        return lib.InitializeNotification()

    def wait(self, event_code: int) -> int:
        return self._load().WaitForNotification(event_code)

    def cleanup(self) -> None:
        if self._lib is not None:
            self._lib.CleanupNotification()


DRIVERS = {
    "mock": MockDriver,
    "eclib": EclibDriver,
}


def create_driver(name: str) -> NotificationDriver:
    """Builds a driver by its configuration name."""
    try:
        return DRIVERS[name]()
    except KeyError:
        raise ValueError(f"Unknown notification driver '{name}'. Choose from: {', '.join(DRIVERS)}") from None
