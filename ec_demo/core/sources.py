# ec_demo/core/sources.py

import logging
import struct
import threading
from abc import ABC, abstractmethod

from . import rzcobs

logger = logging.getLogger(__name__)

# String indices of the mock firmware's log calls (see mock_elf.MOCK_LOGS).
MOCK_DEFMT_START = 1
MOCK_DEFMT_END = 6
MOCK_TIMESTAMP_STEP_US = 100_000

# Mock temperature sweep, in deci-kelvin.
MOCK_TEMP_MIN_DK = 2732
MOCK_TEMP_MAX_DK = 3232
MOCK_TEMP_STEP_DK = 10


def dk_to_c(deci_kelvin: int) -> float:
    """Converts deci-kelvin to degrees Celsius."""
    return (deci_kelvin - 2732) / 10.0


def mock_defmt_wire(index: int, timestamp: int) -> bytes:
    """
    Produces the on-the-wire bytes of an argument-less defmt log call.

    The index is the address of the log string in the mock ELF's `.defmt`
    section and the timestamp is in microseconds.
    """
    return rzcobs.encode_frame(struct.pack("<HQ", index, timestamp))


class Source(ABC):
    """
    A provider of raw samples from the embedded controller.

    Implementations are called from notification worker threads as well as
    the UI thread, so they must be thread-safe.
    """

    @abstractmethod
    def get_dbg(self) -> bytes:
        """Returns the next chunk of raw debug-log bytes. Raises SourceError."""

    @abstractmethod
    def get_temperature(self) -> float:
        """Returns the current temperature in degrees Celsius. Raises SourceError."""


class MockSource(Source):
    """Deterministic stand-in for the controller, paired with the mock ELF."""

    def __init__(self):
        self._lock = threading.Lock()
        self._defmt_index = MOCK_DEFMT_START
        self._timestamp = 0
        self._temp_dk = MOCK_TEMP_MIN_DK
        self._temp_dir = 1

    def get_dbg(self) -> bytes:
        with self._lock:
            index = self._defmt_index
            timestamp = self._timestamp
            self._timestamp += MOCK_TIMESTAMP_STEP_US
            self._defmt_index += 1
            if self._defmt_index > MOCK_DEFMT_END:
                self._defmt_index = MOCK_DEFMT_START
        return mock_defmt_wire(index, timestamp)

    def get_temperature(self) -> float:
        with self._lock:
            self._temp_dk += MOCK_TEMP_STEP_DK * self._temp_dir
            if self._temp_dk >= MOCK_TEMP_MAX_DK or self._temp_dk <= MOCK_TEMP_MIN_DK:
                self._temp_dir *= -1
            return dk_to_c(self._temp_dk)
