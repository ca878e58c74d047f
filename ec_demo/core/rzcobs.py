# ec_demo/core/rzcobs.py

"""
rzCOBS: reverse zero-compressing COBS.

Log frames are packed with this encoding and terminated by a single 0x00
byte, so a receiver can always find the next frame boundary. The encoder
walks the payload forwards and emits group headers after their data; the
decoder therefore walks the encoded bytes backwards.

Header bytes:
    0x01-0x7F  a group of 7 positions, bit (6 - i) set means position i is 0x00
    0x80-0xFE  (n & 0x7F) + 7 non-zero bytes followed by one 0x00
    0xFF       134 non-zero bytes with no zero

The last group may be padded, so decoded payloads can carry trailing zero
bytes. Frame parsers must ignore them.
"""

import logging

from .errors import DecodeError

logger = logging.getLogger(__name__)

FRAME_DELIMITER = 0x00

_GROUP_SIZE = 7
_LONG_RUN = 134


def encode(data: bytes) -> bytes:
    """Encodes a payload. The result never contains 0x00."""
    out = bytearray()
    run = 0
    zeros = 0

    for byte in data:
        if run < _GROUP_SIZE:
            if byte == 0:
                zeros |= 1 << run
            else:
                out.append(byte)
            run += 1
            if run == _GROUP_SIZE and zeros != 0:
                out.append(zeros)
                run = 0
                zeros = 0
        else:
            if byte == 0:
                out.append(0x80 | (run - _GROUP_SIZE))
                run = 0
                zeros = 0
            else:
                out.append(byte)
                run += 1
                if run == _LONG_RUN:
                    out.append(0xFF)
                    run = 0
                    zeros = 0

    # Flush the trailing group, padding unused positions with zeros.
    if run < _GROUP_SIZE:
        if run != 0:
            out.append((zeros | (0x7F << run)) & 0x7F)
    else:
        out.append(0x80 | (run - _GROUP_SIZE))

    return bytes(out)


def encode_frame(data: bytes) -> bytes:
    """Encodes a payload and appends the frame delimiter."""
    return encode(data) + bytes([FRAME_DELIMITER])


def decode(data: bytes) -> bytes:
    """
    Decodes one frame body (without its delimiter).

    Raises:
        DecodeError: if the body contains 0x00 or a group runs past the start.
    """
    out = bytearray()
    i = len(data) - 1

    def take() -> int:
        nonlocal i
        if i < 0:
            raise DecodeError("rzCOBS group overruns frame start")
        value = data[i]
        i -= 1
        return value

    while i >= 0:
        header = take()
        if header == 0:
            raise DecodeError("rzCOBS frame contains a zero byte")
        if header <= 0x7F:
            for bit in range(_GROUP_SIZE):
                if header & (1 << (_GROUP_SIZE - 1 - bit)):
                    out.append(0)
                else:
                    out.append(take())
        elif header < 0xFF:
            out.append(0)
            for _ in range((header & 0x7F) + _GROUP_SIZE):
                out.append(take())
        else:
            for _ in range(_LONG_RUN):
                out.append(take())

    out.reverse()
    return bytes(out)
