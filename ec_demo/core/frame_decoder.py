# ec_demo/core/frame_decoder.py

"""
Streaming decoder for defmt log frames.

Wire format of one frame:
    rzCOBS( u16 LE string index | timestamp args | log args ) 0x00

The string index selects a format string from the metadata table; the format
string says which arguments follow and how to display them. The decoder owns
the table and the partial-frame buffer together, so each call has exclusive
access to both.
"""

import logging
import re
import struct
from dataclasses import dataclass
from typing import List, Optional

from . import rzcobs
from .defmt_table import Level, Table, TableEntry
from .errors import DecodeError, UnexpectedEof

logger = logging.getLogger(__name__)

# Bytes kept while waiting for a delimiter before the buffer is declared garbage.
MAX_PENDING_BYTES = 64 * 1024
# Limit on `=?` nesting, protects against self-referencing tables.
MAX_NESTING = 16

_INTEGER_FORMATS = {
    "u8": "<B", "u16": "<H", "u32": "<I", "u64": "<Q", "usize": "<I",
    "i8": "<b", "i16": "<h", "i32": "<i", "i64": "<q", "isize": "<i",
    "f32": "<f", "f64": "<d",
}

# {=type}, {=type:hint}, {0=type}, {0} ; "{{" and "}}" are escapes handled separately.
_PARAM_PATTERN = re.compile(r"\{(?P<index>\d+)?(?:=(?P<type>[^:}]+))?(?::(?P<hint>[^}]*))?\}")


@dataclass(frozen=True)
class Frame:
    """One complete decoded log record."""
    index: int
    level: Optional[Level]
    message: str
    timestamp: Optional[str] = None

    def display_timestamp(self) -> Optional[str]:
        return self.timestamp

    def display_message(self) -> str:
        return self.message


@dataclass(frozen=True)
class _Param:
    index: int
    type: Optional[str]
    hint: str
    start: int
    end: int


class _Reader:
    """Cursor over a decoded frame payload. Running short means the frame is malformed."""

    def __init__(self, payload: bytes):
        self._payload = payload
        self._offset = 0

    def take(self, count: int) -> bytes:
        end = self._offset + count
        if end > len(self._payload):
            raise DecodeError("Frame ended before all arguments were read")
        chunk = self._payload[self._offset:end]
        self._offset = end
        return chunk

    def unpack(self, fmt: str):
        return struct.unpack(fmt, self.take(struct.calcsize(fmt)))[0]

    def u16(self) -> int:
        return self.unpack("<H")


class FrameDecoder:
    """Accumulates raw bytes and turns them into `Frame`s, one per `decode()` call."""

    def __init__(self, table: Table):
        self._table = table
        self._buffer = bytearray()

    @classmethod
    def from_elf(cls, blob: bytes) -> "FrameDecoder":
        """Loads the table from ELF bytes. Raises MetadataError."""
        return cls(Table.parse(blob))

    @property
    def table(self) -> Table:
        return self._table

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet consumed by a decode."""
        return len(self._buffer)

    def received(self, data: bytes) -> None:
        """Appends newly delivered bytes to the decode buffer."""
        self._buffer.extend(data)

    def decode(self) -> Frame:
        """
        Decodes the next frame from the buffer.

        The delimited chunk is removed from the buffer before it is
        interpreted, so after a DecodeError the next call starts on the
        following frame boundary.

        Raises:
            UnexpectedEof: no complete frame is buffered yet.
            DecodeError: the next frame is malformed.
        """
        end = self._buffer.find(rzcobs.FRAME_DELIMITER)
        if end < 0:
            if len(self._buffer) > MAX_PENDING_BYTES:
                dropped = len(self._buffer)
                self._buffer.clear()
                raise DecodeError(f"No frame delimiter in {dropped} buffered bytes; discarded")
            raise UnexpectedEof("Frame incomplete")

        chunk = bytes(self._buffer[:end])
        del self._buffer[:end + 1]

        if not chunk:
            raise DecodeError("Empty frame")
        return self._parse_frame(rzcobs.decode(chunk))

    # --- Frame parsing ---

    def _parse_frame(self, payload: bytes) -> Frame:
        reader = _Reader(payload)
        index = reader.u16()
        entry = self._table.get(index)
        if entry is None or not entry.is_log:
            raise DecodeError(f"Unknown log string index {index}")

        timestamp = None
        if self._table.timestamp is not None:
            timestamp = self._format(self._table.timestamp.string, reader, depth=0)

        message = self._format(entry.string, reader, depth=0)
        # Anything left over is rzCOBS padding.
        return Frame(index=index, level=entry.level, message=message, timestamp=timestamp)

    def _format(self, fmt: str, reader: _Reader, depth: int) -> str:
        if depth > MAX_NESTING:
            raise DecodeError("Format nesting too deep")

        params = self._parse_params(fmt)

        # Arguments travel once per distinct index, in index order.
        types = {}
        for param in params:
            if param.type is not None:
                types.setdefault(param.index, param.type)
        values = {}
        for index in sorted(types):
            values[index] = self._read_arg(types[index], reader, depth)

        pieces = []
        cursor = 0
        for param in params:
            pieces.append(_unescape(fmt[cursor:param.start]))
            if param.index not in values:
                raise DecodeError(f"Format parameter {param.index} has no type")
            pieces.append(_display(values[param.index], param.hint))
            cursor = param.end
        pieces.append(_unescape(fmt[cursor:]))
        return "".join(pieces)

    @staticmethod
    def _parse_params(fmt: str) -> List[_Param]:
        params = []
        next_index = 0
        position = 0
        while position < len(fmt):
            if fmt.startswith("{{", position) or fmt.startswith("}}", position):
                position += 2
                continue
            if fmt[position] != "{":
                position += 1
                continue
            match = _PARAM_PATTERN.match(fmt, position)
            if match is None:
                raise DecodeError(f"Bad format string: {fmt!r}")
            if match.group("index") is not None:
                index = int(match.group("index"))
            else:
                index = next_index
                next_index += 1
            params.append(_Param(index=index, type=match.group("type"), hint=match.group("hint") or "",
                                 start=match.start(), end=match.end()))
            position = match.end()
        return params

    def _read_arg(self, type_name: str, reader: _Reader, depth: int):
        if type_name in _INTEGER_FORMATS:
            return reader.unpack(_INTEGER_FORMATS[type_name])
        if type_name in ("u128", "i128"):
            return int.from_bytes(reader.take(16), "little", signed=type_name == "i128")
        if type_name == "bool":
            return reader.unpack("<B") != 0
        if type_name == "char":
            code = reader.unpack("<I")
            try:
                return chr(code)
            except ValueError as e:
                raise DecodeError(f"Invalid char code point {code:#x}") from e
        if type_name == "str":
            return self._utf8(reader.take(reader.unpack("<I")))
        if type_name == "istr":
            entry = self._lookup(reader.u16())
            return entry.string
        if type_name == "[u8]":
            return list(reader.take(reader.unpack("<I")))
        array = re.fullmatch(r"\[u8;\s*(\d+)\]", type_name)
        if array:
            return list(reader.take(int(array.group(1))))
        if type_name == "?":
            entry = self._lookup(reader.u16())
            return _Nested(self._format(entry.string, reader, depth + 1))
        raise DecodeError(f"Unsupported argument type '{type_name}'")

    def _lookup(self, index: int) -> TableEntry:
        entry = self._table.get(index)
        if entry is None:
            raise DecodeError(f"Unknown string index {index}")
        return entry

    @staticmethod
    def _utf8(raw: bytes) -> str:
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError("String argument is not valid UTF-8") from e


class _Nested(str):
    """An already formatted `=?` argument; hints do not apply to it."""


# --- Display helpers ---

def _unescape(text: str) -> str:
    return text.replace("{{", "{").replace("}}", "}")


def _display(value, hint: str) -> str:
    if isinstance(value, _Nested):
        return str(value)
    if isinstance(value, list):
        if hint == "a":
            return "b\"" + "".join(_ascii_byte(b) for b in value) + "\""
        return "[" + ", ".join(_display(item, hint) for item in value) + "]"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return _display_int(value, hint)
    if isinstance(value, float):
        return repr(value)
    return str(value)


def _display_int(value: int, hint: str) -> str:
    if hint == "us":
        return f"{value // 1_000_000}.{value % 1_000_000:06}"
    if hint == "ms":
        return f"{value // 1_000}.{value % 1_000:03}"
    alternate = hint.startswith("#")
    base = hint.lstrip("#")
    prefix = {"x": "0x", "X": "0x", "b": "0b", "o": "0o"}.get(base)
    if prefix is None:
        return str(value)
    digits = format(value, base)
    return (prefix if alternate else "") + digits


def _ascii_byte(byte: int) -> str:
    if byte == 0x5C:
        return "\\\\"
    if byte == 0x22:
        return "\\\""
    if 0x20 <= byte < 0x7F:
        return chr(byte)
    return f"\\x{byte:02x}"
