# ec_demo/core/defmt_table.py

import enum
import io
import json
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from elftools.common.exceptions import ELFError
from elftools.elf.elffile import ELFFile

from .errors import MetadataError

logger = logging.getLogger(__name__)

DEFMT_SECTION = ".defmt"
VERSION_SYMBOL_PREFIX = "_defmt_version_ = "
SUPPORTED_VERSIONS = ("3", "4")


class Level(enum.Enum):
    """Log levels carried by the entry tag. The value is the display name."""
    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


_LEVEL_TAGS = {
    "defmt_trace": Level.TRACE,
    "defmt_debug": Level.DEBUG,
    "defmt_info": Level.INFO,
    "defmt_warn": Level.WARN,
    "defmt_error": Level.ERROR,
}
TIMESTAMP_TAG = "defmt_timestamp"


@dataclass(frozen=True)
class TableEntry:
    """One interned string: its tag (what kind of string) and the format text."""
    tag: str
    string: str

    @property
    def level(self) -> Optional[Level]:
        return _LEVEL_TAGS.get(self.tag)

    @property
    def is_log(self) -> bool:
        return self.tag in _LEVEL_TAGS or self.tag == "defmt_println"


class Table:
    """
    The immutable string table a firmware image ships in its `.defmt` section.

    Each symbol in that section is named with a small JSON document
    ({"tag": ..., "data": ...}) and its address is the index that log frames
    refer to on the wire.
    """

    def __init__(self, entries: Dict[int, TableEntry], timestamp: Optional[TableEntry] = None,
                 version: str = SUPPORTED_VERSIONS[-1]):
        self._entries = dict(entries)
        self.timestamp = timestamp
        self.version = version

    # --- Construction ---

    @classmethod
    def parse(cls, blob: bytes) -> "Table":
        """
        Builds a table from the bytes of an ELF file.

        Raises:
            MetadataError: the blob is not a readable ELF, has no `.defmt`
                section, or declares an unsupported encoding version.
        """
        try:
            elf = ELFFile(io.BytesIO(blob))
            section_index = None
            for index, section in enumerate(elf.iter_sections()):
                if section.name == DEFMT_SECTION:
                    section_index = index
                    break
            if section_index is None:
                raise MetadataError("ELF contains no `.defmt` section")

            symtab = elf.get_section_by_name(".symtab")
            if symtab is None:
                raise MetadataError("ELF contains no symbol table")

            symbols = []
            version = None
            for symbol in symtab.iter_symbols():
                if symbol.name.startswith(VERSION_SYMBOL_PREFIX):
                    version = symbol.name[len(VERSION_SYMBOL_PREFIX):].strip()
                elif symbol["st_shndx"] == section_index:
                    symbols.append((symbol.name, symbol["st_value"]))
        except ELFError as e:
            raise MetadataError(f"Failed to read ELF: {e}") from e

        if version is None:
            raise MetadataError("ELF contains no defmt version marker")
        if version not in SUPPORTED_VERSIONS:
            raise MetadataError(f"Unsupported defmt version '{version}'")

        return cls.from_symbols(symbols, version=version)

    @classmethod
    def from_symbols(cls, symbols: Iterable[Tuple[str, int]],
                     version: str = SUPPORTED_VERSIONS[-1]) -> "Table":
        """Builds a table from (symbol name, address) pairs."""
        entries: Dict[int, TableEntry] = {}
        timestamp = None
        for name, address in symbols:
            try:
                meta = json.loads(name)
                entry = TableEntry(tag=meta["tag"], string=meta["data"])
            except (ValueError, KeyError, TypeError):
                # Section markers and other non-string symbols share the section.
                logger.debug(f"Skipping non-defmt symbol '{name}'")
                continue

            if entry.tag == TIMESTAMP_TAG:
                timestamp = entry
            entries[address] = entry

        logger.info(f"Loaded defmt table with {len(entries)} entries (version {version}).")
        return cls(entries, timestamp=timestamp, version=version)

    # --- Lookup ---

    def get(self, index: int) -> Optional[TableEntry]:
        return self._entries.get(index)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, index: int) -> bool:
        return index in self._entries

    def items(self) -> List[Tuple[int, TableEntry]]:
        """(index, entry) pairs in index order."""
        return sorted(self._entries.items())
