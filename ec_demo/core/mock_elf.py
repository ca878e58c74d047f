# ec_demo/core/mock_elf.py

"""
Builds a minimal ELF image carrying a `.defmt` string table.

The mock firmware ("mock-bin") has one timestamp format and six log calls.
Their indices must stay in sync with `sources.MockSource`, which produces
frames that refer to them.
"""

import json
import logging
import struct
from pathlib import Path
from typing import Dict, Tuple

from .defmt_table import SUPPORTED_VERSIONS, TIMESTAMP_TAG

logger = logging.getLogger(__name__)

MOCK_PACKAGE = "mock-bin"
MOCK_TIMESTAMP_INDEX = 0
MOCK_TIMESTAMP_FORMAT = "{=u64:us}"
MOCK_LOGS: Dict[int, Tuple[str, str]] = {
    1: ("defmt_trace", "This is a trace defmt log"),
    2: ("defmt_debug", "This is a debug defmt log"),
    3: ("defmt_info",
        "This is a really long log message. Really really really long. Its length should be measured in "
        "light-years. Not characters. It will wrap around on all monitors not of cosmic scale. Who needs to "
        "log something this long anyway? Who knows. But someone will. Therefore we must be prepared."),
    4: ("defmt_info", "This is a log message with a newline.\nSee? I'm on a newline now!"),
    5: ("defmt_warn", "This is a warn defmt log"),
    6: ("defmt_error", "This is a error defmt log"),
}

# ELF constants used below.
_ET_EXEC = 2
_EM_ARM = 40
_SHT_PROGBITS = 1
_SHT_SYMTAB = 2
_SHT_STRTAB = 3
_SHN_ABS = 0xFFF1
_STB_GLOBAL_OBJECT = 0x11
_STB_GLOBAL_NOTYPE = 0x10
_EHDR_SIZE = 52
_SHDR_SIZE = 40
_SYM_SIZE = 16


def _align(value: int, boundary: int = 4) -> int:
    return (value + boundary - 1) // boundary * boundary


def build_defmt_elf(entries: Dict[int, Tuple[str, str]], version: str = SUPPORTED_VERSIONS[-1],
                    package: str = MOCK_PACKAGE) -> bytes:
    """
    Returns the bytes of a 32-bit little-endian ELF whose `.defmt` section
    holds one symbol per entry. `entries` maps index -> (tag, format string).
    """
    defmt_section_index = 1
    strtab = bytearray(b"\0")

    def add_string(text: str) -> int:
        offset = len(strtab)
        strtab.extend(text.encode("utf-8") + b"\0")
        return offset

    symbols = bytearray(_SYM_SIZE)
    for disambiguator, (index, (tag, data)) in enumerate(sorted(entries.items())):
        name = json.dumps({
            "package": package,
            "tag": tag,
            "data": data,
            "disambiguator": str(disambiguator),
            "crate_name": package.replace("-", "_"),
        })
        symbols += struct.pack("<IIIBBH", add_string(name), index, 1, _STB_GLOBAL_OBJECT, 0,
                               defmt_section_index)
    symbols += struct.pack("<IIIBBH", add_string(f"_defmt_version_ = {version}"), 0, 0,
                           _STB_GLOBAL_NOTYPE, 0, _SHN_ABS)

    shstrtab = bytearray(b"\0")
    section_names = {}
    for name in (".defmt", ".symtab", ".strtab", ".shstrtab"):
        section_names[name] = len(shstrtab)
        shstrtab.extend(name.encode("ascii") + b"\0")

    defmt_data = bytes(max(entries, default=0) + 1)

    defmt_offset = _EHDR_SIZE
    symtab_offset = _align(defmt_offset + len(defmt_data))
    strtab_offset = symtab_offset + len(symbols)
    shstrtab_offset = strtab_offset + len(strtab)
    shdr_offset = _align(shstrtab_offset + len(shstrtab))

    def section_header(name, sh_type, offset, size, link=0, info=0, align=1, entsize=0):
        return struct.pack("<IIIIIIIIII", name, sh_type, 0, 0, offset, size, link, info, align, entsize)

    headers = bytes(_SHDR_SIZE)
    headers += section_header(section_names[".defmt"], _SHT_PROGBITS, defmt_offset, len(defmt_data))
    headers += section_header(section_names[".symtab"], _SHT_SYMTAB, symtab_offset, len(symbols),
                              link=3, info=1, align=4, entsize=_SYM_SIZE)
    headers += section_header(section_names[".strtab"], _SHT_STRTAB, strtab_offset, len(strtab))
    headers += section_header(section_names[".shstrtab"], _SHT_STRTAB, shstrtab_offset, len(shstrtab))

    ident = b"\x7fELF" + bytes([1, 1, 1, 0]) + bytes(8)
    elf_header = struct.pack("<16sHHIIIIIHHHHHH", ident, _ET_EXEC, _EM_ARM, 1, 0, 0, shdr_offset,
                             0x05000200, _EHDR_SIZE, 32, 0, _SHDR_SIZE, 5, 4)

    image = bytearray(elf_header)
    image += defmt_data
    image += bytes(symtab_offset - len(image))
    image += symbols
    image += strtab
    image += shstrtab
    image += bytes(shdr_offset - len(image))
    image += headers
    return bytes(image)


def mock_elf_bytes() -> bytes:
    """The mock-bin image matching MockSource's frames."""
    entries = {MOCK_TIMESTAMP_INDEX: (TIMESTAMP_TAG, MOCK_TIMESTAMP_FORMAT)}
    entries.update(MOCK_LOGS)
    return build_defmt_elf(entries)


def write_mock_elf(path: Path) -> Path:
    """Writes the mock-bin image to `path` and returns it."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(mock_elf_bytes())
    logger.info(f"Wrote mock defmt ELF to: {path}")
    return path
