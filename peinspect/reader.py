"""Bounds-checked little-endian access to the bytes of a PE image."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Iterable, Optional

INVALID_OFFSET = 0xFFFFFFFF


class PEError(Exception):
    """Base class for errors raised while parsing a PE image."""


class OutsideBoundary(PEError):
    """Raised when a read falls outside the image data."""


@dataclass(frozen=True)
class Section:
    """The part of a section header needed to map addresses."""

    name: str
    virtual_address: int
    virtual_size: int
    pointer_to_raw_data: int
    size_of_raw_data: int

    def contains_rva(self, rva: int) -> bool:
        """Return True if the relative virtual address falls inside the section."""
        size = max(self.virtual_size, self.size_of_raw_data)
        return self.virtual_address <= rva < self.virtual_address + size


class BinaryView:
    """Read-only view over image bytes together with its section table."""

    def __init__(self, data: bytes, sections: Iterable[Section] = ()) -> None:
        self.data = bytes(data)
        self.sections = list(sections)

    def __len__(self) -> int:
        return len(self.data)

    def offset_from_rva(self, rva: int) -> int:
        """Translate a relative virtual address into a file offset."""
        section = self.section_by_rva(rva)
        if section is None:
            return rva if rva < len(self.data) else INVALID_OFFSET
        return rva - section.virtual_address + section.pointer_to_raw_data

    def section_by_rva(self, rva: int) -> Optional[Section]:
        """Return the first section containing the address, or None."""
        return next((s for s in self.sections if s.contains_rva(rva)), None)

    def section_by_offset(self, offset: int) -> Optional[Section]:
        """Return the first section whose raw data holds the file offset, or None."""
        return next(
            (
                s
                for s in self.sections
                if s.pointer_to_raw_data <= offset < s.pointer_to_raw_data + s.size_of_raw_data
            ),
            None,
        )

    def read_bytes(self, offset: int, size: int) -> bytes:
        """Return `size` bytes at `offset`, raising OutsideBoundary if they do not fit."""
        if offset < 0 or size < 0 or offset + size > len(self.data):
            raise OutsideBoundary(
                f"reading {size} bytes at offset 0x{offset:x} exceeds data size 0x{len(self.data):x}"
            )
        return self.data[offset : offset + size]

    def read_u8(self, offset: int) -> int:
        return self.unpack("B", offset)[0]

    def read_u16(self, offset: int) -> int:
        return self.unpack("H", offset)[0]

    def read_u32(self, offset: int) -> int:
        return self.unpack("I", offset)[0]

    def read_u64(self, offset: int) -> int:
        return self.unpack("Q", offset)[0]

    def unpack(self, fmt: str, offset: int) -> tuple:
        """Unpack a struct format at `offset`; little-endian unless the format says otherwise."""
        if not fmt or fmt[0] not in "<>!=@":
            fmt = "<" + fmt
        raw = self.read_bytes(offset, struct.calcsize(fmt))
        return struct.unpack(fmt, raw)

    def string_at(self, offset: int, max_length: int) -> str:
        """Return the NUL-terminated string at `offset`, reading at most `max_length` bytes."""
        if offset < 0 or offset >= len(self.data):
            return ""
        chunk = self.data[offset : offset + max_length]
        return chunk.split(b"\x00", 1)[0].decode("latin-1")


def is_printable(text: str) -> bool:
    """Return True if every character is printable ASCII."""
    return all(" " <= ch <= "~" for ch in text)