"""The MS-DOS header that begins every PE image."""

from __future__ import annotations

from dataclasses import dataclass

from .reader import BinaryView, PEError

IMAGE_DOS_SIGNATURE = 0x5A4D
IMAGE_DOS_ZM_SIGNATURE = 0x4D5A

ANO_PE_HEADER_OVERLAP_DOS_HEADER = "PE header overlaps with DOS header"

_FORMAT = "<14H4H2H10HI"


class DOSMagicNotFound(PEError):
    """Raised when the file does not start with an MZ or ZM signature."""


class InvalidElfanew(PEError):
    """Raised when the offset to the NT headers is impossible."""


@dataclass(frozen=True)
class ImageDOSHeader:
    magic: int
    bytes_on_last_page_of_file: int
    pages_in_file: int
    relocations: int
    size_of_header: int
    min_extra_paragraphs_needed: int
    max_extra_paragraphs_needed: int
    initial_ss: int
    initial_sp: int
    checksum: int
    initial_ip: int
    initial_cs: int
    address_of_relocation_table: int
    overlay_number: int
    reserved_words_1: tuple[int, ...]
    oem_identifier: int
    oem_information: int
    reserved_words_2: tuple[int, ...]
    address_of_new_exe_header: int


def parse_dos_header(view: BinaryView) -> tuple[ImageDOSHeader, list[str]]:
    """Parse the DOS header, returning it with any anomalies it shows."""
    values = view.unpack(_FORMAT, 0)
    header = ImageDOSHeader(
        *values[:14],
        tuple(values[14:18]),
        values[18],
        values[19],
        tuple(values[20:30]),
        values[30],
    )

    # ZM also marks a (non-PE) DOS executable.
    if header.magic not in (IMAGE_DOS_SIGNATURE, IMAGE_DOS_ZM_SIGNATURE):
        raise DOSMagicNotFound("DOS header magic not found")

    elfanew = header.address_of_new_exe_header
    if elfanew < 4 or elfanew > len(view):
        raise InvalidElfanew(f"invalid e_lfanew value 0x{elfanew:x}")

    anomalies = []
    # A small e_lfanew means the NT headers overlap the DOS header (tiny PE).
    if elfanew <= 0x3C:
        anomalies.append(ANO_PE_HEADER_OVERLAP_DOS_HEADER)
    return header, anomalies