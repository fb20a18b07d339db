"""Header anomalies: odd values the loader tolerates but analysts care about."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

_MASK32 = 0xFFFFFFFF

# Standard sizes of the optional header structures.
OPTIONAL_HEADER32_SIZE = 0xE0
OPTIONAL_HEADER64_SIZE = 0xF0

ANO_PE_HEADER_OVERLAP_DOS_HEADER = "PE header overlaps with DOS header"
ANO_PE_TIMESTAMP_NULL = "file header timestamp set to 0"
ANO_PE_TIMESTAMP_FUTURE = "file header timestamp set to 0"
ANO_NUMBER_OF_SECTIONS_10_PLUS = "number of sections is 10+"
ANO_NUMBER_OF_SECTIONS_NULL = "number of sections is 0"
ANO_SIZE_OF_OPTIONAL_HEADER_NULL = "size of optional header is 0"
ANO_UNCOMMON_SIZE_OF_OPTIONAL_HEADER32 = "size of optional header is larger than 0xE0 (PE32)"
ANO_UNCOMMON_SIZE_OF_OPTIONAL_HEADER64 = "size of optional header is larger than 0xF0 (PE32+)"
ANO_ADDRESS_OF_ENTRY_POINT_NULL = "address of entry point is 0"
ANO_ADDRESS_OF_EP_LESS_SIZE_OF_HEADERS = (
    "address of entry point is smaller than size of headers, "
    "the file cannot run under Windows 8"
)
ANO_IMAGE_BASE_NULL = "image base is 0"
ANO_DANS_MAGIC_OFFSET = "`DanS` magic offset is different than 0x80"
ANO_INVALID_FILE_ALIGNMENT = "FileAlignment larger than 0x200 and not a power of 2"
ANO_INVALID_SECTION_ALIGNMENT = (
    "FileAlignment lesser than 0x200 and different from section alignment"
)
ANO_INVALID_SIZE_OF_IMAGE = "size of image is not a multiple of section alignment"
ANO_MAJOR_SUBSYSTEM_VERSION = "MajorSubsystemVersion is outside 3<-->6 boundary"
ANO_WIN32_VERSION_VALUE = "Win32VersionValue is a reserved field, must be set to zero"
ANO_INVALID_PE_CHECKSUM = "optional header checksum is invalid"
ANO_NUMBER_OF_RVA_AND_SIZES = "optional header NumberOfRvaAndSizes != 16"
ANO_RESERVED_DATA_DIRECTORY_ENTRY = (
    "last data directory entry is a reserved field, must be set to zero"
)
ANO_COFF_SYMBOLS_COUNT = "COFF symbols count is absurdly high"
ANO_RELOCATION_ENTRIES_COUNT = "relocation entries count is absurdly high"


@dataclass(frozen=True)
class HeaderFields:
    """File and optional header values examined for anomalies."""

    is_64: bool
    number_of_sections: int
    time_date_stamp: int
    size_of_optional_header: int
    address_of_entry_point: int
    size_of_headers: int
    image_base: int
    section_alignment: int
    size_of_image: int
    major_subsystem_version: int
    win32_version_value: int
    checksum: int
    number_of_rva_and_sizes: int


def add_anomaly(anomalies: list[str], anomaly: str) -> None:
    """Append `anomaly` to `anomalies` unless it is already there."""
    if anomaly not in anomalies:
        anomalies.append(anomaly)


def get_anomalies(
    fields: HeaderFields, checksum: int, now: Optional[datetime] = None
) -> list[str]:
    """Return the anomalies found in the headers, in the order they are checked.

    `checksum` is the checksum computed over the image; `now` is the time
    used to detect timestamps in the future (defaults to the current time).
    """
    if now is None:
        now = datetime.now(timezone.utc)
    anomalies: list[str] = []

    # NumberOfSections can be up to 96 under XP and 65535 under Vista and later.
    if fields.number_of_sections >= 10:
        anomalies.append(ANO_NUMBER_OF_SECTIONS_10_PLUS)

    if fields.time_date_stamp == 0:
        anomalies.append(ANO_PE_TIMESTAMP_NULL)

    future = int((now + timedelta(hours=24)).timestamp()) & _MASK32
    if fields.time_date_stamp > future:
        anomalies.append(ANO_PE_TIMESTAMP_FUTURE)

    if fields.number_of_sections == 0:
        anomalies.append(ANO_NUMBER_OF_SECTIONS_NULL)

    # SizeOfOptionalHeader is really the delta to the section table; it may be 0.
    if fields.size_of_optional_header == 0:
        anomalies.append(ANO_SIZE_OF_OPTIONAL_HEADER_NULL)

    if not fields.is_64 and fields.size_of_optional_header > OPTIONAL_HEADER32_SIZE:
        anomalies.append(ANO_UNCOMMON_SIZE_OF_OPTIONAL_HEADER32)
    if fields.is_64 and fields.size_of_optional_header > OPTIONAL_HEADER64_SIZE:
        anomalies.append(ANO_UNCOMMON_SIZE_OF_OPTIONAL_HEADER64)

    # Under Windows 8 the entry point may not lie inside the headers unless null.
    entry = fields.address_of_entry_point
    if entry != 0 and entry < fields.size_of_headers:
        anomalies.append(ANO_ADDRESS_OF_EP_LESS_SIZE_OF_HEADERS)

    # A null entry point is allowed in DLLs: DllMain is then not called.
    if entry == 0:
        anomalies.append(ANO_ADDRESS_OF_ENTRY_POINT_NULL)

    # A null image base is relocated to 0x10000 under XP.
    if fields.image_base == 0:
        anomalies.append(ANO_IMAGE_BASE_NULL)

    if fields.section_alignment != 0 and fields.size_of_image % fields.section_alignment != 0:
        anomalies.append(ANO_INVALID_SIZE_OF_IMAGE)

    if fields.major_subsystem_version < 3 or fields.major_subsystem_version > 6:
        anomalies.append(ANO_MAJOR_SUBSYSTEM_VERSION)

    if fields.win32_version_value != 0:
        anomalies.append(ANO_WIN32_VERSION_VALUE)

    # A zero checksum is allowed except for drivers and some system DLLs.
    if checksum != fields.checksum and fields.checksum != 0:
        anomalies.append(ANO_INVALID_PE_CHECKSUM)

    if fields.number_of_rva_and_sizes == 0xA:
        anomalies.append(ANO_NUMBER_OF_RVA_AND_SIZES)

    return anomalies