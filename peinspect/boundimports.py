"""The bound import directory: DLLs the image was bound to when it was built."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .reader import BinaryView, Section, is_printable

logger = logging.getLogger(__name__)

MAX_STRING_LENGTH = 0x100
_MAX_NAME_LENGTH = 256
_DESCRIPTOR_FORMAT = "<IHH"
_DESCRIPTOR_SIZE = 8
_MASK32 = 0xFFFFFFFF


@dataclass(frozen=True)
class ImageBoundImportDescriptor:
    time_date_stamp: int
    offset_module_name: int
    number_of_module_forwarder_refs: int


@dataclass(frozen=True)
class ImageBoundForwardedRef:
    time_date_stamp: int
    offset_module_name: int
    reserved: int


@dataclass(frozen=True)
class BoundForwardedRefData:
    ref: ImageBoundForwardedRef
    name: str


@dataclass(frozen=True)
class BoundImportDescriptorData:
    descriptor: ImageBoundImportDescriptor
    name: str
    forwarded_refs: list[BoundForwardedRefData] = field(default_factory=list)


def _section_data_length(view: BinaryView, section: Section) -> int:
    available = len(view) - section.pointer_to_raw_data
    return max(0, min(section.size_of_raw_data, available))


def _safety_boundary(view: BinaryView, rva: int) -> tuple[Section | None, int]:
    file_offset = view.offset_from_rva(rva)
    section = view.section_by_rva(rva)
    if section is not None:
        end = section.pointer_to_raw_data + _section_data_length(view, section)
        return section, (end - file_offset) & _MASK32

    boundary = (len(view) - file_offset) & _MASK32
    later = [
        s.pointer_to_raw_data for s in view.sections if s.pointer_to_raw_data > file_offset
    ]
    if later:
        section = view.section_by_offset(min(later))
        if section is not None:
            boundary = (section.pointer_to_raw_data - file_offset) & _MASK32
    return section, boundary


def _valid_name(name: str) -> bool:
    return not name or (len(name) <= _MAX_NAME_LENGTH and is_printable(name))


def parse_bound_import_directory(
    view: BinaryView, rva: int, size: int
) -> list[BoundImportDescriptorData]:
    """Parse the array of bound import descriptors starting at `rva`.

    Raises OutsideBoundary if a descriptor cannot be read.
    """
    start = rva
    results: list[BoundImportDescriptorData] = []

    while True:
        descriptor = ImageBoundImportDescriptor(*view.unpack(_DESCRIPTOR_FORMAT, rva))
        if descriptor == ImageBoundImportDescriptor(0, 0, 0):
            break
        rva += _DESCRIPTOR_SIZE

        section, boundary = _safety_boundary(view, rva)
        if section is None:
            logger.warning(
                "RVA of IMAGE_BOUND_IMPORT_DESCRIPTOR points to an invalid address: 0x%x", rva
            )
            return results

        count = min(descriptor.number_of_module_forwarder_refs, boundary // _DESCRIPTOR_SIZE)
        refs: list[BoundForwardedRefData] = []
        for _ in range(count):
            ref = ImageBoundForwardedRef(*view.unpack(_DESCRIPTOR_FORMAT, rva))
            rva += _DESCRIPTOR_SIZE
            name = view.string_at(start + ref.offset_module_name, MAX_STRING_LENGTH)
            # Overlong or unprintable names mark a corrupt entry.
            if not _valid_name(name):
                break
            refs.append(BoundForwardedRefData(ref=ref, name=name))

        name = view.string_at(start + descriptor.offset_module_name, MAX_STRING_LENGTH)
        if not _valid_name(name):
            break
        results.append(
            BoundImportDescriptorData(descriptor=descriptor, name=name, forwarded_refs=refs)
        )

    return results