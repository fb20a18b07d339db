"""Parsing of the CLR (.NET) runtime header, metadata header and streams."""

from __future__ import annotations

from .dotnettypes import (
    BLOB_STREAM,
    COR20_HEADER_FORMAT,
    COR20_HEADER_SIZE,
    GUID_STREAM,
    METADATA_TABLE_STREAM_HEADER_FORMAT,
    METADATA_TABLE_STREAM_HEADER_SIZE,
    STRING_STREAM,
    CLRData,
    ImageCOR20Header,
    ImageDataDirectory,
    MetadataHeader,
    MetadataStreamHeader,
    MetadataTable,
    MetadataTableIndex,
    MetadataTableStreamHeader,
    metadata_table_index_to_string,
    stream_index_size,
)
from .reader import BinaryView, OutsideBoundary, PEError

_MASK32 = 0xFFFFFFFF
_MAX_STREAM_NAME = 32
_OPTIMIZED_STREAMS = ("#~", "#-")


def parse_metadata_header(view: BinaryView, offset: int) -> MetadataHeader:
    """Parse the metadata storage signature and header at file `offset`.

    Raises OutsideBoundary if the header does not fit in the image.
    """
    signature = view.read_u32(offset)
    major_version = view.read_u16(offset + 4)
    minor_version = view.read_u16(offset + 6)
    extra_data = view.read_u32(offset + 8)
    version_length = view.read_u32(offset + 12)
    raw_version = view.read_bytes(offset + 16, version_length)
    version = raw_version.split(b"\x00", 1)[0].decode("latin-1")

    # The storage header: a flags byte, a padding byte and the stream count.
    storage = offset + 16 + version_length
    flags = view.read_u8(storage)
    streams = view.read_u16(storage + 2)

    return MetadataHeader(
        signature=signature,
        major_version=major_version,
        minor_version=minor_version,
        extra_data=extra_data,
        version_string=version_length,
        version=version,
        flags=flags,
        streams=streams,
    )


def parse_metadata_table_stream_header(
    view: BinaryView, offset: int, size: int
) -> MetadataTableStreamHeader:
    """Parse the header of the metadata tables stream; an empty stream gives defaults."""
    if size == 0:
        return MetadataTableStreamHeader()
    return MetadataTableStreamHeader(*view.unpack(METADATA_TABLE_STREAM_HEADER_FORMAT, offset))


def _read_stream_header(view: BinaryView, offset: int) -> tuple[MetadataStreamHeader, int]:
    stream_offset = view.read_u32(offset)
    stream_size = view.read_u32(offset + 4)
    offset += 8

    # The name is NUL-terminated and padded to a 4-byte boundary.
    chars = []
    for position in range(_MAX_STREAM_NAME + 1):
        byte = view.read_u8(offset)
        offset += 1
        if byte == 0 and (position + 1) % 4 == 0:
            break
        if byte != 0:
            chars.append(chr(byte))

    header = MetadataStreamHeader(offset=stream_offset, size=stream_size, name="".join(chars))
    return header, offset


def _parse_cor20_header(view: BinaryView, offset: int, size: int) -> ImageCOR20Header:
    view.read_bytes(offset, size)
    if size < COR20_HEADER_SIZE:
        raise PEError(f"CLR header size 0x{size:x} is smaller than 0x{COR20_HEADER_SIZE:x}")
    values = view.unpack(COR20_HEADER_FORMAT, offset)
    directories = [ImageDataDirectory(values[i], values[i + 1]) for i in range(7, 19, 2)]
    return ImageCOR20Header(
        values[0],
        values[1],
        values[2],
        ImageDataDirectory(values[3], values[4]),
        values[5],
        values[6],
        *directories,
    )


def parse_clr_header_directory(view: BinaryView, rva: int, size: int) -> CLRData:
    """Parse the CLR runtime header at `rva` with the metadata it points to.

    Raises OutsideBoundary or PEError when the runtime header, the metadata
    header or a stream lies outside the image. A missing or unreadable tables
    stream leaves the tables empty.
    """
    clr = CLRData(clr_header=_parse_cor20_header(view, view.offset_from_rva(rva), size))
    metadata = clr.clr_header.metadata
    if metadata.virtual_address == 0 or metadata.size == 0:
        return clr

    offset = view.offset_from_rva(metadata.virtual_address)
    header = parse_metadata_header(view, offset)
    clr.metadata_header = header
    offset += 16 + header.version_string + 4

    tables_offset = 0
    tables_size = 0
    for _ in range(header.streams):
        stream, offset = _read_stream_header(view, offset)
        # "#~" (optimised) and "#-" (unoptimised) are mutually exclusive.
        if stream.name in _OPTIMIZED_STREAMS:
            tables_offset = stream.offset
            tables_size = stream.size
        start = view.offset_from_rva((metadata.virtual_address + stream.offset) & _MASK32)
        clr.metadata_streams[stream.name] = view.read_bytes(start, stream.size)
        clr.metadata_stream_headers.append(stream)

    if tables_size == 0:
        return clr

    offset = view.offset_from_rva((metadata.virtual_address + tables_offset) & _MASK32)
    try:
        tables_header = parse_metadata_table_stream_header(view, offset, tables_size)
    except OutsideBoundary:
        return clr
    clr.metadata_tables_stream_header = tables_header

    clr.string_stream_index_size = stream_index_size(tables_header.heaps, STRING_STREAM)
    clr.guid_stream_index_size = stream_index_size(tables_header.heaps, GUID_STREAM)
    clr.blob_stream_index_size = stream_index_size(tables_header.heaps, BLOB_STREAM)

    # One 4-byte record count follows for each table present in MaskValid.
    offset += METADATA_TABLE_STREAM_HEADER_SIZE
    for index in MetadataTableIndex:
        if not tables_header.mask_valid & (1 << index):
            continue
        try:
            count = view.read_u32(offset)
        except OutsideBoundary:
            break
        offset += 4
        clr.metadata_tables[index] = MetadataTable(
            name=metadata_table_index_to_string(index), count_cols=count
        )

    return clr