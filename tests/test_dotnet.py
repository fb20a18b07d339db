import struct

import pytest

from peinspect.dotnet import (
    parse_clr_header_directory,
    parse_metadata_header,
    parse_metadata_table_stream_header,
)
from peinspect.dotnettypes import (
    ImageCOR20Header,
    ImageDataDirectory,
    MetadataHeader,
    MetadataStreamHeader,
    MetadataTableIndex,
    MetadataTableStreamHeader,
)
from peinspect.reader import BinaryView, OutsideBoundary, PEError

CLR_RVA = 0x1008
MD_RVA = 0x2050
IMAGE_SIZE = 0xD000

STREAMS = [
    (0x6C, 0x4C38, "#~"),
    (0x4CA4, 0x5ED4, "#Strings"),
    (0xAB78, 0x4, "#US"),
    (0xAB7C, 0x10, "#GUID"),
    (0xAB8C, 0x2A8, "#Blob"),
]

# Record counts for tables 0, 1, 2, 10, 12, 14, 32, 35 and 39.
MASK_VALID = 0x8900005407
TABLE_COUNTS = [1, 19, 5, 17, 19, 1, 1, 30, 1319]


def _cor20(md_va=MD_RVA, md_size=0xAE34):
    dirs = [0, 0, 0xCE84, 0x80] + [0] * 8
    return struct.pack("<IHH2III12I", 0x48, 2, 5, md_va, md_size, 0x9, 0, *dirs)


def _stream_name(name):
    raw = name.encode() + b"\x00"
    return raw + b"\x00" * (-len(raw) % 4)


def _build_image(streams=STREAMS, heaps=0, md_size=0xAE34):
    data = bytearray(IMAGE_SIZE)
    data[CLR_RVA : CLR_RVA + 0x48] = _cor20(md_size=md_size)

    header = struct.pack("<IHHII", 0x424A5342, 1, 1, 0, 0xC)
    header += b"v4.0.30319\x00\x00"
    header += struct.pack("<BBH", 0, 0, len(streams))
    for offset, size, name in streams:
        header += struct.pack("<II", offset, size) + _stream_name(name)
    data[MD_RVA : MD_RVA + len(header)] = header

    tables = MD_RVA + 0x6C
    table_header = struct.pack("<IBBBBQQ", 0, 2, 0, heaps, 1, MASK_VALID, 0x16003301FA00)
    table_header += struct.pack(f"<{len(TABLE_COUNTS)}I", *TABLE_COUNTS)
    data[tables : tables + len(table_header)] = table_header
    return BinaryView(bytes(data))


def test_clr_header_values():
    clr = parse_clr_header_directory(_build_image(), CLR_RVA, 0x48)
    assert clr.clr_header == ImageCOR20Header(
        cb=0x48,
        major_runtime_version=0x2,
        minor_runtime_version=0x5,
        metadata=ImageDataDirectory(0x2050, 0xAE34),
        flags=0x9,
        entry_point_rva_or_token=0x0,
        strong_name_signature=ImageDataDirectory(0xCE84, 0x80),
    )


def test_metadata_header_values():
    clr = parse_clr_header_directory(_build_image(), CLR_RVA, 0x48)
    assert clr.metadata_header == MetadataHeader(
        signature=0x424A5342,
        major_version=0x1,
        minor_version=0x1,
        extra_data=0x0,
        version_string=0xC,
        version="v4.0.30319",
        flags=0x0,
        streams=0x5,
    )


def test_metadata_stream_headers():
    clr = parse_clr_header_directory(_build_image(), CLR_RVA, 0x48)
    assert clr.metadata_stream_headers == [
        MetadataStreamHeader(offset=0x6C, size=0x4C38, name="#~"),
        MetadataStreamHeader(offset=0x4CA4, size=0x5ED4, name="#Strings"),
        MetadataStreamHeader(offset=0xAB78, size=0x4, name="#US"),
        MetadataStreamHeader(offset=0xAB7C, size=0x10, name="#GUID"),
        MetadataStreamHeader(offset=0xAB8C, size=0x2A8, name="#Blob"),
    ]
    assert {name: len(raw) for name, raw in clr.metadata_streams.items()} == {
        "#~": 0x4C38,
        "#Strings": 0x5ED4,
        "#US": 0x4,
        "#GUID": 0x10,
        "#Blob": 0x2A8,
    }


def test_metadata_tables_stream_header():
    clr = parse_clr_header_directory(_build_image(), CLR_RVA, 0x48)
    assert clr.metadata_tables_stream_header == MetadataTableStreamHeader(
        reserved=0x0,
        major_version=0x2,
        minor_version=0x0,
        heaps=0x0,
        rid=0x1,
        mask_valid=0x8900005407,
        sorted=0x16003301FA00,
    )
    assert clr.string_stream_index_size == 2
    assert clr.guid_stream_index_size == 2
    assert clr.blob_stream_index_size == 2


@pytest.mark.parametrize(
    "index, name, count",
    [
        (MetadataTableIndex.MODULE, "Module", 0x1),
        (MetadataTableIndex.TYPE_REF, "TypeRef", 19),
        (MetadataTableIndex.MEMBER_REF, "MemberRef", 17),
        (MetadataTableIndex.CUSTOM_ATTRIBUTE, "CustomAttribute", 19),
        (MetadataTableIndex.DECL_SECURITY, "DeclSecurity", 1),
        (MetadataTableIndex.ASSEMBLY, "Assembly", 1),
        (MetadataTableIndex.ASSEMBLY_REF, "AssemblyRef", 30),
        (MetadataTableIndex.EXPORTED_TYPE, "ExportedType", 1319),
    ],
)
def test_metadata_table_counts(index, name, count):
    clr = parse_clr_header_directory(_build_image(), CLR_RVA, 0x48)
    table = clr.metadata_tables[index]
    assert table.name == name
    assert table.count_cols == count


def test_only_present_tables_are_listed():
    clr = parse_clr_header_directory(_build_image(), CLR_RVA, 0x48)
    assert sorted(clr.metadata_tables) == [0, 1, 2, 10, 12, 14, 32, 35, 39]


def test_heap_bits_widen_indexes():
    clr = parse_clr_header_directory(_build_image(heaps=0x7), CLR_RVA, 0x48)
    assert clr.string_stream_index_size == 4
    assert clr.guid_stream_index_size == 4
    assert clr.blob_stream_index_size == 4


def test_no_metadata_gives_header_only():
    clr = parse_clr_header_directory(_build_image(md_size=0), CLR_RVA, 0x48)
    assert clr.clr_header.metadata == ImageDataDirectory(MD_RVA, 0)
    assert clr.metadata_stream_headers == []
    assert clr.metadata_tables == {}


def test_without_tables_stream_tables_are_empty():
    streams = [s for s in STREAMS if s[2] != "#~"]
    clr = parse_clr_header_directory(_build_image(streams=streams), CLR_RVA, 0x48)
    assert [s.name for s in clr.metadata_stream_headers] == ["#Strings", "#US", "#GUID", "#Blob"]
    assert clr.metadata_tables == {}
    assert clr.metadata_tables_stream_header == MetadataTableStreamHeader()


def test_truncated_header_size_raises():
    with pytest.raises(PEError):
        parse_clr_header_directory(_build_image(), CLR_RVA, 0x10)


def test_stream_outside_image_raises():
    streams = STREAMS + [(0xFFF0, 0x100, "#Bad")]
    with pytest.raises(OutsideBoundary):
        parse_clr_header_directory(_build_image(streams=streams), CLR_RVA, 0x48)


def test_parse_metadata_header_truncated():
    data = struct.pack("<IHHII", 0x424A5342, 1, 1, 0, 0x40) + b"v4"
    with pytest.raises(OutsideBoundary):
        parse_metadata_header(BinaryView(data), 0)


def test_table_stream_header_empty_size():
    assert parse_metadata_table_stream_header(BinaryView(b""), 0, 0) == MetadataTableStreamHeader()


def test_table_stream_header_values():
    raw = struct.pack("<IBBBBQQ", 0, 2, 0, 1, 1, 0x5, 0x3)
    header = parse_metadata_table_stream_header(BinaryView(raw), 0, len(raw))
    assert header == MetadataTableStreamHeader(0, 2, 0, 1, 1, 0x5, 0x3)