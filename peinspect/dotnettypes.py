"""Structures, constants and names used by the CLR (.NET) data directory."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

# On-disk layouts, little-endian.
COR20_HEADER_FORMAT = "<IHH2III12I"
COR20_HEADER_SIZE = 0x48
METADATA_TABLE_STREAM_HEADER_FORMAT = "<IBBBBQQ"
METADATA_TABLE_STREAM_HEADER_SIZE = 24
METADATA_SIGNATURE = 0x424A5342  # "BSJB"

# COM+ header flags.
COMIMAGE_FLAGS_IL_ONLY = 0x00000001
COMIMAGE_FLAGS_32BIT_REQUIRED = 0x00000002
COMIMAGE_FLAGS_IL_LIBRARY = 0x00000004
COMIMAGE_FLAGS_STRONG_NAME_SIGNED = 0x00000008
COMIMAGE_FLAGS_NATIVE_ENTRYPOINT = 0x00000010
COMIMAGE_FLAGS_TRACK_DEBUG_DATA = 0x00010000
COMIMAGE_FLAGS_32BIT_PREFERRED = 0x00020000

# V-table fixup types.
COR_VTABLE_32BIT = 0x01
COR_VTABLE_64BIT = 0x02
COR_VTABLE_FROM_UNMANAGED = 0x04
COR_VTABLE_FROM_UNMANAGED_RETAIN_APPDOMAIN = 0x08
COR_VTABLE_CALL_MOST_DERIVED = 0x10

# Bit positions in the Heaps field of the tables stream header.
STRING_STREAM = 0
GUID_STREAM = 1
BLOB_STREAM = 2


class MetadataTableIndex(IntEnum):
    """Indexes of the tables defined by the metadata schema."""

    MODULE = 0
    TYPE_REF = 1
    TYPE_DEF = 2
    FIELD_PTR = 3
    FIELD = 4
    METHOD_PTR = 5
    METHOD_DEF = 6
    PARAM_PTR = 7
    PARAM = 8
    INTERFACE_IMPL = 9
    MEMBER_REF = 10
    CONSTANT = 11
    CUSTOM_ATTRIBUTE = 12
    FIELD_MARSHAL = 13
    DECL_SECURITY = 14
    CLASS_LAYOUT = 15
    FIELD_LAYOUT = 16
    STAND_ALONE_SIG = 17
    EVENT_MAP = 18
    EVENT_PTR = 19
    EVENT = 20
    PROPERTY_MAP = 21
    PROPERTY_PTR = 22
    PROPERTY = 23
    METHOD_SEMANTICS = 24
    METHOD_IMPL = 25
    MODULE_REF = 26
    TYPE_SPEC = 27
    IMPL_MAP = 28
    FIELD_RVA = 29
    ENC_LOG = 30
    ENC_MAP = 31
    ASSEMBLY = 32
    ASSEMBLY_PROCESSOR = 33
    ASSEMBLY_OS = 34
    ASSEMBLY_REF = 35
    ASSEMBLY_REF_PROCESSOR = 36
    ASSEMBLY_REF_OS = 37
    FILE = 38
    EXPORTED_TYPE = 39
    MANIFEST_RESOURCE = 40
    NESTED_CLASS = 41
    GENERIC_PARAM = 42
    METHOD_SPEC = 43
    GENERIC_PARAM_CONSTRAINT = 44


_TABLE_NAMES = {
    MetadataTableIndex.MODULE: "Module",
    MetadataTableIndex.TYPE_REF: "TypeRef",
    MetadataTableIndex.TYPE_DEF: "TypeDef",
    MetadataTableIndex.FIELD_PTR: "FieldPtr",
    MetadataTableIndex.FIELD: "Field",
    MetadataTableIndex.METHOD_PTR: "MethodPtr",
    MetadataTableIndex.METHOD_DEF: "MethodDef",
    MetadataTableIndex.PARAM_PTR: "ParamPtr",
    MetadataTableIndex.PARAM: "Param",
    MetadataTableIndex.INTERFACE_IMPL: "InterfaceImpl",
    MetadataTableIndex.MEMBER_REF: "MemberRef",
    MetadataTableIndex.CONSTANT: "Constant",
    MetadataTableIndex.CUSTOM_ATTRIBUTE: "CustomAttribute",
    MetadataTableIndex.FIELD_MARSHAL: "FieldMarshal",
    MetadataTableIndex.DECL_SECURITY: "DeclSecurity",
    MetadataTableIndex.CLASS_LAYOUT: "ClassLayout",
    MetadataTableIndex.FIELD_LAYOUT: "FieldLayout",
    MetadataTableIndex.STAND_ALONE_SIG: "StandAloneSig",
    MetadataTableIndex.EVENT_MAP: "EventMap",
    MetadataTableIndex.EVENT_PTR: "EventPtr",
    MetadataTableIndex.EVENT: "Event",
    MetadataTableIndex.PROPERTY_MAP: "PropertyMap",
    MetadataTableIndex.PROPERTY_PTR: "PropertyPtr",
    MetadataTableIndex.PROPERTY: "Property",
    MetadataTableIndex.METHOD_SEMANTICS: "MethodSemantics",
    MetadataTableIndex.METHOD_IMPL: "MethodImpl",
    MetadataTableIndex.MODULE_REF: "ModuleRef",
    MetadataTableIndex.TYPE_SPEC: "TypeSpec",
    MetadataTableIndex.IMPL_MAP: "ImplMap",
    MetadataTableIndex.FIELD_RVA: "FieldRVA",
    MetadataTableIndex.ENC_LOG: "ENCLog",
    MetadataTableIndex.ENC_MAP: "ENCMap",
    MetadataTableIndex.ASSEMBLY: "Assembly",
    MetadataTableIndex.ASSEMBLY_PROCESSOR: "AssemblyProcessor",
    MetadataTableIndex.ASSEMBLY_OS: "AssemblyOS",
    MetadataTableIndex.ASSEMBLY_REF: "AssemblyRef",
    MetadataTableIndex.ASSEMBLY_REF_PROCESSOR: "AssemblyRefProcessor",
    MetadataTableIndex.ASSEMBLY_REF_OS: "AssemblyRefOS",
    MetadataTableIndex.FILE: "File",
    MetadataTableIndex.EXPORTED_TYPE: "ExportedType",
    MetadataTableIndex.MANIFEST_RESOURCE: "ManifestResource",
    MetadataTableIndex.NESTED_CLASS: "NestedClass",
    MetadataTableIndex.GENERIC_PARAM: "GenericParam",
    MetadataTableIndex.METHOD_SPEC: "MethodSpec",
    MetadataTableIndex.GENERIC_PARAM_CONSTRAINT: "GenericParamConstraint",
}

_COM_IMAGE_FLAG_NAMES = {
    COMIMAGE_FLAGS_IL_ONLY: "IL Only",
    COMIMAGE_FLAGS_32BIT_REQUIRED: "32-Bit Required",
    COMIMAGE_FLAGS_IL_LIBRARY: "IL Library",
    COMIMAGE_FLAGS_STRONG_NAME_SIGNED: "Strong Name Signed",
    COMIMAGE_FLAGS_NATIVE_ENTRYPOINT: "Native Entrypoint",
    COMIMAGE_FLAGS_TRACK_DEBUG_DATA: "Track Debug Data",
    COMIMAGE_FLAGS_32BIT_PREFERRED: "32-Bit Preferred",
}


@dataclass(frozen=True)
class ImageDataDirectory:
    """An address and size pair locating a table."""

    virtual_address: int = 0
    size: int = 0


@dataclass(frozen=True)
class ImageCOR20Header:
    """The CLR 2.0 runtime header."""

    cb: int = 0
    major_runtime_version: int = 0
    minor_runtime_version: int = 0
    metadata: ImageDataDirectory = ImageDataDirectory()
    flags: int = 0
    entry_point_rva_or_token: int = 0
    resources: ImageDataDirectory = ImageDataDirectory()
    strong_name_signature: ImageDataDirectory = ImageDataDirectory()
    code_manager_table: ImageDataDirectory = ImageDataDirectory()
    vtable_fixups: ImageDataDirectory = ImageDataDirectory()
    export_address_table_jumps: ImageDataDirectory = ImageDataDirectory()
    managed_native_header: ImageDataDirectory = ImageDataDirectory()


@dataclass(frozen=True)
class MetadataHeader:
    """The metadata storage signature and storage header."""

    signature: int = 0
    major_version: int = 0
    minor_version: int = 0
    extra_data: int = 0
    version_string: int = 0
    version: str = ""
    flags: int = 0
    streams: int = 0


@dataclass(frozen=True)
class MetadataStreamHeader:
    """Location and name of one metadata stream."""

    offset: int = 0
    size: int = 0
    name: str = ""


@dataclass(frozen=True)
class MetadataTableStreamHeader:
    """The header of the #~ or #- metadata tables stream."""

    reserved: int = 0
    major_version: int = 0
    minor_version: int = 0
    heaps: int = 0
    rid: int = 0
    mask_valid: int = 0
    sorted: int = 0


@dataclass
class MetadataTable:
    """A metadata table: its name, record count and decoded rows."""

    name: str = ""
    count_cols: int = 0
    content: Any = None


@dataclass
class CLRData:
    """Everything decoded from the CLR data directory."""

    clr_header: ImageCOR20Header = field(default_factory=ImageCOR20Header)
    metadata_header: MetadataHeader = field(default_factory=MetadataHeader)
    metadata_stream_headers: list[MetadataStreamHeader] = field(default_factory=list)
    metadata_streams: dict[str, bytes] = field(default_factory=dict)
    metadata_tables_stream_header: MetadataTableStreamHeader = field(
        default_factory=MetadataTableStreamHeader
    )
    metadata_tables: dict[int, MetadataTable] = field(default_factory=dict)
    string_stream_index_size: int = 0
    guid_stream_index_size: int = 0
    blob_stream_index_size: int = 0


def metadata_table_index_to_string(index: int) -> str:
    """Name of the metadata table at `index`, or '' if there is none."""
    return _TABLE_NAMES.get(index, "")


def com_image_flags_names(flags: int) -> list[str]:
    """Names of the COM+ image flags set in `flags`, in ascending flag order."""
    return [name for flag, name in sorted(_COM_IMAGE_FLAG_NAMES.items()) if flag & flags == flag]


def stream_index_size(heaps: int, bit_position: int) -> int:
    """Width in bytes of indexes into a heap: 4 if its bit is set in `heaps`, else 2."""
    return 4 if heaps & (1 << bit_position) else 2