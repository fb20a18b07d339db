# peinspect

A pure-Python library for reading structures of Windows Portable Executable
(PE) files. It provides:

- `peinspect.reader`: `BinaryView`, bounds-checked little-endian reads over the
  file bytes plus RVA-to-offset mapping through a list of `Section` objects
- `peinspect.dosheader`: `parse_dos_header`, the MS-DOS header
- `peinspect.boundimports`: `parse_bound_import_directory`, the bound import
  descriptors and their forwarder references
- `peinspect.dotnet`: `parse_clr_header_directory`, the CLR runtime header,
  metadata header, stream headers and stream contents, the metadata tables
  stream header and the record count of each table present
- `peinspect.dotnettypes`: the CLR data classes, `MetadataTableIndex`,
  `metadata_table_index_to_string`, `com_image_flags_names` and
  `stream_index_size`
- `peinspect.anomaly`: `get_anomalies`, header values that are legal but odd
- `peinspect.sizes`: human-readable byte sizes, in both directions

It has no dependencies outside the standard library.

## Installation

```
pip install .
```

## Usage

Every parser works on a `BinaryView`: the raw bytes of the file together with
its section table, which maps relative virtual addresses (RVAs) to file
offsets.

```python
from pathlib import Path

from peinspect.reader import BinaryView
from peinspect.dosheader import DOSMagicNotFound, parse_dos_header

data = Path("sample.exe").read_bytes()
view = BinaryView(data, sections=[])

try:
    header, anomalies = parse_dos_header(view)
except DOSMagicNotFound:
    print("not an MZ executable")
else:
    print(hex(header.magic), hex(header.address_of_new_exe_header), anomalies)
```

`parse_dos_header` raises `InvalidElfanew` when the offset to the NT headers
is below 4 or past the end of the file.

The directory parsers take the RVA and size from the matching data directory
entry:

```python
from peinspect.reader import BinaryView, Section
from peinspect.boundimports import parse_bound_import_directory
from peinspect.dotnet import parse_clr_header_directory
from peinspect.dotnettypes import com_image_flags_names

view = BinaryView(data, sections=[
    Section(name=".text", virtual_address=0x1000, virtual_size=0x2000,
            pointer_to_raw_data=0x400, size_of_raw_data=0x2000),
])

for bound in parse_bound_import_directory(view, bound_rva, bound_size):
    print(bound.name, [ref.name for ref in bound.forwarded_refs])

clr = parse_clr_header_directory(view, clr_rva, clr_size)
print(clr.metadata_header.version, com_image_flags_names(clr.clr_header.flags))
for index, table in clr.metadata_tables.items():
    print(index, table.name, table.count_cols)
```

Out-of-range reads raise `peinspect.reader.OutsideBoundary`, a subclass of
`peinspect.reader.PEError`.

### Anomalies

```python
from peinspect.anomaly import HeaderFields, get_anomalies

fields = HeaderFields(
    is_64=False, number_of_sections=3, time_date_stamp=0x5EF47EA0,
    size_of_optional_header=0xE0, address_of_entry_point=0,
    size_of_headers=0x400, image_base=0x400000, section_alignment=0x1000,
    size_of_image=0x5000, major_subsystem_version=10,
    win32_version_value=0, checksum=0, number_of_rva_and_sizes=16,
)
print(get_anomalies(fields, checksum=0))
```

### Sizes

```python
from peinspect.sizes import bytes_size, from_human_size, human_size, ram_in_bytes

bytes_size(1024)          # "1KiB"
human_size(1048576)       # "1.049MB"
from_human_size("32kb")   # 32000
ram_in_bytes("32Kib")     # 32768
```

Unparseable size strings raise `ValueError`.

## What it does not do

- It does not locate the NT headers, optional header, data directories or
  section table itself: the caller supplies the `Section` list, the directory
  RVAs and sizes, and the `HeaderFields` values.
- It does not parse the debug directory.
- It does not decode the rows of the .NET metadata tables, only their names
  and record counts.
- It does not compute the PE checksum; `get_anomalies` takes it as an argument.
- It has no command-line tool.

## Running the tests

```
pip install .[test]
pytest
```