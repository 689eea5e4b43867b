"""Reader for Portable PDB metadata.

A Portable PDB is an ECMA-335 metadata image holding only the debug tables
(0x30 to 0x37). Type-system tables it refers to live in the owning assembly;
their row counts are recorded in the #Pdb stream and are needed to size the
indexes into them.

Only what the extraction driver needs is exposed: the Document table and the
CustomDebugInformation rows attached to each document.
"""

import struct
from collections import defaultdict
from typing import Iterator, Optional
from uuid import UUID

from embedsrc.errors import FormatError
from embedsrc.models import CustomDebugInfoRecord, DebugDocument
from embedsrc.utils.binary import looks_like_portable_pdb, looks_like_windows_pdb

# Type-system tables referenced from debug tables
METHOD_DEF = 0x06

# Debug tables
DOCUMENT = 0x30
METHOD_DEBUG_INFORMATION = 0x31
LOCAL_SCOPE = 0x32
LOCAL_VARIABLE = 0x33
LOCAL_CONSTANT = 0x34
IMPORT_SCOPE = 0x35
STATE_MACHINE_METHOD = 0x36
CUSTOM_DEBUG_INFORMATION = 0x37

DEBUG_TABLES = range(DOCUMENT, CUSTOM_DEBUG_INFORMATION + 1)

# HasCustomDebugInformation coded index, in tag order
HAS_CUSTOM_DEBUG_INFORMATION = (
    0x06, 0x04, 0x01, 0x02, 0x08, 0x09, 0x0A, 0x00, 0x0E, 0x17, 0x14, 0x11, 0x1A, 0x1B,
    0x20, 0x23, 0x26, 0x27, 0x28, 0x2A, 0x2C, 0x2B, DOCUMENT, LOCAL_SCOPE,
    LOCAL_VARIABLE, LOCAL_CONSTANT, IMPORT_SCOPE,
)
HAS_CUSTOM_DEBUG_INFORMATION_TAG_BITS = 5
DOCUMENT_TAG = HAS_CUSTOM_DEBUG_INFORMATION.index(DOCUMENT)

# #~ HeapSizes flags
HEAP_STRING_WIDE = 0x01
HEAP_GUID_WIDE = 0x02
HEAP_BLOB_WIDE = 0x04
HEAP_EXTRA_DATA = 0x40

# Column kinds
_BLOB = "blob"
_GUID = "guid"
_STRING = "string"
_U16 = "u16"
_U32 = "u32"
_CODED_CDI = "coded_cdi"

# Column layout of every debug table; ints are simple indexes into that table
_SCHEMA: dict[int, tuple] = {
    DOCUMENT: (_BLOB, _GUID, _BLOB, _GUID),
    METHOD_DEBUG_INFORMATION: (DOCUMENT, _BLOB),
    LOCAL_SCOPE: (METHOD_DEF, IMPORT_SCOPE, LOCAL_VARIABLE, LOCAL_CONSTANT, _U32, _U32),
    LOCAL_VARIABLE: (_U16, _U16, _STRING),
    LOCAL_CONSTANT: (_STRING, _BLOB),
    IMPORT_SCOPE: (IMPORT_SCOPE, _BLOB),
    STATE_MACHINE_METHOD: (METHOD_DEF, METHOD_DEF),
    CUSTOM_DEBUG_INFORMATION: (_CODED_CDI, _GUID, _BLOB),
}

PDB_ID_SIZE = 20
NIL_GUID = UUID(int=0)


def read_compressed_uint(data: bytes, offset: int) -> tuple[int, int]:
    """Read an ECMA-335 compressed unsigned integer.

    Returns:
        The value and the offset just past it
    """
    if offset >= len(data):
        raise FormatError(f"compressed integer out of range at offset {offset}")
    first = data[offset]
    if first & 0x80 == 0:
        return first, offset + 1
    if first & 0xC0 == 0x80:
        if offset + 2 > len(data):
            raise FormatError(f"truncated compressed integer at offset {offset}")
        return ((first & 0x3F) << 8) | data[offset + 1], offset + 2
    if first & 0xE0 == 0xC0:
        if offset + 4 > len(data):
            raise FormatError(f"truncated compressed integer at offset {offset}")
        value = ((first & 0x1F) << 24) | (data[offset + 1] << 16)
        value |= (data[offset + 2] << 8) | data[offset + 3]
        return value, offset + 4
    raise FormatError(f"invalid compressed integer lead byte 0x{first:02x}")


def _bits(mask: int) -> Iterator[int]:
    for bit in range(64):
        if mask & (1 << bit):
            yield bit


class PortablePdbReader:
    """Parsed view of a Portable PDB metadata image."""

    def __init__(self, data: bytes):
        """Parse the metadata root, streams and table layout.

        Args:
            data: Complete Portable PDB bytes

        Raises:
            FormatError: If data is not a Portable PDB
        """
        self._data = bytes(data)
        self._cdi_index: Optional[dict[int, list[int]]] = None
        try:
            self._parse()
        except (struct.error, IndexError) as exc:
            raise FormatError(f"truncated metadata: {exc}") from exc

    @classmethod
    def from_bytes(cls, data: bytes) -> "PortablePdbReader":
        """Open a standalone Portable PDB."""
        return cls(data)

    # Parsing

    def _parse(self) -> None:
        data = self._data
        if not looks_like_portable_pdb(data):
            if looks_like_windows_pdb(data):
                raise FormatError("Windows PDB (MSF) files carry no Portable PDB metadata")
            raise FormatError("missing metadata root signature")

        (version_length,) = struct.unpack_from("<I", data, 12)
        version_end = 16 + version_length
        if version_end > len(data):
            raise FormatError("metadata version string out of range")
        self.version = data[16:version_end].split(b"\x00", 1)[0].decode("ascii", "replace")

        (stream_count,) = struct.unpack_from("<H", data, version_end + 2)
        offset = version_end + 4
        streams: dict[str, bytes] = {}
        for _ in range(stream_count):
            stream_offset, stream_size = struct.unpack_from("<II", data, offset)
            name_end = data.find(b"\x00", offset + 8)
            if name_end < 0:
                raise FormatError("unterminated stream name")
            name = data[offset + 8 : name_end].decode("ascii", "replace")
            # Name is padded to a 4-byte boundary, terminator included
            offset = offset + 8 + ((name_end - (offset + 8)) // 4 + 1) * 4
            if stream_offset + stream_size > len(data):
                raise FormatError(f"stream {name} out of range")
            streams.setdefault(name, data[stream_offset : stream_offset + stream_size])

        if "#Pdb" not in streams:
            raise FormatError("missing #Pdb stream, not a Portable PDB")
        tables = streams.get("#~", streams.get("#-"))
        if tables is None:
            raise FormatError("missing #~ table stream")

        self._blob_heap = streams.get("#Blob", b"")
        self._guid_heap = streams.get("#GUID", b"")

        row_counts = self._parse_pdb_stream(streams["#Pdb"])
        self._parse_table_stream(tables, row_counts)

    def _parse_pdb_stream(self, stream: bytes) -> dict[int, int]:
        self.pdb_id = stream[:PDB_ID_SIZE]
        if len(self.pdb_id) != PDB_ID_SIZE:
            raise FormatError("#Pdb stream is truncated")
        self.entry_point, referenced = struct.unpack_from("<IQ", stream, PDB_ID_SIZE)

        row_counts: dict[int, int] = {}
        offset = PDB_ID_SIZE + 12
        for table in _bits(referenced):
            (row_counts[table],) = struct.unpack_from("<I", stream, offset)
            offset += 4
        return row_counts

    def _parse_table_stream(self, stream: bytes, row_counts: dict[int, int]) -> None:
        heap_sizes = stream[6]
        (valid,) = struct.unpack_from("<Q", stream, 8)

        offset = 24
        present = list(_bits(valid))
        for table in present:
            if table not in DEBUG_TABLES:
                raise FormatError(f"unexpected table 0x{table:02x} in Portable PDB")
            (row_counts[table],) = struct.unpack_from("<I", stream, offset)
            offset += 4
        if heap_sizes & HEAP_EXTRA_DATA:
            offset += 4

        self._row_counts = row_counts
        self._string_size = 4 if heap_sizes & HEAP_STRING_WIDE else 2
        self._guid_size = 4 if heap_sizes & HEAP_GUID_WIDE else 2
        self._blob_size = 4 if heap_sizes & HEAP_BLOB_WIDE else 2

        self._tables = stream
        self._table_offsets: dict[int, int] = {}
        self._row_structs: dict[int, struct.Struct] = {}
        for table in present:
            row_struct = self._row_struct(table)
            self._row_structs[table] = row_struct
            self._table_offsets[table] = offset
            offset += row_struct.size * row_counts[table]
        if offset > len(stream):
            raise FormatError("table data extends past the #~ stream")

    def _index_size(self, table: int) -> int:
        return 2 if self._row_counts.get(table, 0) < 0x10000 else 4

    def _coded_index_size(self, tables: tuple, tag_bits: int) -> int:
        largest = max(self._row_counts.get(t, 0) for t in tables)
        return 2 if largest < (1 << (16 - tag_bits)) else 4

    def _row_struct(self, table: int) -> struct.Struct:
        widths = []
        for column in _SCHEMA[table]:
            if column == _BLOB:
                widths.append(self._blob_size)
            elif column == _GUID:
                widths.append(self._guid_size)
            elif column == _STRING:
                widths.append(self._string_size)
            elif column == _U16:
                widths.append(2)
            elif column == _U32:
                widths.append(4)
            elif column == _CODED_CDI:
                widths.append(
                    self._coded_index_size(
                        HAS_CUSTOM_DEBUG_INFORMATION, HAS_CUSTOM_DEBUG_INFORMATION_TAG_BITS
                    )
                )
            else:
                widths.append(self._index_size(column))
        return struct.Struct("<" + "".join("H" if w == 2 else "I" for w in widths))

    # Heaps and rows

    def row_count(self, table: int) -> int:
        return self._row_counts.get(table, 0) if table in self._table_offsets else 0

    def _row(self, table: int, row: int) -> tuple:
        row_struct = self._row_structs[table]
        offset = self._table_offsets[table] + (row - 1) * row_struct.size
        return row_struct.unpack_from(self._tables, offset)

    def blob(self, index: int) -> bytes:
        """Return a #Blob heap entry; index 0 is the empty blob."""
        if index == 0:
            return b""
        if index >= len(self._blob_heap):
            raise FormatError(f"blob index {index} out of range")
        length, start = read_compressed_uint(self._blob_heap, index)
        if start + length > len(self._blob_heap):
            raise FormatError(f"blob at {index} extends past the heap")
        return self._blob_heap[start : start + length]

    def guid(self, index: int) -> UUID:
        """Return a #GUID heap entry; indexes are 1-based and 0 is nil."""
        if index == 0:
            return NIL_GUID
        end = index * 16
        if end > len(self._guid_heap):
            raise FormatError(f"guid index {index} out of range")
        return UUID(bytes_le=self._guid_heap[end - 16 : end])

    def document_name(self, blob_index: int) -> str:
        """Decode a document-name blob: separator byte, then part blob indexes."""
        blob = self.blob(blob_index)
        if not blob:
            return ""

        separator = chr(blob[0]) if blob[0] else ""
        parts = []
        offset = 1
        while offset < len(blob):
            part_index, offset = read_compressed_uint(blob, offset)
            parts.append(self.blob(part_index).decode("utf-8", errors="replace"))
        return separator.join(parts)

    # DebugInfoReader

    @property
    def document_count(self) -> int:
        return self.row_count(DOCUMENT)

    def documents(self) -> Iterator[DebugDocument]:
        """Yield Document rows in table order.

        A row whose name cannot be decoded is yielded with an empty name and
        name_error set, so later rows are still reachable.
        """
        for row in range(1, self.row_count(DOCUMENT) + 1):
            name_index = self._row(DOCUMENT, row)[0]
            try:
                name = self.document_name(name_index)
            except FormatError as exc:
                yield DebugDocument(name="", row=row, name_error=str(exc))
                continue
            yield DebugDocument(name=name, row=row)

    def custom_debug_information(
        self, document: DebugDocument
    ) -> Iterator[CustomDebugInfoRecord]:
        """Yield the CustomDebugInformation rows whose parent is the document."""
        parent = (document.row << HAS_CUSTOM_DEBUG_INFORMATION_TAG_BITS) | DOCUMENT_TAG
        for row in self._custom_debug_information_index().get(parent, []):
            _, kind_index, value_index = self._row(CUSTOM_DEBUG_INFORMATION, row)
            yield CustomDebugInfoRecord(kind=self.guid(kind_index), value=self.blob(value_index))

    def _custom_debug_information_index(self) -> dict[int, list[int]]:
        if self._cdi_index is None:
            index: dict[int, list[int]] = defaultdict(list)
            for row in range(1, self.row_count(CUSTOM_DEBUG_INFORMATION) + 1):
                index[self._row(CUSTOM_DEBUG_INFORMATION, row)[0]].append(row)
            self._cdi_index = dict(index)
        return self._cdi_index

    @property
    def pdb_id_hex(self) -> str:
        return self.pdb_id.hex()


def open_standalone(data: bytes) -> PortablePdbReader:
    """Open standalone Portable PDB bytes.

    Raises:
        FormatError: If data is not a Portable PDB
    """
    return PortablePdbReader.from_bytes(data)
