"""Helpers for constructing Portable PDBs and PE images in tests."""

from __future__ import annotations

import struct
import zlib
from dataclasses import dataclass, field
from uuid import UUID

from embedsrc.extraction import EMBEDDED_SOURCE_KIND

SOURCE_LINK_KIND = UUID("CC110556-A091-4D38-9FEC-25AB9A351A6A")
SHA256_ALGORITHM = UUID("8829D00F-11B8-4213-878B-770E8597AC16")
CSHARP_LANGUAGE = UUID("3F5162F8-07C6-11D3-9053-00C04FA302A1")

PDB_ID = bytes(range(20))


def encode_compressed_uint(value: int) -> bytes:
    """Encode an ECMA-335 compressed unsigned integer."""
    if value < 0x80:
        return bytes([value])
    if value < 0x4000:
        return struct.pack(">H", 0x8000 | value)
    return struct.pack(">I", 0xC0000000 | value)


def raw_deflate(data: bytes) -> bytes:
    """Compress without zlib or gzip framing."""
    compressor = zlib.compressobj(9, zlib.DEFLATED, -zlib.MAX_WBITS)
    return compressor.compress(data) + compressor.flush()


def embedded_source_blob(text: str, *, compress: bool = False) -> bytes:
    """Build the value of an embedded-source record."""
    data = text.encode("utf-8")
    if compress:
        return struct.pack("<I", len(data)) + raw_deflate(data)
    return struct.pack("<I", 0) + data


def _pad4(data: bytes) -> bytes:
    return data + b"\x00" * (-len(data) % 4)


class _BlobHeap:
    def __init__(self) -> None:
        self.data = bytearray(b"\x00")

    def add(self, value: bytes) -> int:
        if not value:
            return 0
        index = len(self.data)
        self.data += encode_compressed_uint(len(value)) + value
        return index


class _GuidHeap:
    def __init__(self) -> None:
        self.guids: list[UUID] = []

    def add(self, guid: UUID) -> int:
        if guid not in self.guids:
            self.guids.append(guid)
        return self.guids.index(guid) + 1

    @property
    def data(self) -> bytes:
        return b"".join(guid.bytes_le for guid in self.guids)


@dataclass
class _DocumentSpec:
    name: str
    records: list[tuple[UUID, bytes]] = field(default_factory=list)
    name_blob: int | None = None


class PortablePdbBuilder:
    """Write a minimal Portable PDB with Document and CustomDebugInformation rows."""

    def __init__(
        self,
        *,
        method_count: int = 0,
        method_debug_rows: int = 0,
        wide_heaps: bool = False,
        include_pdb_stream: bool = True,
    ) -> None:
        self.method_count = method_count
        self.method_debug_rows = method_debug_rows
        self.wide_heaps = wide_heaps
        self.include_pdb_stream = include_pdb_stream
        self._documents: list[_DocumentSpec] = []

    def add_document(
        self,
        name: str,
        records: list[tuple[UUID, bytes]] | None = None,
        *,
        name_blob: int | None = None,
    ) -> PortablePdbBuilder:
        """Add a document with the given (kind, value) records.

        name_blob overrides the name's #Blob index, e.g. to point past the heap.
        """
        self._documents.append(_DocumentSpec(name, list(records or []), name_blob))
        return self

    def add_source(self, name: str, text: str, *, compress: bool = False) -> PortablePdbBuilder:
        """Add a document carrying embedded source text."""
        blob = embedded_source_blob(text, compress=compress)
        return self.add_document(name, [(EMBEDDED_SOURCE_KIND, blob)])

    def _name_blob(self, blobs: _BlobHeap, name: str) -> int:
        if not name:
            return 0
        separator = "/" if "/" in name else ("\\" if "\\" in name else "")
        parts = name.split(separator) if separator else [name]
        encoded = bytearray(separator.encode("ascii") if separator else b"\x00")
        for part in parts:
            encoded += encode_compressed_uint(blobs.add(part.encode("utf-8")))
        return blobs.add(bytes(encoded))

    def build(self) -> bytes:
        """Return the complete PDB bytes."""
        blobs = _BlobHeap()
        guids = _GuidHeap()
        hash_algorithm = guids.add(SHA256_ALGORITHM)
        language = guids.add(CSHARP_LANGUAGE)

        document_rows = []
        cdi_rows = []
        for row, document in enumerate(self._documents, 1):
            name_index = document.name_blob
            if name_index is None:
                name_index = self._name_blob(blobs, document.name)
            document_rows.append((name_index, hash_algorithm, 0, language))
            for kind, value in document.records:
                cdi_rows.append(((row << 5) | 22, guids.add(kind), blobs.add(value)))

        blob_wide = self.wide_heaps or len(blobs.data) >= 0x10000
        guid_wide = self.wide_heaps
        heap_sizes = (0x02 if guid_wide else 0) | (0x04 if blob_wide else 0)
        b = "I" if blob_wide else "H"
        g = "I" if guid_wide else "H"
        document_index = "H" if len(document_rows) < 0x10000 else "I"
        largest = max(len(document_rows), self.method_count)
        coded = "H" if largest < (1 << 11) else "I"

        tables: list[tuple[int, str, list[tuple]]] = [(0x30, "<" + b + g + b + g, document_rows)]
        if self.method_debug_rows:
            first_document = 1 if document_rows else 0
            tables.append(
                (0x31, "<" + document_index + b, [(first_document, 0)] * self.method_debug_rows)
            )
        if cdi_rows:
            tables.append((0x37, "<" + coded + g + b, cdi_rows))

        valid = 0
        for table, _, _ in tables:
            valid |= 1 << table
        table_stream = bytearray(struct.pack("<IBBBBQQ", 0, 2, 0, heap_sizes, 1, valid, 0))
        for _, _, rows in tables:
            table_stream += struct.pack("<I", len(rows))
        for _, fmt, rows in tables:
            for values in rows:
                table_stream += struct.pack(fmt, *values)

        referenced = (1 << 0x06) if self.method_count else 0
        pdb_stream = PDB_ID + struct.pack("<IQ", 0, referenced)
        if self.method_count:
            pdb_stream += struct.pack("<I", self.method_count)

        streams = []
        if self.include_pdb_stream:
            streams.append(("#Pdb", _pad4(pdb_stream)))
        streams += [
            ("#~", _pad4(bytes(table_stream))),
            ("#Strings", b"\x00" * 4),
            ("#US", b"\x00" * 4),
            ("#GUID", guids.data),
            ("#Blob", _pad4(bytes(blobs.data))),
        ]
        return _metadata_root(streams)


def _metadata_root(streams: list[tuple[str, bytes]]) -> bytes:
    version = _pad4(b"PDB v1.0\x00")
    headers_size = sum(8 + len(_pad4(name.encode("ascii") + b"\x00")) for name, _ in streams)
    offset = 16 + len(version) + 4 + headers_size

    root = bytearray(struct.pack("<IHHII", 0x424A5342, 1, 1, 0, len(version)))
    root += version
    root += struct.pack("<HH", 0, len(streams))
    body = bytearray()
    for name, data in streams:
        root += struct.pack("<II", offset + len(body), len(data))
        root += _pad4(name.encode("ascii") + b"\x00")
        body += data
    return bytes(root + body)


# PE images

DEBUG_TYPE_CODEVIEW = 2
DEBUG_TYPE_EMBEDDED_PORTABLE_PDB = 17

_SECTION_RVA = 0x2000
_SECTION_FILE_OFFSET = 0x200


def embedded_pdb_data(pdb: bytes) -> bytes:
    """Build the data of an EmbeddedPortablePdb debug directory entry."""
    return b"MPDB" + struct.pack("<I", len(pdb)) + raw_deflate(pdb)


class PeImageBuilder:
    """Write a minimal PE image whose only section holds the debug directory."""

    def __init__(self, *, pe32_plus: bool = False) -> None:
        self.pe32_plus = pe32_plus
        self._entries: list[tuple[int, bytes]] = []

    def add_debug_entry(self, kind: int, data: bytes) -> PeImageBuilder:
        self._entries.append((kind, data))
        return self

    def add_embedded_pdb(self, pdb: bytes) -> PeImageBuilder:
        return self.add_debug_entry(DEBUG_TYPE_EMBEDDED_PORTABLE_PDB, embedded_pdb_data(pdb))

    def build(self) -> bytes:
        """Return the complete image bytes."""
        if self.pe32_plus:
            magic, optional_size, rva_count_offset, directories_offset = 0x20B, 240, 108, 112
            machine = 0x8664
        else:
            magic, optional_size, rva_count_offset, directories_offset = 0x10B, 224, 92, 96
            machine = 0x14C

        directory_size = 28 * len(self._entries)
        section = bytearray(directory_size)
        for index, (kind, data) in enumerate(self._entries):
            offset = len(section)
            section += data
            struct.pack_into(
                "<IIHHIIII",
                section,
                index * 28,
                0,
                0,
                0x0100,
                0x0100,
                kind,
                len(data),
                _SECTION_RVA + offset,
                _SECTION_FILE_OFFSET + offset,
            )
        raw_size = len(section) + (-len(section) % 0x200)

        optional = bytearray(optional_size)
        struct.pack_into("<H", optional, 0, magic)
        struct.pack_into("<I", optional, rva_count_offset, 16)
        if self._entries:
            struct.pack_into("<II", optional, directories_offset + 6 * 8, _SECTION_RVA, directory_size)

        image = bytearray(b"MZ" + b"\x00" * 0x3A)
        image += struct.pack("<I", 0x80)
        image += b"\x00" * (0x80 - len(image))
        image += b"PE\x00\x00"
        image += struct.pack("<HHIIIHH", machine, 1, 0, 0, 0, optional_size, 0x2022)
        image += optional
        image += struct.pack(
            "<8sIIIIIIHHI",
            b".text",
            max(len(section), 1),
            _SECTION_RVA,
            raw_size,
            _SECTION_FILE_OFFSET,
            0,
            0,
            0,
            0,
            0x60000020,
        )
        image += b"\x00" * (_SECTION_FILE_OFFSET - len(image))
        image += section
        image += b"\x00" * (raw_size - len(section))
        return bytes(image)


__all__ = [
    "PortablePdbBuilder",
    "PeImageBuilder",
    "embedded_source_blob",
    "embedded_pdb_data",
    "raw_deflate",
    "encode_compressed_uint",
    "SOURCE_LINK_KIND",
    "DEBUG_TYPE_CODEVIEW",
    "DEBUG_TYPE_EMBEDDED_PORTABLE_PDB",
]
