"""Reader for the debug directory of PE images.

Managed assemblies built with embedded debug information carry their
Portable PDB in a debug directory entry of type EmbeddedPortablePdb. The
entry data is the "MPDB" signature, the uncompressed size as a little-endian
uint32, then the PDB compressed with raw Deflate.
"""

import struct
from dataclasses import dataclass
from typing import Iterator, Optional, Union

from embedsrc.decoder import inflate_exact
from embedsrc.errors import DecodeFailure, FormatError
from embedsrc.metadata.portable_pdb import PortablePdbReader
from embedsrc.models import ContainerIssue
from embedsrc.utils.binary import looks_like_pe_image

PE_SIGNATURE = b"PE\x00\x00"
PE32_MAGIC = 0x10B
PE32_PLUS_MAGIC = 0x20B

DEBUG_DIRECTORY_INDEX = 6
DEBUG_ENTRY_SIZE = 28

# IMAGE_DEBUG_TYPE_* values
DEBUG_TYPE_CODEVIEW = 2
DEBUG_TYPE_REPRODUCIBLE = 16
DEBUG_TYPE_EMBEDDED_PORTABLE_PDB = 17
DEBUG_TYPE_PDB_CHECKSUM = 19

EMBEDDED_PDB_SIGNATURE = b"MPDB"

_COFF_HEADER = struct.Struct("<HHIIIHH")
_SECTION_HEADER = struct.Struct("<8sIIII")
_SECTION_HEADER_SIZE = 40
_DEBUG_ENTRY = struct.Struct("<IIHHIIII")


@dataclass(frozen=True)
class Section:
    """A section table entry."""

    name: str
    virtual_address: int
    virtual_size: int
    raw_size: int
    raw_pointer: int

    def contains(self, rva: int) -> bool:
        return self.virtual_address <= rva < self.virtual_address + max(
            self.virtual_size, self.raw_size
        )


@dataclass(frozen=True)
class DebugDirectoryEntry:
    """An IMAGE_DEBUG_DIRECTORY entry."""

    index: int
    type: int
    major_version: int
    minor_version: int
    size_of_data: int
    address_of_raw_data: int
    pointer_to_raw_data: int

    @property
    def is_embedded_portable_pdb(self) -> bool:
        return self.type == DEBUG_TYPE_EMBEDDED_PORTABLE_PDB


class PeImage:
    """Headers, sections and debug directory of a PE image."""

    def __init__(self, data: bytes):
        """Parse the image headers.

        Args:
            data: Complete PE image bytes

        Raises:
            FormatError: If data is not a PE image
        """
        self._data = data
        try:
            self._parse()
        except (struct.error, IndexError) as exc:
            raise FormatError(f"truncated PE headers: {exc}") from exc

    def _parse(self) -> None:
        data = self._data
        if not looks_like_pe_image(data):
            raise FormatError("missing DOS header signature")

        (pe_offset,) = struct.unpack_from("<I", data, 0x3C)
        if data[pe_offset : pe_offset + 4] != PE_SIGNATURE:
            raise FormatError("missing PE signature")

        coff = _COFF_HEADER.unpack_from(data, pe_offset + 4)
        self.machine = coff[0]
        section_count = coff[1]
        optional_size = coff[5]

        optional = pe_offset + 4 + _COFF_HEADER.size
        (self.magic,) = struct.unpack_from("<H", data, optional)
        if self.magic == PE32_MAGIC:
            rva_count_offset, directories_offset = 92, 96
        elif self.magic == PE32_PLUS_MAGIC:
            rva_count_offset, directories_offset = 108, 112
        else:
            raise FormatError(f"unknown optional header magic 0x{self.magic:x}")

        (rva_count,) = struct.unpack_from("<I", data, optional + rva_count_offset)
        self.debug_directory: Optional[tuple[int, int]] = None
        debug_offset = directories_offset + DEBUG_DIRECTORY_INDEX * 8
        if rva_count > DEBUG_DIRECTORY_INDEX and debug_offset + 8 <= optional_size:
            rva, size = struct.unpack_from("<II", data, optional + debug_offset)
            if rva and size:
                self.debug_directory = (rva, size)

        self.sections: list[Section] = []
        table = optional + optional_size
        for i in range(section_count):
            name, vsize, vaddr, raw_size, raw_ptr = _SECTION_HEADER.unpack_from(
                data, table + i * _SECTION_HEADER_SIZE
            )
            self.sections.append(
                Section(
                    name=name.rstrip(b"\x00").decode("ascii", "replace"),
                    virtual_address=vaddr,
                    virtual_size=vsize,
                    raw_size=raw_size,
                    raw_pointer=raw_ptr,
                )
            )

    @property
    def is_pe32_plus(self) -> bool:
        return self.magic == PE32_PLUS_MAGIC

    def rva_to_offset(self, rva: int) -> Optional[int]:
        """Map a relative virtual address to a file offset."""
        for section in self.sections:
            if section.contains(rva):
                return rva - section.virtual_address + section.raw_pointer
        return None

    def debug_entries(self) -> list[DebugDirectoryEntry]:
        """Read every entry of the debug directory."""
        if self.debug_directory is None:
            return []

        rva, size = self.debug_directory
        offset = self.rva_to_offset(rva)
        if offset is None:
            raise FormatError(f"debug directory RVA 0x{rva:x} is not mapped by any section")

        entries = []
        for index in range(size // DEBUG_ENTRY_SIZE):
            entry_offset = offset + index * DEBUG_ENTRY_SIZE
            if entry_offset + DEBUG_ENTRY_SIZE > len(self._data):
                raise FormatError("debug directory extends past end of image")
            _, _, major, minor, kind, data_size, address, pointer = _DEBUG_ENTRY.unpack_from(
                self._data, entry_offset
            )
            entries.append(
                DebugDirectoryEntry(
                    index=index,
                    type=kind,
                    major_version=major,
                    minor_version=minor,
                    size_of_data=data_size,
                    address_of_raw_data=address,
                    pointer_to_raw_data=pointer,
                )
            )
        return entries

    def entry_data(self, entry: DebugDirectoryEntry) -> bytes:
        """Return the raw data of a debug directory entry."""
        start = entry.pointer_to_raw_data
        if not start and entry.address_of_raw_data:
            start = self.rva_to_offset(entry.address_of_raw_data) or 0
        if not start or start + entry.size_of_data > len(self._data):
            raise FormatError(f"debug entry {entry.index} data is out of range")
        return self._data[start : start + entry.size_of_data]


def embedded_pdb_entries(image: Union[bytes, PeImage]) -> list[DebugDirectoryEntry]:
    """List the debug directory entries that hold an embedded Portable PDB.

    Raises:
        FormatError: If the bytes are not a PE image
    """
    pe = image if isinstance(image, PeImage) else PeImage(image)
    return [entry for entry in pe.debug_entries() if entry.is_embedded_portable_pdb]


def read_embedded_pdb(image: Union[bytes, PeImage], entry: DebugDirectoryEntry) -> bytes:
    """Inflate the Portable PDB stored in an EmbeddedPortablePdb entry.

    Raises:
        FormatError: If the entry data is not a valid embedded PDB
    """
    pe = image if isinstance(image, PeImage) else PeImage(image)
    data = pe.entry_data(entry)
    if len(data) < 8 or data[:4] != EMBEDDED_PDB_SIGNATURE:
        raise FormatError(f"debug entry {entry.index} has no MPDB signature")

    (size,) = struct.unpack_from("<I", data, 4)
    try:
        return inflate_exact(data[8:], size)
    except DecodeFailure as exc:
        raise FormatError(f"debug entry {entry.index}: {exc}") from exc


def open_embedded(image: bytes) -> Iterator[Union[PortablePdbReader, ContainerIssue]]:
    """Open every Portable PDB embedded in a PE image.

    An entry that fails to open is yielded as a ContainerIssue and the
    remaining entries are still tried.

    Raises:
        FormatError: If the bytes are not a PE image
    """
    pe = PeImage(image)
    for entry in embedded_pdb_entries(pe):
        try:
            reader = PortablePdbReader.from_bytes(read_embedded_pdb(pe, entry))
        except FormatError as exc:
            yield ContainerIssue(source=f"debug directory entry {entry.index}", reason=str(exc))
            continue
        yield reader
