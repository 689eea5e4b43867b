"""Readers for Portable PDB metadata and PE debug directories."""

from embedsrc.metadata.pe_image import (
    DebugDirectoryEntry,
    PeImage,
    embedded_pdb_entries,
    open_embedded,
    read_embedded_pdb,
)
from embedsrc.metadata.portable_pdb import (
    PortablePdbReader,
    open_standalone,
    read_compressed_uint,
)

__all__ = [
    "PortablePdbReader",
    "open_standalone",
    "read_compressed_uint",
    "PeImage",
    "DebugDirectoryEntry",
    "embedded_pdb_entries",
    "read_embedded_pdb",
    "open_embedded",
]
