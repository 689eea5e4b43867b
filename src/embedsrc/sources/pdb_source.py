"""Source for standalone Portable PDB files."""

from pathlib import Path
from typing import Iterator

from embedsrc.metadata import PortablePdbReader
from embedsrc.utils.binary import PDB_EXTENSIONS


class PortablePdbSource:
    """Source for .pdb files holding a single Portable PDB."""

    source_type = "pdb"

    def can_handle(self, source: Path) -> bool:
        """Check if this is a .pdb file."""
        return source.suffix.lower() in PDB_EXTENSIONS and source.is_file()

    def containers(self, source: Path) -> Iterator[PortablePdbReader]:
        """Yield the one container of a standalone PDB.

        Args:
            source: Path to the .pdb file

        Raises:
            FormatError: If the file is not a Portable PDB
        """
        yield PortablePdbReader.from_bytes(source.read_bytes())
