"""Source for PE images with embedded Portable PDBs."""

from pathlib import Path
from typing import Iterator, Union

from embedsrc.metadata import PortablePdbReader, open_embedded
from embedsrc.models import ContainerIssue
from embedsrc.utils.binary import PE_EXTENSIONS


class PeImageSource:
    """Source for .dll and .exe images."""

    source_type = "pe"

    def can_handle(self, source: Path) -> bool:
        """Check if this is a .dll or .exe file."""
        return source.suffix.lower() in PE_EXTENSIONS and source.is_file()

    def containers(self, source: Path) -> Iterator[Union[PortablePdbReader, ContainerIssue]]:
        """Yield every Portable PDB embedded in the image's debug directory.

        An image usually embeds at most one. Images built without embedded
        debug information yield nothing.

        Args:
            source: Path to the image

        Raises:
            FormatError: If the file is not a PE image
        """
        yield from open_embedded(source.read_bytes())
