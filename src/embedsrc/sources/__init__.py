"""Input file handlers (container sources) for embedsrc."""

from pathlib import Path
from typing import Optional

from embedsrc.protocols import ContainerSource
from embedsrc.sources.pdb_source import PortablePdbSource
from embedsrc.sources.pe_source import PeImageSource

# Registry of available sources
_SOURCES: list[ContainerSource] = [
    PortablePdbSource(),
    PeImageSource(),
]


def get_source(path: Path | str) -> Optional[ContainerSource]:
    """Find a source that can handle the given file.

    Args:
        path: Path to a .pdb, .dll or .exe file

    Returns:
        A ContainerSource instance that can handle the file, or None
    """
    source_path = Path(path)
    for source in _SOURCES:
        if source.can_handle(source_path):
            return source
    return None


def register_source(source: ContainerSource) -> None:
    """Register a custom source (for plugins/extensions).

    Args:
        source: An object implementing the ContainerSource protocol
    """
    _SOURCES.append(source)


__all__ = ["get_source", "register_source", "PortablePdbSource", "PeImageSource"]
