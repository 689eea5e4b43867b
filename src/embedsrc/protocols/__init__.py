"""Protocol definitions for extensible components."""

from embedsrc.protocols.reader import DebugInfoReader
from embedsrc.protocols.source import ContainerSource

__all__ = ["DebugInfoReader", "ContainerSource"]
