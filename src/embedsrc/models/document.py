"""Core data models for debug documents and their embedded sources."""

from dataclasses import dataclass
from typing import Optional
from uuid import UUID


@dataclass(frozen=True)
class DebugDocument:
    """A row of the Document table."""

    name: str
    row: int  # 1-based row number in the Document table
    name_error: Optional[str] = None  # set when the name blob is unreadable


@dataclass(frozen=True)
class CustomDebugInfoRecord:
    """A CustomDebugInformation row attached to a document."""

    kind: UUID
    value: bytes


@dataclass(frozen=True)
class EmbeddedSourcePayload:
    """Decoded header of an embedded-source blob.

    A declared size of zero means the data is stored raw; anything else is
    the length the raw Deflate data must inflate to.
    """

    declared_size: int
    data: bytes

    @property
    def compressed(self) -> bool:
        return self.declared_size != 0


@dataclass(frozen=True)
class ExtractedFile:
    """Source text recovered from one document."""

    name: str
    text: str
    compressed: bool = False
