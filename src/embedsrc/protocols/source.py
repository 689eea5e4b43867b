"""Protocol for input files that hold debug-info containers."""

from pathlib import Path
from typing import Iterator, Protocol, Union, runtime_checkable

from embedsrc.models import ContainerIssue
from embedsrc.protocols.reader import DebugInfoReader


@runtime_checkable
class ContainerSource(Protocol):
    """Protocol for input file handlers.

    Implementations handle different input formats (standalone PDB,
    PE image with embedded PDBs).
    Uses structural subtyping - no inheritance required.
    """

    @property
    def source_type(self) -> str:
        """Return identifier for this source type (e.g., 'pdb', 'pe')."""
        ...

    def can_handle(self, source: Path) -> bool:
        """Check if this source can process the given file."""
        ...

    def containers(
        self, source: Path
    ) -> Iterator[Union[DebugInfoReader, ContainerIssue]]:
        """Yield the containers found in the file.

        Raises FormatError if the file as a whole is not of this type.
        A container that fails to open on its own is yielded as a
        ContainerIssue so that its siblings are still tried.
        """
        ...
