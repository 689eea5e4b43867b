"""Protocol for debug-info container readers."""

from typing import Iterator, Protocol, runtime_checkable

from embedsrc.models import CustomDebugInfoRecord, DebugDocument


@runtime_checkable
class DebugInfoReader(Protocol):
    """Protocol for readers exposing a container's document table.

    The extraction driver only depends on this surface, so tests and
    alternative container formats can supply their own implementation.
    """

    @property
    def document_count(self) -> int:
        """Return the number of documents in the container."""
        ...

    def documents(self) -> Iterator[DebugDocument]:
        """Yield documents in the container's enumeration order."""
        ...

    def custom_debug_information(
        self, document: DebugDocument
    ) -> Iterator[CustomDebugInfoRecord]:
        """Yield the records attached to a document, in table order."""
        ...
