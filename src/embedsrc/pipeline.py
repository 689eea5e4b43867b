"""Per-input extraction pipeline shared by the CLI, MCP server and TUI."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Union

from embedsrc.errors import FormatError
from embedsrc.extraction import extract
from embedsrc.models import (
    ContainerIssue,
    ContainerOpened,
    ExtractedFile,
    ExtractionIssue,
    ExtractionOptions,
    InputSkipped,
    Outcome,
    WriteIssue,
    WrittenFile,
)
from embedsrc.protocols import DebugInfoReader
from embedsrc.sources import get_source
from embedsrc.writer import write_source

logger = logging.getLogger(__name__)

SourceEvent = Union[ContainerOpened, ExtractedFile, ExtractionIssue, ContainerIssue, InputSkipped]


@dataclass
class ExtractionSummary:
    """Counts of what a run produced."""

    inputs: int = 0
    containers: int = 0
    written: int = 0
    issues: int = 0
    skipped: int = 0
    total_bytes: int = 0

    def record(self, outcome: Outcome) -> None:
        """Update counts with one outcome."""
        if isinstance(outcome, ContainerOpened):
            self.containers += 1
        elif isinstance(outcome, WrittenFile):
            self.written += 1
            self.total_bytes += outcome.size_bytes
        elif isinstance(outcome, InputSkipped):
            self.skipped += 1
        else:
            self.issues += 1


def _open_containers(path: Path) -> Iterator[Union[DebugInfoReader, ContainerIssue, InputSkipped]]:
    source = get_source(path)
    if source is None:
        yield InputSkipped(source=str(path), reason="not dll, exe or pdb")
        return

    try:
        containers = list(source.containers(path))
    except FormatError as exc:
        yield InputSkipped(source=str(path), reason=f"not supported image, {exc}")
        return
    except OSError as exc:
        yield InputSkipped(source=str(path), reason=f"cannot read, {exc}")
        return

    logger.debug(f"{path}: {source.source_type} with {len(containers)} container(s)")
    yield from containers


def extract_sources(path: Path) -> Iterator[SourceEvent]:
    """Yield the embedded sources of an input without writing them.

    Args:
        path: A .pdb, .dll or .exe file

    Yields:
        ContainerOpened per container, then its ExtractedFile and
        ExtractionIssue items; ContainerIssue or InputSkipped for inputs
        and entries that cannot be opened
    """
    for item in _open_containers(path):
        if isinstance(item, InputSkipped):
            yield item
            continue
        if isinstance(item, ContainerIssue):
            yield ContainerIssue(source=f"{path} ({item.source})", reason=item.reason)
            continue

        yield ContainerOpened(source=str(path), documents=item.document_count)
        try:
            yield from extract(item)
        except FormatError as exc:
            yield ContainerIssue(source=str(path), reason=f"document table is corrupt, {exc}")


def extract_file(path: Path, options: ExtractionOptions) -> Iterator[Outcome]:
    """Extract the embedded sources of one input and write them.

    Args:
        path: A .pdb, .dll or .exe file
        options: Destination and path handling

    Yields:
        One outcome per container, written file and issue
    """
    for event in extract_sources(path):
        if isinstance(event, ExtractedFile):
            yield write_source(
                options.destination, event.name, event.text, contain=options.contain
            )
        else:
            yield event


def describe(outcome: Outcome) -> str:
    """Format an outcome as a one-line message."""
    if isinstance(outcome, WrittenFile):
        return f"Extract: {outcome.path}"
    if isinstance(outcome, WriteIssue):
        return f"Failed: {outcome.path}, {outcome.reason}"
    if isinstance(outcome, ExtractionIssue):
        return f"Failed: {outcome.document}, {outcome.reason}"
    if isinstance(outcome, ContainerIssue):
        return f"Failed: {outcome.source}, {outcome.reason}"
    if isinstance(outcome, InputSkipped):
        return f"Skip: {outcome.source} ({outcome.reason})"
    return f"Open: {outcome.source} ({outcome.documents} documents)"
