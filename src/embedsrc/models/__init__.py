"""Data models for embedsrc."""

from embedsrc.models.document import (
    CustomDebugInfoRecord,
    DebugDocument,
    EmbeddedSourcePayload,
    ExtractedFile,
)
from embedsrc.models.outcomes import (
    ContainerIssue,
    ContainerOpened,
    ExtractionIssue,
    ExtractionOptions,
    InputSkipped,
    Outcome,
    WriteIssue,
    WrittenFile,
)

__all__ = [
    "DebugDocument",
    "CustomDebugInfoRecord",
    "EmbeddedSourcePayload",
    "ExtractedFile",
    "ExtractionIssue",
    "WriteIssue",
    "WrittenFile",
    "ContainerIssue",
    "ContainerOpened",
    "InputSkipped",
    "ExtractionOptions",
    "Outcome",
]
