"""Results reported while extracting embedded sources."""

from dataclasses import dataclass
from pathlib import Path
from typing import Union


@dataclass(frozen=True)
class ExtractionOptions:
    """Settings for one extraction run."""

    destination: Path
    contain: bool = False  # keep absolute document names under destination


@dataclass(frozen=True)
class WrittenFile:
    """A recovered source file that was written to disk."""

    path: Path
    document: str
    size_bytes: int


@dataclass(frozen=True)
class ExtractionIssue:
    """A document whose embedded source could not be decoded."""

    document: str
    reason: str


@dataclass(frozen=True)
class WriteIssue:
    """A recovered source that could not be written."""

    path: str
    reason: str


@dataclass(frozen=True)
class ContainerIssue:
    """An embedded debug-info entry of an image that could not be opened."""

    source: str
    reason: str


@dataclass(frozen=True)
class ContainerOpened:
    """A debug-info container found in an input."""

    source: str
    documents: int


@dataclass(frozen=True)
class InputSkipped:
    """An input that is not a supported container or image."""

    source: str
    reason: str


Outcome = Union[
    ContainerOpened, WrittenFile, ExtractionIssue, WriteIssue, ContainerIssue, InputSkipped
]
