"""Enumeration of candidate input files."""

import os
from pathlib import Path
from typing import Iterable, Iterator

from embedsrc.utils.binary import is_candidate_extension


def split_excludes(values: Iterable[str]) -> set[str]:
    """Split --exclude values on ',' and ';' into a set of substrings."""
    excludes = set()
    for value in values:
        for part in value.replace(";", ",").split(","):
            part = part.strip()
            if part:
                excludes.add(part)
    return excludes


def iter_input_files(
    path: Path, *, recursive: bool = False, excludes: Iterable[str] = ()
) -> Iterator[Path]:
    """Yield the files to process for an input path.

    A file is yielded as-is. For a directory, files whose extension marks a
    PE image or PDB are yielded, skipping any whose path contains one of the
    exclusion substrings.

    Args:
        path: Input file or directory
        recursive: Descend into subdirectories
        excludes: Substrings that exclude a file path

    Yields:
        Candidate file paths
    """
    if path.is_file():
        yield path
        return

    patterns = list(excludes)
    if recursive:
        for root, dirs, files in os.walk(path):
            dirs.sort()
            for filename in sorted(files):
                full_path = Path(root) / filename
                if _is_candidate(full_path, patterns):
                    yield full_path
    else:
        for full_path in sorted(path.iterdir()):
            if full_path.is_file() and _is_candidate(full_path, patterns):
                yield full_path


def _is_candidate(path: Path, excludes: list[str]) -> bool:
    if not is_candidate_extension(path):
        return False
    return not any(pattern in str(path) for pattern in excludes)
