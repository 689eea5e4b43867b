"""Writing recovered sources under a destination directory."""

import os
import re
from pathlib import Path
from typing import Union

from embedsrc.models import WriteIssue, WrittenFile

BOM = "\ufeff"

# Leading "C:" drive or "https:" style scheme segment
_ANCHOR_SEGMENT_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*:$")


def _contained_parts(name: str) -> list[str]:
    """Split a document name into the segments kept under the destination."""
    segments = re.split(r"[\\/]", name)
    if segments and _ANCHOR_SEGMENT_RE.match(segments[0]):
        segments = segments[1:]
    return [s for s in segments if s not in ("", ".", "..")]


def resolve_output_path(
    destination: Union[str, Path], name: str, *, contain: bool = False
) -> Path:
    """Resolve where a document's source is written.

    Without contain, the name is joined with os.path.join, so an absolute
    name replaces the destination as the host normally does. With contain,
    anchors, drive letters, schemes and parent references are dropped and
    the result always stays under destination.

    Raises:
        ValueError: If contain leaves no usable segment in the name
    """
    if contain:
        parts = _contained_parts(name)
        if not parts:
            raise ValueError(f"document name has no usable path segments: {name!r}")
        return Path(os.path.abspath(os.path.join(destination, *parts)))

    return Path(os.path.abspath(os.path.join(destination, name)))


def write_source(
    destination: Union[str, Path], name: str, text: str, *, contain: bool = False
) -> Union[WrittenFile, WriteIssue]:
    """Write recovered source text as UTF-8 with a byte-order mark.

    Parent directories are created and an existing file is overwritten.

    Args:
        destination: Root directory for recovered sources
        name: Document name as declared in the debug info
        text: Source text
        contain: Keep the output under destination for absolute names

    Returns:
        WrittenFile on success, WriteIssue with the attempted path otherwise
    """
    attempted = name
    try:
        path = resolve_output_path(destination, name, contain=contain)
        attempted = str(path)

        data = text if text.startswith(BOM) else BOM + text
        encoded = data.encode("utf-8")

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(encoded)
    except (OSError, ValueError) as exc:
        return WriteIssue(path=attempted, reason=str(exc))

    return WrittenFile(path=path, document=name, size_bytes=len(encoded))
