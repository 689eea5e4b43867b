"""Selection and decoding of embedded sources across a container's documents."""

from typing import Iterable, Iterator, Optional, Union
from uuid import UUID

from embedsrc.decoder import decode_payload, parse_payload
from embedsrc.errors import DecodeFailure, FormatError
from embedsrc.models import CustomDebugInfoRecord, ExtractedFile, ExtractionIssue
from embedsrc.protocols import DebugInfoReader

# Kind of the CustomDebugInformation record that holds embedded source text.
# Same value in every Portable PDB, see PortableCustomDebugInfoKinds in Roslyn.
EMBEDDED_SOURCE_KIND = UUID("0E8A571B-6926-466E-B4AD-8AB04611F5FE")


def select_embedded_source(records: Iterable[CustomDebugInfoRecord]) -> Optional[bytes]:
    """Return the blob of the first embedded-source record, if any.

    Any further embedded-source records on the same document are ignored.
    """
    for record in records:
        if record.kind == EMBEDDED_SOURCE_KIND:
            return record.value
    return None


def extract(reader: DebugInfoReader) -> Iterator[Union[ExtractedFile, ExtractionIssue]]:
    """Yield the embedded sources of every document in a container.

    Documents without a name, without an embedded-source record, or whose
    source decodes to empty text are skipped without an issue. A name or
    record that cannot be read or decoded yields an ExtractionIssue and processing
    moves on to the next document.

    Args:
        reader: Debug-info reader for one container

    Yields:
        ExtractedFile for each recovered source, ExtractionIssue per failure
    """
    for document in reader.documents():
        if document.name_error:
            yield ExtractionIssue(
                document=f"document row {document.row}", reason=document.name_error
            )
            continue
        if not document.name:
            continue

        try:
            blob = select_embedded_source(reader.custom_debug_information(document))
            if blob is None:
                continue
            payload = parse_payload(blob)
            text = decode_payload(payload)
        except (DecodeFailure, FormatError) as exc:
            yield ExtractionIssue(document=document.name, reason=str(exc))
            continue

        # Nothing to write
        if not text:
            continue

        yield ExtractedFile(name=document.name, text=text, compressed=payload.compressed)
