"""CLI entry point for embedsrc."""

import argparse
import logging
import sys
from pathlib import Path
from typing import Iterable, Optional

from embedsrc.discovery import iter_input_files, split_excludes
from embedsrc.models import (
    ContainerOpened,
    ExtractedFile,
    ExtractionOptions,
    WrittenFile,
)
from embedsrc.pipeline import ExtractionSummary, describe, extract_file, extract_sources

logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
)
logger = logging.getLogger(__name__)


def _require_input(source: str) -> Path:
    source_path = Path(source)
    if not source_path.exists():
        logger.error(f"File or directory not found: {source}")
        sys.exit(1)
    return source_path


def extract(
    source: str,
    output: str,
    recursive: bool = False,
    excludes: Iterable[str] = (),
    contain: bool = False,
) -> ExtractionSummary:
    """Extract embedded sources from a file or directory.

    Args:
        source: Path to a .pdb/.dll/.exe file or a directory of them
        output: Destination directory for recovered sources
        recursive: Scan subdirectories of a directory input
        excludes: Substrings that exclude input paths
        contain: Keep absolute document names under output

    Returns:
        Counts of written files, containers and issues
    """
    source_path = _require_input(source)
    options = ExtractionOptions(destination=Path(output), contain=contain)
    summary = ExtractionSummary()

    for path in iter_input_files(source_path, recursive=recursive, excludes=excludes):
        summary.inputs += 1
        for outcome in extract_file(path, options):
            summary.record(outcome)
            if isinstance(outcome, WrittenFile):
                logger.info(describe(outcome))
            elif isinstance(outcome, ContainerOpened):
                logger.debug(describe(outcome))
            else:
                logger.warning(describe(outcome))

    logger.info("")
    logger.info(
        f"Extracted {summary.written} files from {summary.containers} containers "
        f"({summary.issues} failed, {summary.skipped} skipped) -> {options.destination}"
    )
    return summary


def list_embedded(source: str, recursive: bool = False, excludes: Iterable[str] = ()) -> None:
    """Show the embedded sources of a file or directory without writing them.

    Args:
        source: Path to a .pdb/.dll/.exe file or a directory of them
        recursive: Scan subdirectories of a directory input
        excludes: Substrings that exclude input paths
    """
    source_path = _require_input(source)

    for path in iter_input_files(source_path, recursive=recursive, excludes=excludes):
        for event in extract_sources(path):
            if isinstance(event, ContainerOpened):
                print(f"{event.source} ({event.documents} documents)")
            elif isinstance(event, ExtractedFile):
                storage = "deflate" if event.compressed else "raw"
                size = len(event.text.encode("utf-8"))
                print(f"  {event.name:<60} {storage:>8} {size:>10} B")
            else:
                logger.warning(describe(event))


def serve(source: str, transport: str = "stdio") -> None:
    """Start an MCP server over the embedded sources of a file.

    Args:
        source: Path to a .pdb, .dll or .exe file
        transport: Transport protocol (stdio or sse)
    """
    source_path = _require_input(source)

    # Import here to avoid loading MCP unless needed
    from embedsrc.server import create_mcp_server

    from typing import Literal, cast

    logger.info(f"Serving {source} via {transport}")
    mcp = create_mcp_server(source_path)
    mcp.run(transport=cast(Literal["stdio", "sse", "streamable-http"], transport))


def deck(source: Optional[str] = None, output: Optional[str] = None) -> None:
    """Launch the Extraction Deck TUI."""
    from embedsrc.deck import main as deck_main

    deck_main(source=source, output=output)


def _add_input_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("source", help="Input .pdb/.dll/.exe file or directory")
    parser.add_argument(
        "-r",
        "--recursive",
        action="store_true",
        help="Scan subdirectories when the input is a directory",
    )
    parser.add_argument(
        "--exclude",
        action="append",
        default=[],
        metavar="PATTERNS",
        help="Skip input paths containing any of these substrings (',' or ';' separated)",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="embedsrc",
        description="Recover source files embedded in Portable PDB debug information",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show debug output",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # extract command
    extract_parser = subparsers.add_parser(
        "extract",
        help="Write embedded sources to a directory",
    )
    _add_input_options(extract_parser)
    extract_parser.add_argument(
        "-o",
        "--output",
        default=".",
        help="Output directory (default: current directory)",
    )
    extract_parser.add_argument(
        "--contain",
        action="store_true",
        help="Write absolute document paths under the output directory too",
    )

    # list command
    list_parser = subparsers.add_parser(
        "list",
        help="List embedded sources without writing them",
    )
    _add_input_options(list_parser)

    # serve command
    serve_parser = subparsers.add_parser(
        "serve",
        help="Start MCP server for a file's embedded sources",
    )
    serve_parser.add_argument("source", help="Path to a .pdb, .dll or .exe file")
    serve_parser.add_argument(
        "--transport",
        choices=["stdio", "sse"],
        default="stdio",
        help="Transport protocol (default: stdio)",
    )

    # deck command
    deck_parser = subparsers.add_parser(
        "deck",
        help="Launch Extraction Deck TUI",
    )
    deck_parser.add_argument("source", nargs="?", help="Input to prefill")
    deck_parser.add_argument("-o", "--output", help="Output directory to prefill")

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        if args.command == "extract":
            extract(
                args.source,
                args.output,
                recursive=args.recursive,
                excludes=split_excludes(args.exclude),
                contain=args.contain,
            )
        elif args.command == "list":
            list_embedded(
                args.source,
                recursive=args.recursive,
                excludes=split_excludes(args.exclude),
            )
        elif args.command == "serve":
            serve(args.source, args.transport)
        elif args.command == "deck":
            deck(args.source, args.output)
    except Exception as e:
        logger.error(f"embedsrc: an error occurred, {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
