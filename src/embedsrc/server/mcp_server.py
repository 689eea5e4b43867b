"""FastMCP server implementation for embedsrc."""

import re
from pathlib import Path

from mcp.server.fastmcp import FastMCP

from embedsrc.models import ExtractedFile
from embedsrc.pipeline import extract_sources


def load_sources(source: Path) -> dict[str, ExtractedFile]:
    """Collect the embedded sources of a file by document name.

    When two containers declare the same document, the first one wins.
    """
    files: dict[str, ExtractedFile] = {}
    for event in extract_sources(source):
        if isinstance(event, ExtractedFile):
            files.setdefault(event.name, event)
    return files


def _format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


def create_mcp_server(source: Path) -> FastMCP:
    """Create an MCP server for the embedded sources of one file.

    Design: 1 process = 1 input file. Sources are recovered once at startup
    and kept in memory; nothing is written to disk.

    Args:
        source: Path to the .pdb, .dll or .exe file to serve

    Returns:
        Configured FastMCP server instance
    """
    mcp = FastMCP(
        name="embedsrc",
    )

    files = load_sources(source)

    @mcp.tool()
    def ls(path: str = "") -> str:
        """List the source files embedded in the debug information.

        Args:
            path: Optional document name prefix to filter results

        Returns:
            Formatted list of documents with size and storage information
        """
        names = sorted(name for name in files if name.startswith(path))

        if not names:
            return f"No files found matching '{path}'"

        lines = []
        for name in names:
            extracted = files[name]
            size_str = _format_size(len(extracted.text.encode("utf-8")))
            storage = "[deflate]" if extracted.compressed else ""
            lines.append(f"{name:<60} {size_str:>10} {storage}")

        return "\n".join(lines)

    @mcp.tool()
    def read(path: str) -> str:
        """Read a recovered source file.

        Args:
            path: Document name (as shown in ls output)

        Returns:
            Source text of the document
        """
        extracted = files.get(path)

        if extracted is None:
            return f"Error: File not found: {path}"

        return extracted.text

    @mcp.tool()
    def search(pattern: str, limit: int = 20) -> str:
        """Search recovered sources with a regular expression.

        Args:
            pattern: Python regular expression matched against each line
            limit: Maximum number of matching lines to return (default: 20)

        Returns:
            Matching lines as name:line: text
        """
        try:
            regex = re.compile(pattern)
        except re.error as e:
            return f"Error: Invalid pattern: {e}"

        limit = max(limit, 1)
        results = []
        for name in sorted(files):
            for number, line in enumerate(files[name].text.splitlines(), 1):
                if regex.search(line):
                    results.append(f"{name}:{number}: {line.strip()[:200]}")
                    if len(results) >= limit:
                        return "\n".join(results)

        if not results:
            return f"No results found for: {pattern}"

        return "\n".join(results)

    return mcp
