from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from tests._fixtures.pdb_builder import PortablePdbBuilder


@pytest.fixture
def pdb_builder() -> PortablePdbBuilder:
    """Provide an empty Portable PDB builder."""
    return PortablePdbBuilder()


@pytest.fixture
def write_input(tmp_path: Path) -> Callable[[str, bytes], Path]:
    """Write input bytes under tmp_path/in and return the path."""

    def _write(name: str, data: bytes) -> Path:
        path = tmp_path / "in" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return path

    return _write
