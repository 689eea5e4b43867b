"""Tests for the Extraction Deck."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable

import pytest

from embedsrc import deck
from embedsrc.deck import DeckStats, ExtractionDeck, SourceLogTable
from embedsrc.models import (
    ContainerIssue,
    ContainerOpened,
    ExtractionIssue,
    InputSkipped,
    WriteIssue,
    WrittenFile,
)
from embedsrc.pipeline import ExtractionSummary
from tests._fixtures.pdb_builder import PeImageBuilder, PortablePdbBuilder

WriteInput = Callable[[str, bytes], Path]


def test_elapsed_before_start() -> None:
    assert DeckStats().elapsed == "00:00"


def test_elapsed_formats_minutes_and_seconds() -> None:
    start = datetime(2024, 1, 1, 12, 0, 0)
    stats = DeckStats(start_time=start, end_time=start + timedelta(minutes=2, seconds=5))

    assert stats.elapsed == "02:05"


def test_copy_is_independent() -> None:
    stats = DeckStats(summary=ExtractionSummary(written=1), status="running")

    snapshot = stats.copy()
    stats.summary.written += 1
    stats.inputs_processed += 1

    assert snapshot.summary.written == 1
    assert snapshot.inputs_processed == 0
    assert snapshot.status == "running"


def test_deck_prefills_inputs() -> None:
    app = ExtractionDeck(source="bin/App.dll", output="out")

    assert app._initial_source == "bin/App.dll"
    assert app._initial_output == "out"
    assert ExtractionDeck()._initial_output == "recovered"


def test_report_routes_each_outcome(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    app = ExtractionDeck()
    posted: list = []
    monkeypatch.setattr(app, "post_message", posted.append)
    stats = DeckStats(summary=ExtractionSummary())

    for outcome in [
        ContainerOpened(source="App.pdb", documents=3),
        WrittenFile(path=tmp_path / "a.cs", document="a.cs", size_bytes=12),
        ExtractionIssue(document="b.cs", reason="bad deflate"),
        WriteIssue(path="/ro/c.cs", reason="denied"),
        ContainerIssue(source="App.dll (debug directory entry 0)", reason="no MPDB"),
        InputSkipped(source="notes.txt", reason="not dll, exe or pdb"),
    ]:
        app._report(stats, outcome)

    assert stats.documents == 3
    assert stats.summary.containers == 1
    assert stats.summary.written == 1
    assert stats.summary.issues == 3
    assert stats.summary.skipped == 1

    rows = [
        (m.document, m.ok, m.size)
        for m in posted
        if isinstance(m, ExtractionDeck.SourceProcessed)
    ]
    assert rows == [("a.cs", True, 12), ("b.cs", False, 0), ("/ro/c.cs", False, 0)]

    logged = [m.message for m in posted if isinstance(m, ExtractionDeck.LogMessage)]
    assert logged[0] == "Open: App.pdb (3 documents)"
    assert any("Failed: b.cs, bad deflate" in line for line in logged)
    assert any("no MPDB" in line for line in logged)
    assert logged[-1] == "[dim]Skip: notes.txt (not dll, exe or pdb)[/]"


def _run_deck(source: str, output: str) -> tuple[DeckStats, int, list[str]]:
    async def scenario() -> tuple[DeckStats, int, list[str]]:
        app = ExtractionDeck(source=source, output=output)
        async with app.run_test() as pilot:
            app.action_extract()
            await app.workers.wait_for_complete()
            await pilot.pause()
            table = app.query_one("#source-log", SourceLogTable)
            log = app.query_one("#log", deck.Log)
            return app.last_stats, table.row_count, list(log.lines)

    return asyncio.run(scenario())


def test_worker_extracts_directory(tmp_path: Path, write_input: WriteInput) -> None:
    pdb = (
        PortablePdbBuilder()
        .add_source("src/Foo.cs", "class Foo {}")
        .add_source("src/Bar.cs", "class Bar {}", compress=True)
        .add_document("src/NoSource.cs")
        .build()
    )
    write_input("App.dll", PeImageBuilder().add_embedded_pdb(pdb).build())
    write_input("Broken.pdb", b"junk")
    out = tmp_path / "out"

    stats, rows, lines = _run_deck(str(tmp_path / "in"), str(out))

    assert stats.status == "complete"
    assert stats.inputs_discovered == stats.inputs_processed == 2
    assert stats.documents == 3
    assert stats.summary.written == 2
    assert stats.summary.skipped == 1
    assert rows == 2
    assert (out / "src" / "Foo.cs").exists()
    assert any("Extracted 2 files from 1 containers" in line for line in lines)


def test_worker_reports_missing_path(tmp_path: Path) -> None:
    stats, rows, lines = _run_deck(str(tmp_path / "missing"), str(tmp_path / "out"))

    assert stats.status == "error"
    assert rows == 0
    assert any("Path not found" in line for line in lines)


def test_worker_survives_unexpected_error(
    tmp_path: Path, write_input: WriteInput, monkeypatch: pytest.MonkeyPatch
) -> None:
    def explode(path, options):
        raise RuntimeError("disk on fire")
        yield

    monkeypatch.setattr(deck, "extract_file", explode)
    write_input("App.pdb", PortablePdbBuilder().add_source("a.cs", "x").build())

    stats, _, lines = _run_deck(str(tmp_path / "in"), str(tmp_path / "out"))

    assert stats.status == "error"
    assert stats.end_time is not None
    assert any("Extraction stopped" in line and "disk on fire" in line for line in lines)
