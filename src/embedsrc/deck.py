"""Extraction Deck - a TUI for running embedded-source extraction interactively."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path

from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.message import Message
from textual.widgets import (
    Button,
    Checkbox,
    DataTable,
    Footer,
    Header,
    Input,
    Log,
    ProgressBar,
    Static,
)

from embedsrc.discovery import iter_input_files
from embedsrc.models import (
    ContainerIssue,
    ContainerOpened,
    ExtractionIssue,
    ExtractionOptions,
    InputSkipped,
    Outcome,
    WriteIssue,
    WrittenFile,
)
from embedsrc.pipeline import ExtractionSummary, describe, extract_file


@dataclass
class DeckStats:
    """Progress of one extraction run, snapshotted for the UI thread."""

    inputs_discovered: int = 0
    inputs_processed: int = 0
    documents: int = 0
    summary: ExtractionSummary | None = None
    current_file: str = ""
    status: str = "idle"
    start_time: datetime | None = None
    end_time: datetime | None = None

    @property
    def elapsed(self) -> str:
        if self.start_time is None:
            return "00:00"
        seconds = int(((self.end_time or datetime.now()) - self.start_time).total_seconds())
        return f"{seconds // 60:02d}:{seconds % 60:02d}"

    def copy(self) -> DeckStats:
        summary = replace(self.summary) if self.summary else None
        return replace(self, summary=summary)


_STATUS_STYLE = {"running": "green", "complete": "cyan", "error": "red"}


class SummaryPanel(Static):
    """Counters for the current run."""

    def on_mount(self) -> None:
        self.show(DeckStats())

    def show(self, stats: DeckStats) -> None:
        summary = stats.summary or ExtractionSummary()
        style = _STATUS_STYLE.get(stats.status, "dim")
        current = stats.current_file
        if len(current) > 34:
            current = "..." + current[-31:]
        rows = [
            f"[{style}]{stats.status.upper()}[/]  {stats.elapsed}",
            "",
            f"inputs      {stats.inputs_processed}/{stats.inputs_discovered}",
            f"skipped     {summary.skipped}",
            f"containers  {summary.containers}",
            f"documents   {stats.documents}",
            f"written     [green]{summary.written}[/]",
            f"failed      [red]{summary.issues}[/]",
            f"bytes       {summary.total_bytes:,}",
            "",
            f"[dim]{current or 'no input'}[/]",
        ]
        self.update("\n".join(rows))


class SourceLogTable(DataTable):
    """One row per recovered or failed document."""

    def on_mount(self) -> None:
        self.add_columns("Document", "Result", "Bytes")
        self.zebra_stripes = True

    def add_source(self, name: str, ok: bool, size: int) -> None:
        result = "[green]ok[/]" if ok else "[red]failed[/]"
        self.add_row(name, result, str(size) if ok else "")
        self.move_cursor(row=self.row_count - 1)


class ExtractionDeck(App):
    """The embedsrc Extraction Deck."""

    # Posted from the worker thread
    class StatsUpdated(Message):
        def __init__(self, stats: DeckStats) -> None:
            self.stats = stats
            super().__init__()

    class LogMessage(Message):
        def __init__(self, message: str) -> None:
            self.message = message
            super().__init__()

    class SourceProcessed(Message):
        def __init__(self, document: str, ok: bool, size: int) -> None:
            self.document = document
            self.ok = ok
            self.size = size
            super().__init__()

    CSS = """
    #controls {
        height: auto;
        padding: 0 1;
    }

    #controls Input {
        width: 1fr;
    }

    #body {
        height: 1fr;
    }

    SummaryPanel {
        width: 40;
        padding: 1 2;
        border: round $accent;
    }

    SourceLogTable {
        width: 1fr;
        border: round $primary;
    }

    #progress {
        padding: 0 1;
    }

    #log {
        height: 10;
        border: round $panel;
    }
    """

    BINDINGS = [
        Binding("e", "extract", "Extract"),
        Binding("c", "clear", "Clear"),
        Binding("q", "quit", "Quit"),
        Binding("d", "toggle_dark", "Dark"),
    ]

    TITLE = "embedsrc"
    SUB_TITLE = "Extraction Deck"

    def __init__(self, source: str | None = None, output: str | None = None) -> None:
        super().__init__()
        self._initial_source = source or ""
        self._initial_output = output or "recovered"
        self.last_stats = DeckStats()

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id="controls"):
            yield Input(
                value=self._initial_source,
                placeholder=".dll, .exe, .pdb or directory",
                id="source-input",
            )
            yield Input(value=self._initial_output, placeholder="output", id="output-input")
            yield Checkbox("Recursive", id="recursive-check")
            yield Checkbox("Contain", id="contain-check")
            yield Button("Extract", id="extract-btn", variant="primary")
        with Horizontal(id="body"):
            yield SummaryPanel()
            with Vertical():
                yield ProgressBar(id="progress", show_eta=False)
                yield SourceLogTable(id="source-log")
        yield Log(id="log")
        yield Footer()

    def on_mount(self) -> None:
        self._log("Enter an input and press e to extract")

    def _log(self, message: str) -> None:
        self.query_one("#log", Log).write_line(f"{datetime.now():%H:%M:%S} {message}")

    def on_extraction_deck_stats_updated(self, event: StatsUpdated) -> None:
        self.last_stats = event.stats
        self.query_one(SummaryPanel).show(event.stats)
        if event.stats.inputs_discovered:
            self.query_one("#progress", ProgressBar).update(
                total=event.stats.inputs_discovered, progress=event.stats.inputs_processed
            )

    def on_extraction_deck_log_message(self, event: LogMessage) -> None:
        self._log(event.message)

    def on_extraction_deck_source_processed(self, event: SourceProcessed) -> None:
        self.query_one("#source-log", SourceLogTable).add_source(
            event.document, event.ok, event.size
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "extract-btn":
            self.action_extract()

    def action_clear(self) -> None:
        """Reset the table, counters and log."""
        self.last_stats = DeckStats()
        self.query_one(SummaryPanel).show(self.last_stats)
        self.query_one("#source-log", SourceLogTable).clear()
        self.query_one("#log", Log).clear()
        self.query_one("#progress", ProgressBar).update(total=None, progress=0)

    def action_extract(self) -> None:
        """Start extraction with the current form values."""
        source = self.query_one("#source-input", Input).value.strip()
        output = self.query_one("#output-input", Input).value.strip()
        if not source or not output:
            self._log("[red]Both an input and an output directory are required[/]")
            return
        self.run_extraction(
            source,
            output,
            recursive=self.query_one("#recursive-check", Checkbox).value,
            contain=self.query_one("#contain-check", Checkbox).value,
        )

    def _report(self, stats: DeckStats, outcome: Outcome) -> None:
        stats.summary.record(outcome)
        if isinstance(outcome, ContainerOpened):
            stats.documents += outcome.documents
            self.post_message(self.LogMessage(describe(outcome)))
        elif isinstance(outcome, WrittenFile):
            self.post_message(self.SourceProcessed(outcome.document, True, outcome.size_bytes))
        elif isinstance(outcome, (ExtractionIssue, WriteIssue)):
            name = outcome.document if isinstance(outcome, ExtractionIssue) else outcome.path
            self.post_message(self.SourceProcessed(name, False, 0))
            self.post_message(self.LogMessage(f"[red]{describe(outcome)}[/]"))
        elif isinstance(outcome, ContainerIssue):
            self.post_message(self.LogMessage(f"[red]{describe(outcome)}[/]"))
        elif isinstance(outcome, InputSkipped):
            self.post_message(self.LogMessage(f"[dim]{describe(outcome)}[/]"))

    @work(exclusive=True, thread=True)
    def run_extraction(
        self, source: str, output: str, recursive: bool, contain: bool
    ) -> None:
        """Run the pipeline off the UI thread, posting progress back."""
        options = ExtractionOptions(destination=Path(output), contain=contain)
        stats = DeckStats(
            summary=ExtractionSummary(), status="running", start_time=datetime.now()
        )

        source_path = Path(source)
        if not source_path.exists():
            stats.status = "error"
            self.post_message(self.StatsUpdated(stats.copy()))
            self.post_message(self.LogMessage(f"[red]Path not found: {source}[/]"))
            return

        try:
            inputs = list(iter_input_files(source_path, recursive=recursive))
        except OSError as e:
            stats.status = "error"
            self.post_message(self.StatsUpdated(stats.copy()))
            self.post_message(self.LogMessage(f"[red]Cannot read {source}: {e}[/]"))
            return

        stats.inputs_discovered = len(inputs)
        self.post_message(self.StatsUpdated(stats.copy()))
        self.post_message(self.LogMessage(f"{len(inputs)} input file(s) in {source}"))

        try:
            for path in inputs:
                stats.current_file = str(path)
                for outcome in extract_file(path, options):
                    self._report(stats, outcome)
                    self.post_message(self.StatsUpdated(stats.copy()))
                stats.inputs_processed += 1
                self.post_message(self.StatsUpdated(stats.copy()))
        except Exception as e:
            stats.status = "error"
            stats.end_time = datetime.now()
            self.post_message(self.StatsUpdated(stats.copy()))
            self.post_message(
                self.LogMessage(f"[red]Extraction stopped at {stats.current_file}: {e}[/]")
            )
            return

        stats.status = "complete"
        stats.current_file = ""
        stats.end_time = datetime.now()
        self.post_message(self.StatsUpdated(stats.copy()))
        self.post_message(
            self.LogMessage(
                f"[cyan]Extracted {stats.summary.written} files from "
                f"{stats.summary.containers} containers -> {options.destination}[/]"
            )
        )


def main(source: str | None = None, output: str | None = None) -> None:
    """Run the Extraction Deck TUI."""
    ExtractionDeck(source=source, output=output).run()


if __name__ == "__main__":
    main()
