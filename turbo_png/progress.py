"""Progress reporting.

Workers emit lifecycle events into an unbounded queue and never wait for the
display. A single consumer thread forwards each event once to a renderer.
Renderers only observe: an exception while rendering is logged and dropped,
it never reaches a task.
"""

from __future__ import annotations

import enum
import logging
import queue
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.text import Text

from .summary import Totals, describe, format_bytes, format_savings
from .tasks import Cancelled, Failed, SkippedExists, TaskResult

if TYPE_CHECKING:
    from .pipeline import RunReport

log = logging.getLogger(__name__)


class Phase(str, enum.Enum):
    QUEUED = "queued"
    STARTED = "started"
    FINISHED = "finished"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (Phase.FINISHED, Phase.FAILED)


@dataclass(frozen=True)
class ProgressEvent:
    task_id: int
    phase: Phase
    path: Path
    detail: str = ""
    result: TaskResult | None = None


class Renderer:
    """Base renderer: ignores everything."""

    def start(self, total: int) -> None:
        pass

    def handle(self, event: ProgressEvent) -> None:
        pass

    def stop(self) -> None:
        pass

    def summary(self, report: RunReport) -> None:
        pass


class LogRenderer(Renderer):
    """Quiet mode: one log line per terminal event."""

    def handle(self, event: ProgressEvent) -> None:
        if not event.phase.terminal or event.result is None:
            return
        line = describe(event.result)
        if isinstance(event.result, Failed):
            log.warning("%s", line)
        else:
            log.info("%s", line)

    def summary(self, report: RunReport) -> None:
        for line in report.summary_lines():
            log.info("%s", line)


_STYLES = {
    "ok": "green",
    "skip": "yellow",
    "fail": "bold red",
}


def result_style(result: TaskResult) -> str:
    if isinstance(result, Failed):
        return _STYLES["fail"]
    if isinstance(result, (SkippedExists, Cancelled)):
        return _STYLES["skip"]
    return _STYLES["ok"]


class RichRenderer(Renderer):
    """Interactive view: overall bar, in-flight files, running savings."""

    MAX_NAMES = 3

    def __init__(self, console: Console | None = None):
        self.console = console or Console(stderr=True)
        self._progress: Progress | None = None
        self._task_id = None
        self._in_flight: dict[int, str] = {}
        self._totals = Totals()

    def start(self, total: int) -> None:
        self._progress = Progress(
            SpinnerColumn(),
            BarColumn(bar_width=36),
            MofNCompleteColumn(),
            TextColumn("files"),
            TimeElapsedColumn(),
            TextColumn("{task.fields[saved]}"),
            TextColumn("[dim]{task.description}"),
            console=self.console,
        )
        self._task_id = self._progress.add_task("", total=total, saved="")
        self._progress.start()

    def _status(self) -> str:
        names = list(self._in_flight.values())
        shown = ", ".join(names[: self.MAX_NAMES])
        if len(names) > self.MAX_NAMES:
            shown += f" (+{len(names) - self.MAX_NAMES})"
        return f"processing {shown}" if shown else ""

    def handle(self, event: ProgressEvent) -> None:
        progress = self._progress
        if progress is None:
            return

        if event.phase is Phase.STARTED:
            self._in_flight[event.task_id] = event.path.name
            progress.update(self._task_id, description=self._status())
            return
        if not event.phase.terminal:
            return

        self._in_flight.pop(event.task_id, None)
        if event.result is not None:
            self._totals = self._totals + Totals.of(event.result)
            progress.console.print(Text(describe(event.result), style=result_style(event.result)))

        saved = ""
        if self._totals.files_processed:
            saved = format_savings(self._totals.total_original_bytes, self._totals.total_output_bytes)
        progress.update(self._task_id, advance=1, description=self._status(), saved=saved)

    def stop(self) -> None:
        if self._progress is not None:
            self._progress.update(self._task_id, description="")
            self._progress.stop()
            self._progress = None

    def summary(self, report: RunReport) -> None:
        lines = report.summary_lines()
        if not lines:
            return
        style = "bold red" if report.exit_code else "bold green"
        self.console.print(Text(lines[0], style=style))
        for line in lines[1:]:
            self.console.print(Text(line))
        if report.totals.files_processed and not report.dry_run:
            self.console.print(
                Text(f"Saved {format_bytes(max(0, report.totals.saved_bytes))} in total", style="dim")
            )


_STOP = object()


class ProgressReporter:
    """Forwards events from any thread to one renderer on a dedicated thread."""

    def __init__(self, renderer: Renderer, total: int):
        self._renderer = renderer
        self._total = total
        self._queue: queue.SimpleQueue = queue.SimpleQueue()
        self._thread = threading.Thread(target=self._consume, name="turbo-png-progress", daemon=True)
        self._started = False

    def start(self) -> None:
        self._call(self._renderer.start, self._total)
        self._thread.start()
        self._started = True

    def emit(self, event: ProgressEvent) -> None:
        self._queue.put(event)

    def close(self) -> None:
        if not self._started:
            return
        self._queue.put(_STOP)
        self._thread.join()
        self._started = False
        self._call(self._renderer.stop)

    def __enter__(self) -> ProgressReporter:
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _consume(self) -> None:
        while True:
            event = self._queue.get()
            if event is _STOP:
                return
            self._call(self._renderer.handle, event)

    def _call(self, fn, *args) -> None:
        try:
            fn(*args)
        except Exception:
            log.debug("progress renderer error", exc_info=True)
