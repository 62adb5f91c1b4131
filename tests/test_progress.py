"""Progress reporter and renderers."""

import io
import logging
from pathlib import Path

import pytest
from rich.console import Console

from turbo_png.progress import (
    LogRenderer,
    Phase,
    ProgressEvent,
    ProgressReporter,
    Renderer,
    RichRenderer,
    result_style,
)
from turbo_png.tasks import Cancelled, Failed, SkippedExists, Success


class Recorder(Renderer):
    def __init__(self, fail_on: int | None = None):
        self.started_with = None
        self.events: list[ProgressEvent] = []
        self.stopped = False
        self.fail_on = fail_on

    def start(self, total: int) -> None:
        self.started_with = total

    def handle(self, event: ProgressEvent) -> None:
        if event.task_id == self.fail_on:
            raise RuntimeError("render bug")
        self.events.append(event)

    def stop(self) -> None:
        self.stopped = True


def _success(task_id: int, name: str) -> Success:
    return Success(task_id, Path(name), 1000, 600, Path(name).with_suffix(".out.png"), 2_000_000, "fake")


def _lifecycle(task_id: int, name: str) -> list[ProgressEvent]:
    path = Path(name)
    return [
        ProgressEvent(task_id, Phase.QUEUED, path),
        ProgressEvent(task_id, Phase.STARTED, path),
        ProgressEvent(task_id, Phase.FINISHED, path, result=_success(task_id, name)),
    ]


def test_reporter_forwards_every_event_in_order() -> None:
    """Events reach the renderer once each, in emission order, before close returns."""
    rec = Recorder()
    sent = _lifecycle(0, "a.png") + _lifecycle(1, "b.png")

    with ProgressReporter(rec, total=2) as reporter:
        for e in sent:
            reporter.emit(e)

    assert rec.started_with == 2
    assert rec.events == sent
    assert rec.stopped


def test_renderer_errors_do_not_escape() -> None:
    """A renderer that raises loses that event only."""
    rec = Recorder(fail_on=0)
    reporter = ProgressReporter(rec, total=2)
    reporter.start()
    for e in _lifecycle(0, "a.png") + _lifecycle(1, "b.png"):
        reporter.emit(e)
    reporter.close()

    assert [e.task_id for e in rec.events] == [1, 1, 1]


def test_log_renderer_logs_terminal_events_only(caplog: pytest.LogCaptureFixture) -> None:
    """Quiet mode writes one line per finished file, warnings for failures."""
    caplog.set_level(logging.INFO, logger="turbo_png.progress")
    renderer = LogRenderer()
    for e in _lifecycle(0, "a.png"):
        renderer.handle(e)
    failed = Failed(1, Path("b.png"), reason="file is not a valid PNG", kind="malformed")
    renderer.handle(ProgressEvent(1, Phase.FAILED, Path("b.png"), result=failed))

    records = [r for r in caplog.records if r.name == "turbo_png.progress"]
    assert len(records) == 2
    assert records[0].getMessage().startswith("✓ a.png")
    assert records[1].levelno == logging.WARNING
    assert records[1].getMessage().startswith("✗ b.png")


def test_rich_renderer_prints_completed_files() -> None:
    """The interactive view prints a status line per completed file."""
    buf = io.StringIO()
    renderer = RichRenderer(Console(file=buf, force_terminal=False, width=120))
    renderer.start(1)
    for e in _lifecycle(0, "a.png"):
        renderer.handle(e)
    renderer.stop()

    out = buf.getvalue()
    assert "a.png" in out
    assert "✓" in out


def test_cancelled_lines_use_the_skip_style() -> None:
    """Cancelled files are shown like skipped ones, not as successes."""
    skipped = SkippedExists(0, Path("a.png"), output_path=Path("a_optimized.png"))
    cancelled = Cancelled(1, Path("b.png"))
    failed = Failed(2, Path("c.png"), reason="boom", kind="internal")

    assert result_style(cancelled) == result_style(skipped)
    assert result_style(cancelled) != result_style(_success(3, "d.png"))
    assert result_style(failed) not in {result_style(skipped), result_style(_success(3, "d.png"))}
