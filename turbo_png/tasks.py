"""Per-file tasks, their terminal results, and the worker that runs one task."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path

from .engines.base import CodecEngine, CodecOutput
from .errors import CodecError, WriteError
from .modes import CompressOptions, ModeOptions, OptimizeOptions
from .writer import OutputWriter, WriteStatus

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Task:
    task_id: int
    input_path: Path
    options: ModeOptions


@dataclass(frozen=True)
class TaskResult:
    """Terminal outcome of one task. Exactly one per task."""

    task_id: int
    input_path: Path


@dataclass(frozen=True)
class Success(TaskResult):
    original_size: int
    output_size: int
    output_path: Path
    elapsed_ns: int
    engine: str
    palette_size: int | None = None


@dataclass(frozen=True)
class SkippedExists(TaskResult):
    output_path: Path


@dataclass(frozen=True)
class SkippedDryRun(TaskResult):
    would_write_to: Path
    original_size: int
    projected_size: int
    elapsed_ns: int
    engine: str
    palette_size: int | None = None


@dataclass(frozen=True)
class Failed(TaskResult):
    reason: str
    kind: str


@dataclass(frozen=True)
class Cancelled(TaskResult):
    pass


def run_codec(engine: CodecEngine, data: bytes, options: ModeOptions) -> CodecOutput:
    if isinstance(options, OptimizeOptions):
        return engine.lossless_transform(data, options)
    if isinstance(options, CompressOptions):
        return engine.quantize_and_compress(data, options)
    raise TypeError(f"unsupported mode options: {type(options).__name__}")


def process_task(
    task: Task,
    engine: CodecEngine,
    writer: OutputWriter,
    cancel: threading.Event | None = None,
) -> TaskResult:
    """Read, transform and write one file.

    Cancellation is honored only at safe boundaries: before the input is
    read and after the codec returns. A write that has started always
    finishes (or is rolled back by the writer).
    """

    tid, path = task.task_id, task.input_path
    start = time.perf_counter_ns()

    if cancel is not None and cancel.is_set():
        return Cancelled(tid, path)

    dest = writer.destination(path)
    if writer.blocked(dest):
        return SkippedExists(tid, path, output_path=dest)

    try:
        data = path.read_bytes()
    except OSError as e:
        return Failed(tid, path, reason=f"cannot read input ({e.strerror or e})", kind="read")

    try:
        output = run_codec(engine, data, task.options)
    except CodecError as e:
        return Failed(tid, path, reason=str(e), kind=e.kind.value)

    if cancel is not None and cancel.is_set():
        return Cancelled(tid, path)

    try:
        outcome = writer.write(path, output.data)
    except WriteError as e:
        return Failed(tid, path, reason=str(e), kind="write")

    elapsed = time.perf_counter_ns() - start
    if outcome.status is WriteStatus.SKIPPED_EXISTS:
        return SkippedExists(tid, path, output_path=outcome.path)
    if outcome.status is WriteStatus.DRY_RUN:
        return SkippedDryRun(
            tid,
            path,
            would_write_to=outcome.path,
            original_size=len(data),
            projected_size=outcome.size,
            elapsed_ns=elapsed,
            engine=engine.name,
            palette_size=output.palette_size,
        )
    return Success(
        tid,
        path,
        original_size=len(data),
        output_size=outcome.size,
        output_path=outcome.path,
        elapsed_ns=elapsed,
        engine=engine.name,
        palette_size=output.palette_size,
    )
