"""Bounded worker pool over independent per-file tasks."""

from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Callable, Iterator, Sequence

from .engines.base import CodecEngine
from .modes import ModeOptions
from .progress import Phase, ProgressEvent
from .tasks import Failed, Task, TaskResult, process_task
from .writer import OutputWriter

log = logging.getLogger(__name__)

EventSink = Callable[[ProgressEvent], None]


def default_concurrency() -> int:
    return max(1, os.cpu_count() or 1)


def _discard(event: ProgressEvent) -> None:
    pass


class TaskScheduler:
    """Runs one task per input file and yields every terminal result.

    Results arrive in completion order. With concurrency 1 the tasks run
    inline on the calling thread, strictly in input order. A task that
    fails, even with an unexpected exception, yields a Failed result and
    never affects the others.
    """

    def __init__(
        self,
        engine: CodecEngine,
        writer: OutputWriter,
        options: ModeOptions,
        *,
        concurrency: int | None = None,
        emit: EventSink | None = None,
        cancel: threading.Event | None = None,
    ):
        self.engine = engine
        self.writer = writer
        self.options = options
        self.concurrency = concurrency if concurrency is not None else default_concurrency()
        if self.concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.emit = emit or _discard
        self.cancel = cancel or threading.Event()

    def _work(self, task_id: int, path: Path) -> TaskResult:
        # Tasks are built when a worker picks up the file.
        task = Task(task_id, path, self.options)
        self.emit(ProgressEvent(task_id, Phase.STARTED, path))
        try:
            result = process_task(task, self.engine, self.writer, self.cancel)
        except Exception as e:
            log.exception("Unexpected error while processing %s", path)
            result = Failed(task_id, path, reason=f"internal error: {e}", kind="internal")

        phase = Phase.FAILED if isinstance(result, Failed) else Phase.FINISHED
        detail = result.reason if isinstance(result, Failed) else type(result).__name__
        self.emit(ProgressEvent(task_id, phase, path, detail=detail, result=result))
        return result

    def run(self, inputs: Sequence[Path]) -> Iterator[TaskResult]:
        for task_id, path in enumerate(inputs):
            self.emit(ProgressEvent(task_id, Phase.QUEUED, path))

        if self.concurrency == 1:
            for task_id, path in enumerate(inputs):
                yield self._work(task_id, path)
            return

        workers = min(self.concurrency, max(1, len(inputs)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="turbo-png") as ex:
            futs = [ex.submit(self._work, task_id, path) for task_id, path in enumerate(inputs)]
            for fut in as_completed(futs):
                yield fut.result()
