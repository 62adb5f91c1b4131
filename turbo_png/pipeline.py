"""Processing pipeline: resolve inputs, schedule per-file work, summarize."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path

from .config import AppConfig
from .engines import EngineFactory
from .engines.base import CodecEngine
from .errors import ConfigurationError, ResolutionError
from .modes import DEFAULT_QUALITY, ModeOptions, ProcessingMode, derive, validate_quality
from .progress import LogRenderer, ProgressReporter, Renderer
from .scheduler import TaskScheduler, default_concurrency
from .summary import RunSummary, Totals, summary_lines
from .tasks import Failed
from .utils.files import resolve_inputs
from .writer import OutputWriter

log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_CONFIG = 2
EXIT_CANCELLED = 130


@dataclass(frozen=True)
class RunConfig:
    """Run-wide settings, built once from the command line."""

    inputs: tuple[Path, ...]
    mode: ProcessingMode = ProcessingMode.OPTIMIZE
    quality: int = DEFAULT_QUALITY
    keep_metadata: bool = False
    overwrite: bool = False
    threads: int | None = None  # None => logical core count
    progress: bool = True
    dry_run: bool = False
    zopfli: bool = False
    engine: str | None = None  # None => config file / auto

    def validate(self) -> None:
        if not self.inputs:
            raise ConfigurationError("at least one input path is required")
        validate_quality(self.quality)
        if self.threads is not None and self.threads < 1:
            raise ConfigurationError(f"threads must be >= 1, got {self.threads}")

    @property
    def concurrency(self) -> int:
        return self.threads if self.threads is not None else default_concurrency()


@dataclass(frozen=True)
class RunReport:
    totals: Totals
    failures: list[Failed] = field(default_factory=list)
    resolution_errors: list[ResolutionError] = field(default_factory=list)
    files_discovered: int = 0
    wall_time: float = 0.0
    dry_run: bool = False
    cancelled: bool = False
    engine: str = ""

    @property
    def exit_code(self) -> int:
        if self.cancelled:
            return EXIT_CANCELLED
        if self.failures or self.resolution_errors or self.files_discovered == 0:
            return EXIT_FAILURES
        return EXIT_OK

    def summary_lines(self) -> list[str]:
        return summary_lines(
            self.totals,
            self.failures,
            self.resolution_errors,
            dry_run=self.dry_run,
            wall_time=self.wall_time,
        )


def mode_options(config: RunConfig, app: AppConfig) -> ModeOptions:
    return derive(
        config.mode,
        config.quality,
        keep_metadata=config.keep_metadata,
        zopfli=config.zopfli,
        zopfli_iterations=app.zopfli_iterations,
        tiers=app.tiers,
    )


def run_pipeline(
    config: RunConfig,
    app: AppConfig | None = None,
    *,
    engine: CodecEngine | None = None,
    renderer: Renderer | None = None,
    cancel: threading.Event | None = None,
) -> RunReport:
    """Run the batch pipeline and return its report.

    Raises ConfigurationError before any file is touched when the
    configuration is invalid. Everything after that is recorded per path.
    """

    app = app or AppConfig()
    cancel = cancel or threading.Event()

    config.validate()
    options = mode_options(config, app)
    if engine is None:
        engine = EngineFactory(app.safe_chunks).select(config.engine or app.engine)

    started = time.perf_counter()
    resolution = resolve_inputs(config.inputs)
    for err in resolution.errors:
        log.error("Cannot resolve input %s", err)

    files = resolution.files
    if not files:
        log.error("No PNG files found in the provided inputs")
        return RunReport(
            totals=Totals(),
            resolution_errors=resolution.errors,
            dry_run=config.dry_run,
            engine=engine.name,
        )

    log.debug("Found %d PNG files, mode=%s, engine=%s, threads=%d", len(files), config.mode.value, engine.name, config.concurrency)

    writer = OutputWriter(config.mode, overwrite=config.overwrite, dry_run=config.dry_run)
    renderer = renderer or LogRenderer()
    summary = RunSummary()

    with ProgressReporter(renderer, total=len(files)) as reporter:
        scheduler = TaskScheduler(
            engine,
            writer,
            options,
            concurrency=config.concurrency,
            emit=reporter.emit,
            cancel=cancel,
        )
        for result in scheduler.run(files):
            summary.add(result)

    report = RunReport(
        totals=summary.finalize(),
        failures=summary.failures,
        resolution_errors=resolution.errors,
        files_discovered=len(files),
        wall_time=time.perf_counter() - started,
        dry_run=config.dry_run,
        cancelled=cancel.is_set(),
        engine=engine.name,
    )
    renderer.summary(report)
    return report
