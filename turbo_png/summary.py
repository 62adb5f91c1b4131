"""Result aggregation and human-readable formatting.

Totals form a commutative monoid: Totals() is the identity and `+` is
field-wise addition over integers, so folding results in any order, all at
once or incrementally, gives identical numbers.
"""

from __future__ import annotations

import functools
import operator
from dataclasses import dataclass, fields
from typing import Iterable

from .errors import ResolutionError
from .tasks import Cancelled, Failed, SkippedDryRun, SkippedExists, Success, TaskResult

KIB = 1024
MIB = KIB * 1024
GIB = MIB * 1024


@dataclass(frozen=True)
class Totals:
    files_processed: int = 0
    files_failed: int = 0
    files_skipped: int = 0
    files_cancelled: int = 0
    total_original_bytes: int = 0
    total_output_bytes: int = 0
    elapsed_ns: int = 0

    def __add__(self, other: Totals) -> Totals:
        if not isinstance(other, Totals):
            return NotImplemented
        return Totals(*(getattr(self, f.name) + getattr(other, f.name) for f in fields(self)))

    @classmethod
    def of(cls, result: TaskResult) -> Totals:
        if isinstance(result, Success):
            return cls(
                files_processed=1,
                total_original_bytes=result.original_size,
                total_output_bytes=result.output_size,
                elapsed_ns=result.elapsed_ns,
            )
        if isinstance(result, SkippedDryRun):
            return cls(
                files_processed=1,
                total_original_bytes=result.original_size,
                total_output_bytes=result.projected_size,
                elapsed_ns=result.elapsed_ns,
            )
        if isinstance(result, SkippedExists):
            return cls(files_skipped=1)
        if isinstance(result, Cancelled):
            return cls(files_skipped=1, files_cancelled=1)
        if isinstance(result, Failed):
            return cls(files_failed=1)
        raise TypeError(f"unknown task result: {type(result).__name__}")

    @property
    def saved_bytes(self) -> int:
        return self.total_original_bytes - self.total_output_bytes

    @property
    def savings(self) -> float:
        """Fraction of original bytes saved over processed files (0 when nothing was processed)."""

        if self.total_original_bytes <= 0:
            return 0.0
        return self.saved_bytes / self.total_original_bytes

    @property
    def elapsed(self) -> float:
        return self.elapsed_ns / 1e9


def aggregate(results: Iterable[TaskResult]) -> Totals:
    return functools.reduce(operator.add, (Totals.of(r) for r in results), Totals())


class RunSummary:
    """Run-wide accumulator.

    Owned by the orchestrating thread; results reach it through add() only.
    """

    def __init__(self) -> None:
        self._totals = Totals()
        self._failures: list[Failed] = []
        self._finalized = False

    def add(self, result: TaskResult) -> None:
        if self._finalized:
            raise RuntimeError("summary is finalized")
        self._totals = self._totals + Totals.of(result)
        if isinstance(result, Failed):
            self._failures.append(result)

    def finalize(self) -> Totals:
        self._finalized = True
        return self._totals

    @property
    def totals(self) -> Totals:
        return self._totals

    @property
    def failures(self) -> list[Failed]:
        return sorted(self._failures, key=lambda f: str(f.input_path))


def format_bytes(n: int) -> str:
    if n >= GIB:
        return f"{n / GIB:.2f} GiB"
    if n >= MIB:
        return f"{n / MIB:.2f} MiB"
    if n >= KIB:
        return f"{n / KIB:.2f} KiB"
    return f"{n} B"


def format_savings(original: int, output: int) -> str:
    if original <= 0 or output >= original:
        return f"+{format_bytes(max(0, output - original))}"
    saved = original - output
    return f"-{format_bytes(saved)} ({saved / original * 100:.1f}% saved)"


def format_duration(ns: int) -> str:
    seconds = ns / 1e9
    if seconds >= 1.0:
        return f"{seconds:.2f}s"
    return f"{ns // 1_000_000} ms"


def describe(result: TaskResult) -> str:
    """One status line for a terminal result."""

    path = result.input_path
    if isinstance(result, Success):
        parts = [
            f"{format_bytes(result.original_size)} → {format_bytes(result.output_size)}",
            format_savings(result.original_size, result.output_size),
            format_duration(result.elapsed_ns),
        ]
        if result.palette_size is not None:
            parts.append(f"{result.palette_size} colors")
        return f"✓ {path} ({', '.join(parts)})"
    if isinstance(result, SkippedDryRun):
        parts = [
            f"{format_bytes(result.original_size)} → {format_bytes(result.projected_size)}",
            format_savings(result.original_size, result.projected_size),
            f"would write {result.would_write_to.name}",
        ]
        if result.palette_size is not None:
            parts.append(f"{result.palette_size} colors")
        return f"✓ {path} (dry run: {', '.join(parts)})"
    if isinstance(result, SkippedExists):
        return f"↷ {path} ({result.output_path.name} exists, use --overwrite to replace)"
    if isinstance(result, Cancelled):
        return f"⊘ {path} (cancelled)"
    if isinstance(result, Failed):
        return f"✗ {path} ({result.reason})"
    raise TypeError(f"unknown task result: {type(result).__name__}")


def summary_lines(
    totals: Totals,
    failures: list[Failed],
    resolution_errors: list[ResolutionError],
    *,
    dry_run: bool = False,
    wall_time: float | None = None,
) -> list[str]:
    heading = "Dry run summary (projected sizes)" if dry_run else "Summary"
    lines = [
        f"{heading}: {totals.files_processed} processed, {totals.files_skipped} skipped, "
        f"{totals.files_failed} failed",
    ]
    if totals.files_processed:
        lines.append(
            f"  {format_bytes(totals.total_original_bytes)} → {format_bytes(totals.total_output_bytes)} "
            f"({format_savings(totals.total_original_bytes, totals.total_output_bytes)})"
        )
    if totals.files_cancelled:
        lines.append(f"  {totals.files_cancelled} file(s) cancelled before completion")
    if wall_time is not None:
        lines.append(f"  finished in {wall_time:.2f}s (cpu {totals.elapsed:.2f}s)")
    if resolution_errors:
        lines.append("Unresolved inputs:")
        lines.extend(f"  • {e.path}: {e.reason}" for e in sorted(resolution_errors, key=lambda e: str(e.path)))
    if failures:
        lines.append("Failed files:")
        lines.extend(f"  • {f.input_path}: {f.reason}" for f in failures)
    return lines

