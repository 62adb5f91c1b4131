"""Input discovery and output path derivation."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from ..errors import ResolutionError
from .png import PNG_SIGNATURE

log = logging.getLogger(__name__)

PNG_SUFFIXES = frozenset({".png"})


@dataclass(frozen=True)
class Resolution:
    """Canonical input files in deterministic order, plus per-path errors."""

    files: list[Path] = field(default_factory=list)
    errors: list[ResolutionError] = field(default_factory=list)


def has_png_suffix(path: Path) -> bool:
    return path.suffix.lower() in PNG_SUFFIXES


def has_png_signature(path: Path) -> bool:
    try:
        with path.open("rb") as f:
            return f.read(len(PNG_SIGNATURE)) == PNG_SIGNATURE
    except OSError:
        return False


def _walk(directory: Path, errors: list[ResolutionError]) -> Iterable[Path]:
    """Yield PNG files below directory, depth first, entries sorted by name.

    Symlinked directories are not entered (no cycles); symlinked files are
    yielded and deduplicated later by their resolved path.
    """

    try:
        entries = sorted(os.scandir(directory), key=lambda e: e.name)
    except OSError as e:
        errors.append(ResolutionError(directory, e.strerror or str(e)))
        return

    for entry in entries:
        path = Path(entry.path)
        try:
            if entry.is_dir(follow_symlinks=False):
                yield from _walk(path, errors)
            elif entry.is_file(follow_symlinks=True) and has_png_suffix(path):
                yield path
        except OSError as e:
            errors.append(ResolutionError(path, e.strerror or str(e)))


def resolve_inputs(paths: Iterable[Path]) -> Resolution:
    """Expand user paths into a deduplicated, ordered list of PNG files.

    Files named explicitly are accepted by suffix or PNG signature; files
    found in directories by suffix only. Deduplication is by resolved path,
    so repeated arguments and symlinks to the same file count once. Missing
    or unreadable paths are recorded and do not stop resolution.
    """

    files: list[Path] = []
    errors: list[ResolutionError] = []
    seen: set[Path] = set()

    def add(candidate: Path) -> None:
        canonical = candidate.resolve()
        if canonical in seen:
            log.debug("Skipping duplicate input: %s", candidate)
            return
        seen.add(canonical)
        files.append(canonical)

    for raw in paths:
        path = Path(raw).expanduser()
        if path.is_dir():
            for found in _walk(path, errors):
                add(found)
        elif path.is_file():
            if has_png_suffix(path) or has_png_signature(path):
                add(path)
            else:
                log.debug("Ignoring non-PNG input: %s", path)
        elif path.exists() or path.is_symlink():
            errors.append(ResolutionError(path, "not a regular file or directory"))
        else:
            errors.append(ResolutionError(path, "does not exist"))

    return Resolution(files=files, errors=errors)


def derive_output_path(input_path: Path, suffix: str) -> Path:
    """name.png -> name<suffix>.png, in the same directory."""

    return input_path.with_name(f"{input_path.stem}{suffix}{input_path.suffix}")
