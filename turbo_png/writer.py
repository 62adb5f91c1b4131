"""Output writing: destination naming, overwrite policy, atomic replace."""

from __future__ import annotations

import enum
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path

from .errors import WriteError
from .modes import ProcessingMode
from .utils.files import derive_output_path

log = logging.getLogger(__name__)

TEMP_PREFIX = ".turbo-png-"
TEMP_SUFFIX = ".tmp"


class WriteStatus(str, enum.Enum):
    WRITTEN = "written"
    SKIPPED_EXISTS = "skipped_exists"
    DRY_RUN = "dry_run"


@dataclass(frozen=True)
class WriteOutcome:
    status: WriteStatus
    path: Path
    size: int = 0


def _reason(e: OSError) -> str:
    return e.strerror or str(e)


def write_atomic(dest: Path, data: bytes, *, mode_from: Path | None = None) -> None:
    """Replace dest with data so readers see either the old file or the new one.

    The bytes go to a temporary file in the destination directory, are synced
    to disk, and the temporary file is renamed over dest. The temporary file
    is removed on any failure.
    """

    try:
        fd, tmp_name = tempfile.mkstemp(prefix=TEMP_PREFIX, suffix=TEMP_SUFFIX, dir=dest.parent)
    except OSError as e:
        raise WriteError(dest, f"cannot create temporary file ({_reason(e)})") from e

    tmp = Path(tmp_name)
    committed = False
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        if mode_from is not None:
            shutil.copymode(mode_from, tmp)
        os.replace(tmp, dest)
        committed = True
    except OSError as e:
        raise WriteError(dest, f"cannot write output ({_reason(e)})") from e
    finally:
        if not committed:
            tmp.unlink(missing_ok=True)


class OutputWriter:
    """Applies the run's overwrite and dry-run policy to per-file output."""

    def __init__(self, mode: ProcessingMode, *, overwrite: bool = False, dry_run: bool = False):
        self.mode = mode
        self.overwrite = overwrite
        self.dry_run = dry_run

    def destination(self, input_path: Path) -> Path:
        return derive_output_path(input_path, self.mode.suffix)

    def blocked(self, dest: Path) -> bool:
        """True when dest exists and may not be replaced."""

        return not self.overwrite and dest.exists()

    def write(self, input_path: Path, data: bytes) -> WriteOutcome:
        dest = self.destination(input_path)
        if self.blocked(dest):
            return WriteOutcome(WriteStatus.SKIPPED_EXISTS, dest)
        if self.dry_run:
            return WriteOutcome(WriteStatus.DRY_RUN, dest, len(data))

        write_atomic(dest, data, mode_from=input_path)
        log.debug("Wrote %s (%d bytes)", dest, len(data))
        return WriteOutcome(WriteStatus.WRITTEN, dest, len(data))
