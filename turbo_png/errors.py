"""Error taxonomy.

Only ConfigurationError is fatal to a run. Everything else is recorded against
a single path or file and the run carries on.
"""

from __future__ import annotations

import enum
from pathlib import Path


class TurboPngError(Exception):
    """Base class for all errors raised by turbo_png."""


class ConfigurationError(TurboPngError):
    """Invalid run configuration, detected before any task runs."""


class ResolutionError(TurboPngError):
    def __init__(self, path: Path, reason: str):
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class CodecErrorKind(str, enum.Enum):
    MALFORMED = "malformed"
    UNSUPPORTED = "unsupported"
    LOSSLESS_VIOLATION = "lossless_violation"
    INTERNAL = "internal"


class CodecError(TurboPngError):
    def __init__(self, kind: CodecErrorKind, message: str):
        super().__init__(message)
        self.kind = kind


class WriteError(TurboPngError):
    def __init__(self, path: Path, message: str):
        super().__init__(f"{message}: {path}")
        self.path = path
