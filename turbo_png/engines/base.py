"""Codec engine interface.

An engine is the opaque pixel-level collaborator of the pipeline: bytes in,
bytes out, or a classified CodecError. Engines are stateless after
construction and shared by all worker threads.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass

from ..errors import CodecError, CodecErrorKind
from ..modes import CompressOptions, OptimizeOptions
from ..utils import image
from ..utils.png import DEFAULT_SAFE_CHUNKS


@dataclass(frozen=True)
class CodecOutput:
    data: bytes
    palette_size: int | None = None  # only set for quantized output


class CodecEngine(abc.ABC):
    """Abstract base class for codec engines."""

    name: str
    priority: int = 0

    def __init__(self, safe_chunks: frozenset[bytes] = DEFAULT_SAFE_CHUNKS) -> None:
        self.safe_chunks = safe_chunks

    @abc.abstractmethod
    def is_available(self) -> bool:
        """Return True if everything the engine needs is installed."""

    @abc.abstractmethod
    def lossless_transform(self, data: bytes, options: OptimizeOptions) -> CodecOutput:
        """Re-encode without changing decoded pixels."""

    @abc.abstractmethod
    def quantize_and_compress(self, data: bytes, options: CompressOptions) -> CodecOutput:
        """Reduce to a bounded palette and compress."""

    def ensure_lossless(self, original: bytes, output: bytes) -> None:
        if not image.pixels_equal(original, output):
            raise CodecError(
                CodecErrorKind.LOSSLESS_VIOLATION,
                f"{self.name}: output pixels differ from input",
            )
