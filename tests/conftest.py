"""Shared fixtures: PNG writers built with Pillow and a deterministic fake engine."""

from __future__ import annotations

import io
import threading
from pathlib import Path

import pytest
from PIL import Image
from PIL.PngImagePlugin import PngInfo

from turbo_png.engines.base import CodecEngine, CodecOutput
from turbo_png.errors import CodecError, CodecErrorKind
from turbo_png.utils import png


def gradient(width: int = 32, height: int = 32, mode: str = "RGBA") -> Image.Image:
    """Compressible but non-trivial pixels, alpha varies along y."""
    im = Image.new("RGBA", (width, height))
    im.putdata(
        [((x * 8) % 256, (y * 8) % 256, ((x + y) * 4) % 256, 255 - (y * 4) % 128) for y in range(height) for x in range(width)]
    )
    return im if mode == "RGBA" else im.convert(mode)


def write_png(
    path: Path,
    im: Image.Image | None = None,
    *,
    text: dict[str, str] | None = None,
    dpi: tuple[int, int] | None = None,
    compress_level: int = 0,
) -> Path:
    im = im if im is not None else gradient()
    kwargs: dict = {"compress_level": compress_level}
    if text:
        info = PngInfo()
        for key, value in text.items():
            info.add_text(key, value)
        kwargs["pnginfo"] = info
    if dpi:
        kwargs["dpi"] = dpi
    path.parent.mkdir(parents=True, exist_ok=True)
    im.save(path, format="PNG", **kwargs)
    return path


def png_bytes(im: Image.Image | None = None, **kwargs) -> bytes:
    im = im if im is not None else gradient()
    buf = io.BytesIO()
    save_kwargs: dict = {"compress_level": kwargs.pop("compress_level", 0)}
    text = kwargs.pop("text", None)
    if text:
        info = PngInfo()
        for key, value in text.items():
            info.add_text(key, value)
        save_kwargs["pnginfo"] = info
    if "dpi" in kwargs:
        save_kwargs["dpi"] = kwargs.pop("dpi")
    im.save(buf, format="PNG", **save_kwargs)
    return buf.getvalue()


def decode_rgba(data_or_path: bytes | Path) -> tuple[tuple[int, int], bytes]:
    data = data_or_path.read_bytes() if isinstance(data_or_path, Path) else data_or_path
    with Image.open(io.BytesIO(data)) as im:
        return im.size, im.convert("RGBA").tobytes()


def names_of(chunks: list[png.Chunk]) -> list[str]:
    return [c.name for c in chunks]


def chunk_names(data_or_path: bytes | Path) -> list[str]:
    data = data_or_path.read_bytes() if isinstance(data_or_path, Path) else data_or_path
    return names_of(png.parse_chunks(data))


def fake_png(path: Path, size: int = 1000, marker: bytes = b"") -> Path:
    """A file that only looks like a PNG; enough for the fake engine."""
    path.parent.mkdir(parents=True, exist_ok=True)
    body = png.PNG_SIGNATURE + marker
    path.write_bytes(body + b"\0" * max(0, size - len(body)))
    return path


class FakeEngine(CodecEngine):
    """Halves its input; fails on inputs containing CORRUPT."""

    name = "fake"

    def __init__(self, shrink: float = 0.5, fail_marker: bytes = b"CORRUPT", explode_marker: bytes = b"EXPLODE"):
        super().__init__()
        self.shrink = shrink
        self.fail_marker = fail_marker
        self.explode_marker = explode_marker
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def is_available(self) -> bool:
        return True

    def _check(self, kind: str, data: bytes) -> bytes:
        with self._lock:
            self.calls.append(kind)
        if self.explode_marker in data:
            raise RuntimeError("engine bug")
        if self.fail_marker in data:
            raise CodecError(CodecErrorKind.MALFORMED, "file is not a valid PNG")
        return data[: max(1, int(len(data) * self.shrink))]

    def lossless_transform(self, data, options):
        return CodecOutput(self._check("lossless", data))

    def quantize_and_compress(self, data, options):
        return CodecOutput(self._check("quantize", data), palette_size=options.palette_color_cap)


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()
