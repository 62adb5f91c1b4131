"""oxipng / pngquant codec engine.

Lossless output comes from `oxipng`; palette quantization from `pngquant`
when it is installed (falling back to Pillow's quantizer), followed by an
oxipng recompression pass with the tier's filter policy and DEFLATE effort.

Metadata policy is applied by filtering chunks before the tools run, so the
configured safe-chunk list is honored exactly and the tools are told to keep
whatever they are given.
"""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path

from ..errors import CodecError, CodecErrorKind
from ..modes import CompressOptions, DeflateEffort, FilterPolicy, OptimizeOptions
from ..utils import image, png
from ..utils.png import DEFAULT_SAFE_CHUNKS
from ..utils.subprocess import CommandError, find_tool, run
from . import register_engine
from .base import CodecEngine, CodecOutput
from .pillow_engine import PillowEngine

log = logging.getLogger(__name__)

# pngquant exit code when the result would fall below the minimum quality.
PNGQUANT_QUALITY_TOO_LOW = 99

_QUANTIZE_EXCLUDED = png.COLOR_DEPENDENT_CHUNKS | png.ANIMATION_CHUNKS


def oxipng_args(filter_policy: FilterPolicy, effort: DeflateEffort, *, photo: bool = False) -> list[str]:
    args = ["--opt", "max", "--quiet"]
    if filter_policy is FilterPolicy.NONE:
        args += ["--filters", "0"]
    elif photo:
        # None, Sub, Up, Average, Paeth
        args += ["--filters", "0-4"]
    if effort.exhaustive:
        args += ["--zopfli", "--zi", str(effort.iterations)]
    return args


def pngquant_args(options: CompressOptions) -> list[str]:
    lo, hi = options.quality_window
    args = ["--quality", f"{lo}-{hi}", "--speed", str(options.speed), "--strip", "--force"]
    if options.dithering_strength <= 0.0:
        args.append("--nofs")
    else:
        args.append(f"--floyd={options.dithering_strength:.2f}")
    return args


@register_engine
class OxipngEngine(CodecEngine):
    name = "oxipng"
    priority = 10

    def __init__(self, safe_chunks: frozenset[bytes] = DEFAULT_SAFE_CHUNKS) -> None:
        super().__init__(safe_chunks)
        self._oxipng = find_tool("oxipng")
        self._pngquant = find_tool("pngquant")
        self._fallback = PillowEngine(safe_chunks)

    def is_available(self) -> bool:
        return self._oxipng is not None

    def lossless_transform(self, data: bytes, options: OptimizeOptions) -> CodecOutput:
        chunks = png.parse_chunks(data)
        filtered = png.assemble(png.filter_chunks(chunks, options.metadata_policy.keep_all, self.safe_chunks))

        out = self._recompress(filtered, oxipng_args(options.filter_policy, options.deflate_effort))
        if len(out) > len(filtered):
            out = filtered
        self.ensure_lossless(data, out)
        return CodecOutput(out)

    def quantize_and_compress(self, data: bytes, options: CompressOptions) -> CodecOutput:
        chunks = png.parse_chunks(data)
        if png.is_animated(chunks):
            raise CodecError(CodecErrorKind.UNSUPPORTED, "animated PNG cannot be palette-quantized")
        kept = png.filter_chunks(chunks, options.metadata_policy.keep_all, self.safe_chunks)

        if self._pngquant is not None:
            quantized = self._pngquant_run(data, options)
            quantized = png.assemble(
                png.transplant_metadata(png.parse_chunks(quantized), kept, exclude=_QUANTIZE_EXCLUDED)
            )
        else:
            log.debug("pngquant not found; quantizing with Pillow")
            quantized = self._fallback.quantize_and_compress(data, options).data

        args = oxipng_args(options.filter_policy, options.deflate_effort, photo=options.photo)
        out = self._recompress(quantized, args)
        return CodecOutput(out, image.palette_size(out))

    def _pngquant_run(self, data: bytes, options: CompressOptions) -> bytes:
        with tempfile.TemporaryDirectory(prefix="turbo-png-") as tmp:
            src = Path(tmp) / "in.png"
            dst = Path(tmp) / "out.png"
            src.write_bytes(data)
            cmd = [self._pngquant, *pngquant_args(options), "--output", str(dst), str(options.palette_color_cap), "--", str(src)]
            try:
                run(cmd)
            except CommandError as e:
                if e.result.returncode == PNGQUANT_QUALITY_TOO_LOW:
                    lo, _ = options.quality_window
                    raise CodecError(
                        CodecErrorKind.INTERNAL, f"pngquant could not reach minimum quality {lo}"
                    ) from e
                raise CodecError(CodecErrorKind.INTERNAL, str(e)) from e
            return dst.read_bytes()

    def _recompress(self, data: bytes, args: list[str]) -> bytes:
        with tempfile.TemporaryDirectory(prefix="turbo-png-") as tmp:
            src = Path(tmp) / "in.png"
            dst = Path(tmp) / "out.png"
            src.write_bytes(data)
            try:
                run([self._oxipng, *args, "--out", str(dst), str(src)])
            except CommandError as e:
                raise CodecError(CodecErrorKind.INTERNAL, str(e)) from e
            if not dst.exists():
                # oxipng leaves --out untouched when it cannot improve the file.
                return data
            return dst.read_bytes()
