"""Pure-Pillow codec engine.

Always available. Lossless output is the smaller of two candidates:
- the original container with unwanted ancillary chunks removed (lossless by
  construction, never larger than the input);
- the pixels re-encoded by Pillow at maximum zlib effort, with the kept
  ancillary chunks spliced back in, accepted only after pixel verification.

Pillow has no row-filter or Zopfli controls, so filter policy and DEFLATE
effort are best-effort here (always maximum zlib level).
"""

from __future__ import annotations

import logging

from ..errors import CodecError, CodecErrorKind
from ..modes import CompressOptions, OptimizeOptions
from ..utils import image, png
from . import register_engine
from .base import CodecEngine, CodecOutput

log = logging.getLogger(__name__)

# Dropped when palette-quantizing: they describe the source color type or animation.
_QUANTIZE_EXCLUDED = png.COLOR_DEPENDENT_CHUNKS | png.ANIMATION_CHUNKS


@register_engine
class PillowEngine(CodecEngine):
    name = "pillow"
    priority = 0

    def is_available(self) -> bool:
        return True

    def lossless_transform(self, data: bytes, options: OptimizeOptions) -> CodecOutput:
        chunks = png.parse_chunks(data)
        kept = png.filter_chunks(chunks, options.metadata_policy.keep_all, self.safe_chunks)
        best = png.assemble(kept)

        reencoded = self._reencode(data, chunks, kept)
        if reencoded is not None and len(reencoded) < len(best):
            if image.pixels_equal(data, reencoded):
                best = reencoded
            else:
                log.debug("Pillow re-encode changed pixels; keeping container-only rewrite")

        return CodecOutput(best)

    def _reencode(self, data: bytes, chunks: list[png.Chunk], kept: list[png.Chunk]) -> bytes | None:
        if png.is_animated(chunks):
            return None
        # Pillow decodes 16-bit RGB(A) to 8 bits per channel.
        if png.read_header(chunks).bit_depth == 16:
            return None

        with image.open_png(data) as im:
            fresh = png.parse_chunks(image.encode_png(im))

        same_layout = fresh[0] == chunks[0] and [c for c in fresh if c.type == png.PLTE] == [
            c for c in chunks if c.type == png.PLTE
        ]
        if not same_layout and any(c.type in png.COLOR_DEPENDENT_CHUNKS for c in kept):
            return None
        return png.assemble(png.transplant_metadata(fresh, kept))

    def quantize_and_compress(self, data: bytes, options: CompressOptions) -> CodecOutput:
        chunks = png.parse_chunks(data)
        if png.is_animated(chunks):
            raise CodecError(CodecErrorKind.UNSUPPORTED, "animated PNG cannot be palette-quantized")
        kept = png.filter_chunks(chunks, options.metadata_policy.keep_all, self.safe_chunks)

        with image.open_png(data) as im:
            quantized = image.quantize(im, options.palette_color_cap, options.dithering_strength)
            encoded = image.encode_png(quantized)

        out = png.assemble(png.transplant_metadata(png.parse_chunks(encoded), kept, exclude=_QUANTIZE_EXCLUDED))
        return CodecOutput(out, image.palette_size(out))
