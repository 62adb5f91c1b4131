"""Pillow helpers shared by the codec engines."""

from __future__ import annotations

import io

from PIL import Image, UnidentifiedImageError, features

from ..errors import CodecError, CodecErrorKind

# Modes Pillow uses for high-bit-depth grayscale and float data.
HIGH_BIT_MODES = frozenset({"I", "I;16", "I;16B", "I;16L", "I;16N", "F"})


def open_png(data: bytes) -> Image.Image:
    """Decode PNG bytes fully, mapping decoder failures to CodecError."""

    try:
        im = Image.open(io.BytesIO(data))
        im.load()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        raise CodecError(CodecErrorKind.MALFORMED, f"cannot decode PNG: {e}") from e
    if im.format != "PNG":
        raise CodecError(CodecErrorKind.MALFORMED, f"expected PNG data, got {im.format}")
    return im


def encode_png(im: Image.Image) -> bytes:
    buf = io.BytesIO()
    im.save(buf, format="PNG", optimize=True, compress_level=9)
    return buf.getvalue()


def _comparable(im: Image.Image) -> bytes:
    if im.mode in HIGH_BIT_MODES:
        return im.convert("I").tobytes()
    return im.convert("RGBA").tobytes()


def pixels_equal(original: bytes, candidate: bytes) -> bool:
    """True when both PNGs decode to the same pixels.

    Palette order, bit depth and color type may differ; the comparison is on
    the decoded RGBA (or 32-bit integer for high-bit grayscale) values.
    """

    with open_png(original) as a, open_png(candidate) as b:
        if a.size != b.size:
            return False
        if (a.mode in HIGH_BIT_MODES) != (b.mode in HIGH_BIT_MODES):
            return False
        return _comparable(a) == _comparable(b)


def _has_alpha(im: Image.Image) -> bool:
    if im.mode in {"RGBA", "LA", "PA"}:
        return im.getchannel("A").getextrema()[0] < 255
    return "transparency" in im.info


def to_quantizable(im: Image.Image) -> Image.Image:
    """Convert to RGB, or RGBA when the image really uses transparency."""

    if im.mode in HIGH_BIT_MODES:
        raise CodecError(CodecErrorKind.UNSUPPORTED, f"unsupported color mode for quantization: {im.mode}")
    if _has_alpha(im):
        return im.convert("RGBA")
    return im.convert("RGB")


def quantize(im: Image.Image, colors: int, dithering: float) -> Image.Image:
    """Reduce an image to at most `colors` palette entries.

    Opaque images use median cut, with a second Floyd-Steinberg remapping pass
    when dithering >= 0.5. Images with alpha go through libimagequant when
    Pillow was built with it, else the fast octree quantizer.
    """

    src = to_quantizable(im)
    colors = max(2, min(256, int(colors)))

    if src.mode == "RGBA":
        method = Image.Quantize.LIBIMAGEQUANT if features.check_feature("libimagequant") else Image.Quantize.FASTOCTREE
        return src.quantize(colors=colors, method=method)

    paletted = src.quantize(colors=colors, method=Image.Quantize.MEDIANCUT)
    if dithering < 0.5:
        return paletted
    return src.quantize(palette=paletted, dither=Image.Dither.FLOYDSTEINBERG)


def palette_size(data: bytes) -> int | None:
    """Number of distinct palette entries used by an indexed PNG."""

    with open_png(data) as im:
        if im.mode != "P":
            return None
        used = im.getcolors(256)
        return len(used) if used else None
