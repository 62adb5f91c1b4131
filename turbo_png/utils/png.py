"""PNG container helpers: chunk parsing, metadata filtering and reassembly.

These work purely at the container level and never touch pixel data, which
makes chunk filtering a lossless operation by construction.
"""

from __future__ import annotations

import struct
import zlib
from dataclasses import dataclass
from typing import Iterable

from ..errors import CodecError, CodecErrorKind

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

IHDR = b"IHDR"
PLTE = b"PLTE"
IDAT = b"IDAT"
IEND = b"IEND"
TRNS = b"tRNS"

# Display-affecting ancillary chunks kept by the strip-unsafe policy.
DEFAULT_SAFE_CHUNKS: frozenset[bytes] = frozenset(
    {b"cICP", b"iCCP", b"sRGB", b"pHYs", b"acTL", b"fcTL", b"fdAT"}
)

ANIMATION_CHUNKS: frozenset[bytes] = frozenset({b"acTL", b"fcTL", b"fdAT"})

# Only meaningful for the color type / palette they were written against.
COLOR_DEPENDENT_CHUNKS: frozenset[bytes] = frozenset({b"bKGD", b"hIST", b"sBIT", b"sPLT"})

# Must precede PLTE when present.
PRE_PALETTE_CHUNKS: frozenset[bytes] = frozenset(
    {b"iCCP", b"sRGB", b"gAMA", b"cHRM", b"sBIT", b"cICP", b"mDCv", b"cLLi"}
)


@dataclass(frozen=True)
class Chunk:
    type: bytes
    data: bytes

    @property
    def ancillary(self) -> bool:
        return bool(self.type[0] & 0x20)

    @property
    def name(self) -> str:
        return self.type.decode("latin-1")

    def encode(self) -> bytes:
        crc = zlib.crc32(self.type + self.data) & 0xFFFFFFFF
        return struct.pack(">I", len(self.data)) + self.type + self.data + struct.pack(">I", crc)


@dataclass(frozen=True)
class Header:
    width: int
    height: int
    bit_depth: int
    color_type: int
    interlace: int


def _malformed(message: str) -> CodecError:
    return CodecError(CodecErrorKind.MALFORMED, message)


def parse_chunks(data: bytes) -> list[Chunk]:
    """Split a PNG file into its chunks, validating framing and CRCs.

    Bytes after IEND are discarded.
    """

    if not data.startswith(PNG_SIGNATURE):
        raise _malformed("file is not a valid PNG (bad signature)")

    chunks: list[Chunk] = []
    index = len(PNG_SIGNATURE)
    end = len(data)

    while True:
        if index + 12 > end:
            raise _malformed("truncated PNG: missing IEND chunk")
        (length,) = struct.unpack_from(">I", data, index)
        ctype = data[index + 4 : index + 8]
        body_start = index + 8
        body_end = body_start + length
        if body_end + 4 > end:
            raise _malformed(f"truncated PNG chunk data ({ctype!r})")
        if not ctype.isalpha():
            raise _malformed(f"invalid chunk type {ctype!r}")

        body = data[body_start:body_end]
        (crc,) = struct.unpack_from(">I", data, body_end)
        if zlib.crc32(ctype + body) & 0xFFFFFFFF != crc:
            raise _malformed(f"CRC mismatch in {ctype.decode('latin-1')} chunk")

        chunks.append(Chunk(ctype, body))
        index = body_end + 4
        if ctype == IEND:
            break

    if chunks[0].type != IHDR:
        raise _malformed("first chunk is not IHDR")
    if not any(c.type == IDAT for c in chunks):
        raise _malformed("PNG contains no image data")
    return chunks


def assemble(chunks: Iterable[Chunk]) -> bytes:
    return PNG_SIGNATURE + b"".join(c.encode() for c in chunks)


def read_header(chunks: list[Chunk]) -> Header:
    ihdr = chunks[0]
    if ihdr.type != IHDR or len(ihdr.data) != 13:
        raise _malformed("invalid IHDR chunk")
    width, height, bit_depth, color_type, _comp, _filter, interlace = struct.unpack(">IIBBBBB", ihdr.data)
    return Header(width, height, bit_depth, color_type, interlace)


def is_animated(chunks: Iterable[Chunk]) -> bool:
    return any(c.type in ANIMATION_CHUNKS for c in chunks)


def keep_chunk(chunk: Chunk, keep_all: bool, safe_chunks: frozenset[bytes] = DEFAULT_SAFE_CHUNKS) -> bool:
    if not chunk.ancillary or chunk.type == TRNS:
        return True
    if keep_all:
        return True
    return chunk.type in safe_chunks


def filter_chunks(
    chunks: list[Chunk], keep_all: bool, safe_chunks: frozenset[bytes] = DEFAULT_SAFE_CHUNKS
) -> list[Chunk]:
    return [c for c in chunks if keep_chunk(c, keep_all, safe_chunks)]


def transplant_metadata(
    target: list[Chunk], source: list[Chunk], *, exclude: frozenset[bytes] = frozenset()
) -> list[Chunk]:
    """Return target's image chunks combined with source's ancillary chunks.

    target supplies IHDR, PLTE, tRNS and IDAT. Everything ancillary in target
    is replaced by the ancillary chunks of source (minus tRNS and exclude),
    placed in an order valid for the PNG chunk ordering rules.
    """

    header = target[0]
    palette = [c for c in target if c.type == PLTE]
    transparency = [c for c in target if c.type == TRNS]
    image_data = [c for c in target if c.type == IDAT]

    skip = exclude | {TRNS}
    before: list[Chunk] = []
    after: list[Chunk] = []
    seen_idat = False
    for c in source:
        if c.type == IDAT:
            seen_idat = True
            continue
        if not c.ancillary or c.type in skip:
            continue
        (after if seen_idat else before).append(c)

    pre_palette = [c for c in before if c.type in PRE_PALETTE_CHUNKS]
    post_palette = [c for c in before if c.type not in PRE_PALETTE_CHUNKS]

    return [
        header,
        *pre_palette,
        *palette,
        *transparency,
        *post_palette,
        *image_data,
        *after,
        Chunk(IEND, b""),
    ]
