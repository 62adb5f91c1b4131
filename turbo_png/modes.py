"""Processing modes and the options derived from them.

Optimize mode has one fixed set of options per run. Compress mode maps the
quality level (1..100) through an ordered tier table; each tier owns a
contiguous quality range and fixes the palette cap, dithering strength,
filter policy and DEFLATE effort. The table is total over 1..100 and
monotonic: a higher quality never yields a smaller palette or weaker
dithering. The top tier switches to a photo-friendly preset (bigger palette,
adaptive row filters).
"""

from __future__ import annotations

import enum
import functools
from dataclasses import dataclass
from typing import Iterable, Union

from .errors import ConfigurationError

MIN_QUALITY = 1
MAX_QUALITY = 100
DEFAULT_QUALITY = 90
PHOTO_QUALITY_THRESHOLD = 98
DEFAULT_OPTIMIZE_ZOPFLI_ITERATIONS = 15


class ProcessingMode(str, enum.Enum):
    OPTIMIZE = "optimize"
    COMPRESS = "compress"

    @property
    def suffix(self) -> str:
        if self is ProcessingMode.OPTIMIZE:
            return "_optimized"
        return "_compressed"


class MetadataPolicy(str, enum.Enum):
    STRIP_UNSAFE = "strip-unsafe"
    PRESERVE_ALL = "preserve-all"

    @property
    def keep_all(self) -> bool:
        return self is MetadataPolicy.PRESERVE_ALL


class FilterPolicy(str, enum.Enum):
    ADAPTIVE = "adaptive"
    NONE = "none"


@dataclass(frozen=True)
class DeflateEffort:
    """Standard zlib-class effort, or exhaustive (Zopfli-style) search."""

    exhaustive: bool = False
    iterations: int = 0


STANDARD_EFFORT = DeflateEffort()


@dataclass(frozen=True)
class CompressTier:
    name: str
    min_quality: int
    max_quality: int
    palette_colors: int
    dithering: float
    filter_policy: FilterPolicy
    quality_window: tuple[int, int]  # pngquant --quality min-max
    speed: int  # pngquant --speed, 1 (slow) .. 11 (fast)
    zopfli_iterations: int

    def covers(self, quality: int) -> bool:
        return self.min_quality <= quality <= self.max_quality

    @property
    def photo(self) -> bool:
        return self.min_quality >= PHOTO_QUALITY_THRESHOLD


DEFAULT_TIERS: tuple[CompressTier, ...] = (
    CompressTier("photo", 98, 100, 96, 1.0, FilterPolicy.ADAPTIVE, (85, 99), 1, 25),
    CompressTier("high", 95, 97, 48, 1.0, FilterPolicy.NONE, (80, 96), 1, 25),
    CompressTier("fine", 85, 94, 32, 0.9, FilterPolicy.NONE, (70, 92), 2, 20),
    CompressTier("balanced", 70, 84, 24, 0.8, FilterPolicy.NONE, (60, 88), 3, 15),
    CompressTier("compact", 55, 69, 20, 0.6, FilterPolicy.NONE, (45, 82), 5, 15),
    CompressTier("small", 40, 54, 16, 0.5, FilterPolicy.NONE, (35, 76), 6, 12),
    CompressTier("tiny", 1, 39, 12, 0.3, FilterPolicy.NONE, (25, 68), 9, 10),
)


@dataclass(frozen=True)
class OptimizeOptions:
    metadata_policy: MetadataPolicy = MetadataPolicy.STRIP_UNSAFE
    filter_policy: FilterPolicy = FilterPolicy.ADAPTIVE
    deflate_effort: DeflateEffort = STANDARD_EFFORT


@dataclass(frozen=True)
class CompressOptions:
    quality: int
    tier: str
    palette_color_cap: int
    dithering_strength: float
    filter_policy: FilterPolicy
    deflate_effort: DeflateEffort
    metadata_policy: MetadataPolicy
    quality_window: tuple[int, int]
    speed: int
    photo: bool = False


ModeOptions = Union[OptimizeOptions, CompressOptions]


def validate_quality(quality: int) -> int:
    if isinstance(quality, bool) or not isinstance(quality, int):
        raise ConfigurationError(f"quality must be an integer, got {quality!r}")
    if not (MIN_QUALITY <= quality <= MAX_QUALITY):
        raise ConfigurationError(f"quality must be in {MIN_QUALITY}..{MAX_QUALITY}, got {quality}")
    return quality


def validate_tiers(tiers: Iterable[CompressTier]) -> tuple[CompressTier, ...]:
    """Check that tiers partition 1..100 and are monotonic.

    Returns the tiers sorted by ascending quality.
    """

    ordered = tuple(sorted(tiers, key=lambda t: t.min_quality))
    if not ordered:
        raise ConfigurationError("tier table is empty")

    expected = MIN_QUALITY
    prev: CompressTier | None = None
    for tier in ordered:
        if tier.min_quality > tier.max_quality:
            raise ConfigurationError(f"tier {tier.name!r} has an empty quality range")
        if tier.min_quality != expected:
            raise ConfigurationError(
                f"tier {tier.name!r} starts at {tier.min_quality}, expected {expected} (gap or overlap)"
            )
        if not (2 <= tier.palette_colors <= 256):
            raise ConfigurationError(f"tier {tier.name!r}: palette_colors must be in 2..256")
        if not (0.0 <= tier.dithering <= 1.0):
            raise ConfigurationError(f"tier {tier.name!r}: dithering must be in 0..1")
        lo, hi = tier.quality_window
        if not (0 <= lo <= hi <= 100):
            raise ConfigurationError(f"tier {tier.name!r}: invalid quality_window {tier.quality_window}")
        if not (1 <= tier.speed <= 11):
            raise ConfigurationError(f"tier {tier.name!r}: speed must be in 1..11")
        if tier.zopfli_iterations < 1:
            raise ConfigurationError(f"tier {tier.name!r}: zopfli_iterations must be >= 1")
        if prev is not None:
            if tier.palette_colors < prev.palette_colors:
                raise ConfigurationError(f"tier {tier.name!r} has fewer colors than lower tier {prev.name!r}")
            if tier.dithering < prev.dithering:
                raise ConfigurationError(f"tier {tier.name!r} dithers less than lower tier {prev.name!r}")
        expected = tier.max_quality + 1
        prev = tier

    if expected != MAX_QUALITY + 1:
        raise ConfigurationError(f"tier table ends at {expected - 1}, expected {MAX_QUALITY}")
    return ordered


@functools.lru_cache(maxsize=None)
def tier_for(quality: int, tiers: tuple[CompressTier, ...] = DEFAULT_TIERS) -> CompressTier:
    validate_quality(quality)
    for tier in tiers:
        if tier.covers(quality):
            return tier
    raise ConfigurationError(f"no compress tier covers quality {quality}")


@functools.lru_cache(maxsize=None)
def _compress_options(
    quality: int, metadata_policy: MetadataPolicy, tiers: tuple[CompressTier, ...]
) -> CompressOptions:
    tier = tier_for(quality, tiers)
    return CompressOptions(
        quality=quality,
        tier=tier.name,
        palette_color_cap=tier.palette_colors,
        dithering_strength=tier.dithering,
        filter_policy=tier.filter_policy,
        deflate_effort=DeflateEffort(exhaustive=True, iterations=tier.zopfli_iterations),
        metadata_policy=metadata_policy,
        quality_window=tier.quality_window,
        speed=tier.speed,
        photo=tier.photo,
    )


def derive(
    mode: ProcessingMode,
    quality: int | None = None,
    *,
    keep_metadata: bool = False,
    zopfli: bool = False,
    zopfli_iterations: int = DEFAULT_OPTIMIZE_ZOPFLI_ITERATIONS,
    tiers: tuple[CompressTier, ...] = DEFAULT_TIERS,
) -> ModeOptions:
    """Derive the run-wide processing options for a mode.

    Pure: identical arguments always give identical (and, for compress mode,
    the very same memoized) options.
    """

    metadata_policy = MetadataPolicy.PRESERVE_ALL if keep_metadata else MetadataPolicy.STRIP_UNSAFE

    if mode is ProcessingMode.OPTIMIZE:
        effort = DeflateEffort(exhaustive=True, iterations=zopfli_iterations) if zopfli else STANDARD_EFFORT
        return OptimizeOptions(metadata_policy=metadata_policy, deflate_effort=effort)
    if mode is ProcessingMode.COMPRESS:
        q = DEFAULT_QUALITY if quality is None else validate_quality(quality)
        return _compress_options(q, metadata_policy, tiers)
    raise ConfigurationError(f"unknown processing mode: {mode!r}")
