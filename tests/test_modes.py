"""Mode option derivation and the compress tier table."""

import dataclasses

import pytest

from turbo_png.errors import ConfigurationError
from turbo_png.modes import (
    DEFAULT_TIERS,
    CompressOptions,
    FilterPolicy,
    MetadataPolicy,
    OptimizeOptions,
    ProcessingMode,
    derive,
    tier_for,
    validate_quality,
    validate_tiers,
)


def test_every_quality_maps_to_exactly_one_tier() -> None:
    """Quality 1..100 is covered with no gaps and no overlaps."""
    for q in range(1, 101):
        covering = [t for t in DEFAULT_TIERS if t.covers(q)]
        assert len(covering) == 1, q


def test_compress_options_are_deterministic_and_memoized() -> None:
    """Deriving the same quality twice returns the very same options object."""
    for q in (1, 39, 40, 70, 90, 100):
        a = derive(ProcessingMode.COMPRESS, q)
        b = derive(ProcessingMode.COMPRESS, q)
        assert isinstance(a, CompressOptions)
        assert a is b


def test_palette_cap_and_dithering_are_monotonic() -> None:
    """Higher quality never means fewer colors or weaker dithering."""
    opts = [derive(ProcessingMode.COMPRESS, q) for q in range(1, 101)]
    for lower, higher in zip(opts, opts[1:]):
        assert higher.palette_color_cap >= lower.palette_color_cap
        assert higher.dithering_strength >= lower.dithering_strength


def test_quality_edges_land_in_distinct_tiers() -> None:
    """1 and 100 are valid and map to the lowest and the photo tier."""
    low = derive(ProcessingMode.COMPRESS, 1)
    high = derive(ProcessingMode.COMPRESS, 100)
    assert low.tier != high.tier
    assert low.palette_color_cap == 12
    assert high.filter_policy is FilterPolicy.ADAPTIVE
    assert derive(ProcessingMode.COMPRESS, 97).filter_policy is FilterPolicy.NONE
    assert tier_for(98).photo


def test_compress_mode_uses_exhaustive_deflate() -> None:
    """Every compress tier asks for an exhaustive DEFLATE search."""
    for q in (1, 50, 100):
        effort = derive(ProcessingMode.COMPRESS, q).deflate_effort
        assert effort.exhaustive
        assert effort.iterations >= 1


@pytest.mark.parametrize("quality", [0, 101, -5, True, "90"])
def test_invalid_quality_is_a_configuration_error(quality) -> None:
    """Out-of-range or non-integer quality is rejected."""
    with pytest.raises(ConfigurationError):
        validate_quality(quality)
    with pytest.raises(ConfigurationError):
        derive(ProcessingMode.COMPRESS, quality)


def test_optimize_defaults_and_flags() -> None:
    """Optimize mode strips unsafe metadata, filters adaptively and honors --zopfli."""
    plain = derive(ProcessingMode.OPTIMIZE)
    assert plain == OptimizeOptions()
    assert plain.metadata_policy is MetadataPolicy.STRIP_UNSAFE
    assert not plain.deflate_effort.exhaustive

    heavy = derive(ProcessingMode.OPTIMIZE, keep_metadata=True, zopfli=True, zopfli_iterations=7)
    assert heavy.metadata_policy is MetadataPolicy.PRESERVE_ALL
    assert heavy.deflate_effort.exhaustive
    assert heavy.deflate_effort.iterations == 7


def test_optimize_ignores_quality() -> None:
    """Quality does not influence optimize-mode options."""
    assert derive(ProcessingMode.OPTIMIZE, 10) == derive(ProcessingMode.OPTIMIZE, 95)


def test_default_table_validates() -> None:
    """The built-in table passes its own validation."""
    ordered = validate_tiers(DEFAULT_TIERS)
    assert ordered[0].min_quality == 1
    assert ordered[-1].max_quality == 100
    assert len(ordered) == len(DEFAULT_TIERS)


def test_validate_tiers_rejects_gaps() -> None:
    """A table that skips a quality value is rejected."""
    tiers = list(DEFAULT_TIERS)
    tiers[0] = dataclasses.replace(tiers[0], min_quality=99)
    with pytest.raises(ConfigurationError, match="gap or overlap"):
        validate_tiers(tiers)


def test_validate_tiers_rejects_non_monotonic_palette() -> None:
    """A higher tier with fewer colors than a lower one is rejected."""
    tiers = list(DEFAULT_TIERS)
    tiers[0] = dataclasses.replace(tiers[0], palette_colors=4)
    with pytest.raises(ConfigurationError, match="fewer colors"):
        validate_tiers(tiers)


def test_validate_tiers_rejects_short_table() -> None:
    """A table that stops before 100 is rejected."""
    with pytest.raises(ConfigurationError):
        validate_tiers(DEFAULT_TIERS[1:])


def test_photo_preset_is_carried_into_options() -> None:
    """Only the top tier marks its options as photo-friendly."""
    assert derive(ProcessingMode.COMPRESS, 98).photo
    assert derive(ProcessingMode.COMPRESS, 100).photo
    assert not derive(ProcessingMode.COMPRESS, 97).photo
    assert not derive(ProcessingMode.COMPRESS, 1).photo
