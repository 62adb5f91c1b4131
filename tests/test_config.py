"""Config file loading and validation."""

import json
from pathlib import Path

import pytest

from turbo_png.config import AppConfig, load_config
from turbo_png.errors import ConfigurationError
from turbo_png.modes import ProcessingMode, derive

TWO_TIERS = [
    {"name": "low", "min_quality": 1, "max_quality": 50, "palette_colors": 8, "dithering": 0.2},
    {"name": "high", "min_quality": 51, "max_quality": 100, "palette_colors": 64, "dithering": 1.0, "filter": "adaptive"},
]


def _write(tmp_path: Path, payload, name: str = "config.json") -> Path:
    path = tmp_path / name
    path.write_text(json.dumps(payload) if not isinstance(payload, str) else payload, encoding="utf-8")
    return path


def test_no_config_means_defaults() -> None:
    """Without a file the built-in policy applies."""
    assert load_config(None) == AppConfig()


def test_json_overrides_tiers_engine_and_chunks(tmp_path: Path) -> None:
    """A JSON file replaces the tier table, engine and safe-chunk list."""
    path = _write(
        tmp_path,
        {
            "engine": "pillow",
            "optimize": {"zopfli_iterations": 40},
            "tiers": TWO_TIERS,
            "safe_chunks": ["pHYs", "sRGB"],
        },
    )

    cfg = load_config(path)

    assert cfg.engine == "pillow"
    assert cfg.zopfli_iterations == 40
    assert [t.name for t in cfg.tiers] == ["high", "low"]
    assert cfg.safe_chunks == frozenset({b"pHYs", b"sRGB"})
    assert derive(ProcessingMode.COMPRESS, 50, tiers=cfg.tiers).palette_color_cap == 8
    assert derive(ProcessingMode.COMPRESS, 51, tiers=cfg.tiers).palette_color_cap == 64


def test_yaml_config(tmp_path: Path) -> None:
    """YAML files are read through PyYAML."""
    pytest.importorskip("yaml")
    path = _write(tmp_path, "engine: auto\noptimize:\n  zopfli_iterations: 5\n", name="config.yaml")

    assert load_config(path).zopfli_iterations == 5


@pytest.mark.parametrize(
    "payload, match",
    [
        ({"tiers": TWO_TIERS[:1]}, "ends at 50"),
        ({"tiers": [dict(TWO_TIERS[0], max_quality=60), TWO_TIERS[1]]}, "gap or overlap"),
        ({"tiers": [dict(TWO_TIERS[0], palette_colors=128), TWO_TIERS[1]]}, "fewer colors"),
        ({"tiers": [{"name": "x", "min_quality": 1}]}, "missing"),
        ({"engine": "magic"}, "unknown engine"),
        ({"optimize": {"zopfli_iterations": 0}}, ">= 1"),
        ({"safe_chunks": ["toolong"]}, "invalid chunk name"),
        ([1, 2, 3], "mapping"),
    ],
)
def test_invalid_config_is_rejected(tmp_path: Path, payload, match: str) -> None:
    """Malformed or inconsistent config raises ConfigurationError."""
    with pytest.raises(ConfigurationError, match=match):
        load_config(_write(tmp_path, payload))


def test_unparseable_and_missing_files(tmp_path: Path) -> None:
    """Syntax errors and missing files are configuration errors."""
    with pytest.raises(ConfigurationError, match="invalid JSON"):
        load_config(_write(tmp_path, "{not json"))
    with pytest.raises(ConfigurationError, match="not found"):
        load_config(tmp_path / "absent.json")


def test_undecodable_file_is_a_configuration_error(tmp_path: Path) -> None:
    """A config file that is not UTF-8 is reported, not raised raw."""
    path = tmp_path / "config.json"
    path.write_bytes(b"\xff\xfe{}")

    with pytest.raises(ConfigurationError, match="cannot read config"):
        load_config(path)
