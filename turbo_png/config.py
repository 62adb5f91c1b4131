"""Tunable policy and optional JSON/YAML config overrides.

This module defines:
- The compress-mode tier table (quality -> palette cap, dithering, filters,
  DEFLATE effort) used unless a config file replaces it.
- The safe ancillary chunk list kept by the strip-unsafe metadata policy.
- The default engine preference and optimize-mode Zopfli iteration count.

Defaults follow the behavior of common PNG tooling:
- pngquant-style quality windows that narrow as quality rises.
- oxipng's "safe" strip list (color management, physical size, animation).
- Zopfli iteration counts that grow with the requested quality.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .engines import AUTO, registered_names
from .errors import ConfigurationError
from .modes import DEFAULT_OPTIMIZE_ZOPFLI_ITERATIONS, DEFAULT_TIERS, CompressTier, FilterPolicy, validate_tiers
from .utils.png import DEFAULT_SAFE_CHUNKS


@dataclass(frozen=True)
class AppConfig:
    engine: str = AUTO
    zopfli_iterations: int = DEFAULT_OPTIMIZE_ZOPFLI_ITERATIONS
    tiers: tuple[CompressTier, ...] = DEFAULT_TIERS
    safe_chunks: frozenset[bytes] = field(default_factory=lambda: DEFAULT_SAFE_CHUNKS)


def _read_raw(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"cannot read config {path}: {e}") from e

    if path.suffix.lower() in {".yml", ".yaml"}:
        try:
            import yaml  # type: ignore
        except ImportError as e:  # pragma: no cover
            raise ConfigurationError(
                "YAML config requested but PyYAML is not installed. Install with: pip install pyyaml"
            ) from e
        try:
            raw = yaml.safe_load(text) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"invalid YAML in {path}: {e}") from e
    else:
        try:
            raw = json.loads(text) or {}
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"invalid JSON in {path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigurationError(f"config root must be a mapping: {path}")
    return raw


def _parse_tier(raw: Any, index: int) -> CompressTier:
    if not isinstance(raw, dict):
        raise ConfigurationError(f"tiers[{index}] must be a mapping")
    try:
        window = raw.get("quality_window", (0, 100))
        lo, hi = (int(v) for v in window)
        return CompressTier(
            name=str(raw.get("name", f"tier{index}")),
            min_quality=int(raw["min_quality"]),
            max_quality=int(raw["max_quality"]),
            palette_colors=int(raw["palette_colors"]),
            dithering=float(raw.get("dithering", 1.0)),
            filter_policy=FilterPolicy(raw.get("filter", FilterPolicy.NONE.value)),
            quality_window=(lo, hi),
            speed=int(raw.get("speed", 3)),
            zopfli_iterations=int(raw.get("zopfli_iterations", 15)),
        )
    except KeyError as e:
        raise ConfigurationError(f"tiers[{index}] is missing {e.args[0]!r}") from e
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"tiers[{index}] is invalid: {e}") from e


def _parse_safe_chunks(raw: Any) -> frozenset[bytes]:
    if not isinstance(raw, list):
        raise ConfigurationError("safe_chunks must be a list of 4-letter chunk names")
    names: set[bytes] = set()
    for item in raw:
        name = str(item).encode("latin-1", errors="replace")
        if len(name) != 4 or not name.isalpha():
            raise ConfigurationError(f"invalid chunk name in safe_chunks: {item!r}")
        names.add(name)
    return frozenset(names)


def load_config(path: Path | None) -> AppConfig:
    """Load optional config overrides.

    Supports JSON by default.
    YAML is supported if PyYAML is installed and the file extension is .yml/.yaml.

    Schema (all keys optional):
    {
      "engine": "auto",
      "optimize": {"zopfli_iterations": 15},
      "tiers": [
        {"name": "photo", "min_quality": 98, "max_quality": 100, "palette_colors": 96,
         "dithering": 1.0, "filter": "adaptive", "quality_window": [85, 99],
         "speed": 1, "zopfli_iterations": 25},
        ...
      ],
      "safe_chunks": ["cICP", "iCCP", "sRGB", "pHYs", "acTL", "fcTL", "fdAT"]
    }

    A tiers list replaces the whole default table and must cover 1..100.
    """

    if path is None:
        return AppConfig()

    path = path.expanduser().resolve()
    if not path.is_file():
        raise ConfigurationError(f"config file not found: {path}")

    raw = _read_raw(path)
    base = AppConfig()

    engine = str(raw.get("engine", base.engine))
    if engine != AUTO and engine not in registered_names():
        raise ConfigurationError(f"unknown engine in config: {engine!r}")

    zopfli_iterations = base.zopfli_iterations
    opt_raw = raw.get("optimize")
    if isinstance(opt_raw, dict) and "zopfli_iterations" in opt_raw:
        try:
            zopfli_iterations = int(opt_raw["zopfli_iterations"])
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"optimize.zopfli_iterations is invalid: {e}") from e
        if zopfli_iterations < 1:
            raise ConfigurationError("optimize.zopfli_iterations must be >= 1")

    tiers = base.tiers
    if "tiers" in raw:
        if not isinstance(raw["tiers"], list):
            raise ConfigurationError("tiers must be a list")
        tiers = validate_tiers(_parse_tier(t, i) for i, t in enumerate(raw["tiers"]))
        # Highest quality first, same as the built-in table.
        tiers = tuple(reversed(tiers))

    safe_chunks = base.safe_chunks
    if "safe_chunks" in raw:
        safe_chunks = _parse_safe_chunks(raw["safe_chunks"])

    return AppConfig(
        engine=engine,
        zopfli_iterations=zopfli_iterations,
        tiers=tiers,
        safe_chunks=safe_chunks,
    )
