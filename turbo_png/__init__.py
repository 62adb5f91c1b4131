"""turbo_png

A CLI tool to batch-optimize PNG images losslessly or compress them with
quality-tiered palette quantization, writing `<stem>_optimized.png` /
`<stem>_compressed.png` next to each source file.

Primary entrypoints:
- python -m turbo_png.cli
- console script: turbo-png
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
