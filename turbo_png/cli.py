"""Command line interface for turbo_png."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from . import __version__
from .config import load_config
from .engines import AUTO, registered_names
from .errors import ConfigurationError
from .modes import DEFAULT_QUALITY, ProcessingMode
from .pipeline import EXIT_CANCELLED, EXIT_CONFIG, RunConfig, run_pipeline
from .progress import LogRenderer, RichRenderer

log = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="turbo-png",
        description=(
            "Batch PNG optimizer & compressor.\n"
            "optimize: lossless re-encoding and metadata stripping.\n"
            "compress: palette quantization tuned by --quality."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    p.add_argument("inputs", nargs="+", type=Path, metavar="PATH", help="PNG files or directories (searched recursively)")

    p.add_argument(
        "--mode",
        choices=[m.value for m in ProcessingMode],
        default=ProcessingMode.OPTIMIZE.value,
        help="optimize (lossless, default) or compress (quality-balanced palette reduction)",
    )
    p.add_argument(
        "--quality",
        type=int,
        default=DEFAULT_QUALITY,
        metavar="LEVEL",
        help=f"Compression quality 1..100, compress mode only (default: {DEFAULT_QUALITY})",
    )
    p.add_argument("--keep-metadata", action="store_true", help="Retain all ancillary chunks instead of stripping them")
    p.add_argument("--overwrite", action="store_true", help="Replace existing output files")
    p.add_argument("--threads", type=int, default=None, help="Worker threads (default: logical CPU count)")
    p.add_argument("--no-progress", action="store_true", help="Plain log lines instead of the progress view")
    p.add_argument("--dry-run", action="store_true", help="Report projected results without writing any file")
    p.add_argument("--zopfli", action="store_true", help="Exhaustive DEFLATE search even in optimize mode")
    p.add_argument(
        "--engine",
        choices=[AUTO, *registered_names()],
        default=None,
        help="Codec engine (default: auto, or the config file's choice)",
    )
    p.add_argument("--config", type=Path, default=None, help="Optional JSON/YAML policy overrides")
    p.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p


def _setup_logging(verbose: bool, console: Console | None) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    if console is None:
        logging.basicConfig(level=level, format="[%(levelname)s] %(message)s", force=True)
    else:
        logging.basicConfig(
            level=level,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False, show_time=False)],
            force=True,
        )


def _install_signal_handlers(cancel: threading.Event) -> dict[int, object]:
    """First SIGINT/SIGTERM lets in-flight files finish; a second one aborts."""

    if threading.current_thread() is not threading.main_thread():
        return {}

    def handler(signum, frame):
        if cancel.is_set():
            raise KeyboardInterrupt
        cancel.set()
        log.warning("Received signal %d, finishing in-flight files (repeat to abort)", signum)

    previous: dict[int, object] = {}
    for sig in (signal.SIGINT, signal.SIGTERM):
        previous[sig] = signal.signal(sig, handler)
    return previous


def _restore_signal_handlers(previous: dict[int, object]) -> None:
    for sig, old in previous.items():
        signal.signal(sig, old)


def main(argv: list[str] | None = None) -> int:
    argv = argv if argv is not None else sys.argv[1:]
    parser = _build_parser()
    ns = parser.parse_args(argv)

    console = None if ns.no_progress else Console(stderr=True)
    _setup_logging(ns.verbose, console)

    cancel = threading.Event()
    previous = _install_signal_handlers(cancel)
    try:
        app = load_config(ns.config)
        config = RunConfig(
            inputs=tuple(ns.inputs),
            mode=ProcessingMode(ns.mode),
            quality=ns.quality,
            keep_metadata=bool(ns.keep_metadata),
            overwrite=bool(ns.overwrite),
            threads=ns.threads,
            progress=not ns.no_progress,
            dry_run=bool(ns.dry_run),
            zopfli=bool(ns.zopfli),
            engine=ns.engine,
        )
        renderer = RichRenderer(console) if console is not None else LogRenderer()
        report = run_pipeline(config, app, renderer=renderer, cancel=cancel)
        return report.exit_code
    except ConfigurationError as e:
        log.error("%s", e)
        return EXIT_CONFIG
    except KeyboardInterrupt:
        log.error("Aborted")
        return EXIT_CANCELLED
    finally:
        _restore_signal_handlers(previous)


if __name__ == "__main__":
    raise SystemExit(main())
