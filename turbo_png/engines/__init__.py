"""Codec engine registry and factory.

Engines register via the @register_engine decorator.
The factory auto-discovers modules within turbo_png.engines.

Engines are instantiated once per run and shared by every worker, so
implementations must not keep per-file state on the instance.
"""

from __future__ import annotations

import importlib
import logging
import pkgutil

from ..errors import ConfigurationError
from ..utils.png import DEFAULT_SAFE_CHUNKS
from .base import CodecEngine, CodecOutput

log = logging.getLogger(__name__)

AUTO = "auto"

_REGISTRY: dict[str, type[CodecEngine]] = {}


def register_engine(cls: type[CodecEngine]) -> type[CodecEngine]:
    name = getattr(cls, "name", None)
    if not isinstance(name, str) or not name:
        raise ValueError("Engine class must define a non-empty 'name' attribute")
    if name in _REGISTRY:
        raise ValueError(f"Duplicate engine registration: {name}")
    _REGISTRY[name] = cls
    return cls


def _auto_import_plugins() -> None:
    # Import all modules in this package except base/__init__.
    pkg_name = __name__
    for m in pkgutil.iter_modules(__path__):  # type: ignore[name-defined]
        if m.ispkg:
            continue
        if m.name in {"base", "__init__"}:
            continue
        importlib.import_module(f"{pkg_name}.{m.name}")


def registered_names() -> list[str]:
    _auto_import_plugins()
    return sorted(_REGISTRY)


class EngineFactory:
    """Picks the codec engine for a run."""

    def __init__(self, safe_chunks: frozenset[bytes] = DEFAULT_SAFE_CHUNKS):
        _auto_import_plugins()
        self._engines: dict[str, CodecEngine] = {name: cls(safe_chunks) for name, cls in _REGISTRY.items()}

    @property
    def available_names(self) -> list[str]:
        ranked = sorted(self._engines.values(), key=lambda e: (-e.priority, e.name))
        return [e.name for e in ranked if e.is_available()]

    def select(self, preference: str = AUTO) -> CodecEngine:
        if preference == AUTO:
            names = self.available_names
            if not names:
                raise ConfigurationError("no codec engine is available")
            engine = self._engines[names[0]]
        else:
            engine = self._engines.get(preference)
            if engine is None:
                known = ", ".join(sorted(self._engines))
                raise ConfigurationError(f"unknown engine {preference!r} (known: {known})")
            if not engine.is_available():
                raise ConfigurationError(f"engine {preference!r} is not available on this system")
        log.debug("Using codec engine: %s (available: %s)", engine.name, ", ".join(self.available_names))
        return engine


__all__ = ["AUTO", "CodecEngine", "CodecOutput", "EngineFactory", "register_engine", "registered_names"]
