"""Primary public API for canvasrender's font resolution service."""

from __future__ import annotations

from canvasrender.core.config import FontLoaderConfig
from canvasrender.core.exceptions import FontResolutionError
from canvasrender.fonts import (
    CacheStats,
    FontRegistry,
    FontResolver,
    build_resolver,
    fallback_family,
    fonts_from_request,
    resolve_or_fallback,
)
from canvasrender.version import get_version


__version__ = get_version()

__all__ = [
    "CacheStats",
    "FontLoaderConfig",
    "FontRegistry",
    "FontResolutionError",
    "FontResolver",
    "__version__",
    "build_resolver",
    "fallback_family",
    "fonts_from_request",
    "get_version",
    "resolve_or_fallback",
]
