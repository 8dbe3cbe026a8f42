"""Fallback families and request helpers used by the rendering pipeline."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from canvasrender.core.exceptions import FontRegistrationError
from canvasrender.fonts.identity import normalize_family
from canvasrender.fonts.registry import FontRegistry


if TYPE_CHECKING:
    from canvasrender.fonts.resolver import FontResolver


logger = logging.getLogger(__name__)

DEFAULT_FALLBACK = "Liberation Sans"

FALLBACK_FAMILIES: Mapping[str, str] = {
    "Roboto": "Liberation Sans",
    "Montserrat": "Liberation Sans",
    "Inter": "Liberation Sans",
    "Open Sans": "Liberation Sans",
    "Lato": "Liberation Sans",
    "Poppins": "Liberation Sans",
    "Raleway": "Liberation Sans",
    "Playfair Display": "Liberation Serif",
    "Merriweather": "Liberation Serif",
    "Roboto Mono": "Liberation Mono",
    "Source Code Pro": "Liberation Mono",
}

_FALLBACK_LOOKUP = {name.casefold(): target for name, target in FALLBACK_FAMILIES.items()}

LIBERATION_DIR = Path("/usr/share/fonts/liberation")

# Liberation fonts share metrics with the Microsoft core fonts they replace.
SYSTEM_ALIASES: Mapping[str, tuple[str, ...]] = {
    "LiberationSans-Regular.ttf": ("Liberation Sans", "Arial", "Helvetica", "Helvetica Neue"),
    "LiberationSans-Bold.ttf": ("Liberation Sans", "Arial", "Helvetica"),
    "LiberationSans-Italic.ttf": ("Liberation Sans", "Arial", "Helvetica"),
    "LiberationSans-BoldItalic.ttf": ("Liberation Sans", "Arial", "Helvetica"),
    "LiberationSerif-Regular.ttf": ("Liberation Serif", "Times", "Times New Roman"),
    "LiberationSerif-Bold.ttf": ("Liberation Serif", "Times", "Times New Roman"),
    "LiberationMono-Regular.ttf": ("Liberation Mono", "Courier", "Courier New"),
    "LiberationMono-Bold.ttf": ("Liberation Mono", "Courier", "Courier New"),
}


def fallback_family(family: str) -> str:
    """Return the locally installed family substituted for ``family``."""
    return _FALLBACK_LOOKUP.get(normalize_family(family).casefold(), DEFAULT_FALLBACK)


def resolve_or_fallback(resolver: FontResolver, family: str, source: str | None = None) -> str:
    """Return the family a render should use for ``family``.

    Rendering continues with a substitute when the font cannot be resolved;
    the substitution is reported as a warning rather than failing the render.
    """
    if resolver.resolve(family, source):
        return family
    fallback = fallback_family(family)
    resolver.emitter.warning(f"Font '{family}' could not be loaded; rendering with '{fallback}'.")
    resolver.emitter.event("font_fallback", {"family": family, "fallback": fallback})
    return fallback


def fonts_from_request(payload: Any) -> dict[str, str]:
    """Normalise the ``fonts`` field of a render request.

    Accepts either a mapping of ``family -> name-or-url`` or a list of
    ``{"family": ..., "url": ...}`` objects; Google fonts may omit ``url``.
    """
    fonts: dict[str, str] = {}
    if isinstance(payload, Mapping):
        for family, source in payload.items():
            if isinstance(family, str) and family.strip():
                fonts[family] = source if isinstance(source, str) and source.strip() else family
        return fonts
    if isinstance(payload, Iterable) and not isinstance(payload, (str, bytes)):
        for entry in payload:
            if not isinstance(entry, Mapping):
                continue
            family = entry.get("family")
            if not isinstance(family, str) or not family.strip():
                continue
            url = entry.get("url")
            fonts[family] = url if isinstance(url, str) and url.strip() else family
    return fonts


def load_font_list(path: Path) -> dict[str, str]:
    """Read a YAML list of fonts to preload.

    ```yaml
    - family: Roboto
    - family: Brand Sans
      url: https://cdn.example.com/brand.ttf
    ```
    """
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    return fonts_from_request(data or [])


def register_system_aliases(registry: FontRegistry, directory: Path = LIBERATION_DIR) -> int:
    """Register Liberation files under the core font names they stand in for."""
    count = 0
    for filename, aliases in SYSTEM_ALIASES.items():
        path = directory / filename
        if not path.is_file():
            continue
        try:
            count += registry.register_many(path, aliases)
        except FontRegistrationError as exc:
            logger.warning("Could not register system font %s: %s", filename, exc)
    return count


__all__ = [
    "DEFAULT_FALLBACK",
    "FALLBACK_FAMILIES",
    "LIBERATION_DIR",
    "SYSTEM_ALIASES",
    "fallback_family",
    "fonts_from_request",
    "load_font_list",
    "register_system_aliases",
    "resolve_or_fallback",
]
