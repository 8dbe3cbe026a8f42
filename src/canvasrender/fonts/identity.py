"""Normalise requested font families into cache identities."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import re


_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*://")
_QUOTES = "\"'`"

GENERIC_FAMILIES: frozenset[str] = frozenset(
    name.casefold()
    for name in (
        "serif",
        "sans-serif",
        "monospace",
        "cursive",
        "fantasy",
        "system-ui",
        "ui-serif",
        "ui-sans-serif",
        "ui-monospace",
        "Arial",
        "Helvetica",
        "Helvetica Neue",
        "Times",
        "Times New Roman",
        "Courier",
        "Courier New",
        "Verdana",
        "Georgia",
        "Tahoma",
        "Trebuchet MS",
        "Impact",
        "DejaVu Sans",
        "DejaVu Serif",
        "DejaVu Sans Mono",
        "Liberation Sans",
        "Liberation Serif",
        "Liberation Mono",
    )
)


class SourceKind(str, Enum):
    """How a font family is supplied."""

    NAME = "name"
    URL = "url"


@dataclass(frozen=True, slots=True)
class FontIdentity:
    """A requested family reduced to the key used for caching and dedup.

    ``requested_name`` keeps the exact string the render request used, since
    the rendering engine looks fonts up by that string. ``source`` is the family
    name or URL the files are fetched from.
    """

    requested_name: str
    normalized_name: str
    source_kind: SourceKind
    source: str

    @property
    def key(self) -> tuple[str, SourceKind]:
        return (self.normalized_name.casefold(), self.source_kind)

    @property
    def is_url(self) -> bool:
        return self.source_kind is SourceKind.URL

    @property
    def aliases(self) -> tuple[str, ...]:
        """Names under which resolved files are registered."""
        requested = self.requested_name.strip()
        if requested and requested != self.normalized_name:
            return (self.normalized_name, requested)
        return (self.normalized_name,)


def normalize_family(name: str) -> str:
    """Strip a CSS fallback list, quotes, and surrounding whitespace.

    >>> normalize_family('"Brand Sans", sans-serif')
    'Brand Sans'
    """
    head = name.split(",", 1)[0]
    return head.strip().strip(_QUOTES).strip()


def is_url_source(value: str) -> bool:
    return bool(_SCHEME_RE.match(value.strip()))


def is_generic_family(name: str) -> bool:
    """Return True for families assumed to be satisfiable without downloads."""
    return normalize_family(name).casefold() in GENERIC_FAMILIES


def make_identity(requested_family: str, source: str | None = None) -> FontIdentity:
    """Build the identity for ``requested_family`` supplied by ``source``.

    ``source`` is either a family name or an absolute URL; it defaults to the
    requested family itself.
    """
    normalized = normalize_family(requested_family)
    raw_source = (source or "").strip() or requested_family
    if is_url_source(raw_source):
        return FontIdentity(
            requested_name=requested_family,
            normalized_name=normalized,
            source_kind=SourceKind.URL,
            source=raw_source,
        )
    return FontIdentity(
        requested_name=requested_family,
        normalized_name=normalized,
        source_kind=SourceKind.NAME,
        source=normalize_family(raw_source) or normalized,
    )


__all__ = [
    "GENERIC_FAMILIES",
    "FontIdentity",
    "SourceKind",
    "is_generic_family",
    "is_url_source",
    "make_identity",
    "normalize_family",
]
