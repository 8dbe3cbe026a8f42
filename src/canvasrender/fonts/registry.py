"""Process-wide font registry consumed by the rendering engine."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
import logging
from pathlib import Path
from threading import Lock

from canvasrender.core.exceptions import FontRegistrationError
from canvasrender.fonts.identity import FontIdentity


logger = logging.getLogger(__name__)

# sfnt (TrueType, OpenType/CFF, Apple 'true', collections) and WOFF containers.
FONT_SIGNATURES: tuple[bytes, ...] = (
    b"\x00\x01\x00\x00",
    b"OTTO",
    b"true",
    b"typ1",
    b"ttcf",
    b"wOFF",
    b"wOF2",
)


class FontTier(str, Enum):
    """Supply tier a font file came from."""

    PREBUILT = "prebuilt"
    NAMED = "named"
    URL = "url"


@dataclass(frozen=True, slots=True)
class FontVariant:
    """One registered weight of a family."""

    weight: int
    path: Path
    byte_size: int
    tier: FontTier


@dataclass(slots=True)
class ResolvedFont:
    """Outcome of a successful resolution."""

    identity: FontIdentity
    variants: list[FontVariant] = field(default_factory=list)
    aliases: set[str] = field(default_factory=set)

    @property
    def weights(self) -> list[int]:
        return sorted({variant.weight for variant in self.variants})

    @property
    def tier(self) -> FontTier | None:
        return self.variants[0].tier if self.variants else None


def has_font_signature(payload: bytes) -> bool:
    """Return True when ``payload`` starts with a known font container tag."""
    return payload[:4] in FONT_SIGNATURES


def sniff_font_file(path: Path) -> bool:
    try:
        with path.open("rb") as handle:
            head = handle.read(4)
    except OSError:
        return False
    return has_font_signature(head)


class FontRegistry:
    """Map family aliases to font files, the way the rendering engine sees them.

    Registration is idempotent: registering an ``(alias, path)`` pair that is
    already known is a no-op returning ``False``.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._files: dict[str, dict[str, Path]] = {}
        self._names: dict[str, str] = {}

    def register_font_file(self, path: Path, alias: str) -> bool:
        """Register ``path`` under ``alias``; return True when newly added."""
        path = Path(path)
        alias = alias.strip()
        if not alias:
            raise FontRegistrationError(f"Cannot register '{path}' without a family alias.")
        if not path.is_file() or not sniff_font_file(path):
            raise FontRegistrationError(f"'{path}' is not a loadable font file.")
        key = alias.casefold()
        resolved = path.resolve()
        with self._lock:
            bucket = self._files.setdefault(key, {})
            if str(resolved) in bucket:
                return False
            bucket[str(resolved)] = resolved
            self._names.setdefault(key, alias)
        logger.debug("Registered %s as '%s'", resolved.name, alias)
        return True

    def register_many(self, path: Path, aliases: Iterable[str]) -> int:
        return sum(1 for alias in aliases if self.register_font_file(path, alias))

    def has_family(self, family: str) -> bool:
        with self._lock:
            return family.strip().casefold() in self._files

    def files_for(self, family: str) -> list[Path]:
        with self._lock:
            return sorted(self._files.get(family.strip().casefold(), {}).values())

    def families(self) -> set[str]:
        """Return the registered aliases as first spelled."""
        with self._lock:
            return set(self._names.values())


__all__ = [
    "FONT_SIGNATURES",
    "FontRegistry",
    "FontTier",
    "FontVariant",
    "ResolvedFont",
    "has_font_signature",
    "sniff_font_file",
]
