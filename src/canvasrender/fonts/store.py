"""On-disk storage for downloaded font variants."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import os
from pathlib import Path
import re
import tempfile

from canvasrender.fonts.registry import sniff_font_file


logger = logging.getLogger(__name__)

FONT_EXTENSIONS: tuple[str, ...] = ("ttf", "otf", "woff", "woff2")
_UNSAFE_RE = re.compile(r"[^A-Za-z0-9\-_]")
_VARIANT_RE = re.compile(r"^(?P<stem>.+)-(?P<weight>\d{3})\.(?P<ext>[A-Za-z0-9]+)$")


def safe_name(name: str) -> str:
    """Replace every character outside ``[A-Za-z0-9-_]`` with ``-``."""
    return _UNSAFE_RE.sub("-", name)


@dataclass(frozen=True, slots=True)
class CachedVariant:
    """A variant file found in the store without any network access."""

    weight: int
    path: Path


class DiskStore:
    """Deterministic file layout for downloaded fonts.

    Variants live at ``<root>/<safe>-<weight>.<ext>`` and custom URL downloads
    at ``<root>/<safe>.<ext>``. Writes go through a temporary file in the same
    directory so a concurrent reader never sees a half-written font.
    """

    def __init__(self, root: Path, *, min_bytes: int = 0) -> None:
        self.root = Path(root)
        self.min_bytes = min_bytes

    def ensure(self) -> Path:
        """Ensure the store directory exists and return it."""
        self.root.mkdir(parents=True, exist_ok=True)
        return self.root

    def variant_path(self, name: str, weight: int, ext: str = "ttf") -> Path:
        return self.root / f"{safe_name(name)}-{weight}.{ext.lstrip('.')}"

    def custom_path(self, name: str, ext: str = "ttf") -> Path:
        return self.root / f"{safe_name(name)}.{ext.lstrip('.')}"

    def exists(self, path: Path) -> bool:
        return path.is_file()

    def is_valid(self, path: Path) -> bool:
        """Return True when ``path`` looks like a complete font file."""
        try:
            size = path.stat().st_size
        except OSError:
            return False
        if size < max(4, self.min_bytes):
            return False
        return sniff_font_file(path)

    def write_if_absent(self, path: Path, payload: bytes) -> Path:
        """Persist ``payload`` at ``path`` unless a valid file is already there."""
        if self.is_valid(path):
            return path
        self.ensure()
        handle, tmp_name = tempfile.mkstemp(dir=self.root, prefix=".", suffix=".part")
        try:
            with os.fdopen(handle, "wb") as stream:
                stream.write(payload)
            os.replace(tmp_name, path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        return path

    def delete(self, path: Path) -> bool:
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        logger.debug("Deleted cached font %s", path)
        return True

    def cached_variants(self, name: str) -> list[CachedVariant]:
        """Return the ``<safe>-<weight>.<ext>`` files stored for ``name``.

        The stem is compared case-insensitively, matching family identity.
        """
        if not self.root.is_dir():
            return []
        stem = safe_name(name).casefold()
        found: list[CachedVariant] = []
        for path in sorted(self.root.iterdir()):
            match = _VARIANT_RE.match(path.name)
            if match is None or match.group("stem").casefold() != stem:
                continue
            if not path.is_file():
                continue
            if match.group("ext").lower() not in FONT_EXTENSIONS:
                continue
            found.append(CachedVariant(weight=int(match.group("weight")), path=path))
        return found

    def files(self) -> list[Path]:
        if not self.root.is_dir():
            return []
        return sorted(
            path
            for path in self.root.iterdir()
            if path.is_file() and path.suffix.lstrip(".").lower() in FONT_EXTENSIONS
        )

    def clear(self) -> list[Path]:
        """Delete every cached font file and return the removed paths."""
        removed: list[Path] = []
        for path in self.files():
            if self.delete(path):
                removed.append(path)
        return removed


__all__ = ["FONT_EXTENSIONS", "CachedVariant", "DiskStore", "safe_name"]
