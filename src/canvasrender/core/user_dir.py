"""Locate the per-user cache root that backs the downloaded font store.

Lookup order for the home root is an explicit argument, then
``CANVASRENDER_HOME``, then ``~/.canvasrender``. The cache root follows an
explicit argument, ``CANVASRENDER_CACHE_DIR``, ``XDG_CACHE_HOME`` and finally
either ``<home>/cache`` (custom home) or ``~/.cache/canvasrender``.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
import os
from pathlib import Path
from threading import RLock


__all__ = [
    "CanvasRenderUserDir",
    "configure_user_dir",
    "get_user_dir",
    "user_dir_context",
]

HOME_ENV = "CANVASRENDER_HOME"
CACHE_ENV = "CANVASRENDER_CACHE_DIR"

_active: CanvasRenderUserDir | None = None
_guard = RLock()


@dataclass(slots=True, frozen=True)
class CanvasRenderUserDir:
    """Resolved home and cache roots."""

    root: Path
    cache_root: Path
    pinned: bool = False

    @classmethod
    def discover(
        cls,
        *,
        root: str | Path | None = None,
        cache_root: str | Path | None = None,
    ) -> CanvasRenderUserDir:
        home_override = root if root is not None else os.environ.get(HOME_ENV)
        home = (
            Path(home_override).expanduser()
            if home_override
            else Path.home() / ".canvasrender"
        )

        if cache_root is not None:
            cache = Path(cache_root).expanduser()
        elif os.environ.get(CACHE_ENV):
            cache = Path(os.environ[CACHE_ENV]).expanduser()
        elif os.environ.get("XDG_CACHE_HOME"):
            cache = Path(os.environ["XDG_CACHE_HOME"]).expanduser() / "canvasrender"
        elif home_override:
            cache = home / "cache"
        else:
            cache = Path.home() / ".cache" / "canvasrender"

        return cls(
            root=home,
            cache_root=cache,
            pinned=root is not None or cache_root is not None,
        )

    def cache_dir(self, *parts: str | Path, create: bool = True) -> Path:
        """Return a namespace below the cache root, creating it on request."""
        target = self.cache_root.joinpath(*parts)
        if create:
            target.mkdir(parents=True, exist_ok=True)
        return target


def configure_user_dir(
    *,
    root: str | Path | None = None,
    cache_root: str | Path | None = None,
) -> CanvasRenderUserDir:
    """Resolve the directories again and install them as the active instance."""
    global _active
    resolved = CanvasRenderUserDir.discover(root=root, cache_root=cache_root)
    with _guard:
        _active = resolved
    return resolved


def get_user_dir() -> CanvasRenderUserDir:
    """Return the active directories, following environment changes when not pinned."""
    global _active
    with _guard:
        if _active is not None and _active.pinned:
            return _active
        current = CanvasRenderUserDir.discover()
        if _active != current:
            _active = current
        return _active


@contextmanager
def user_dir_context(
    *,
    root: str | Path | None = None,
    cache_root: str | Path | None = None,
) -> Iterator[CanvasRenderUserDir]:
    """Temporarily swap the active directories."""
    global _active
    with _guard:
        previous = _active
    try:
        yield configure_user_dir(root=root, cache_root=cache_root)
    finally:
        with _guard:
            _active = previous
