"""Public CLI exports for canvasrender."""

from __future__ import annotations

from .app import app, main
from .commands import clear_cache, prebuilt, resolve
from .state import debug_enabled, emit_error, emit_warning, get_cli_state


__all__ = [
    "app",
    "clear_cache",
    "debug_enabled",
    "emit_error",
    "emit_warning",
    "get_cli_state",
    "main",
    "prebuilt",
    "resolve",
]
