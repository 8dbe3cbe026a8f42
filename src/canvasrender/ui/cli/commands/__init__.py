"""CLI command implementations exposed via `canvasrender.ui.cli`.

Re-exports the Typer command callables defined in the sibling modules so they
can be imported using dotted paths (e.g. ``canvasrender.ui.cli.commands.resolve``).
"""

from __future__ import annotations

from .fonts import clear_cache, parse_font_spec, prebuilt, resolve


__all__ = ["clear_cache", "parse_font_spec", "prebuilt", "resolve"]
