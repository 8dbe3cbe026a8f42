"""Shared Typer option definitions for CLI commands."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer


SOURCES_PANEL = "Font Sources"
CACHE_PANEL = "Cache"
DIAGNOSTICS_PANEL = "Diagnostics"

FontSpecArgument = Annotated[
    list[str] | None,
    typer.Argument(
        metavar="FAMILY[=SOURCE]...",
        help=(
            "Font families to resolve. Append '=NAME' to fetch a different web font "
            "family or '=URL' to download a custom font file or stylesheet."
        ),
        rich_help_panel=SOURCES_PANEL,
    ),
]

FontListOption = Annotated[
    Path | None,
    typer.Option(
        "--from-file",
        "-f",
        help="YAML list of fonts to resolve ('- family: X' with an optional 'url').",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
        resolve_path=True,
        rich_help_panel=SOURCES_PANEL,
    ),
]

CacheDirOption = Annotated[
    Path | None,
    typer.Option(
        "--cache-dir",
        help="Directory holding downloaded fonts (defaults to the user cache).",
        file_okay=False,
        dir_okay=True,
        rich_help_panel=CACHE_PANEL,
    ),
]

PrebuiltDirOption = Annotated[
    Path | None,
    typer.Option(
        "--prebuilt-dir",
        help="Directory of fonts installed at image build time.",
        file_okay=False,
        dir_okay=True,
        rich_help_panel=CACHE_PANEL,
    ),
]

VerboseOption = Annotated[
    int,
    typer.Option(
        "--verbose",
        "-v",
        count=True,
        help="Increase CLI verbosity. Combine multiple times for additional diagnostics.",
        rich_help_panel=DIAGNOSTICS_PANEL,
    ),
]

DebugOption = Annotated[
    bool,
    typer.Option(
        "--debug",
        help="Show full tracebacks when an unexpected error occurs.",
        rich_help_panel=DIAGNOSTICS_PANEL,
    ),
]
