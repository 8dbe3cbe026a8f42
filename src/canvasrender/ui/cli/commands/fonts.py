"""CLI commands for warming, inspecting, and clearing the font cache."""

from __future__ import annotations

from pathlib import Path

import typer
import yaml

from canvasrender.core.config import FontLoaderConfig
from canvasrender.fonts.fallback import load_font_list, resolve_or_fallback
from canvasrender.fonts.resolver import FontResolver, build_resolver
from canvasrender.fonts.store import DiskStore

from .._options import (
    CacheDirOption,
    DebugOption,
    FontListOption,
    FontSpecArgument,
    PrebuiltDirOption,
    VerboseOption,
)
from ..diagnostics import CliEmitter
from ..state import emit_error, get_cli_state, set_cli_state


def parse_font_spec(spec: str) -> tuple[str, str]:
    """Split ``FAMILY=SOURCE`` into its parts; the source defaults to the family."""
    family, sep, source = spec.partition("=")
    family = family.strip()
    source = source.strip() if sep else ""
    if not family:
        raise typer.BadParameter(f"Missing family name in '{spec}'.")
    return family, source or family


def _build_config(cache_dir: Path | None, prebuilt_dir: Path | None) -> FontLoaderConfig:
    return FontLoaderConfig(cache_dir=cache_dir, prebuilt_dir=prebuilt_dir)


def resolve(
    ctx: typer.Context,
    fonts: FontSpecArgument = None,
    from_file: FontListOption = None,
    cache_dir: CacheDirOption = None,
    prebuilt_dir: PrebuiltDirOption = None,
    verbose: VerboseOption = 0,
    debug: DebugOption = False,
) -> None:
    """Resolve fonts into the cache, reporting fallbacks for failures."""
    state = set_cli_state(ctx=ctx, verbosity=verbose, debug=debug)

    requested: dict[str, str] = {}
    if from_file is not None:
        try:
            requested.update(load_font_list(from_file))
        except (OSError, yaml.YAMLError) as exc:
            emit_error(f"Could not read font list '{from_file}'.", exception=exc)
            raise typer.Exit(code=1) from exc
    for spec in fonts or []:
        family, source = parse_font_spec(spec)
        requested[family] = source

    if not requested:
        typer.echo(ctx.get_help())
        raise typer.Exit(code=0)

    resolver = build_resolver(_build_config(cache_dir, prebuilt_dir), emitter=CliEmitter(state))

    from rich import box
    from rich.table import Table

    table = Table(
        title="Fonts",
        box=box.SQUARE,
        show_edge=True,
        header_style="bold cyan",
    )
    table.add_column("Family", style="magenta")
    table.add_column("Source")
    table.add_column("Status")
    table.add_column("Weights", style="green")

    fallbacks = 0
    for family, source in requested.items():
        used = resolve_or_fallback(resolver, family, source)
        resolved = resolver.get(family, source)
        if used != family:
            fallbacks += 1
            status = f"[yellow]fallback: {used}[/yellow]"
        elif resolved is not None:
            status = f"[green]{resolved.tier.value}[/green]"
        else:
            status = "[green]generic[/green]"
        weights = ", ".join(str(weight) for weight in resolved.weights) if resolved else "-"
        table.add_row(family, source if source != family else "-", status, weights)

    console = state.console
    console.print(table)
    stats = resolver.cache_stats()
    console.print(
        f"resolved: {stats.downloaded}  failed: {stats.failed}  "
        f"manifests cached: {stats.manifest_cache_size}"
    )
    if fallbacks:
        raise typer.Exit(code=1)


def prebuilt(
    prebuilt_dir: PrebuiltDirOption = None,
) -> None:
    """List the font families installed at image build time."""
    config = _build_config(None, prebuilt_dir)
    resolver = FontResolver(config)
    inventory = resolver.prebuilt_inventory()

    from rich import box
    from rich.table import Table

    console = get_cli_state().console
    table = Table(
        title=f"Prebuilt fonts ({config.prebuilt_dir})",
        box=box.SQUARE,
        show_edge=True,
        header_style="bold cyan",
    )
    table.add_column("Family", style="magenta")
    table.add_column("Files", justify="right")

    if not inventory:
        table.add_row("-", "0")
    else:
        for family in sorted(inventory, key=str.casefold):
            table.add_row(family, str(len(inventory[family])))
    console.print(table)


def clear_cache(
    cache_dir: CacheDirOption = None,
) -> None:
    """Delete every downloaded font from the cache directory."""
    config = _build_config(cache_dir, None)
    store = DiskStore(config.cache_dir)
    try:
        removed = store.clear()
    except OSError as exc:
        emit_error(f"Could not clear the font cache at '{config.cache_dir}'.", exception=exc)
        raise typer.Exit(code=1) from exc
    console = get_cli_state().console
    console.print(f"Removed {len(removed)} cached font file(s) from {config.cache_dir}.")


__all__ = ["clear_cache", "parse_font_spec", "prebuilt", "resolve"]
