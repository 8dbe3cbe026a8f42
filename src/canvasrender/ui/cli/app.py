"""Typer application wiring for the canvasrender CLI."""

from __future__ import annotations

import typer

from canvasrender.ui.cli.commands import clear_cache, prebuilt, resolve

from .state import debug_enabled, emit_error


app = typer.Typer(
    help="Resolve and cache fonts for the canvas renderer.",
    context_settings={"help_option_names": ["--help"]},
    no_args_is_help=True,
)


app.command(name="resolve")(resolve)
app.command(name="prebuilt")(prebuilt)
app.command(name="clear-cache")(clear_cache)


def main() -> None:
    """Entry point compatible with console scripts."""
    try:
        app()
    except typer.Exit:
        raise
    except KeyboardInterrupt as exc:
        if debug_enabled():
            raise
        emit_error("Operation cancelled by user.", exception=exc)
        raise typer.Exit(code=1) from exc
    except SystemExit:
        raise
    except Exception as exc:  # pragma: no cover - last-resort reporting
        from .state import get_cli_state

        state = get_cli_state()
        if state.show_tracebacks:
            from rich.traceback import Traceback

            tb = Traceback.from_exception(
                type(exc),
                exc,
                exc.__traceback__,
                show_locals=state.verbosity >= 2,
            )
            state.err_console.print(tb)
        else:
            emit_error(str(exc), exception=exc)
        raise typer.Exit(code=1) from exc


__all__ = ["app", "main"]
