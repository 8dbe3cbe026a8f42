"""Per-invocation CLI state: verbosity, consoles, and recorded font events."""

from __future__ import annotations

from collections.abc import Mapping
from contextvars import ContextVar
from dataclasses import dataclass, field
import sys
from typing import TYPE_CHECKING, Any, TextIO

import click
import typer


if TYPE_CHECKING:
    from rich.console import Console

__all__ = [
    "CLIState",
    "debug_enabled",
    "emit_error",
    "emit_warning",
    "get_cli_state",
    "render_message",
    "set_cli_state",
]

_LEVEL_STYLES = {"error": "red", "warning": "yellow"}


def _bound_console(console: Console | None, stream: TextIO, **options: Any) -> Console:
    # CliRunner swaps sys.stdout/sys.stderr between invocations.
    from rich.console import Console

    if console is None or console.file is not stream:
        console = Console(file=stream, **options)
    return console


@dataclass(slots=True)
class CLIState:
    """Verbosity flags and diagnostic events collected while a command runs."""

    verbosity: int = 0
    show_tracebacks: bool = False
    events: dict[str, list[dict[str, Any]]] = field(default_factory=dict, init=False)
    _console: Console | None = field(default=None, init=False, repr=False)
    _err_console: Console | None = field(default=None, init=False, repr=False)

    @property
    def console(self) -> Console:
        self._console = _bound_console(self._console, sys.stdout)
        return self._console

    @property
    def err_console(self) -> Console:
        self._err_console = _bound_console(self._err_console, sys.stderr, highlight=False)
        return self._err_console

    def record_event(self, name: str, payload: Mapping[str, Any] | None = None) -> None:
        """Keep a structured event such as ``font_resolved`` for later inspection."""
        self.events.setdefault(name, []).append(dict(payload or {}))

    def consume_events(self, name: str) -> list[dict[str, Any]]:
        """Pop every event recorded under ``name``."""
        return self.events.pop(name, [])


_current_state: ContextVar[CLIState | None] = ContextVar("canvasrender_cli_state", default=None)


def _state_from_context(ctx: click.Context | None) -> CLIState | None:
    while ctx is not None:
        if isinstance(ctx.obj, CLIState):
            return ctx.obj
        ctx = ctx.parent
    return None


def get_cli_state(
    ctx: typer.Context | click.Context | None = None,
    *,
    create: bool = True,
) -> CLIState:
    """Return the state attached to the Click context chain or the current task."""
    if ctx is None:
        ctx = click.get_current_context(silent=True)

    state = _state_from_context(ctx)
    if state is None and ctx is not None and create:
        state = CLIState()
        ctx.obj = state
    if state is not None:
        _current_state.set(state)
        return state

    state = _current_state.get()
    if state is None:
        if not create:
            raise RuntimeError("CLI state is not initialised for this context.")
        state = CLIState()
        _current_state.set(state)
    return state


def set_cli_state(
    *,
    ctx: typer.Context | None = None,
    verbosity: int | None = None,
    debug: bool | None = None,
) -> CLIState:
    """Apply the ``--verbose``/``--debug`` flags and return the state."""
    state = get_cli_state(ctx)
    if verbosity is not None:
        state.verbosity = max(0, verbosity)
    if debug is not None:
        state.show_tracebacks = debug
    return state


def _causes(exc: BaseException) -> list[str]:
    seen: set[int] = set()
    lines: list[str] = []
    cause = exc.__cause__ or exc.__context__
    while cause is not None and id(cause) not in seen:
        seen.add(id(cause))
        lines.append(f"{type(cause).__name__}: {cause}")
        cause = cause.__cause__ or cause.__context__
    return lines


def render_message(
    level: str,
    message: str,
    *,
    exception: BaseException | None = None,
) -> None:
    """Print ``message``; warnings and errors go to stderr with exception details."""
    state = get_cli_state()
    if level not in _LEVEL_STYLES:
        state.console.log(message)
        return

    from rich.text import Text

    style = _LEVEL_STYLES[level]
    text = Text.assemble((f"{level}: ", f"bold {style}"), (message, style))

    details: list[str] = []
    if exception is not None and state.verbosity >= 1:
        reason = str(exception).strip()
        if reason and reason not in message:
            details.append(reason)
        details.append(f"type: {type(exception).__name__}")
        causes = _causes(exception) if state.verbosity >= 2 else []
        if causes:
            details.append("caused by:")
            details.extend(f"  {line}" for line in causes)
    if details:
        text.append("\n" + "\n".join(details), style=style)

    state.err_console.print(text)


def emit_warning(message: str, *, exception: BaseException | None = None) -> None:
    render_message("warning", message, exception=exception)


def emit_error(message: str, *, exception: BaseException | None = None) -> None:
    render_message("error", message, exception=exception)


def debug_enabled() -> bool:
    """Return whether ``--debug`` asked for full tracebacks."""
    try:
        return get_cli_state(create=False).show_tracebacks
    except RuntimeError:
        return False
