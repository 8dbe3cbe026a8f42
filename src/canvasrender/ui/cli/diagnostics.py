"""Route resolver diagnostics to the CLI consoles."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from canvasrender.core.diagnostics import DiagnosticEmitter, format_event_message

from .state import CLIState, emit_error, emit_warning, get_cli_state, render_message


class CliEmitter(DiagnosticEmitter):
    """Record resolver events on the CLI state and echo them with ``-v``."""

    def __init__(self, state: CLIState | None = None) -> None:
        self.state = state or get_cli_state()

    @property
    def debug_enabled(self) -> bool:
        return self.state.show_tracebacks

    def warning(self, message: str, exc: BaseException | None = None) -> None:
        emit_warning(message, exception=exc)

    def error(self, message: str, exc: BaseException | None = None) -> None:
        emit_error(message, exception=exc)

    def event(self, name: str, payload: Mapping[str, Any]) -> None:
        self.state.record_event(name, payload)
        if self.state.verbosity < 1:
            return
        message = format_event_message(name, dict(payload))
        if message:
            render_message("info", message)


__all__ = ["CliEmitter"]
