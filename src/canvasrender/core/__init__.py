"""Shared building blocks: configuration, diagnostics, errors, and user dirs."""

from canvasrender.core.config import FontLoaderConfig
from canvasrender.core.diagnostics import (
    DiagnosticEmitter,
    LoggingEmitter,
    NullEmitter,
    RecordingEmitter,
)
from canvasrender.core.exceptions import FontResolutionError
from canvasrender.core.user_dir import get_user_dir, user_dir_context


__all__ = [
    "DiagnosticEmitter",
    "FontLoaderConfig",
    "FontResolutionError",
    "LoggingEmitter",
    "NullEmitter",
    "RecordingEmitter",
    "get_user_dir",
    "user_dir_context",
]
