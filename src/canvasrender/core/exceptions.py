"""Exception hierarchy for the font resolution pipeline."""

from __future__ import annotations


class FontResolutionError(RuntimeError):
    """Base exception for font resolution failures."""


class NetworkError(FontResolutionError):
    """Raised when a retrieval keeps failing at the transport level."""

    def __init__(self, message: str, *, url: str | None = None, attempts: int = 0) -> None:
        super().__init__(message)
        self.url = url
        self.attempts = attempts


class ManifestNotFound(FontResolutionError):
    """Raised when no endpoint returned a usable font manifest."""


class NoVariantsParsed(FontResolutionError):
    """Raised when a manifest was fetched but no variant URL could be extracted."""


class CorruptCacheFile(FontResolutionError):
    """Raised when a cached font file fails validation."""

    def __init__(self, message: str, *, path: object = None) -> None:
        super().__init__(message)
        self.path = path


class UndersizedPayload(FontResolutionError):
    """Raised when a download is too small to be a real font file."""

    def __init__(self, message: str, *, size: int = 0, minimum: int = 0) -> None:
        super().__init__(message)
        self.size = size
        self.minimum = minimum


class UnsupportedSource(FontResolutionError):
    """Raised when a font URL uses a scheme the downloader cannot handle."""


class FontRegistrationError(FontResolutionError):
    """Raised when the font registry refuses to load a file."""


def exception_messages(exc: BaseException) -> list[str]:
    """Return the collected message chain for an exception and its causes."""
    messages: list[str] = []
    visited: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in visited:
        visited.add(id(current))
        text = str(current).strip()
        if text:
            first_line = text.splitlines()[0].strip()
            if first_line:
                messages.append(first_line)
        current = current.__cause__ or current.__context__
    return messages


def exception_hint(exc: BaseException) -> str | None:
    """Return the most specific message available for an exception chain."""
    messages = exception_messages(exc)
    return messages[-1] if messages else None


__all__ = [
    "CorruptCacheFile",
    "FontRegistrationError",
    "FontResolutionError",
    "ManifestNotFound",
    "NetworkError",
    "NoVariantsParsed",
    "UndersizedPayload",
    "UnsupportedSource",
    "exception_hint",
    "exception_messages",
]
