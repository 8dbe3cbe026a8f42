from __future__ import annotations

import logging

from canvasrender.core.diagnostics import LoggingEmitter, RecordingEmitter, format_event_message
from canvasrender.core.exceptions import (
    CorruptCacheFile,
    FontResolutionError,
    NetworkError,
    UndersizedPayload,
    exception_hint,
    exception_messages,
)


def test_format_event_message_for_font_events() -> None:
    assert (
        format_event_message("font_resolved", {"family": "Roboto", "tier": "named", "variants": 4})
        == "Font ready: Roboto (named, 4 variants)"
    )
    assert (
        format_event_message("font_failed", {"family": "Brand", "reason": "HTTP 404"})
        == "Font unavailable: Brand: HTTP 404"
    )
    assert (
        format_event_message("font_fallback", {"family": "Brand", "fallback": "Liberation Sans"})
        == "Using fallback font Liberation Sans for Brand"
    )
    assert format_event_message("other", {}) is None


def test_logging_emitter_routes_events(caplog) -> None:
    emitter = LoggingEmitter(logger_obj=logging.getLogger("canvasrender.test"))
    with caplog.at_level(logging.INFO, logger="canvasrender.test"):
        emitter.event("font_resolved", {"family": "Roboto", "variants": 1})
        emitter.warning("careful")
        emitter.error("broken", ValueError("x"))
    assert "Font ready: Roboto (1 variant)" in caplog.text
    assert "careful" in caplog.text
    assert "ValueError" in caplog.text


def test_recording_emitter_filters_events() -> None:
    emitter = RecordingEmitter()
    emitter.event("font_failed", {"family": "A"})
    emitter.event("font_resolved", {"family": "B"})
    assert emitter.events_named("font_failed") == [{"family": "A"}]


def test_exception_hint_prefers_root_cause() -> None:
    try:
        try:
            raise OSError("disk full")
        except OSError as inner:
            raise CorruptCacheFile("cached font failed", path="x.ttf") from inner
    except FontResolutionError as exc:
        assert exception_messages(exc) == ["cached font failed", "disk full"]
        assert exception_hint(exc) == "disk full"


def test_error_details_are_kept() -> None:
    error = NetworkError("boom", url="https://x/a.ttf", attempts=3)
    assert (error.url, error.attempts) == ("https://x/a.ttf", 3)
    small = UndersizedPayload("tiny", size=12, minimum=10_000)
    assert (small.size, small.minimum) == (12, 10_000)
    assert isinstance(small, FontResolutionError)
