from __future__ import annotations

from collections.abc import Callable, Mapping
from pathlib import Path
from threading import Lock
from typing import Any

import pytest

from canvasrender.core.config import FontLoaderConfig
from canvasrender.core.diagnostics import RecordingEmitter
from canvasrender.fonts import fetcher as fetcher_module
from canvasrender.fonts.fetcher import FetchResponse
from canvasrender.fonts.registry import FontRegistry
from canvasrender.fonts.resolver import FontResolver


TTF_TAG = b"\x00\x01\x00\x00"
GSTATIC = "https://fonts.gstatic.com/s/roboto/"
ROBOTO_CSS2 = "https://fonts.googleapis.com/css2?family=Roboto:"


def font_bytes(size: int = 256, tag: bytes = TTF_TAG) -> bytes:
    """Return a payload that passes the font signature sniff."""
    return tag + b"\x00" * max(0, size - len(tag))


def weighted_css(base: str, weights=(300, 400, 500, 700), family: str = "Roboto") -> str:
    return "\n".join(
        f"@font-face {{\n  font-family: '{family}';\n  font-style: normal;\n"
        f"  font-weight: {weight};\n"
        f"  src: url({base}roboto-{weight}.ttf) format('truetype');\n}}"
        for weight in weights
    )


class FakeTransport:
    """Route URLs by prefix; unknown URLs answer 404."""

    def __init__(self, routes: Mapping[str, Any] | None = None) -> None:
        self.routes: dict[str, Any] = dict(routes or {})
        self.calls: list[str] = []
        self.headers: list[dict[str, str]] = []
        self._lock = Lock()

    def __call__(self, url: str, headers: Mapping[str, str], timeout: float) -> FetchResponse:
        with self._lock:
            self.calls.append(url)
            self.headers.append(dict(headers))
        for prefix, value in self.routes.items():
            if not url.startswith(prefix):
                continue
            if isinstance(value, BaseException):
                raise value
            if callable(value):
                value = value(url)
            if isinstance(value, FetchResponse):
                return value
            content = value.encode("utf-8") if isinstance(value, str) else value
            return FetchResponse(url=url, status=200, content=content)
        return FetchResponse(url=url, status=404)

    def count(self, prefix: str) -> int:
        with self._lock:
            return sum(1 for url in self.calls if url.startswith(prefix))


def roboto_routes(**overrides: Any) -> dict[str, Any]:
    routes: dict[str, Any] = dict(overrides)
    routes.setdefault(ROBOTO_CSS2, weighted_css(GSTATIC))
    routes.setdefault(GSTATIC, font_bytes())
    return routes


@pytest.fixture(autouse=True)
def _no_dns(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(fetcher_module, "diagnose_dns", lambda _url: None)


@pytest.fixture
def font_config(tmp_path: Path) -> FontLoaderConfig:
    return FontLoaderConfig(
        cache_dir=tmp_path / "cache",
        prebuilt_dir=tmp_path / "prebuilt",
        min_payload_bytes=64,
        retries=2,
        retry_backoff=0,
    )


@pytest.fixture
def make_resolver(
    font_config: FontLoaderConfig,
) -> Callable[..., tuple[FontResolver, RecordingEmitter]]:
    def factory(
        transport: FakeTransport,
        *,
        config: FontLoaderConfig | None = None,
        clock: Callable[[], float] | None = None,
    ) -> tuple[FontResolver, RecordingEmitter]:
        emitter = RecordingEmitter()
        kwargs: dict[str, Any] = {}
        if clock is not None:
            kwargs["clock"] = clock
        resolver = FontResolver(
            config or font_config,
            registry=FontRegistry(),
            transport=transport,
            emitter=emitter,
            sleep=lambda _seconds: None,
            **kwargs,
        )
        return resolver, emitter

    return factory
