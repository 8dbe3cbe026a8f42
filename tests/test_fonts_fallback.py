from __future__ import annotations

import logging
from pathlib import Path

from canvasrender.fonts.fallback import (
    DEFAULT_FALLBACK,
    fallback_family,
    fonts_from_request,
    load_font_list,
    register_system_aliases,
    resolve_or_fallback,
)
from canvasrender.fonts.registry import FontRegistry

from conftest import FakeTransport, font_bytes, roboto_routes


def test_fallback_family_uses_the_substitution_table() -> None:
    assert fallback_family("Playfair Display, serif") == "Liberation Serif"
    assert fallback_family("roboto mono") == "Liberation Mono"
    assert fallback_family("Roboto") == "Liberation Sans"
    assert fallback_family("Some Unknown Face") == DEFAULT_FALLBACK


def test_resolve_or_fallback_keeps_resolved_family(make_resolver) -> None:
    resolver, emitter = make_resolver(FakeTransport(roboto_routes()))
    assert resolve_or_fallback(resolver, "Roboto") == "Roboto"
    assert emitter.warnings == []
    assert emitter.events_named("font_fallback") == []


def test_resolve_or_fallback_substitutes_and_warns(make_resolver) -> None:
    resolver, emitter = make_resolver(FakeTransport())

    assert resolve_or_fallback(resolver, "Merriweather") == "Liberation Serif"
    assert any("Merriweather" in message for message in emitter.warnings)
    assert emitter.events_named("font_fallback") == [
        {"family": "Merriweather", "fallback": "Liberation Serif"}
    ]


def test_fonts_from_request_accepts_mapping_and_list() -> None:
    url = "https://cdn.example.com/brand.ttf"
    assert fonts_from_request({"Roboto": "", "Brand": url, "": "x"}) == {
        "Roboto": "Roboto",
        "Brand": url,
    }
    assert fonts_from_request(
        [{"family": "Roboto"}, {"family": "Brand", "url": url}, "junk", {"url": url}]
    ) == {"Roboto": "Roboto", "Brand": url}
    assert fonts_from_request(None) == {}
    assert fonts_from_request("Roboto") == {}


def test_load_font_list_reads_yaml(tmp_path: Path) -> None:
    listing = tmp_path / "fonts.yml"
    listing.write_text(
        "- family: Roboto\n- family: Brand Sans\n  url: https://cdn.example.com/brand.ttf\n",
        encoding="utf-8",
    )
    assert load_font_list(listing) == {
        "Roboto": "Roboto",
        "Brand Sans": "https://cdn.example.com/brand.ttf",
    }
    empty = tmp_path / "empty.yml"
    empty.write_text("", encoding="utf-8")
    assert load_font_list(empty) == {}


def test_register_system_aliases(tmp_path: Path, caplog) -> None:
    (tmp_path / "LiberationSans-Regular.ttf").write_bytes(font_bytes())
    (tmp_path / "LiberationSerif-Regular.ttf").write_bytes(b"not a font at all")
    registry = FontRegistry()

    with caplog.at_level(logging.WARNING, logger="canvasrender.fonts.fallback"):
        count = register_system_aliases(registry, tmp_path)

    assert count == 4
    assert registry.has_family("Helvetica")
    assert registry.has_family("Arial")
    assert not registry.has_family("Times New Roman")
    assert "LiberationSerif-Regular.ttf" in caplog.text
