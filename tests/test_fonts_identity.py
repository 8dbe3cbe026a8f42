from __future__ import annotations

import pytest

from canvasrender.fonts.identity import (
    SourceKind,
    is_generic_family,
    is_url_source,
    make_identity,
    normalize_family,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Roboto", "Roboto"),
        ("  Open Sans  ", "Open Sans"),
        ('"Brand Sans", sans-serif', "Brand Sans"),
        ("'Playfair Display',serif", "Playfair Display"),
        ("", ""),
    ],
)
def test_normalize_family_strips_fallback_lists_and_quotes(raw: str, expected: str) -> None:
    assert normalize_family(raw) == expected


def test_identity_defaults_source_to_requested_family() -> None:
    identity = make_identity("Roboto")
    assert identity.source_kind is SourceKind.NAME
    assert identity.source == "Roboto"
    assert identity.key == ("roboto", SourceKind.NAME)


def test_identity_key_ignores_case() -> None:
    assert make_identity("ROBOTO").key == make_identity("roboto").key


def test_url_source_changes_identity_kind() -> None:
    named = make_identity("Brand")
    custom = make_identity("Brand", "https://cdn.example.com/brand.ttf")
    assert custom.source_kind is SourceKind.URL
    assert custom.is_url
    assert named.key != custom.key


def test_named_source_is_normalised() -> None:
    identity = make_identity("Headline", "'Roboto Slab', serif")
    assert identity.source == "Roboto Slab"
    assert identity.normalized_name == "Headline"


def test_aliases_keep_requested_spelling() -> None:
    identity = make_identity('"Roboto", sans-serif')
    assert identity.aliases == ("Roboto", '"Roboto", sans-serif')
    assert make_identity("Roboto").aliases == ("Roboto",)


def test_generic_families_and_url_detection() -> None:
    assert is_generic_family("sans-serif")
    assert is_generic_family("  arial ")
    assert not is_generic_family("Roboto")
    assert is_url_source("https://example.com/a.ttf")
    assert is_url_source("ftp://example.com/a.ttf")
    assert not is_url_source("Roboto")
