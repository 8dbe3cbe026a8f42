from __future__ import annotations

import pytest

from canvasrender.core.exceptions import ManifestNotFound, NoVariantsParsed
from canvasrender.fonts.fetcher import FetchResponse, Fetcher
from canvasrender.fonts.manifest import (
    ManifestCache,
    extract_ordered_urls,
    extract_rewritten_urls,
    extract_variant_urls,
    extract_weighted_urls,
    fetch_manifest,
    load_variant_urls,
    manifest_urls,
    parse_blocks,
)

from conftest import FakeTransport, weighted_css


BASE = "https://fonts.gstatic.com/s/roboto/"

UNWEIGHTED_CSS = """
@font-face { font-family: 'Roboto'; src: url('https://fonts.gstatic.com/a.ttf'); }
@font-face { font-family: 'Roboto'; src: url("https://fonts.gstatic.com/b.ttf"); }
@font-face { font-family: 'Roboto'; src: url(https://fonts.gstatic.com/c.ttf); }
"""

WOFF2_CSS = """
/* cyrillic */
@font-face {
  font-family: 'Roboto';
  font-weight: 400;
  src: url(https://fonts.gstatic.com/s/roboto/cyr-400.woff2) format('woff2');
}
/* latin */
@font-face {
  font-family: 'Roboto';
  font-weight: 400;
  src: url(https://fonts.gstatic.com/s/roboto/latin-400.woff2) format('woff2');
}
/* latin */
@font-face {
  font-family: 'Roboto';
  font-weight: 700;
  src: url(https://fonts.gstatic.com/s/roboto/latin-700.woff2?v=2) format('woff2');
}
"""


def test_parse_blocks_reads_subset_weight_and_urls() -> None:
    blocks = parse_blocks(WOFF2_CSS)
    assert [block.subset for block in blocks] == ["cyrillic", "latin", "latin"]
    assert [block.weight for block in blocks] == [400, 400, 700]
    assert blocks[0].urls == ("https://fonts.gstatic.com/s/roboto/cyr-400.woff2",)


def test_weighted_strategy_pairs_weights_with_binary_urls() -> None:
    pairs = extract_weighted_urls(weighted_css(BASE, (400, 700)))
    assert pairs == [(400, f"{BASE}roboto-400.ttf"), (700, f"{BASE}roboto-700.ttf")]


def test_ordered_strategy_assigns_default_weights() -> None:
    assert extract_weighted_urls(UNWEIGHTED_CSS) == []
    assert extract_ordered_urls(UNWEIGHTED_CSS) == [
        (300, "https://fonts.gstatic.com/a.ttf"),
        (400, "https://fonts.gstatic.com/b.ttf"),
        (500, "https://fonts.gstatic.com/c.ttf"),
    ]


def test_rewrite_strategy_keeps_only_latin_subset() -> None:
    assert extract_ordered_urls(WOFF2_CSS) == []
    assert extract_rewritten_urls(WOFF2_CSS) == [
        (400, "https://fonts.gstatic.com/s/roboto/latin-400.ttf"),
        (700, "https://fonts.gstatic.com/s/roboto/latin-700.ttf?v=2"),
    ]


def test_extract_variant_urls_prefers_weighted_strategy() -> None:
    css = weighted_css(BASE, (700, 300)) + UNWEIGHTED_CSS
    assert extract_variant_urls(css) == [
        (300, f"{BASE}roboto-300.ttf"),
        (700, f"{BASE}roboto-700.ttf"),
    ]
    assert extract_variant_urls("body { color: red; }") == []


def test_manifest_urls_encode_family_and_weights() -> None:
    urls = manifest_urls(
        "Open Sans",
        [
            "https://x/css2?family={family}:wght@{weights_css2}",
            "https://x/css?family={family}:{weights_legacy}",
        ],
        (400, 700),
    )
    assert urls == [
        "https://x/css2?family=Open+Sans:wght@400;700",
        "https://x/css?family=Open+Sans:400,700",
    ]


def test_manifest_cache_expires_entries() -> None:
    now = [1000.0]
    cache = ManifestCache(ttl=60, clock=lambda: now[0])
    cache.put("roboto", [(400, "https://x/a.ttf")])

    now[0] += 60
    assert cache.get("roboto") == [(400, "https://x/a.ttf")]
    now[0] += 1
    assert cache.get("roboto") is None
    assert len(cache) == 0


def test_fetch_manifest_skips_unusable_endpoints() -> None:
    transport = FakeTransport(
        {
            "https://a/": FetchResponse(url="https://a/", status=400),
            "https://b/": "/* nothing here */",
            "https://c/": weighted_css(BASE, (400,)),
        }
    )
    fetcher = Fetcher(transport, sleep=lambda _s: None)
    text = fetch_manifest(fetcher, ["https://a/css", "https://b/css", "https://c/css"])
    assert "@font-face" in text
    assert len(transport.calls) == 3


def test_fetch_manifest_raises_when_no_endpoint_works() -> None:
    fetcher = Fetcher(FakeTransport(), sleep=lambda _s: None)
    with pytest.raises(ManifestNotFound, match="HTTP 404"):
        fetch_manifest(fetcher, ["https://a/css"])


def test_load_variant_urls_uses_cache_until_ttl() -> None:
    now = [0.0]
    transport = FakeTransport({"https://c/": weighted_css(BASE, (400,))})
    fetcher = Fetcher(transport, sleep=lambda _s: None)
    cache = ManifestCache(ttl=10, clock=lambda: now[0])

    first = load_variant_urls(fetcher, cache, "roboto", ["https://c/css"])
    second = load_variant_urls(fetcher, cache, "roboto", ["https://c/css"])
    assert first == second == [(400, f"{BASE}roboto-400.ttf")]
    assert len(transport.calls) == 1

    now[0] = 11
    load_variant_urls(fetcher, cache, "roboto", ["https://c/css"])
    assert len(transport.calls) == 2


def test_load_variant_urls_raises_when_nothing_parses() -> None:
    fetcher = Fetcher(FakeTransport(), sleep=lambda _s: None)
    cache = ManifestCache(ttl=10)
    with pytest.raises(NoVariantsParsed):
        load_variant_urls(
            fetcher, cache, "odd", [], text="@font-face { src: local('Odd'); }"
        )
    assert len(cache) == 0
