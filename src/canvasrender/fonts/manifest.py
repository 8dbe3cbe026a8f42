"""Fetch and parse web font manifests (``@font-face`` stylesheets).

Manifests vary per family and per endpoint generation, so variant URLs are
extracted with three strategies tried in a fixed order:

1. :func:`extract_weighted_urls` pairs each block's ``font-weight`` with its
   TrueType/OpenType URL.
2. :func:`extract_ordered_urls` takes binary URLs in document order and assigns
   the default weight sequence.
3. :func:`extract_rewritten_urls` rewrites WOFF/WOFF2 URLs of a single
   canonical subset to ``.ttf``.

The later strategies only run when the earlier ones found nothing.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
import logging
import re
from threading import Lock
import time
from urllib.parse import quote_plus

from canvasrender.core.exceptions import ManifestNotFound, NetworkError, NoVariantsParsed
from canvasrender.fonts.fetcher import Fetcher


logger = logging.getLogger(__name__)

VariantUrls = list[tuple[int, str]]

DEFAULT_WEIGHTS: tuple[int, ...] = (300, 400, 500, 700)
CANONICAL_SUBSET = "latin"

_BLOCK_RE = re.compile(r"(?:/\*\s*(?P<subset>[\w\-]+)\s*\*/\s*)?@font-face\s*\{(?P<body>[^}]*)\}")
_WEIGHT_RE = re.compile(r"font-weight\s*:\s*(?P<weight>\d{3})")
_URL_RE = re.compile(r"url\(\s*['\"]?(?P<url>[^'\")\s]+)['\"]?\s*\)")
_BINARY_SUFFIX_RE = re.compile(r"\.(?:ttf|otf)(?:[?#].*)?$", re.IGNORECASE)
_WEB_SUFFIX_RE = re.compile(r"\.woff2?(?=(?:[?#].*)?$)", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class FontFaceBlock:
    """One ``@font-face`` rule with the subset comment preceding it, if any."""

    subset: str | None
    weight: int | None
    urls: tuple[str, ...]


def parse_blocks(text: str) -> list[FontFaceBlock]:
    blocks: list[FontFaceBlock] = []
    for match in _BLOCK_RE.finditer(text):
        body = match.group("body")
        weight_match = _WEIGHT_RE.search(body)
        blocks.append(
            FontFaceBlock(
                subset=match.group("subset"),
                weight=int(weight_match.group("weight")) if weight_match else None,
                urls=tuple(m.group("url") for m in _URL_RE.finditer(body)),
            )
        )
    return blocks


def has_font_faces(text: str) -> bool:
    return "@font-face" in text


def _is_binary_url(url: str) -> bool:
    return bool(_BINARY_SUFFIX_RE.search(url))


def _dedupe_by_weight(pairs: Iterable[tuple[int, str]]) -> VariantUrls:
    seen: set[int] = set()
    result: VariantUrls = []
    for weight, url in pairs:
        if weight in seen:
            continue
        seen.add(weight)
        result.append((weight, url))
    return result


def extract_weighted_urls(text: str) -> VariantUrls:
    """Return ``(weight, url)`` pairs from blocks declaring both."""
    pairs: list[tuple[int, str]] = []
    for block in parse_blocks(text):
        if block.weight is None:
            continue
        binary = next((url for url in block.urls if _is_binary_url(url)), None)
        if binary is not None:
            pairs.append((block.weight, binary))
    return _dedupe_by_weight(pairs)


def extract_ordered_urls(
    text: str, weights: Sequence[int] = DEFAULT_WEIGHTS
) -> VariantUrls:
    """Assign ``weights`` in order to the binary URLs found in ``text``."""
    urls: list[str] = []
    for match in _URL_RE.finditer(text):
        url = match.group("url")
        if _is_binary_url(url) and url not in urls:
            urls.append(url)
    return list(zip(weights, urls))


def extract_rewritten_urls(
    text: str,
    weights: Sequence[int] = DEFAULT_WEIGHTS,
    *,
    subset: str = CANONICAL_SUBSET,
) -> VariantUrls:
    """Rewrite web-format URLs of one subset to their TrueType spelling.

    Browser-oriented stylesheets repeat each weight for every script subset;
    keeping a single subset avoids registering the same weight several times.
    """
    blocks = parse_blocks(text)
    if any(block.subset for block in blocks):
        blocks = [block for block in blocks if block.subset == subset]
    default_weights = iter(weights)
    pairs: list[tuple[int, str]] = []
    for block in blocks:
        web_url = next((url for url in block.urls if _WEB_SUFFIX_RE.search(url)), None)
        if web_url is None:
            continue
        weight = block.weight if block.weight is not None else next(default_weights, None)
        if weight is None:
            break
        pairs.append((weight, _WEB_SUFFIX_RE.sub(".ttf", web_url, count=1)))
    return _dedupe_by_weight(pairs)


def extract_variant_urls(text: str, weights: Sequence[int] = DEFAULT_WEIGHTS) -> VariantUrls:
    """Run the extraction strategies in priority order."""
    strategies: tuple[Callable[[], VariantUrls], ...] = (
        lambda: extract_weighted_urls(text),
        lambda: extract_ordered_urls(text, weights),
        lambda: extract_rewritten_urls(text, weights),
    )
    for strategy in strategies:
        found = strategy()
        if found:
            return sorted(found)
    return []


def manifest_urls(
    family: str, templates: Iterable[str], weights: Sequence[int] = DEFAULT_WEIGHTS
) -> list[str]:
    """Expand endpoint templates for ``family``."""
    values = {
        "family": quote_plus(family),
        "weights_css2": ";".join(str(weight) for weight in weights),
        "weights_legacy": ",".join(str(weight) for weight in weights),
    }
    return [template.format(**values) for template in templates]


@dataclass(slots=True)
class ManifestCacheEntry:
    key: str
    variant_urls: VariantUrls
    fetched_at: float
    ttl: float

    def expired(self, now: float) -> bool:
        return now - self.fetched_at > self.ttl


class ManifestCache:
    """Memoise parsed manifests with a time-to-live."""

    def __init__(
        self, *, ttl: float = 24 * 60 * 60, clock: Callable[[], float] = time.time
    ) -> None:
        self.ttl = ttl
        self._clock = clock
        self._lock = Lock()
        self._entries: dict[str, ManifestCacheEntry] = {}

    def get(self, key: str) -> VariantUrls | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expired(self._clock()):
                del self._entries[key]
                return None
            return list(entry.variant_urls)

    def put(self, key: str, variant_urls: VariantUrls) -> None:
        with self._lock:
            self._entries[key] = ManifestCacheEntry(
                key=key,
                variant_urls=list(variant_urls),
                fetched_at=self._clock(),
                ttl=self.ttl,
            )

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def fetch_manifest(fetcher: Fetcher, urls: Iterable[str]) -> str:
    """Return the first manifest body containing ``@font-face`` rules."""
    attempts: list[str] = []
    for url in urls:
        try:
            response = fetcher.fetch(url)
        except NetworkError as exc:
            attempts.append(f"{url}: {exc}")
            continue
        if not response.ok:
            attempts.append(f"{url}: HTTP {response.status}")
            continue
        text = response.text
        if has_font_faces(text):
            logger.debug("Manifest accepted from %s", url)
            return text
        attempts.append(f"{url}: no @font-face rules")
    detail = "; ".join(attempts) if attempts else "no endpoints"
    raise ManifestNotFound(f"No usable font manifest: {detail}")


def load_variant_urls(
    fetcher: Fetcher,
    cache: ManifestCache,
    key: str,
    urls: Iterable[str],
    *,
    weights: Sequence[int] = DEFAULT_WEIGHTS,
    text: str | None = None,
) -> VariantUrls:
    """Return variant URLs for ``key`` from the cache or a fresh manifest.

    ``text`` skips the network when the manifest body is already in hand.
    """
    cached = cache.get(key)
    if cached is not None:
        logger.debug("Manifest cache hit for %s", key)
        return cached
    body = text if text is not None else fetch_manifest(fetcher, urls)
    variants = extract_variant_urls(body, weights)
    if not variants:
        preview = body[:200].replace("\n", " ")
        raise NoVariantsParsed(f"No font URLs found in manifest for '{key}': {preview}")
    cache.put(key, variants)
    return variants


__all__ = [
    "CANONICAL_SUBSET",
    "DEFAULT_WEIGHTS",
    "FontFaceBlock",
    "ManifestCache",
    "ManifestCacheEntry",
    "VariantUrls",
    "extract_ordered_urls",
    "extract_rewritten_urls",
    "extract_variant_urls",
    "extract_weighted_urls",
    "fetch_manifest",
    "has_font_faces",
    "load_variant_urls",
    "manifest_urls",
    "parse_blocks",
]
