"""Font supply tiers: prebuilt files, web fonts by name, and custom URLs."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
import logging
from pathlib import Path
import re
from urllib.parse import urljoin, urlparse

from canvasrender.core.exceptions import (
    CorruptCacheFile,
    FontRegistrationError,
    FontResolutionError,
    NetworkError,
    UndersizedPayload,
    UnsupportedSource,
    exception_hint,
)
from canvasrender.fonts.fetcher import MANIFEST_HOSTS, FetchResponse, Fetcher
from canvasrender.fonts.identity import FontIdentity
from canvasrender.fonts.manifest import (
    DEFAULT_WEIGHTS,
    ManifestCache,
    VariantUrls,
    has_font_faces,
    load_variant_urls,
    manifest_urls,
)
from canvasrender.fonts.registry import (
    FontRegistry,
    FontTier,
    FontVariant,
    has_font_signature,
)
from canvasrender.fonts.store import DiskStore


logger = logging.getLogger(__name__)

_HASH_SUFFIX_RE = re.compile(r"-[a-f0-9]{8}$", re.IGNORECASE)
_EXTENSION_RE = re.compile(r"\.(ttf|otf|woff2?)(?:[?#].*)?$", re.IGNORECASE)
PREBUILT_SUFFIXES = (".ttf", ".otf")
LIGHT_MAX_BYTES = 150 * 1024
BOLD_MIN_BYTES = 180 * 1024
CUSTOM_FONT_WEIGHT = 400


def extension_from_url(url: str) -> str | None:
    """Return the font extension in ``url``'s path, if it has one."""
    match = _EXTENSION_RE.search(urlparse(url).path)
    return match.group(1).lower() if match else None


def weight_from_size(size: int) -> int:
    """Guess a weight bucket from a file size.

    Lighter cuts tend to be smaller files. This is deliberately approximate;
    no font metadata is read.
    """
    if size < LIGHT_MAX_BYTES:
        return 300
    if size > BOLD_MIN_BYTES:
        return 700
    return 400


@dataclass(slots=True)
class TierResult:
    """Outcome of one tier attempt."""

    tier: FontTier
    variants: list[FontVariant] = field(default_factory=list)
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return bool(self.variants)


class FontTierStrategy:
    """Base class converting tier errors into a :class:`TierResult`."""

    tier: FontTier

    def attempt(self, identity: FontIdentity) -> TierResult:
        try:
            variants = self._attempt(identity)
        except (FontResolutionError, OSError) as exc:
            logger.warning(
                "%s tier failed for '%s': %s", self.tier.value, identity.normalized_name, exc
            )
            return TierResult(self.tier, reason=exception_hint(exc))
        if not variants:
            return TierResult(self.tier, reason="no variant could be registered")
        return TierResult(self.tier, variants=variants)

    def _attempt(self, identity: FontIdentity) -> list[FontVariant]:
        raise NotImplementedError


class VariantDownloader:
    """Reuse, download, persist, and register the variant files of a family."""

    def __init__(
        self,
        *,
        store: DiskStore,
        fetcher: Fetcher,
        registry: FontRegistry,
        min_bytes: int = 10_000,
        workers: int = 4,
    ) -> None:
        self.store = store
        self.fetcher = fetcher
        self.registry = registry
        self.min_bytes = min_bytes
        self.workers = max(1, workers)

    def register(
        self, identity: FontIdentity, path: Path, weight: int, tier: FontTier
    ) -> FontVariant:
        for alias in identity.aliases:
            self.registry.register_font_file(path, alias)
        return FontVariant(weight=weight, path=path, byte_size=path.stat().st_size, tier=tier)

    def reuse(
        self, identity: FontIdentity, path: Path, weight: int, tier: FontTier
    ) -> FontVariant | None:
        """Register a cached file, deleting it when it fails to load."""
        if not self.store.exists(path):
            return None
        try:
            if not self.store.is_valid(path):
                raise CorruptCacheFile(
                    f"Cached font '{path.name}' is truncated or invalid.", path=path
                )
            try:
                return self.register(identity, path, weight, tier)
            except FontRegistrationError as exc:
                raise CorruptCacheFile(
                    f"Cached font '{path.name}' failed to load.", path=path
                ) from exc
        except CorruptCacheFile as exc:
            logger.warning("%s Deleting it before downloading again.", exc)
            self.store.delete(path)
        return None

    def register_cached(
        self, identity: FontIdentity, tier: FontTier
    ) -> tuple[list[FontVariant], int]:
        """Register every valid variant already on disk for ``identity``.

        Returns the registered variants and the number of corrupt files that
        were deleted and still need downloading.
        """
        variants: list[FontVariant] = []
        discarded = 0
        for cached in self.store.cached_variants(identity.normalized_name):
            variant = self.reuse(identity, cached.path, cached.weight, tier)
            if variant is None:
                discarded += 1
            else:
                variants.append(variant)
        if variants:
            logger.info(
                "Loaded %d cached variant(s) of '%s' from %s",
                len(variants),
                identity.normalized_name,
                self.store.root,
            )
        return variants, discarded

    def download(self, url: str) -> bytes:
        """Fetch one font binary and check it is plausible."""
        return self.check_payload(url, self.fetcher.fetch(url))

    def check_payload(self, url: str, response: FetchResponse) -> bytes:
        if not response.ok:
            raise NetworkError(f"HTTP {response.status} for '{url}'", url=url, attempts=1)
        payload = response.content
        if len(payload) < self.min_bytes:
            raise UndersizedPayload(
                f"Payload from '{url}' is {len(payload)} bytes, below {self.min_bytes}.",
                size=len(payload),
                minimum=self.min_bytes,
            )
        if not has_font_signature(payload):
            raise FontRegistrationError(f"Payload from '{url}' is not a font file.")
        return payload

    def save_and_register(
        self, identity: FontIdentity, path: Path, payload: bytes, weight: int, tier: FontTier
    ) -> FontVariant:
        self.store.write_if_absent(path, payload)
        try:
            return self.register(identity, path, weight, tier)
        except FontRegistrationError as exc:
            self.store.delete(path)
            raise CorruptCacheFile(
                f"Downloaded font '{path.name}' failed to load.", path=path
            ) from exc

    def fetch_variant(
        self, identity: FontIdentity, weight: int, url: str, tier: FontTier
    ) -> FontVariant:
        ext = extension_from_url(url) or "ttf"
        path = self.store.variant_path(identity.normalized_name, weight, ext)
        cached = self.reuse(identity, path, weight, tier)
        if cached is not None:
            logger.debug("Loaded cached variant %s of '%s'", weight, identity.normalized_name)
            return cached
        payload = self.download(url)
        variant = self.save_and_register(identity, path, payload, weight, tier)
        logger.info(
            "Downloaded weight %s of '%s' (%.1f KB)",
            weight,
            identity.normalized_name,
            len(payload) / 1024,
        )
        return variant

    def fetch_all(
        self, identity: FontIdentity, variant_urls: VariantUrls, tier: FontTier
    ) -> list[FontVariant]:
        """Download every variant in parallel; failures only drop that variant."""
        if not variant_urls:
            return []
        self.store.ensure()
        workers = min(self.workers, len(variant_urls))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="font-variant") as pool:
            futures = [
                (weight, pool.submit(self.fetch_variant, identity, weight, url, tier))
                for weight, url in variant_urls
            ]
        variants: list[FontVariant] = []
        for weight, future in futures:
            exc = future.exception()
            if exc is None:
                variants.append(future.result())
                continue
            if not isinstance(exc, (FontResolutionError, OSError)):
                raise exc
            logger.warning(
                "Variant %s of '%s' failed: %s", weight, identity.normalized_name, exc
            )
        return sorted(variants, key=lambda variant: variant.weight)


class PrebuiltTier(FontTierStrategy):
    """Register fonts baked into the image at build time.

    Build scripts name files ``<Family>-<hash>.ttf``; the hash suffix is
    ignored when matching families.
    """

    tier = FontTier.PREBUILT

    def __init__(self, directory: Path | None, registry: FontRegistry) -> None:
        self.directory = directory
        self.registry = registry

    def _font_files(self) -> list[Path]:
        if self.directory is None or not self.directory.is_dir():
            return []
        try:
            return sorted(
                path
                for path in self.directory.iterdir()
                if path.is_file() and path.suffix.lower() in PREBUILT_SUFFIXES
            )
        except OSError as exc:
            logger.warning("Cannot scan prebuilt fonts in %s: %s", self.directory, exc)
            return []

    @staticmethod
    def family_key(path: Path) -> str:
        return _HASH_SUFFIX_RE.sub("", path.stem).casefold()

    def inventory(self) -> dict[str, list[Path]]:
        """Group prebuilt files by family, as spelled in their file names."""
        groups: dict[str, list[Path]] = defaultdict(list)
        for path in self._font_files():
            family = _HASH_SUFFIX_RE.sub("", path.stem).replace("-", " ")
            groups[family].append(path)
        return dict(groups)

    def _attempt(self, identity: FontIdentity) -> list[FontVariant]:
        name = identity.normalized_name
        wanted = {re.sub(r"\s+", "-", name).casefold(), re.sub(r"\s+", "", name).casefold()}
        matches = [path for path in self._font_files() if self.family_key(path) in wanted]
        variants: list[FontVariant] = []
        for path in matches:
            try:
                size = path.stat().st_size
                for alias in identity.aliases:
                    self.registry.register_font_file(path, alias)
            except (FontRegistrationError, OSError) as exc:
                logger.warning("Failed to register prebuilt font %s: %s", path.name, exc)
                continue
            weight = weight_from_size(size)
            variants.append(FontVariant(weight=weight, path=path, byte_size=size, tier=self.tier))
        if variants:
            weights = ", ".join(str(weight) for weight in sorted({v.weight for v in variants}))
            logger.info(
                "Loaded prebuilt font '%s' (%d files, weights: %s)", name, len(variants), weights
            )
        return variants


class NamedSourceTier(FontTierStrategy):
    """Download a web font by family name through its stylesheet manifest."""

    tier = FontTier.NAMED

    def __init__(
        self,
        *,
        downloader: VariantDownloader,
        manifests: ManifestCache,
        endpoints: Sequence[str],
        weights: Sequence[int] = DEFAULT_WEIGHTS,
    ) -> None:
        self.downloader = downloader
        self.manifests = manifests
        self.endpoints = list(endpoints)
        self.weights = tuple(weights)

    def _attempt(self, identity: FontIdentity) -> list[FontVariant]:
        cached, discarded = self.downloader.register_cached(identity, self.tier)
        if cached and not discarded:
            return cached
        family = identity.source
        try:
            variant_urls = load_variant_urls(
                self.downloader.fetcher,
                self.manifests,
                family.casefold(),
                manifest_urls(family, self.endpoints, self.weights),
                weights=self.weights,
            )
        except FontResolutionError as exc:
            if not cached:
                raise
            logger.warning(
                "Could not re-download %d discarded variant(s) of '%s': %s",
                discarded,
                identity.normalized_name,
                exc,
            )
            return cached
        logger.info("Found %d variant(s) to download for '%s'", len(variant_urls), family)
        fetched = self.downloader.fetch_all(identity, variant_urls, self.tier)
        by_weight = {variant.weight: variant for variant in cached}
        by_weight.update((variant.weight, variant) for variant in fetched)
        return [by_weight[weight] for weight in sorted(by_weight)]


class UrlSourceTier(FontTierStrategy):
    """Download a custom font, or a custom stylesheet, from an absolute URL."""

    tier = FontTier.URL
    supported_schemes = ("http", "https")

    def __init__(
        self,
        *,
        downloader: VariantDownloader,
        manifests: ManifestCache,
        weights: Sequence[int] = DEFAULT_WEIGHTS,
    ) -> None:
        self.downloader = downloader
        self.manifests = manifests
        self.weights = tuple(weights)

    @staticmethod
    def looks_like_manifest(url: str) -> bool:
        parsed = urlparse(url)
        host = (parsed.hostname or "").lower()
        return parsed.path.lower().endswith(".css") or host in MANIFEST_HOSTS

    def _attempt(self, identity: FontIdentity) -> list[FontVariant]:
        url = identity.source
        scheme = urlparse(url).scheme.lower()
        if scheme not in self.supported_schemes:
            raise UnsupportedSource(f"Unsupported font URL scheme '{scheme}' in '{url}'.")

        if self.looks_like_manifest(url):
            return self._from_manifest(identity, url)

        ext = extension_from_url(url)
        path = self.downloader.store.custom_path(identity.normalized_name, ext or "ttf")
        cached = self.downloader.reuse(identity, path, CUSTOM_FONT_WEIGHT, self.tier)
        if cached is not None:
            logger.info("Custom font '%s' loaded from cache", identity.normalized_name)
            return [cached]

        logger.info("Downloading custom font '%s' from %s", identity.normalized_name, url)
        if ext is None:
            response = self.downloader.fetcher.fetch(url)
            if response.ok and not has_font_signature(response.content):
                text = response.text
                if has_font_faces(text):
                    return self._from_manifest(identity, url, text=text)
            payload = self.downloader.check_payload(url, response)
        else:
            payload = self.downloader.download(url)
        self.downloader.store.ensure()
        variant = self.downloader.save_and_register(
            identity, path, payload, CUSTOM_FONT_WEIGHT, self.tier
        )
        return [variant]

    def _from_manifest(
        self, identity: FontIdentity, url: str, *, text: str | None = None
    ) -> list[FontVariant]:
        variant_urls = load_variant_urls(
            self.downloader.fetcher,
            self.manifests,
            url,
            [url],
            weights=self.weights,
            text=text,
        )
        absolute = [(weight, urljoin(url, href)) for weight, href in variant_urls]
        return self.downloader.fetch_all(identity, absolute, self.tier)


__all__ = [
    "CUSTOM_FONT_WEIGHT",
    "FontTierStrategy",
    "NamedSourceTier",
    "PrebuiltTier",
    "TierResult",
    "UrlSourceTier",
    "VariantDownloader",
    "extension_from_url",
    "weight_from_size",
]
