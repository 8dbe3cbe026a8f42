"""Resolution facade: memoised, deduplicated font resolution."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
import logging
from pathlib import Path
from threading import Lock
import time
from typing import Any

from canvasrender.core.config import FontLoaderConfig
from canvasrender.core.diagnostics import DiagnosticEmitter, LoggingEmitter
from canvasrender.core.exceptions import FontRegistrationError
from canvasrender.fonts.fetcher import Fetcher, Transport
from canvasrender.fonts.identity import (
    FontIdentity,
    SourceKind,
    is_generic_family,
    make_identity,
    normalize_family,
)
from canvasrender.fonts.manifest import ManifestCache
from canvasrender.fonts.registry import FontRegistry, ResolvedFont
from canvasrender.fonts.singleflight import SingleFlight
from canvasrender.fonts.store import DiskStore
from canvasrender.fonts.tiers import (
    FontTierStrategy,
    NamedSourceTier,
    PrebuiltTier,
    TierResult,
    UrlSourceTier,
    VariantDownloader,
)


logger = logging.getLogger(__name__)

IdentityKey = tuple[str, SourceKind]


@dataclass(frozen=True, slots=True)
class CacheStats:
    """Snapshot of the resolver's in-memory bookkeeping."""

    downloaded: int
    failed: int
    manifest_cache_size: int
    in_flight_count: int


class FontResolver:
    """Make requested font families available to the rendering engine.

    One instance is built at service start and shared by every render. It
    owns the success, failure, and manifest caches plus the in-flight handles,
    so tests can work with a fresh instance each time.

    :meth:`resolve` never raises: unresolvable families are memoised as
    failures and reported as ``False`` so the caller can substitute a fallback.
    """

    def __init__(
        self,
        config: FontLoaderConfig | None = None,
        *,
        registry: FontRegistry | None = None,
        transport: Transport | None = None,
        fetcher: Fetcher | None = None,
        emitter: DiagnosticEmitter | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config or FontLoaderConfig()
        self.registry = registry or FontRegistry()
        self.emitter = emitter or LoggingEmitter(logger_obj=logger)
        self.fetcher = fetcher or Fetcher(
            transport,
            timeout=self.config.request_timeout,
            retries=self.config.retries,
            backoff=self.config.retry_backoff,
            sleep=sleep,
        )
        self.store = DiskStore(self.config.cache_dir, min_bytes=self.config.min_payload_bytes)
        self.manifests = ManifestCache(ttl=self.config.manifest_ttl, clock=clock)
        downloader = VariantDownloader(
            store=self.store,
            fetcher=self.fetcher,
            registry=self.registry,
            min_bytes=self.config.min_payload_bytes,
            workers=self.config.download_workers,
        )
        self.prebuilt = PrebuiltTier(self.config.prebuilt_dir, self.registry)
        self.named = NamedSourceTier(
            downloader=downloader,
            manifests=self.manifests,
            endpoints=self.config.manifest_endpoints,
            weights=self.config.weights,
        )
        self.url = UrlSourceTier(
            downloader=downloader, manifests=self.manifests, weights=self.config.weights
        )

        self._lock = Lock()
        self._resolved: dict[IdentityKey, ResolvedFont] = {}
        self._failed: set[IdentityKey] = set()
        self._flight: SingleFlight[bool] = SingleFlight()

    # ------------------------------------------------------------------ lookups

    def resolve(self, family: str, source: str | None = None) -> bool:
        """Ensure ``family`` is registered, fetching it from ``source`` if needed.

        ``source`` is a web font family name or an absolute URL and defaults to
        ``family``. Concurrent calls for the same identity share one execution.
        """
        identity = make_identity(family, source)
        if not identity.normalized_name:
            return False
        if identity.source_kind is SourceKind.NAME and is_generic_family(identity.normalized_name):
            return True
        memo = self._memoised(identity.key)
        if memo is not None:
            if memo:
                self._register_alias(identity)
            return memo
        try:
            return self._flight.do(identity.key, lambda: self._resolve_once(identity))
        except Exception as exc:  # pragma: no cover - _resolve_once handles its errors
            self.emitter.error(f"Font resolution crashed for '{identity.normalized_name}'", exc)
            return False

    def resolve_many(self, fonts: Mapping[str, str]) -> tuple[list[str], list[str]]:
        """Resolve ``family -> name-or-url`` pairs concurrently.

        Returns the families that succeeded and those that failed.
        """
        if not fonts:
            return [], []
        items = list(fonts.items())
        workers = min(len(items), max(1, self.config.download_workers))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="font-resolve") as pool:
            outcomes = list(pool.map(lambda item: self.resolve(item[0], item[1]), items))
        succeeded = [family for (family, _), ok in zip(items, outcomes) if ok]
        failed = [family for (family, _), ok in zip(items, outcomes) if not ok]
        return succeeded, failed

    def get(self, family: str, source: str | None = None) -> ResolvedFont | None:
        identity = make_identity(family, source)
        with self._lock:
            return self._resolved.get(identity.key)

    def is_available(self, family: str) -> bool:
        """Return True when ``family`` can be rendered without substitution."""
        name = normalize_family(family)
        if not name:
            return False
        if is_generic_family(name):
            return True
        folded = name.casefold()
        with self._lock:
            if any(key[0] == folded for key in self._resolved):
                return True
        return self.registry.has_family(name) or self.registry.has_family(family)

    def prebuilt_inventory(self) -> dict[str, list[Path]]:
        """Group the prebuilt directory by family, for startup diagnostics."""
        return self.prebuilt.inventory()

    def list_available(self) -> set[str]:
        with self._lock:
            names = {font.identity.normalized_name for font in self._resolved.values()}
        return names | self.registry.families()

    def cache_stats(self) -> CacheStats:
        with self._lock:
            downloaded = len(self._resolved)
            failed = len(self._failed)
        return CacheStats(
            downloaded=downloaded,
            failed=failed,
            manifest_cache_size=len(self.manifests),
            in_flight_count=len(self._flight),
        )

    # ------------------------------------------------------------------ admin

    def clear_failures(self) -> None:
        """Forget memoised failures so the next request retries them."""
        with self._lock:
            self._failed.clear()

    def clear_memory_caches(self) -> None:
        """Drop every in-memory cache; files on disk are kept."""
        with self._lock:
            self._resolved.clear()
            self._failed.clear()
        self.manifests.clear()

    # ------------------------------------------------------------------ internals

    def _memoised(self, key: IdentityKey) -> bool | None:
        with self._lock:
            if key in self._resolved:
                return True
            if key in self._failed:
                return False
        return None

    def _register_alias(self, identity: FontIdentity) -> None:
        """Register a new requested spelling against an already resolved family."""
        with self._lock:
            resolved = self._resolved.get(identity.key)
            if resolved is None or identity.requested_name in resolved.aliases:
                return
            resolved.aliases.add(identity.requested_name)
            paths = [variant.path for variant in resolved.variants]
        for path in paths:
            try:
                self.registry.register_font_file(path, identity.requested_name)
            except FontRegistrationError as exc:
                self.emitter.warning(f"Could not alias '{identity.requested_name}': {exc}")

    def _tiers_for(self, identity: FontIdentity) -> list[FontTierStrategy]:
        fetching = self.url if identity.is_url else self.named
        return [self.prebuilt, fetching]

    def _resolve_once(self, identity: FontIdentity) -> bool:
        # A caller may reach here just after another execution finished.
        memo = self._memoised(identity.key)
        if memo is not None:
            return memo

        result: TierResult | None = None
        try:
            for tier in self._tiers_for(identity):
                result = tier.attempt(identity)
                if result.ok:
                    break
        except Exception as exc:
            self.emitter.error(
                f"Unexpected error while resolving '{identity.normalized_name}'", exc
            )
            result = None

        if result is not None and result.ok:
            resolved = ResolvedFont(
                identity=identity, variants=result.variants, aliases=set(identity.aliases)
            )
            with self._lock:
                self._resolved[identity.key] = resolved
                self._failed.discard(identity.key)
            self.emitter.event(
                "font_resolved",
                {
                    "family": identity.normalized_name,
                    "tier": result.tier.value,
                    "variants": len(result.variants),
                    "weights": resolved.weights,
                },
            )
            return True

        with self._lock:
            self._failed.add(identity.key)
        reason = result.reason if result is not None else "unexpected error"
        self.emitter.event("font_failed", {"family": identity.normalized_name, "reason": reason})
        return False


def build_resolver(config: FontLoaderConfig | None = None, **kwargs: Any) -> FontResolver:
    """Create the resolver shared by a rendering worker process."""
    from canvasrender.fonts.fallback import register_system_aliases

    resolver = FontResolver(config, **kwargs)
    resolver.store.ensure()
    register_system_aliases(resolver.registry)
    return resolver


__all__ = ["CacheStats", "FontResolver", "build_resolver"]
