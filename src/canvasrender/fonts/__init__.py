"""Font resolution and caching for the canvas renderer.

Architecture
: `FontResolver` is the entry point. It normalises a requested family into a
  `FontIdentity`, answers from its success/failure memo when it can, and
  otherwise runs the tier pipeline once per identity through `SingleFlight`.
: Tiers are tried in order: `PrebuiltTier` registers files baked into the
  image, then `NamedSourceTier` (web fonts by family name, via a stylesheet
  manifest) or `UrlSourceTier` (custom font URLs) download what is missing.
: `DiskStore` keeps downloaded variants across restarts and is checked before
  any network access; `ManifestCache` keeps parsed manifests for a TTL.
: Resolved files are registered in a `FontRegistry` under every alias the
  render request may use.

Goal
: Never fail a render because of a font. Unresolvable families report
  `False` and the caller substitutes `fallback_family(...)`.
"""

from canvasrender.fonts.fallback import (
    fallback_family,
    fonts_from_request,
    load_font_list,
    register_system_aliases,
    resolve_or_fallback,
)
from canvasrender.fonts.fetcher import Fetcher, FetchResponse, RequestsTransport
from canvasrender.fonts.identity import FontIdentity, SourceKind, make_identity
from canvasrender.fonts.manifest import ManifestCache, extract_variant_urls
from canvasrender.fonts.registry import FontRegistry, FontTier, FontVariant, ResolvedFont
from canvasrender.fonts.resolver import CacheStats, FontResolver, build_resolver
from canvasrender.fonts.singleflight import SingleFlight
from canvasrender.fonts.store import DiskStore, safe_name


__all__ = [
    "CacheStats",
    "DiskStore",
    "FetchResponse",
    "Fetcher",
    "FontIdentity",
    "FontRegistry",
    "FontResolver",
    "FontTier",
    "FontVariant",
    "ManifestCache",
    "RequestsTransport",
    "ResolvedFont",
    "SingleFlight",
    "SourceKind",
    "build_resolver",
    "extract_variant_urls",
    "fallback_family",
    "fonts_from_request",
    "load_font_list",
    "make_identity",
    "register_system_aliases",
    "resolve_or_fallback",
    "safe_name",
]
