"""Configuration models used by the font resolver.

FontLoaderConfig

`cache_dir` (`Path | None`)
: Directory holding downloaded font variants. Defaults to the `fonts`
  namespace of the user cache root (`CANVASRENDER_CACHE_DIR`, `XDG_CACHE_HOME`,
  or `~/.cache/canvasrender`).

`prebuilt_dir` (`Path | None`)
: Read-only directory populated at image build time. Defaults to
  `CANVASRENDER_PREBUILT_FONTS_DIR` or `/usr/share/fonts/truetype/google-fonts`.

`manifest_ttl` (`float`)
: Seconds a fetched manifest stays reusable before it is fetched again.

`min_payload_bytes` (`int`)
: Downloads smaller than this are treated as placeholders and rejected.

`request_timeout` (`float`)
: Timeout in seconds applied to each individual fetch attempt.

`retries` (`int`)
: Number of attempts per fetch before a network error is raised.

`retry_backoff` (`float`)
: Linear backoff step; attempt `n` waits `n * retry_backoff` seconds.

`download_workers` (`int`)
: Size of the thread pool used to download the variants of one family.

`weights` (`tuple[int, ...]`)
: Weights requested from manifest endpoints, also used as the assumed order
  when a manifest lists URLs without weights.

`manifest_endpoints` (`list[str]`)
: Endpoint templates tried in order. `{family}` is replaced by the
  URL-encoded family and `{weights_css2}`/`{weights_legacy}` by the weight
  lists in the respective query syntax.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from canvasrender.core.user_dir import get_user_dir


PREBUILT_FONTS_ENV = "CANVASRENDER_PREBUILT_FONTS_DIR"
DEFAULT_PREBUILT_DIR = Path("/usr/share/fonts/truetype/google-fonts")

DEFAULT_MANIFEST_ENDPOINTS: tuple[str, ...] = (
    "https://fonts.googleapis.com/css2?family={family}:wght@{weights_css2}&display=swap",
    "https://fonts.googleapis.com/css?family={family}:{weights_legacy}",
    "https://fonts.googleapis.com/css2?family={family}&display=swap",
)


class FontLoaderConfig(BaseModel):
    """Tunables for font resolution, downloads, and caching."""

    model_config = ConfigDict(extra="forbid")

    cache_dir: Path | None = None
    prebuilt_dir: Path | None = None
    manifest_ttl: float = Field(default=24 * 60 * 60, ge=0)
    min_payload_bytes: int = Field(default=10_000, ge=0)
    request_timeout: float = Field(default=30.0, gt=0)
    retries: int = Field(default=3, ge=1)
    retry_backoff: float = Field(default=1.0, ge=0)
    download_workers: int = Field(default=4, ge=1)
    weights: tuple[int, ...] = (300, 400, 500, 700)
    manifest_endpoints: list[str] = Field(
        default_factory=lambda: list(DEFAULT_MANIFEST_ENDPOINTS)
    )

    @field_validator("weights")
    @classmethod
    def _sorted_weights(cls, value: tuple[int, ...]) -> tuple[int, ...]:
        if not value:
            raise ValueError("at least one weight is required")
        return tuple(sorted(set(value)))

    @model_validator(mode="after")
    def _resolve_directories(self) -> FontLoaderConfig:
        """Fill directory defaults from the environment and user dir."""
        if self.cache_dir is None:
            self.cache_dir = get_user_dir().cache_dir("fonts", create=False)
        if self.prebuilt_dir is None:
            env_value = os.environ.get(PREBUILT_FONTS_ENV)
            self.prebuilt_dir = Path(env_value).expanduser() if env_value else DEFAULT_PREBUILT_DIR
        return self


__all__ = [
    "DEFAULT_MANIFEST_ENDPOINTS",
    "DEFAULT_PREBUILT_DIR",
    "FontLoaderConfig",
    "PREBUILT_FONTS_ENV",
]
