"""Network retrieval with timeouts, bounded retries, and host-aware headers."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
import logging
import socket
from threading import Lock
import time
from typing import Protocol
from urllib.parse import urlparse

import requests

from canvasrender.core.exceptions import NetworkError


logger = logging.getLogger(__name__)

# Google's stylesheet API hands TrueType URLs to clients it does not recognise
# as browsers, and WOFF2 to everything else.
MANIFEST_HOSTS: frozenset[str] = frozenset({"fonts.googleapis.com"})
SERVER_USER_AGENT = "canvasrender-font-fetcher/1.0"
GENERIC_USER_AGENT = "Mozilla/5.0 (compatible; CanvasRenderer/1.0)"


@dataclass(slots=True)
class FetchResponse:
    """Status and body of one HTTP exchange."""

    url: str
    status: int
    content: bytes = b""
    headers: Mapping[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 400

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")


class Transport(Protocol):
    """Network capability: ``(url, headers, timeout) -> FetchResponse``."""

    def __call__(
        self, url: str, headers: Mapping[str, str], timeout: float
    ) -> FetchResponse: ...


def _tls_help(url: str) -> str:
    return (
        "TLS certificate verification failed while downloading "
        f"'{url}'. Install your system 'ca-certificates' package or upgrade "
        "'certifi', and check the system clock and any proxy doing SSL inspection."
    )


class RequestsTransport:
    """Default transport backed by a shared ``requests.Session``."""

    def __init__(self, session: requests.Session | None = None) -> None:
        self._session_lock = Lock()
        self._session = session

    def __call__(self, url: str, headers: Mapping[str, str], timeout: float) -> FetchResponse:
        response = self._ensure_session().get(url, headers=dict(headers), timeout=timeout)
        return FetchResponse(
            url=response.url or url,
            status=response.status_code,
            content=response.content,
            headers=dict(response.headers),
        )

    def _ensure_session(self) -> requests.Session:
        if self._session is not None:
            return self._session
        with self._session_lock:
            if self._session is None:
                self._session = requests.Session()
            return self._session


def user_agent_for(url: str) -> str:
    host = (urlparse(url).hostname or "").lower()
    return SERVER_USER_AGENT if host in MANIFEST_HOSTS else GENERIC_USER_AGENT


def diagnose_dns(url: str) -> str | None:
    """Return a short DNS diagnostic for ``url``'s host, or None when it resolves."""
    host = urlparse(url).hostname
    if not host:
        return "URL has no host"
    try:
        socket.getaddrinfo(host, None)
    except OSError as exc:
        return f"cannot resolve {host}: {exc}"
    return None


class Fetcher:
    """Perform single retrievals with per-attempt timeout and linear backoff.

    Transport failures (connection errors, timeouts) are retried; HTTP error
    statuses are returned to the caller as-is since retrying them rarely helps.
    """

    def __init__(
        self,
        transport: Transport | None = None,
        *,
        timeout: float = 30.0,
        retries: int = 3,
        backoff: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.transport = transport or RequestsTransport()
        self.timeout = timeout
        self.retries = max(1, retries)
        self.backoff = backoff
        self._sleep = sleep

    def fetch(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        retries: int | None = None,
    ) -> FetchResponse:
        """Fetch ``url``, raising :class:`NetworkError` once every attempt failed."""
        attempts = max(1, retries if retries is not None else self.retries)
        request_headers = {"User-Agent": user_agent_for(url), **dict(headers or {})}
        last_error: Exception | None = None
        for index in range(attempts):
            try:
                return self.transport(url, request_headers, self.timeout)
            except (requests.RequestException, OSError) as exc:
                last_error = exc
                logger.warning("Fetch attempt %d for %s failed: %s", index + 1, url, exc)
                if index < attempts - 1:
                    self._sleep(self.backoff * (index + 1))

        message = f"Unable to fetch '{url}' after {attempts} attempt(s): {last_error}"
        if isinstance(last_error, requests.exceptions.SSLError):
            message = _tls_help(url)
        else:
            dns_problem = diagnose_dns(url)
            if dns_problem:
                logger.error("DNS diagnostic for %s: %s", url, dns_problem)
                message = f"{message} ({dns_problem})"
        raise NetworkError(message, url=url, attempts=attempts) from last_error


__all__ = [
    "GENERIC_USER_AGENT",
    "MANIFEST_HOSTS",
    "SERVER_USER_AGENT",
    "FetchResponse",
    "Fetcher",
    "RequestsTransport",
    "Transport",
    "diagnose_dns",
    "user_agent_for",
]
