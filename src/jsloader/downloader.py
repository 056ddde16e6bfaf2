"""Download strategies for the channel directory and the script itself.

Every strategy implements :meth:`Downloader.fetch`, which returns the
response body as bytes or raises
:class:`~jsloader.exceptions.NetworkError`. Two strategies wrap
:mod:`httpx`:

- :class:`ClientDownloader` (``"client"``) -- a plain :class:`httpx.Client`
  GET with retry and exponential backoff on connection errors and 5xx.
- :class:`StreamDownloader` (``"stream"``) -- a single streamed GET that
  reads the body chunk by chunk. Requires a TLS stack with SNI.

:func:`select_downloader` walks the configured ``transports`` list, probes
each strategy once per process, and returns the first one available. When
none is, it returns an :class:`UnavailableDownloader` whose ``fetch``
raises :class:`~jsloader.exceptions.TransportUnavailableError`; the
condition is logged once, at selection time.

Every request carries an explicit timeout (``request.timeout``) so a hung
remote call cannot hold a serving request open indefinitely.
"""

from __future__ import annotations

import functools
import logging
import ssl
import time
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from jsloader import __version__
from jsloader.exceptions import NetworkError, TransportUnavailableError
from jsloader.models import TRANSPORT_CLIENT, TRANSPORT_STREAM, LoaderConfig, RequestConfig

logger = logging.getLogger(__name__)

USER_AGENT = f"jsloader/{__version__}"

REMEDIATION = (
    "Unable to download code. Enable the 'client' transport in the "
    "`transports` setting, or run under a Python build whose ssl module "
    "supports SNI to use the 'stream' transport."
)

_BACKOFF_BASE = 0.5


class Downloader(ABC):
    """Fetches a URL and returns the response body as bytes."""

    name: str = ""

    @classmethod
    def is_available(cls) -> bool:
        """Return whether this strategy can run in the current environment."""
        return True

    @abstractmethod
    def fetch(self, url: str) -> bytes:
        """Download *url*.

        Raises:
            NetworkError: On connection, DNS, TLS, timeout, or non-2xx status.
            TransportUnavailableError: If no transport is available.
        """
        ...


class _HttpxDownloader(Downloader):
    """Shared :class:`httpx.Client` construction for the httpx strategies.

    Args:
        request: Timeout, TLS verification, and retry settings.
        transport: Optional httpx transport, used by tests to inject an
            :class:`httpx.MockTransport`.
    """

    def __init__(
        self,
        request: Optional[RequestConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._request = request or RequestConfig()
        self._transport = transport

    def _make_client(self) -> httpx.Client:
        return httpx.Client(
            timeout=self._request.timeout,
            verify=self._request.verify_ssl,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
            transport=self._transport,
        )


class ClientDownloader(_HttpxDownloader):
    """Blocking GET through :class:`httpx.Client` with retry.

    Retries connection errors, timeouts, and 5xx responses up to
    ``request.max_retries`` times, sleeping 0.5 s, 1 s, 2 s, ... between
    attempts.
    """

    name = TRANSPORT_CLIENT

    def fetch(self, url: str) -> bytes:
        max_retries = self._request.max_retries
        with self._make_client() as client:
            for attempt in range(max_retries + 1):
                try:
                    response = client.get(url)
                except httpx.TransportError as exc:
                    if attempt < max_retries:
                        delay = _BACKOFF_BASE * 2 ** attempt
                        logger.debug(
                            "Connection error for %s: %s, retrying in %.1fs (attempt %d/%d)",
                            url, exc, delay, attempt + 1, max_retries,
                        )
                        time.sleep(delay)
                        continue
                    raise NetworkError(
                        f"Connection to {url} failed after {max_retries + 1} attempts: {exc}"
                    ) from exc
                except httpx.InvalidURL as exc:
                    raise NetworkError(f"Invalid URL {url!r}: {exc}") from exc

                if response.status_code >= 500 and attempt < max_retries:
                    delay = _BACKOFF_BASE * 2 ** attempt
                    logger.debug(
                        "Server error %d for %s, retrying in %.1fs (attempt %d/%d)",
                        response.status_code, url, delay, attempt + 1, max_retries,
                    )
                    time.sleep(delay)
                    continue

                _raise_for_status(response, url)
                return response.content

        raise NetworkError(f"Request to {url} failed after all retries")  # pragma: no cover


class StreamDownloader(_HttpxDownloader):
    """Single streamed GET; the body is read incrementally."""

    name = TRANSPORT_STREAM

    @classmethod
    def is_available(cls) -> bool:
        return bool(getattr(ssl, "HAS_SNI", False))

    def fetch(self, url: str) -> bytes:
        try:
            with self._make_client() as client:
                with client.stream("GET", url) as response:
                    _raise_for_status(response, url)
                    return b"".join(response.iter_bytes())
        except httpx.HTTPError as exc:
            raise NetworkError(f"Download of {url} failed: {exc}") from exc
        except httpx.InvalidURL as exc:
            raise NetworkError(f"Invalid URL {url!r}: {exc}") from exc


class UnavailableDownloader(Downloader):
    """Placeholder selected when no transport is usable; every fetch fails."""

    name = "unavailable"

    def __init__(self, message: str = REMEDIATION) -> None:
        self._message = message

    def fetch(self, url: str) -> bytes:
        raise TransportUnavailableError(self._message)


def _raise_for_status(response: httpx.Response, url: str) -> None:
    """Raise :class:`NetworkError` for a non-2xx *response*."""
    if response.is_success:
        return
    status = f"HTTP {response.status_code}"
    if response.reason_phrase:
        status = f"{status} {response.reason_phrase}"
    raise NetworkError(f"{status} from {url}")


DOWNLOADERS: dict[str, type[_HttpxDownloader]] = {
    TRANSPORT_CLIENT: ClientDownloader,
    TRANSPORT_STREAM: StreamDownloader,
}
"""Transport name -> strategy class."""


@functools.lru_cache(maxsize=None)
def probe(name: str) -> bool:
    """Return whether the strategy *name* is available; memoised per process."""
    downloader_cls = DOWNLOADERS.get(name)
    return downloader_cls is not None and downloader_cls.is_available()


def select_downloader(
    config: LoaderConfig,
    transport: Optional[httpx.BaseTransport] = None,
) -> Downloader:
    """Pick the first available strategy from ``config.transports``.

    Args:
        config: Loader configuration (transport order and request settings).
        transport: Optional httpx transport passed to the chosen strategy.

    Returns:
        A ready :class:`Downloader`. Never raises; when nothing is
        available an :class:`UnavailableDownloader` is returned and a
        warning with remediation guidance is logged.
    """
    for name in config.transports:
        if probe(name):
            logger.debug("Selected '%s' transport", name)
            return DOWNLOADERS[name](config.request, transport=transport)
        logger.debug("Transport '%s' is not available", name)

    logger.warning(REMEDIATION)
    return UnavailableDownloader()
