"""Fetch/cache/fallback policy for the served script.

:class:`ContentLoader` decides what to serve for the configured channel:

1. **Check cache** -- a fresh entry in the :class:`~jsloader.cache.FileCache`
   is served as is, with no outbound call.
2. **Reserve** -- an expired entry has its mtime bumped so that concurrent
   requests keep serving it while this one refreshes.
3. **Fetch** -- the channel directory is requested from
   ``<api_base_url>/<api_key>/``, the record for the configured channel is
   located, and its ``script_url`` is downloaded.
4. **Commit** -- the download is written to the cache and read back.
5. **Degrade** -- if anything above failed, the cached bytes are served
   regardless of age; with nothing cached the result is ``None``.

Every remote, API, transport, and cache-write error is caught and logged
here. :meth:`ContentLoader.get_content` never raises for them.
"""

from __future__ import annotations

import json
import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from jsloader.cache import FileCache
from jsloader.downloader import Downloader, select_downloader
from jsloader.exceptions import (
    APIResponseError,
    ChannelNotFoundError,
    JSLoaderError,
    TransportUnavailableError,
)
from jsloader.models import ChannelDirectory, ChannelInfo, LoaderConfig

logger = logging.getLogger(__name__)


class ContentLoader:
    """Serves the channel script from cache, refreshing it when stale.

    Args:
        config: The process-wide loader configuration.
        cache: The file cache holding the script under ``config.caching_file``.
        downloader: The download strategy chosen at startup (see
            :func:`~jsloader.downloader.select_downloader`).

    Example::

        loader = ContentLoader(config, FileCache.from_config(config), downloader)
        body = loader.get_content()  # bytes, or None when nothing is available
    """

    def __init__(self, config: LoaderConfig, cache: FileCache, downloader: Downloader) -> None:
        self._config = config
        self._cache = cache
        self._downloader = downloader

    @property
    def config(self) -> LoaderConfig:
        return self._config

    @property
    def cache(self) -> FileCache:
        return self._cache

    @property
    def downloader(self) -> Downloader:
        return self._downloader

    @property
    def cache_key(self) -> str:
        return self._config.caching_file

    @property
    def api_url(self) -> str:
        """URL of the channel directory endpoint for the configured API key."""
        return f"{self._config.api_base_url}/{self._config.api_key}/"

    # ------------------------------------------------------------------ #
    # Serving policy
    # ------------------------------------------------------------------ #

    def get_content(self) -> Optional[bytes]:
        """Return the script to serve, or ``None`` if nothing is available."""
        key = self.cache_key
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        self._cache.touch(key)

        if self.download_and_save() is not None:
            cached = self._cache.get(key)
            if cached is not None:
                return cached
            logger.error(
                "Cannot read %s back from the cache. Please check file permissions.",
                self._cache.full_path(key),
            )

        stale = self._cache.get_stale(key)
        if stale is None:
            logger.warning("No script available for channel %s", self._config.channel)
        else:
            logger.info("Serving stale cached script for channel %s", self._config.channel)
        return stale

    def download_and_save(self) -> Optional[bytes]:
        """Download the channel script and store it in the cache.

        Returns:
            The downloaded bytes, or ``None`` if the download or the cache
            write failed (the failure is logged).
        """
        try:
            data = self.refresh()
        except TransportUnavailableError as exc:
            # Already reported with remediation when the transport was selected.
            logger.debug("Download skipped: %s", exc)
            return None
        except JSLoaderError as exc:
            logger.error("Script refresh failed: %s", exc)
            return None
        logger.info("Refreshed script for channel %s (%d bytes)", self._config.channel, len(data))
        return data

    def refresh(self) -> bytes:
        """Download the channel script and store it in the cache.

        Unlike :meth:`download_and_save`, failures propagate.

        Raises:
            JSLoaderError: Any network, API, transport, or cache-write error.
        """
        data = self._downloader.fetch(self.resolve_script_url())
        self._cache.put(self.cache_key, data)
        return data

    # ------------------------------------------------------------------ #
    # Channel directory
    # ------------------------------------------------------------------ #

    def resolve_script_url(self) -> str:
        """Return the script URL for the configured channel.

        Raises:
            NetworkError: If the channel directory cannot be downloaded.
            APIResponseError: If the response is not the expected JSON.
            ChannelNotFoundError: If no record matches the channel.
        """
        directory = self.fetch_channel_directory()
        return self.find_channel(directory, self._config.channel).script_url

    def fetch_channel_directory(self) -> ChannelDirectory:
        """Download and parse the channel directory for the configured API key."""
        raw = self._downloader.fetch(self.api_url)
        try:
            return ChannelDirectory.model_validate(json.loads(raw))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise APIResponseError(f"Channel directory is not valid JSON: {exc}") from exc
        except ValidationError as exc:
            raise APIResponseError(f"Unexpected channel directory format: {exc}") from exc

    @staticmethod
    def find_channel(directory: ChannelDirectory, channel: str) -> ChannelInfo:
        """Return the record of *directory* whose channel equals *channel*.

        Raises:
            ChannelNotFoundError: If there is no such record.
        """
        for info in directory.channels:
            if info.channel == channel:
                return info
        raise ChannelNotFoundError(f"Can't get information for channel {channel}")


def create_loader(
    config: LoaderConfig,
    downloader: Optional[Downloader] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> ContentLoader:
    """Wire a :class:`ContentLoader` from *config*.

    Args:
        config: The loader configuration.
        downloader: An explicit strategy; when omitted one is chosen with
            :func:`~jsloader.downloader.select_downloader`.
        transport: Optional httpx transport for the selected strategy.
    """
    if downloader is None:
        downloader = select_downloader(config, transport=transport)
    return ContentLoader(config, FileCache.from_config(config), downloader)
