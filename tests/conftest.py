"""Shared test fixtures for jsloader.

Provides an isolated cache directory and configuration, a scriptable fake
downloader, an httpx mock transport imitating the TrueMine API, and
automatic reset of the global output/logging state between tests.
"""

from __future__ import annotations

import json
import logging
import os
import time
from pathlib import Path
from typing import Any, Callable, Optional, Union

import httpx
import pytest

from jsloader.cache import FileCache
from jsloader.downloader import Downloader
from jsloader.exceptions import NetworkError
from jsloader.loader import ContentLoader
from jsloader.models import LoaderConfig
from jsloader.output import OutputFormat, OutputManager, reset_output, set_output


API_BASE = "https://api.test/api/1.0"
API_KEY = "test-key"
API_URL = f"{API_BASE}/{API_KEY}/"
SCRIPT_URL = "https://cdn.test/tm.channel.0.min.js"
CACHE_KEY = "tm.channel.0.min.js.cache"


def channel_directory(*records: tuple[Any, str]) -> dict[str, Any]:
    """Build a channel directory body from ``(channel, script_url)`` pairs."""
    return {"channels": [{"channel": c, "script_url": u} for c, u in records]}


def age_file(path: Path, seconds: float) -> None:
    """Set *path*'s mtime to *seconds* ago."""
    past = time.time() - seconds
    os.utime(path, (past, past))


# ---------------------------------------------------------------------------
# Auto-reset global output and logging state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager and the ``jsloader`` log handlers.

    Both cache references to sys.stdout/sys.stderr; after a CliRunner
    invocation those streams are closed.
    """
    yield
    reset_output()
    package_logger = logging.getLogger("jsloader")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a quiet PLAIN-format OutputManager."""
    output = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# Configuration and cache
# ---------------------------------------------------------------------------


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    path = tmp_path / "cache"
    path.mkdir()
    return path


@pytest.fixture
def loader_config(cache_dir: Path) -> LoaderConfig:
    """A config for channel 0 pointing at the test API and cache_dir."""
    return LoaderConfig(
        channel="0",
        api_key=API_KEY,
        api_base_url=API_BASE,
        cache_directory=str(cache_dir),
        cache_expires_in_seconds=300,
    )


@pytest.fixture
def file_cache(cache_dir: Path) -> FileCache:
    cache = FileCache(cache_dir, expires_in_seconds=300)
    yield cache
    cache.close()


# ---------------------------------------------------------------------------
# Downloaders
# ---------------------------------------------------------------------------


Response = Union[bytes, Exception]


class FakeDownloader(Downloader):
    """Downloader answering from a URL -> bytes/exception map and recording calls."""

    name = "fake"

    def __init__(self, responses: Optional[dict[str, Response]] = None) -> None:
        self.responses: dict[str, Response] = dict(responses or {})
        self.calls: list[str] = []

    def fetch(self, url: str) -> bytes:
        self.calls.append(url)
        response = self.responses.get(url)
        if response is None:
            raise NetworkError(f"Connection refused: {url}")
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def api_responses() -> dict[str, Response]:
    """Working API: channel 0 resolves to SCRIPT_URL serving ``console.log(1)``."""
    return {
        API_URL: json.dumps(channel_directory(("0", SCRIPT_URL))).encode(),
        SCRIPT_URL: b"console.log(1)",
    }


@pytest.fixture
def fake_downloader(api_responses: dict[str, Response]) -> FakeDownloader:
    return FakeDownloader(api_responses)


@pytest.fixture
def failing_downloader() -> FakeDownloader:
    """A downloader for which every URL fails with a NetworkError."""
    return FakeDownloader()


@pytest.fixture
def make_loader(
    loader_config: LoaderConfig, file_cache: FileCache
) -> Callable[[Downloader], ContentLoader]:
    def _make(downloader: Downloader) -> ContentLoader:
        return ContentLoader(loader_config, file_cache, downloader)

    return _make


def mock_api_transport(
    routes: dict[str, tuple[int, bytes]],
    calls: Optional[list[str]] = None,
) -> httpx.MockTransport:
    """An httpx transport answering *routes* (URL -> status, body), 404 otherwise."""

    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if calls is not None:
            calls.append(url)
        status, body = routes.get(url, (404, b""))
        return httpx.Response(status, content=body)

    return httpx.MockTransport(handler)
