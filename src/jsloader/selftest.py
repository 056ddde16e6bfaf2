"""Installation self-test.

Each check is a label plus a zero-argument callable returning a truthy
value on success. :func:`run_check` runs one check and records the result;
an exception becomes a failing result carrying the exception message, so
one broken check never prevents the others from running.

:func:`run_self_test` runs the standard installation checks against a
:class:`~jsloader.loader.ContentLoader`:

* the channel directory resolves to a URL whose path ends in ``.min.js``,
* the script downloads with a non-empty body,
* the cache directory is writable,
* random content round-trips through the real cache key.

The round-trip leaves a test value in the cache entry, so the entry is
deleted afterwards and the next request fetches a fresh copy.

:func:`render_report` turns the results into the HTML page served for
``?test`` requests.
"""

from __future__ import annotations

import logging
import random
from pathlib import Path
from typing import Any, Callable
from urllib.parse import urlparse

from jinja2 import Environment, FileSystemLoader, select_autoescape

from jsloader.loader import ContentLoader
from jsloader.models import CheckResult

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"
"""Path to the Jinja2 template directory (``jsloader/templates/``)."""

MINIFIED_SUFFIX = ".min.js"

Check = Callable[[], Any]


def run_check(label: str, check: Check) -> CheckResult:
    """Run *check* and report whether it passed.

    Args:
        label: Human-readable name shown in the report.
        check: Callable returning a truthy value on success. Exceptions are
            caught and reported as a failure with their message.
    """
    try:
        passed = bool(check())
    except Exception as exc:
        logger.debug("Check %r raised %s: %s", label, type(exc).__name__, exc)
        return CheckResult(label=label, passed=False, detail=str(exc) or type(exc).__name__)
    return CheckResult(label=label, passed=passed)


def installation_checks(loader: ContentLoader) -> list[tuple[str, Check]]:
    """Return the ``(label, check)`` pairs verifying a loader installation."""
    cache = loader.cache
    key = loader.cache_key

    def url_is_minified_script() -> bool:
        return urlparse(loader.resolve_script_url()).path.endswith(MINIFIED_SUFFIX)

    def script_downloads() -> bool:
        return bool(loader.downloader.fetch(loader.resolve_script_url()))

    def cache_round_trip() -> bool:
        payload = str(random.randint(10000000, 99999999)).encode()
        cache.put(key, payload)
        return cache.get(key) == payload

    return [
        ("Connect to TrueMine API", url_is_minified_script),
        ("Download javascript code from remote server", script_downloads),
        ("Is cache directory writable", cache.is_writable),
        ("Access to cache file", cache_round_trip),
    ]


def run_self_test(loader: ContentLoader) -> list[CheckResult]:
    """Run every installation check, then remove the test cache entry."""
    try:
        results = [run_check(label, check) for label, check in installation_checks(loader)]
    finally:
        loader.cache.delete(loader.cache_key)
    for result in results:
        if result.passed:
            logger.info("Self-test %r: OK", result.label)
        else:
            logger.warning("Self-test %r: ERROR %s", result.label, result.detail or "")
    return results


def _create_jinja_env() -> Environment:
    """Create the Jinja2 environment for the report template (HTML autoescaped)."""
    return Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=select_autoescape(enabled_extensions=("html", "html.j2")),
        trim_blocks=True,
        lstrip_blocks=True,
    )


def render_report(results: list[CheckResult]) -> str:
    """Render *results* as a standalone HTML page."""
    template = _create_jinja_env().get_template("selftest.html.j2")
    return template.render(results=results, all_passed=all(r.passed for r in results))
