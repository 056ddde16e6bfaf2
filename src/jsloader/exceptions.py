"""Exception hierarchy for jsloader.

All exceptions inherit from :class:`JSLoaderError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`jsloader.exit_codes`.
The CLI entry point in :func:`jsloader.app.main` catches ``JSLoaderError``
and exits with the appropriate code. Inside the HTTP responder every remote
error is absorbed by :class:`~jsloader.loader.ContentLoader` and turned into
the stale-cache fallback, so none of these ever reach a client as a
traceback.

Subclass hierarchy::

    JSLoaderError              (exit 1)
    +-- ConfigError            (exit 2)
    +-- CacheKeyError          (exit 2)
    +-- ChannelNotFoundError   (exit 4)
    +-- APIResponseError       (exit 5)
    +-- NetworkError           (exit 6)
    +-- TransportUnavailableError (exit 7)
    +-- CacheWriteError        (exit 8)

Cache *read* failures have no exception class: a file that cannot be read
is reported as a cache miss.
"""

from jsloader.exit_codes import (
    EXIT_API_ERROR,
    EXIT_CACHE_ERROR,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_TRANSPORT_UNAVAILABLE,
)


class JSLoaderError(Exception):
    """Base exception for all jsloader errors.

    Args:
        message: Human-readable error description.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(JSLoaderError):
    """Raised for configuration problems (unreadable file, invalid values)."""

    exit_code = EXIT_INVALID_USAGE


class CacheKeyError(JSLoaderError):
    """Raised when a cache key would resolve outside the cache directory."""

    exit_code = EXIT_INVALID_USAGE


class ChannelNotFoundError(JSLoaderError):
    """Raised when the channel directory has no record for the configured channel."""

    exit_code = EXIT_NOT_FOUND


class APIResponseError(JSLoaderError):
    """Raised when the channel directory response is not the expected JSON shape."""

    exit_code = EXIT_API_ERROR


class NetworkError(JSLoaderError):
    """Raised on connection, DNS, TLS, timeout, or HTTP status failures."""

    exit_code = EXIT_CONNECTION_ERROR


class TransportUnavailableError(JSLoaderError):
    """Raised by ``fetch`` when no download strategy could be selected.

    The message always carries remediation guidance for the operator.
    """

    exit_code = EXIT_TRANSPORT_UNAVAILABLE


class CacheWriteError(JSLoaderError):
    """Raised when the cache file cannot be written (disk full, permissions)."""

    exit_code = EXIT_CACHE_ERROR
