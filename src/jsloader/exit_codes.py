"""Numeric process exit codes for the ``jsloader`` command.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~jsloader.exceptions.JSLoaderError` subclass.
Deployment scripts can inspect the exit code of ``jsloader fetch`` or
``jsloader selftest`` without parsing stderr.

Example::

    $ jsloader fetch
    $ echo $?
    6   # EXIT_CONNECTION_ERROR -- the API could not be reached
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or configuration."""

EXIT_NOT_FOUND = 4
"""The configured channel is missing from the API's channel directory."""

EXIT_API_ERROR = 5
"""The API answered with a malformed or unexpected payload."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, TLS, HTTP status)."""

EXIT_TRANSPORT_UNAVAILABLE = 7
"""No download strategy is available in this environment."""

EXIT_CACHE_ERROR = 8
"""The cache file could not be written."""

EXIT_SELFTEST_FAILED = 9
"""At least one installation self-test check failed."""
