"""jsloader -- serve a remotely hosted JavaScript snippet from a local disk cache.

The loader resolves the script URL for a configured channel through the
TrueMine channel directory API, downloads the script, keeps it in a file
cache with a time-based expiry, and serves it over HTTP. When the API is
unreachable it keeps serving the last cached copy.

Typical workflow::

    jsloader selftest           # verify API access and cache permissions
    jsloader serve --port 8080  # <script src="http://host:8080/" async>

Modules:
    app: Typer application and CLI entry point.
    loader: The fetch/cache/fallback policy (:class:`ContentLoader`).
    cache: The mtime-expiring file cache (:class:`FileCache`).
    downloader: httpx download strategies and transport selection.
    selftest: Installation checks and their HTML report.
    server: The HTTP responder.
    models: Pydantic models shared across the package.
    config: Configuration loading and precedence resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    output: stdout/stderr formatting and logging setup.
"""

__version__ = "1.0.0"
