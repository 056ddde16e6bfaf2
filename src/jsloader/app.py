"""Typer application and CLI entry point for jsloader.

Commands:

* ``serve`` -- run the HTTP responder (``/`` serves the script,
  ``/?test`` the self-test page).
* ``fetch`` -- print the script the server would serve; ``--refresh``
  forces a download and reports failures through the exit code.
* ``selftest`` -- run the installation checks and print a table.
* ``cache info`` / ``cache clear`` -- inspect or drop the cache entry.

The configuration is loaded once per invocation, from the root callback's
options, and handed to the command explicitly. :func:`main` is the
console-script entry point declared in ``pyproject.toml``.
"""

from __future__ import annotations

import signal
import sys
import tempfile
import traceback
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterator, Optional

import typer

from jsloader import __version__
from jsloader.exit_codes import EXIT_GENERIC_FAILURE, EXIT_SELFTEST_FAILED

if TYPE_CHECKING:
    from jsloader.loader import ContentLoader
    from jsloader.models import LoaderConfig


app = typer.Typer(
    name="jsloader",
    help="Serve a channel script from a local disk cache.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

cache_app = typer.Typer(help="Inspect or clear the cache entry.", no_args_is_help=True)
app.add_typer(cache_app, name="cache")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"jsloader {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to the JSON config file."
    ),
    channel: Optional[str] = typer.Option(None, "--channel", help="Channel to serve."),
    api_key: Optional[str] = typer.Option(None, "--api-key", help="TrueMine API key."),
    cache_dir: Optional[str] = typer.Option(None, "--cache-dir", help="Cache directory."),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~jsloader.output.OutputManager` and logging
    handler from the CLI flags, and stores the configuration sources in
    ``ctx.obj`` for :func:`_load_config`.
    """
    from jsloader.output import OutputFormat, OutputManager, configure_logging, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    output = OutputManager(format=fmt, no_color=no_color, quiet=quiet)
    set_output(output)
    configure_logging(verbose=verbose, quiet=quiet, no_color=output.no_color)

    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["overrides"] = {
        "channel": channel,
        "api_key": api_key,
        "cache_directory": cache_dir,
    }


@contextmanager
def _handle_errors() -> Iterator[None]:
    """Report :class:`JSLoaderError` on stderr and exit with its code."""
    from jsloader.exceptions import JSLoaderError
    from jsloader.output import error

    try:
        yield
    except JSLoaderError as exc:
        error(str(exc))
        raise typer.Exit(exc.exit_code)


def _load_config(ctx: typer.Context) -> LoaderConfig:
    from jsloader.config import load_config

    obj = ctx.obj or {}
    return load_config(obj.get("config_path"), **obj.get("overrides", {}))


def _make_loader(ctx: typer.Context) -> ContentLoader:
    from jsloader.loader import create_loader

    return create_loader(_load_config(ctx))


# ------------------------------------------------------------------ #
# Commands
# ------------------------------------------------------------------ #


@app.command()
def serve(
    ctx: typer.Context,
    host: Optional[str] = typer.Option(None, "--host", help="Bind address."),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Bind port."),
) -> None:
    """Serve the channel script over HTTP until interrupted."""
    from jsloader.loader import create_loader
    from jsloader.output import info
    from jsloader.server import create_server

    with _handle_errors():
        config = _load_config(ctx)
        loader = create_loader(config)
        bind_host = host or config.server.host
        bind_port = config.server.port if port is None else port
        server = create_server(loader, bind_host, bind_port)
        info(
            f"Serving channel {config.channel} on "
            f"http://{bind_host}:{server.server_address[1]}/ (self-test: /?test)"
        )
        try:
            server.serve_forever()
        finally:
            server.server_close()
            loader.cache.close()


@app.command()
def fetch(
    ctx: typer.Context,
    refresh: bool = typer.Option(
        False, "--refresh", help="Download now instead of using the cache."
    ),
) -> None:
    """Print the script that would be served for the configured channel."""
    from jsloader.exceptions import JSLoaderError
    from jsloader.exit_codes import EXIT_CONNECTION_ERROR
    from jsloader.output import get_output

    with _handle_errors():
        loader = _make_loader(ctx)
        try:
            content = loader.refresh() if refresh else loader.get_content()
        finally:
            loader.cache.close()
        if content is None:
            raise JSLoaderError(
                f"No script available for channel {loader.config.channel}",
                exit_code=EXIT_CONNECTION_ERROR,
            )
        get_output().print_bytes(content)


@app.command()
def selftest(ctx: typer.Context) -> None:
    """Verify API access, script download, and cache permissions."""
    from jsloader.output import print_table, success, warning
    from jsloader.selftest import run_self_test

    with _handle_errors():
        loader = _make_loader(ctx)
        try:
            results = run_self_test(loader)
        finally:
            loader.cache.close()

    print_table(
        ["Check", "Result", "Details"],
        [[r.label, "OK" if r.passed else "ERROR", r.detail or ""] for r in results],
        title="Self-test",
    )
    if all(r.passed for r in results):
        success("All tests passed.")
        return
    warning("Some tests failed.")
    raise typer.Exit(EXIT_SELFTEST_FAILED)


@cache_app.command("info")
def cache_info(ctx: typer.Context) -> None:
    """Show the cache entry's location, size, and freshness."""
    from jsloader.cache import FileCache
    from jsloader.output import print_table

    with _handle_errors():
        config = _load_config(ctx)
        cache = FileCache.from_config(config)
        stat = cache.stat(config.caching_file)

    rows = [
        ["path", stat["path"]],
        ["exists", str(stat["exists"]).lower()],
        ["expires_in_seconds", str(cache.expires_in_seconds)],
        ["directory_writable", str(cache.is_writable()).lower()],
    ]
    if stat["exists"]:
        rows += [
            ["size", str(stat["size"])],
            ["age_seconds", f"{stat['age_seconds']:.0f}"],
            ["fresh", str(stat["fresh"]).lower()],
        ]
    print_table(["Field", "Value"], rows, title="Cache")


@cache_app.command("clear")
def cache_clear(ctx: typer.Context) -> None:
    """Delete the cache entry so the next request downloads a fresh copy."""
    from jsloader.cache import FileCache
    from jsloader.output import info, success

    with _handle_errors():
        config = _load_config(ctx)
        cache = FileCache.from_config(config)
        if cache.delete(config.caching_file):
            success(f"Removed {cache.full_path(config.caching_file)}")
        else:
            info("Nothing to remove.")


# ------------------------------------------------------------------ #
# Entry point
# ------------------------------------------------------------------ #


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nStopped.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to the temp directory and return its path."""
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = Path(tempfile.gettempdir()) / f"jsloader-crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``jsloader`` console script.

    :class:`~jsloader.exceptions.JSLoaderError` exits with the error's
    ``exit_code``; any other exception writes a crash log and exits with
    :data:`~jsloader.exit_codes.EXIT_GENERIC_FAILURE`.
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nStopped.\n")
        sys.exit(130)
    except Exception as exc:
        from jsloader.exceptions import JSLoaderError
        from jsloader.output import error

        if isinstance(exc, JSLoaderError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
