"""HTTP responder for the loader.

Every ``GET`` returns the channel script as ``application/javascript``.
A request whose query string contains ``test`` (``/?test``) runs the
installation self-test and returns its HTML report instead.

When neither a fresh download nor any cached copy is available the
response is ``503 Service Unavailable`` with an empty body and a
``Retry-After`` header, so a ``<script async>`` tag fails visibly instead
of silently receiving an empty script.

Request handling runs one thread per request (:class:`ThreadingHTTPServer`);
access lines go to the ``jsloader.server`` logger rather than stderr.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any
from urllib.parse import parse_qs, urlparse

from jsloader import __version__
from jsloader.loader import ContentLoader
from jsloader.selftest import render_report, run_self_test

logger = logging.getLogger(__name__)

SELFTEST_PARAM = "test"
JAVASCRIPT_TYPE = "application/javascript"
RETRY_AFTER_SECONDS = 30


def make_handler(loader: ContentLoader) -> type[BaseHTTPRequestHandler]:
    """Build a request handler class bound to *loader*."""

    class LoaderHandler(BaseHTTPRequestHandler):
        server_version = f"jsloader/{__version__}"

        def do_GET(self) -> None:
            query = parse_qs(urlparse(self.path).query, keep_blank_values=True)
            try:
                if SELFTEST_PARAM in query:
                    self._send_self_test()
                else:
                    self._send_script()
            except Exception:
                logger.exception("Unhandled error serving %s", self.path)
                self._send(HTTPStatus.INTERNAL_SERVER_ERROR, b"", JAVASCRIPT_TYPE)

        def _send_script(self) -> None:
            content = loader.get_content()
            if content is None:
                self._send(
                    HTTPStatus.SERVICE_UNAVAILABLE,
                    b"",
                    JAVASCRIPT_TYPE,
                    {"Retry-After": str(RETRY_AFTER_SECONDS)},
                )
                return
            self._send(HTTPStatus.OK, content, JAVASCRIPT_TYPE)

        def _send_self_test(self) -> None:
            page = render_report(run_self_test(loader))
            self._send(HTTPStatus.OK, page.encode("utf-8"), "text/html; charset=utf-8")

        def _send(
            self,
            status: HTTPStatus,
            body: bytes,
            content_type: str,
            extra_headers: dict[str, str] | None = None,
        ) -> None:
            self.send_response(status)
            self.send_header("Content-Type", content_type)
            self.send_header("Content-Length", str(len(body)))
            for name, value in (extra_headers or {}).items():
                self.send_header(name, value)
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, format: str, *args: Any) -> None:
            logger.info("%s - %s", self.address_string(), format % args)

    return LoaderHandler


def create_server(loader: ContentLoader, host: str, port: int) -> ThreadingHTTPServer:
    """Create (but do not start) an HTTP server serving *loader*.

    Pass ``port=0`` to bind an ephemeral port; the chosen port is available
    as ``server.server_address[1]``.
    """
    server = ThreadingHTTPServer((host, port), make_handler(loader))
    server.daemon_threads = True
    return server
