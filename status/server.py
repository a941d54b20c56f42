"""
Read-only status endpoint.

A threaded HTTP server answers GET (any path) with the current Snapshot as
JSON.  Each request reads the publisher exactly once, so the status code and
the body always describe the same Snapshot.  The server never talks to the
cluster.
"""
from __future__ import annotations

import logging
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Optional, Tuple

from monitor.publisher import StatusPublisher
from status import render

logger = logging.getLogger(__name__)


class _StatusHTTPServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address: Tuple[str, int], publisher: StatusPublisher) -> None:
        self.publisher = publisher
        super().__init__(address, _StatusHandler)


class _StatusHandler(BaseHTTPRequestHandler):
    server: _StatusHTTPServer

    def _respond(self, include_body: bool) -> None:
        snapshot = self.server.publisher.current_snapshot()
        body = (render.to_json(snapshot) + "\n").encode()
        self.send_response(render.status_code(snapshot))
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if include_body:
            self.wfile.write(body)

    def do_GET(self) -> None:
        self._respond(include_body=True)

    def do_HEAD(self) -> None:
        self._respond(include_body=False)

    def log_message(self, fmt: str, *args: object) -> None:
        logger.debug("%s - %s", self.address_string(), fmt % args)


class StatusServer:
    """
    Serves the publisher's current Snapshot from a background thread.

    Usage:
        srv = StatusServer(publisher, port=8080)
        srv.start()
        ...
        srv.stop()
    """

    def __init__(self, publisher: StatusPublisher, host: str = "0.0.0.0", port: int = 8080) -> None:
        self.publisher = publisher
        self.host = host
        self.port = port
        self._server: Optional[_StatusHTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); useful when started on port 0."""
        if self._server is None:
            raise RuntimeError("Status server is not running")
        host, port = self._server.server_address[:2]
        return str(host), int(port)

    def start(self) -> None:
        """Bind and serve in a daemon thread."""
        if self._server is not None:
            raise RuntimeError("Status server is already running")
        self._server = _StatusHTTPServer((self.host, self.port), self.publisher)
        self._thread = threading.Thread(
            target=self._server.serve_forever, name="status-server", daemon=True
        )
        self._thread.start()
        logger.info("Starting server on %s:%d", *self.address)

    def serve_forever(self) -> None:
        """Bind and serve in the calling thread until interrupted."""
        server = self._server = _StatusHTTPServer((self.host, self.port), self.publisher)
        logger.info("Starting server on %s:%d", *self.address)
        try:
            server.serve_forever()
        finally:
            server.server_close()
            self._server = None

    def stop(self) -> None:
        """Shut down the HTTP server."""
        if self._server:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None

    def __enter__(self) -> "StatusServer":
        self.start()
        return self

    def __exit__(self, *_: object) -> None:
        self.stop()
