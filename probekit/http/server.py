"""
Mock HTTP Server - a throwaway HTTP endpoint for client-code tests.

Use it as follows:

    with MockHTTPServer.fixed(200, MIME_PLAINTEXT, "OK") as server:
        # the port that was actually bound
        client = MyClient(f"http://localhost:{server.port}")
        assert client.ping() == "OK"

The server tries the ports of a fixed range (15100-15109 by default) and
binds the first free one. Requests are served on background threads whose
names contain ``MockHTTPServer``, so tests can wait for them to quiesce
with ``wait_for_threads_containing(THREAD_NAME_TOKEN)``.
"""

from __future__ import annotations

import itertools
import logging
import socket
import socketserver
import threading
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Callable
from urllib.parse import parse_qs, urlsplit

from probekit.config import ProbeConfig, get_config
from probekit.errors import ResourceExhaustedError
from probekit.http.ports import claim_port
from probekit.http.responder import (
    MIME_PLAINTEXT,
    RecordedRequest,
    RequestLog,
    Response,
    ResponderSpec,
)

logger = logging.getLogger(__name__)

THREAD_NAME_TOKEN = "MockHTTPServer"

# serializes port probing and binding between servers of this process
_start_lock = threading.Lock()


class _RequestHandler(BaseHTTPRequestHandler):
    """Turns every HTTP request into a RecordedRequest for the mock."""

    server: "_ThreadedHTTPServer"

    # seconds an idle client may keep a connection open
    timeout = 10

    def do_GET(self):
        self._dispatch()

    do_POST = do_PUT = do_PATCH = do_DELETE = do_OPTIONS = do_HEAD = do_GET

    def _dispatch(self) -> None:
        try:
            length = int(self.headers.get("Content-Length") or 0)
        except ValueError:
            self.send_error(HTTPStatus.BAD_REQUEST, "Invalid Content-Length")
            return

        body = self.rfile.read(length) if length > 0 else b""
        url = urlsplit(self.path)

        request = RecordedRequest(
            method=self.command,
            path=url.path,
            query=parse_qs(url.query),
            headers=dict(self.headers.items()),
            body=body,
            client_address=self.client_address,
        )

        response = self.server.mock.serve(request)
        payload = response.body_bytes

        self.send_response(int(response.status))
        self.send_header("Content-Type", response.content_type)
        self.send_header("Content-Length", str(len(payload)))
        for name, value in response.headers.items():
            self.send_header(name, value)
        self.end_headers()

        if self.command != "HEAD":
            self.wfile.write(payload)

    def log_message(self, format, *args):
        """Route access logs to our logger instead of stderr."""
        logger.debug(f"{self.address_string()} - {format % args}")


class _ThreadedHTTPServer(HTTPServer):
    """HTTPServer that handles each connection on a named thread."""

    allow_reuse_address = not hasattr(socket, "SO_EXCLUSIVEADDRUSE")

    def __init__(self, address: tuple[str, int], mock: "MockHTTPServer", thread_name: str):
        self.mock = mock
        self.thread_name = thread_name
        self._request_ids = itertools.count(1)
        self._request_threads: list[threading.Thread] = []
        self._threads_lock = threading.Lock()
        super().__init__(address, _RequestHandler)

    def server_bind(self):
        # skip HTTPServer.server_bind, its reverse lookup of the host can be slow
        socketserver.TCPServer.server_bind(self)
        host, port = self.server_address[:2]
        self.server_name = host
        self.server_port = port

    def process_request(self, request, client_address):
        thread = threading.Thread(
            target=self.process_request_thread,
            args=(request, client_address),
            name=f"{self.thread_name}-request-{next(self._request_ids)}",
            daemon=True,
        )
        with self._threads_lock:
            self._request_threads = [t for t in self._request_threads if t.is_alive()]
            self._request_threads.append(thread)
        thread.start()

    def process_request_thread(self, request, client_address):
        try:
            self.finish_request(request, client_address)
        except Exception:
            self.handle_error(request, client_address)
        finally:
            self.shutdown_request(request)

    def handle_error(self, request, client_address):
        logger.debug(f"Error while handling request from {client_address}", exc_info=True)

    def join_request_threads(self, timeout: float) -> None:
        with self._threads_lock:
            threads = list(self._request_threads)
            self._request_threads.clear()

        for thread in threads:
            thread.join(timeout)


class MockHTTPServer:
    """Minimal HTTP server answering every request with a configured response.

    Three flavors, matching the three ways tests usually need a remote
    endpoint:

        # always the same answer
        MockHTTPServer.fixed(200, MIME_HTML, "<html>1</html>")

        # same answer, but run a side effect first
        MockHTTPServer.with_hook(lambda request: called.set(), 200, MIME_HTML, "ok")

        # compute the answer per request; exceptions become HTTP 500
        MockHTTPServer.computed(lambda request: Response(201, MIME_JSON, "{}"))

    Every request is recorded and can be inspected through ``requests``,
    ``request_count`` and ``last_request``.
    """

    def __init__(
        self,
        responder: ResponderSpec,
        config: ProbeConfig | None = None,
    ):
        """Create the server. It is not listening until ``start()``.

        Args:
            responder: What to answer.
            config: Configuration (port range, bind host, join timeout).
        """
        self._responder = responder
        self._config = config or get_config()

        self._httpd: _ThreadedHTTPServer | None = None
        self._thread: threading.Thread | None = None
        self._port: int | None = None
        self._closed = False
        self._lock = threading.Lock()
        self._log = RequestLog()

    @classmethod
    def fixed(
        cls,
        status: int = 200,
        content_type: str = MIME_PLAINTEXT,
        body: str | bytes = "",
        config: ProbeConfig | None = None,
    ) -> "MockHTTPServer":
        """Server that always answers with the given status, type and body."""
        return cls(ResponderSpec(response=Response(status, content_type, body)), config)

    @classmethod
    def with_hook(
        cls,
        hook: Callable[[RecordedRequest], object],
        status: int = 200,
        content_type: str = MIME_PLAINTEXT,
        body: str | bytes = "",
        config: ProbeConfig | None = None,
    ) -> "MockHTTPServer":
        """Server that runs ``hook(request)`` and then answers with a fixed response."""
        return cls(
            ResponderSpec(response=Response(status, content_type, body), hook=hook),
            config,
        )

    @classmethod
    def computed(
        cls,
        compute: Callable[[RecordedRequest], Response],
        hook: Callable[[RecordedRequest], object] | None = None,
        config: ProbeConfig | None = None,
    ) -> "MockHTTPServer":
        """Server that answers with ``compute(request)``."""
        return cls(ResponderSpec(compute=compute, hook=hook), config)

    # Lifecycle

    def start(self) -> int:
        """Bind a free port of the configured range and start serving.

        Returns:
            The bound port.

        Raises:
            ResourceExhaustedError: No port of the range is free.
            RuntimeError: The server was already closed.
        """
        with self._lock:
            if self._closed:
                raise RuntimeError("Cannot restart a closed MockHTTPServer")
            if self._httpd is not None:
                return self._port

            host = self._config.bind_host
            with _start_lock:
                httpd = self._bind(host, self._config.port_range)

            port = httpd.server_port
            thread = threading.Thread(
                target=httpd.serve_forever,
                kwargs={"poll_interval": 0.05},
                name=f"{THREAD_NAME_TOKEN}-{port}",
                daemon=True,
            )
            thread.start()

            self._httpd = httpd
            self._thread = thread
            self._port = port

        logger.info(f"Mock HTTP server listening on {host}:{port} ({self._responder.mode} responses)")
        return port

    def _bind(self, host: str, ports: range) -> _ThreadedHTTPServer:
        candidates = ports
        while len(candidates):
            try:
                port = claim_port(candidates, host).release()
            except ResourceExhaustedError:
                break

            try:
                return _ThreadedHTTPServer((host, port), self, f"{THREAD_NAME_TOKEN}-{port}")
            except OSError as e:
                # taken between the probe and the real bind
                logger.warning(f"Port {port} became unavailable, trying next one: {e}")
                candidates = range(port + 1, ports.stop)

        raise ResourceExhaustedError(ports.start, ports.stop)

    def close(self) -> None:
        """Stop serving and release the port. Safe to call more than once."""
        with self._lock:
            httpd, thread, port = self._httpd, self._thread, self._port
            if self._closed:
                return
            self._closed = True

        if httpd is None:
            return

        timeout = self._config.server_join_timeout
        httpd.shutdown()
        httpd.server_close()
        thread.join(timeout)
        httpd.join_request_threads(timeout)

        logger.info(f"Mock HTTP server on port {port} stopped after {self.request_count} request(s)")

    stop = close

    def __enter__(self) -> "MockHTTPServer":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def running(self) -> bool:
        return self._httpd is not None and not self._closed

    @property
    def port(self) -> int:
        """The bound port, only valid between ``start()`` and ``close()``."""
        if not self.running:
            raise RuntimeError("MockHTTPServer is not running")
        return self._port

    @property
    def url(self) -> str:
        host = self._config.bind_host
        if host in ("", "0.0.0.0"):
            host = "localhost"
        return f"http://{host}:{self.port}"

    # Dispatch

    def serve(self, request: RecordedRequest) -> Response:
        """Produce the response for one request; never raises for responder errors."""
        try:
            response = self._responder.produce(request)
        except Exception as e:
            logger.error(f"Responder failed for {request.method} {request.path}: {e}", exc_info=True)
            request.error = e
            response = Response.server_error(e)

        request.response = response
        self._log.append(request)
        return response

    # Recorded requests

    @property
    def requests(self) -> list[RecordedRequest]:
        """All requests received so far."""
        return self._log.requests

    @property
    def request_count(self) -> int:
        return self._log.count

    @property
    def last_request(self) -> RecordedRequest | None:
        return self._log.last

    def reset(self) -> None:
        """Forget all recorded requests."""
        self._log.clear()

    def assert_called(self) -> None:
        """Assert that the server received at least one request."""
        assert self.request_count > 0, "MockHTTPServer was not called"

    def assert_called_once(self) -> None:
        """Assert that the server received exactly one request."""
        count = self.request_count
        assert count == 1, f"MockHTTPServer was called {count} times, expected 1"
