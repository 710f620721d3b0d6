"""
Responder - what the mock HTTP server answers.

Features:
    - Fixed responses
    - Computed responses
    - Side-effect hooks
    - Request recording
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Callable

MIME_PLAINTEXT = "text/plain"
MIME_HTML = "text/html"
MIME_JSON = "application/json"
MIME_DEFAULT_BINARY = "application/octet-stream"


@dataclass
class Response:
    """An HTTP response of the mock server."""

    status: int = HTTPStatus.OK
    content_type: str = MIME_PLAINTEXT
    body: str | bytes = ""
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def body_bytes(self) -> bytes:
        if isinstance(self.body, bytes):
            return self.body
        return self.body.encode("utf-8")

    @classmethod
    def server_error(cls, error: BaseException) -> "Response":
        return cls(
            status=HTTPStatus.INTERNAL_SERVER_ERROR,
            content_type=MIME_PLAINTEXT,
            body=f"Internal Server Error: {type(error).__name__}: {error}",
        )


@dataclass
class RecordedRequest:
    """Record of a request received by the mock server."""

    method: str
    path: str
    query: dict[str, list[str]] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    client_address: tuple = field(default_factory=tuple)
    timestamp: float = field(default_factory=time.time)
    response: Response | None = None
    error: BaseException | None = None

    @property
    def text(self) -> str:
        """Request body decoded as UTF-8."""
        return self.body.decode("utf-8", errors="replace")


@dataclass
class ResponderSpec:
    """Behavior of the mock server.

    Exactly one of ``response`` (fixed) and ``compute`` (called per request)
    must be set. ``hook`` runs before the response is produced in both
    modes.
    """

    response: Response | None = None
    compute: Callable[[RecordedRequest], Response] | None = None
    hook: Callable[[RecordedRequest], object] | None = None

    def __post_init__(self) -> None:
        if (self.response is None) == (self.compute is None):
            raise ValueError("exactly one of response and compute must be given")

    @property
    def mode(self) -> str:
        return "fixed" if self.response is not None else "computed"

    def produce(self, request: RecordedRequest) -> Response:
        """Produce the response for ``request``; exceptions propagate."""
        if self.hook is not None:
            self.hook(request)

        if self.response is not None:
            return self.response

        response = self.compute(request)
        if not isinstance(response, Response):
            raise TypeError(
                f"compute must return a Response, got {type(response).__name__}"
            )
        return response


class RequestLog:
    """Thread-safe record of the requests a server received."""

    def __init__(self):
        self._requests: list[RecordedRequest] = []
        self._lock = threading.Lock()

    def append(self, request: RecordedRequest) -> None:
        with self._lock:
            self._requests.append(request)

    @property
    def requests(self) -> list[RecordedRequest]:
        with self._lock:
            return list(self._requests)

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._requests)

    @property
    def last(self) -> RecordedRequest | None:
        with self._lock:
            return self._requests[-1] if self._requests else None

    def clear(self) -> None:
        with self._lock:
            self._requests.clear()
