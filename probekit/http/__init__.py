"""
probekit.http - Ephemeral HTTP test double.

Components:
    MockHTTPServer   - HTTP responder on a free port of a fixed range
    ResponderSpec    - Fixed or computed responses, optional hook
    Response         - Status, content type and body
    RecordedRequest  - What the server received
    PortLease        - A claimed port and its probe socket

Usage:
    from probekit.http import MockHTTPServer, MIME_HTML

    with MockHTTPServer.fixed(200, MIME_HTML, "<html>1</html>") as server:
        data = urllib.request.urlopen(server.url).read()
"""

from probekit.http.responder import (
    Response,
    ResponderSpec,
    RecordedRequest,
    RequestLog,
    MIME_PLAINTEXT,
    MIME_HTML,
    MIME_JSON,
    MIME_DEFAULT_BINARY,
)
from probekit.http.ports import (
    PortLease,
    claim_port,
)
from probekit.http.server import (
    MockHTTPServer,
    THREAD_NAME_TOKEN,
)

__all__ = [
    # Responder
    "Response",
    "ResponderSpec",
    "RecordedRequest",
    "RequestLog",
    "MIME_PLAINTEXT",
    "MIME_HTML",
    "MIME_JSON",
    "MIME_DEFAULT_BINARY",
    # Ports
    "PortLease",
    "claim_port",
    # Server
    "MockHTTPServer",
    "THREAD_NAME_TOKEN",
]
