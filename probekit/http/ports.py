"""
Port leases - find a free port in a fixed range.
"""

from __future__ import annotations

import logging
import socket
from dataclasses import dataclass

from probekit.errors import ResourceExhaustedError

logger = logging.getLogger(__name__)


@dataclass
class PortLease:
    """A claimed port and the socket that proves it is free.

    The lease is only trustworthy while ``sock`` is open; after
    ``release()`` another process may take the port.
    """

    port: int
    sock: socket.socket | None

    @property
    def valid(self) -> bool:
        return self.sock is not None and self.sock.fileno() != -1

    def release(self) -> int:
        """Close the probe socket and return the port."""
        if self.sock is not None:
            self.sock.close()
            self.sock = None
        return self.port

    def __enter__(self) -> "PortLease":
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()


def claim_port(ports: range, host: str = "127.0.0.1") -> PortLease:
    """Claim the first port of ``ports`` that can be bound exclusively.

    Args:
        ports: Candidate ports, tried in order.
        host: Interface to bind.

    Returns:
        A lease holding the bound (and listening) socket.

    Raises:
        ResourceExhaustedError: If every port is in use.
    """
    for port in ports:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            _set_exclusive(sock)
            sock.bind((host, port))
            sock.listen(1)
        except OSError as e:
            sock.close()
            # seems to be taken, try next one
            logger.warning(f"Port {port} seems to be used already, trying next one: {e}")
            continue

        return PortLease(port=port, sock=sock)

    raise ResourceExhaustedError(ports.start, ports.stop)


def _set_exclusive(sock: socket.socket) -> None:
    # SO_REUSEADDR never rebinds over a live listener, except on Windows
    if hasattr(socket, "SO_EXCLUSIVEADDRUSE"):
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_EXCLUSIVEADDRUSE, 1)
    else:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
