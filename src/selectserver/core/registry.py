"""
=============================================================================
CONNECTION REGISTRY
=============================================================================

Owns every socket the server has open and keeps the poller in sync with
them.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                       ConnectionRegistry                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   listener ──────────► Poller (ACCEPTOR)                            │
    │   datagram ──────────► Poller (DATAGRAM)                            │
    │   connections:                                                      │
    │     "3f2a9c1e" → Connection ──► Poller (STREAM, data=Connection)    │
    │     "9b01d7aa" → Connection ──► Poller (STREAM, data=Connection)    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Rules:
- A Connection exists in the registry iff its socket is registered.
- Removal is always unregister-then-close, and always idempotent.
- At shutdown every handle is closed exactly once, whatever state it is in.

=============================================================================
"""

import socket
import logging
from typing import Dict, List, Optional, Tuple

from .connection import Connection
from .endpoints import create_listener, create_datagram, close_quietly
from .poller import Poller, HandleKind


logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """
    Tracks the listener, the datagram socket and all accepted connections.

    Usage:
        registry = ConnectionRegistry(Poller(), buffer_size=32)
        registry.open_endpoints("0.0.0.0", 9000)
        ...
        registry.accept_all()
        registry.close_and_deregister(conn)
        ...
        registry.shutdown_all()
    """

    def __init__(self, poller: Poller, buffer_size: int = 32):
        self._poller = poller
        self.buffer_size = buffer_size

        self.listener: Optional[socket.socket] = None
        self.datagram: Optional[socket.socket] = None

        self._connections: Dict[str, Connection] = {}
        self.accepted_total = 0

    # =========================================================================
    # INSPECTION
    # =========================================================================

    @property
    def connections(self) -> List[Connection]:
        """Currently open connections (snapshot)."""
        return list(self._connections.values())

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, conn: Connection) -> bool:
        return self._connections.get(conn.id) is conn

    # =========================================================================
    # ENDPOINTS
    # =========================================================================

    def open_endpoints(self, host: str, port: int, backlog: int = 128) -> Tuple[str, int]:
        """
        Bind the TCP listener and the UDP socket and register both.

        Returns:
            The (host, port) actually bound; port differs from the
            argument only when 0 was requested.
        """
        self.listener = create_listener(host, port, backlog)
        bound_port = self.listener.getsockname()[1]

        try:
            self.datagram = create_datagram(host, bound_port)
        except OSError:
            close_quietly(self.listener)
            self.listener = None
            raise

        self._poller.register(self.listener, HandleKind.ACCEPTOR)
        self._poller.register(self.datagram, HandleKind.DATAGRAM)
        return (host, bound_port)

    # =========================================================================
    # ACCEPTING
    # =========================================================================

    def accept_all(self) -> List[Connection]:
        """
        Accept every connection pending on the listener.

        A readiness event can stand for several queued clients, so we
        keep calling accept() until the kernel says "no more"
        (BlockingIOError), which is the normal way out of the loop.

        Returns:
            The newly registered connections.
        """
        accepted = []

        while True:
            try:
                client_socket, client_address = self.listener.accept()
            except BlockingIOError:
                break
            except OSError as e:
                # e.g. ECONNABORTED / EMFILE: skip this pass, keep serving
                logger.warning(f"Accept error: {e}")
                break

            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.buffer_size,
            )
            self.add(conn)
            self.accepted_total += 1

            logger.info(f"Accepted connection from {conn.peer} [{conn.id}]")
            accepted.append(conn)

        return accepted

    def add(self, conn: Connection) -> None:
        """Track a connection and register it for read readiness."""
        self._connections[conn.id] = conn
        self._poller.register(conn.socket, HandleKind.STREAM, data=conn)

    # =========================================================================
    # REMOVAL
    # =========================================================================

    def close_and_deregister(self, conn: Connection) -> bool:
        """
        Remove a connection from the poller and close its socket.

        Returns:
            True if the connection was still registered, False if it had
            already been removed (calling twice is harmless).
        """
        known = self._connections.pop(conn.id, None) is not None

        self._poller.unregister(conn.socket)
        conn.close()

        if known:
            logger.info(f"Closed connection {conn.peer} [{conn.id}] after {conn.age:.1f}s")
        return known

    def shutdown_all(self) -> int:
        """
        Close the acceptor, the datagram socket and every connection.

        Returns:
            Number of client connections that were closed.
        """
        closed = 0
        for conn in self.connections:
            if self.close_and_deregister(conn):
                closed += 1

        for sock in (self.listener, self.datagram):
            if sock is not None:
                self._poller.unregister(sock)
                close_quietly(sock)

        self.listener = None
        self.datagram = None
        return closed
