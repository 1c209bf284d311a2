"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted TCP socket for use inside the event loop.

=============================================================================
ONE READ = ONE "LINE"
=============================================================================

TCP is a byte stream, not a message protocol. A full server would buffer
bytes until it saw a delimiter. This server deliberately does NOT:

    Client sends:   "get notes.txt\n"
    Server reads:   recv_into(32-byte buffer) → "get notes.txt\n"
    Server treats:  exactly those bytes as one command line

Each readiness event performs exactly one recv of at most buffer_size
bytes, and whatever arrived is dispatched as a unit. Lines longer than
the buffer are split across events; two lines sent back-to-back may be
read together. Clients are expected to wait for the reply before sending
the next command.

=============================================================================
BUFFER OWNERSHIP
=============================================================================

Each Connection owns its own receive buffer, allocated once and reused
for every read on that connection:

    conn A ──► bytearray(32) ──► recv_into ──► bytes(copy) ──► dispatcher
    conn B ──► bytearray(32) ──► recv_into ──► bytes(copy) ──► dispatcher

The dispatcher only ever sees an immutable copy, so nothing downstream
can observe a later read overwriting the buffer.

=============================================================================
"""

import socket
import time
import uuid
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..errors import TransportFailure


logger = logging.getLogger(__name__)

DRAIN_LIMIT = 64  # max recv() calls while draining on close


class ConnectionState(Enum):
    """Connection lifecycle states."""
    OPEN = "open"          # Registered, serving commands
    CLOSED = "closed"      # Socket released


@dataclass
class Connection:
    """
    One accepted stream client.

    Attributes:
        socket: The client socket (switched to non-blocking).
        address: Client's (ip, port) tuple.
        buffer_size: Capacity of the receive buffer.
        id: Short unique id for log correlation.
        state: OPEN or CLOSED.
        last_line: The most recent decoded routing line.
        bytes_received: Total bytes read on this connection.
        commands_handled: Commands dispatched on this connection.
    """

    socket: socket.socket
    address: tuple
    buffer_size: int = 32

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.OPEN
    created_at: float = field(default_factory=time.time)
    last_line: str = ""
    bytes_received: int = 0
    commands_handled: int = 0

    _buffer: bytearray = field(default_factory=bytearray, repr=False)

    def __post_init__(self):
        # Every socket call on a connection must return immediately
        self.socket.setblocking(False)
        self._buffer = bytearray(self.buffer_size)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def peer(self) -> str:
        """Client address as "ip:port"."""
        return f"{self.address[0]}:{self.address[1]}"

    @property
    def is_open(self) -> bool:
        return self.state == ConnectionState.OPEN

    @property
    def age(self) -> float:
        """Connection age in seconds."""
        return time.time() - self.created_at

    # =========================================================================
    # READING
    # =========================================================================

    def receive(self) -> Optional[bytes]:
        """
        Perform one non-blocking read into the connection's buffer.

        Returns:
            The bytes read (a copy), b"" if the peer closed the connection,
            or None if nothing was actually available.

        Raises:
            TransportFailure: The read failed (e.g. connection reset).
        """
        try:
            count = self.socket.recv_into(self._buffer)
        except BlockingIOError:
            return None
        except OSError as e:
            raise TransportFailure(f"read failed: {e}") from e

        self.bytes_received += count
        return bytes(self._buffer[:count])

    # =========================================================================
    # WRITING
    # =========================================================================

    def send(self, data: bytes) -> int:
        """
        Perform one non-blocking write.

        Partial writes are NOT retried; the caller compares the returned
        count with len(data) and decides what a short write means.

        Returns:
            Number of bytes the kernel accepted (0 if it accepted none).

        Raises:
            TransportFailure: The write failed (e.g. broken pipe).
        """
        if not data:
            return 0
        try:
            return self.socket.send(data)
        except BlockingIOError:
            return 0
        except OSError as e:
            raise TransportFailure(f"write failed: {e}") from e

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self) -> None:
        """
        Close the connection. Safe to call more than once.

        Sequence:
            1. shutdown(SHUT_WR) - send FIN after any queued reply bytes
            2. drain unread input - so close() does not turn into a RST
               that could discard the reply we just queued
            3. close() - release the file descriptor
        """
        if self.state == ConnectionState.CLOSED:
            return

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Peer already gone

        try:
            for _ in range(DRAIN_LIMIT):
                if not self.socket.recv(1024):
                    break
        except OSError:
            pass  # Nothing left (BlockingIOError) or already reset

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(
            f"[{self.id}] Connection closed after {self.commands_handled} commands"
        )
