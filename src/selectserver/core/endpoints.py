"""
=============================================================================
LISTEN AND DATAGRAM ENDPOINTS
=============================================================================

The server owns exactly two long-lived sockets, bound to the SAME port
number:

    ┌───────────────────────┐        ┌───────────────────────┐
    │   TCP Listener        │        │   UDP Socket          │
    │   SOCK_STREAM         │        │   SOCK_DGRAM          │
    │   0.0.0.0:9000        │        │   0.0.0.0:9000        │
    └───────────┬───────────┘        └───────────┬───────────┘
                │ accept()                       │ recvfrom() / sendto()
                ▼                                ▼
        one socket per client           one socket for ALL clients

TCP and UDP port numbers live in separate namespaces in the kernel, so
both binds succeed. When the configured port is 0 the listener is bound
first and the datagram socket is bound to whatever port the kernel chose.

=============================================================================
SOCKET OPTIONS
=============================================================================

SO_REUSEADDR (listener only):
    Lets the server restart immediately instead of failing with
    "Address already in use" while old connections sit in TIME_WAIT.

Non-blocking mode (both):
    accept() / recvfrom() must never stall the event loop. When nothing
    is pending they raise BlockingIOError, which callers treat as
    "nothing to do".

=============================================================================
"""

import socket
import logging


logger = logging.getLogger(__name__)


def create_listener(host: str, port: int, backlog: int = 128) -> socket.socket:
    """
    Create a bound, listening, non-blocking TCP socket.

    The socket is closed again if any step of the setup fails.

    Raises:
        OSError: If the address cannot be bound or listened on.
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
        sock.listen(backlog)
        sock.setblocking(False)
    except OSError as e:
        logger.error(f"Failed to set up TCP {host}:{port}: {e}")
        sock.close()
        raise

    return sock


def create_datagram(host: str, port: int) -> socket.socket:
    """
    Create a bound, non-blocking UDP socket.

    Raises:
        OSError: If the address cannot be bound.
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)

    try:
        sock.bind((host, port))
        sock.setblocking(False)
    except OSError as e:
        logger.error(f"Failed to set up UDP {host}:{port}: {e}")
        sock.close()
        raise

    return sock


def close_quietly(sock: socket.socket) -> None:
    """Close a socket, ignoring errors from one that is already closed."""
    try:
        sock.close()
    except OSError:
        pass
