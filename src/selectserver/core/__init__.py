"""
=============================================================================
CORE EVENT LOOP COMPONENTS
=============================================================================

The low-level plumbing under the command protocol:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                              POLLER                                 │
    │  • Wraps selectors.DefaultSelector (epoll / kqueue / select)        │
    │  • Tags every handle with a HandleKind at registration              │
    │  • poll(timeout) is the only blocking call in the process           │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                        CONNECTION REGISTRY                          │
    │  • Owns the TCP listener and the UDP socket (same port)             │
    │  • Accepts pending clients and registers them                       │
    │  • Unregisters + closes, idempotently                               │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                            CONNECTION                               │
    │  • One accepted client, non-blocking                                │
    │  • Its own fixed-size receive buffer                                │
    │  • One recv / one send per call, never retried                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .poller import Poller, HandleKind, ReadyEvent
from .connection import Connection, ConnectionState
from .registry import ConnectionRegistry
from .endpoints import create_listener, create_datagram

__all__ = [
    "Poller",              # Readiness notification
    "HandleKind",          # ACCEPTOR / DATAGRAM / STREAM
    "ReadyEvent",          # One ready handle
    "Connection",          # Accepted stream client
    "ConnectionState",     # OPEN / CLOSED
    "ConnectionRegistry",  # Owns every socket
    "create_listener",     # Bound non-blocking TCP socket
    "create_datagram",     # Bound non-blocking UDP socket
]
