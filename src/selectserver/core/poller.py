"""
=============================================================================
READINESS POLLER
=============================================================================

A thin wrapper around the OS readiness-notification primitive.

=============================================================================
WHY NOT ONE THREAD PER CLIENT?
=============================================================================

A thread-per-connection server parks one thread in recv() for every
client. Here a single thread watches ALL sockets at once and only touches
the ones the kernel says are ready:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        One Loop Iteration                           │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   poll(500ms) ──► kernel wakes us when ANY registered socket is     │
    │        │          readable, or after 500ms with nothing ready       │
    │        ▼                                                             │
    │   [ReadyEvent(ACCEPTOR), ReadyEvent(STREAM, conn), ...]             │
    │        │                                                             │
    │        ▼                                                             │
    │   handle each event with NON-BLOCKING calls only                    │
    │        │                                                             │
    │        └──► back to poll()                                          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Because every accept/recv/send is non-blocking, poll() is the ONLY place
the process ever waits.

=============================================================================
SELECTORS
=============================================================================

`selectors.DefaultSelector` picks the best primitive for the platform:

    Linux    → epoll
    macOS    → kqueue
    others   → poll / select

"Acceptable" and "readable" are the same event for a listening socket
(EVENT_READ), so one interest flag covers all three handle kinds.

=============================================================================
"""

import logging
import selectors
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional

from ..errors import PollFailure


logger = logging.getLogger(__name__)


class HandleKind(Enum):
    """What a registered handle is, decided once at registration time."""
    ACCEPTOR = "acceptor"    # TCP listening socket
    DATAGRAM = "datagram"    # The shared UDP socket
    STREAM = "stream"        # An accepted TCP connection


@dataclass(frozen=True)
class ReadyEvent:
    """
    One handle that is ready to be serviced.

    Attributes:
        kind: The HandleKind recorded at registration.
        handle: The registered socket.
        data: Whatever was attached at registration (a Connection for
              STREAM handles, None otherwise).
    """
    kind: HandleKind
    handle: Any
    data: Any = None


class Poller:
    """
    Register / unregister / block-with-timeout over `selectors`.

    Usage:
        poller = Poller()
        poller.register(listener, HandleKind.ACCEPTOR)
        for event in poller.poll(500):
            ...
        poller.close()
    """

    def __init__(self, selector: Optional[selectors.BaseSelector] = None):
        self._selector = selector or selectors.DefaultSelector()

    def register(self, handle, kind: HandleKind, data: Any = None) -> None:
        """Register interest in read (or accept) readiness for `handle`."""
        self._selector.register(handle, selectors.EVENT_READ, data=(kind, data))
        logger.debug(f"Registered {kind.value} handle fd={handle.fileno()}")

    def unregister(self, handle) -> bool:
        """
        Stop watching `handle`.

        Tolerates handles that were never registered, were already
        unregistered, or whose socket is already closed.

        Returns:
            True if the handle was registered.
        """
        try:
            self._selector.unregister(handle)
            return True
        except (KeyError, ValueError):
            return False

    def is_registered(self, handle) -> bool:
        try:
            self._selector.get_key(handle)
            return True
        except (KeyError, ValueError):
            return False

    def poll(self, timeout_ms: int) -> List[ReadyEvent]:
        """
        Block until at least one handle is ready or the timeout elapses.

        Returns:
            Ready events; an empty list means the timeout elapsed.

        Raises:
            PollFailure: The underlying primitive failed.
        """
        try:
            ready = self._selector.select(timeout=timeout_ms / 1000.0)
        except (OSError, ValueError) as e:
            raise PollFailure(f"poll() failed: {e}") from e

        events = []
        for key, _mask in ready:
            kind, data = key.data
            events.append(ReadyEvent(kind=kind, handle=key.fileobj, data=data))
        return events

    def __len__(self) -> int:
        return len(self._selector.get_map() or {})

    def close(self) -> None:
        """Release the selector. Registered sockets are NOT closed."""
        self._selector.close()
