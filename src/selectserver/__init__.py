"""
=============================================================================
SELECTSERVER - TCP + UDP Command Server on a Single Event Loop
=============================================================================

One process, one thread, one port. Stream (TCP) and datagram (UDP)
clients are served side by side through a single readiness loop, and both
speak a tiny line-oriented text protocol.

=============================================================================
PROJECT OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      SELECTSERVER ARCHITECTURE                      │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   1. READINESS LOOP                                                 │
    │      - selectors-based poller, bounded poll timeout                │
    │      - non-blocking accept / recv / send everywhere                │
    │                                                                      │
    │   2. TWO TRANSPORTS, ONE PORT                                       │
    │      - TCP listener + accepted connections                         │
    │      - one shared UDP socket                                        │
    │                                                                      │
    │   3. LINE PROTOCOL                                                  │
    │      - echo, list, get <file>, logout, terminate                   │
    │      - "Unknown command: ..." closes a TCP connection              │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    selectserver/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m selectserver)
    ├── server.py            # SelectServer - the event loop
    ├── config.py            # ServerConfig dataclass
    ├── errors.py            # Error taxonomy
    ├── log.py               # Logging setup, structured command logs
    ├── catalog.py           # Directory listing / file reads
    ├── client.py            # Interactive driver client
    ├── core/
    │   ├── poller.py        # Readiness notification
    │   ├── connection.py    # Accepted stream client
    │   ├── endpoints.py     # Listener / datagram socket creation
    │   └── registry.py      # Owns every socket
    └── protocol/
        ├── commands.py      # Command variants + parsing
        └── dispatcher.py    # Command execution

=============================================================================
QUICK START
=============================================================================

    $ python -m selectserver 9000

    $ python -m selectserver.client 127.0.0.1 9000
    Please enter a message to be sent to the server ('logout' to terminate): list
    Server: list
    -----Files-----
    notes.txt
    ---------------

    $ echo -n ping | nc -u -w1 127.0.0.1 9000
    ping

=============================================================================
"""

__version__ = "1.0.0"

from .server import SelectServer
from .config import ServerConfig

__all__ = ["SelectServer", "ServerConfig", "__version__"]
