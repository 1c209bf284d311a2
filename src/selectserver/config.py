"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized configuration for the select server.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m selectserver 9000 --buffer-size 64              │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── SELECT_PORT=9000 python -m selectserver                   │
    │                                                                      │
    │   3. Default values (in this dataclass)                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
THE TWO NUMBERS THAT SHAPE THE PROTOCOL
=============================================================================

buffer_size (32 bytes)
    Every read pulls at most this many bytes off a socket. There is no
    reassembly: a 40-byte line arrives as two separate "lines" of 32 and
    8 bytes, and each is dispatched on its own. Keep commands short.

poll_timeout (0.5 seconds)
    The only place the server ever blocks. It bounds how long a
    `terminate` (or Ctrl+C) can take to be noticed when nothing else is
    happening on the network.

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


LOG_FORMATS = ("text", "json")


@dataclass
class ServerConfig:
    """
    Configuration for the select server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK SETTINGS
    - host, port, backlog

    EVENT LOOP SETTINGS
    - buffer_size, poll_timeout

    PROTOCOL SETTINGS
    - root_dir, encoding

    LOGGING
    - log_level, log_format

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "0.0.0.0"
    """
    The IP address both sockets bind to.
    - "127.0.0.1" - Localhost only
    - "0.0.0.0" - All network interfaces
    """

    port: int = 9000
    """
    The port number shared by the TCP listener and the UDP socket.
    0 lets the OS pick a free TCP port; the UDP socket follows it.
    """

    backlog: int = 128
    """
    Maximum number of queued TCP connections awaiting accept().
    """

    # ─────────────────────────────────────────────────────────────────────
    # EVENT LOOP SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    buffer_size: int = 32
    """
    Receive buffer capacity in bytes, per read and per datagram.
    Payloads larger than this are split (TCP) or truncated (UDP).
    """

    poll_timeout: float = 0.5
    """
    Maximum time in seconds a single poll() may block.
    """

    # ─────────────────────────────────────────────────────────────────────
    # PROTOCOL SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    root_dir: Optional[str] = None
    """
    Directory served by `list` and `get`.
    None = the process working directory at startup.
    """

    encoding: str = "ascii"
    """
    Text encoding used to decode command lines and encode replies.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """
    Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """

    log_format: str = "text"
    """
    Command log format: 'json' or 'text'.
    """

    @property
    def poll_timeout_ms(self) -> int:
        """Poll timeout in whole milliseconds."""
        return int(self.poll_timeout * 1000)

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        SELECT_HOST          Bind address (default: 0.0.0.0)
        SELECT_PORT          Shared TCP/UDP port (default: 9000)
        SELECT_BUFFER_SIZE   Receive buffer in bytes (default: 32)
        SELECT_POLL_TIMEOUT  Poll timeout in seconds (default: 0.5)
        SELECT_ROOT_DIR      Directory for list/get (default: cwd)
        SELECT_LOG_LEVEL     Logging level (default: INFO)
        SELECT_LOG_FORMAT    text or json (default: text)

        =====================================================================
        """
        return cls(
            host=os.getenv("SELECT_HOST", "0.0.0.0"),
            port=int(os.getenv("SELECT_PORT", "9000")),
            buffer_size=int(os.getenv("SELECT_BUFFER_SIZE", "32")),
            poll_timeout=float(os.getenv("SELECT_POLL_TIMEOUT", "0.5")),
            root_dir=os.getenv("SELECT_ROOT_DIR"),
            log_level=os.getenv("SELECT_LOG_LEVEL", "INFO"),
            log_format=os.getenv("SELECT_LOG_FORMAT", "text"),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Called once at startup so a bad value fails before any socket
        is created.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.buffer_size < 1:
            raise ValueError("buffer_size must be >= 1")

        if self.poll_timeout <= 0:
            raise ValueError("poll_timeout must be > 0")

        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {', '.join(LOG_FORMATS)}")

        if self.root_dir is not None and not os.path.isdir(self.root_dir):
            raise ValueError(f"root_dir does not exist: {self.root_dir}")
