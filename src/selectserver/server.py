"""
=============================================================================
SELECT SERVER
=============================================================================

The main server class: one thread, one poller, two listening sockets,
any number of stream clients.

=============================================================================
ARCHITECTURE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                          SelectServer                               │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   ServerConfig ──► validate()                                       │
    │                                                                      │
    │   Poller ◄──────── ConnectionRegistry ◄──── accept_all()            │
    │     │                  │                                             │
    │     │                  └── listener, datagram, connections           │
    │     │                                                                │
    │     └── poll() ──► ReadyEvent ──► CommandDispatcher                  │
    │                                        │                             │
    │                                        ├── FileCatalog               │
    │                                        └── CommandLogger             │
    │                                                                      │
    │   LoopContext.terminated ◄── terminate / shutdown() / SIGTERM       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
THE LOOP
=============================================================================

    while not ctx.terminated:
        events = poller.poll(500ms)          # the ONLY blocking call
        for event in events:
            ACCEPTOR → registry.accept_all()
            DATAGRAM → dispatcher.dispatch_datagram()
            STREAM   → dispatcher.dispatch_stream(conn)
    registry.shutdown_all()                  # every handle closed once

A `terminate` sets the flag mid-batch; the rest of the batch is still
serviced and the loop exits at the next check, so shutdown is observed
within one poll timeout.

=============================================================================
"""

import logging
import selectors
import signal
import threading
from typing import Optional, Tuple

from .catalog import FileCatalog
from .config import ServerConfig
from .core import Poller, HandleKind, ConnectionRegistry
from .errors import PollFailure
from .log import CommandLogger, setup_logging
from .protocol import CommandDispatcher, LoopContext


logger = logging.getLogger(__name__)


class SelectServer:
    """
    TCP + UDP echo / file server multiplexed on one readiness loop.

    Usage:
        server = SelectServer(ServerConfig(port=9000))
        server.run()             # blocks until `terminate`

        # From another thread (tests, embedding):
        server.ready.wait(5)
        host, port = server.address
        server.shutdown()
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        selector: Optional[selectors.BaseSelector] = None,
    ):
        """
        Args:
            config: Server configuration. Uses defaults if not provided.
            selector: Selector backing the poller (default: DefaultSelector).
        """
        self.config = config or ServerConfig()
        self.config.validate()
        self._selector = selector

        self.ctx = LoopContext()

        # Set once both sockets are bound; tests wait on it
        self.ready = threading.Event()

        self._poller: Optional[Poller] = None
        self._registry: Optional[ConnectionRegistry] = None
        self._dispatcher: Optional[CommandDispatcher] = None
        self._address: Optional[Tuple[str, int]] = None
        self._original_handlers: dict = {}

    @property
    def address(self) -> Tuple[str, int]:
        """The bound (host, port); the configured one before run()."""
        return self._address or (self.config.host, self.config.port)

    @property
    def registry(self) -> Optional[ConnectionRegistry]:
        return self._registry

    @property
    def is_running(self) -> bool:
        return self.ready.is_set() and not self.ctx.terminated

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self) -> None:
        """
        Bind, serve until terminated, then close everything.

        Raises:
            OSError: The port could not be bound.
            SystemExit: The poller failed (exit status 1).
        """
        setup_logging(self.config.log_level)

        catalog = FileCatalog(self.config.root_dir)
        self._poller = Poller(self._selector)
        self._registry = ConnectionRegistry(self._poller, buffer_size=self.config.buffer_size)
        self._dispatcher = CommandDispatcher(
            self._registry,
            catalog,
            buffer_size=self.config.buffer_size,
            encoding=self.config.encoding,
            command_logger=CommandLogger(log_format=self.config.log_format),
        )

        try:
            self._address = self._registry.open_endpoints(
                self.config.host, self.config.port, self.config.backlog
            )
        except OSError:
            self._poller.close()
            raise

        host, port = self._address
        logger.info(f"Server listening on {host}:{port} (tcp+udp), serving {catalog.root_dir}")

        self._setup_signals()
        self.ready.set()

        try:
            self._loop()
        except PollFailure as e:
            logger.critical(f"{e}; exiting")
            raise SystemExit(1) from e
        finally:
            self._cleanup()

    def _loop(self) -> None:
        timeout_ms = self.config.poll_timeout_ms

        while not self.ctx.terminated:
            for event in self._poller.poll(timeout_ms):
                if event.kind is HandleKind.ACCEPTOR:
                    self._registry.accept_all()
                elif event.kind is HandleKind.DATAGRAM:
                    self._dispatcher.dispatch_datagram(event.handle, self.ctx)
                else:
                    conn = event.data
                    # An earlier event in this batch may have closed it
                    if conn in self._registry:
                        self._dispatcher.dispatch_stream(conn, self.ctx)

    def shutdown(self) -> None:
        """
        Ask the loop to stop. Safe from any thread, safe to repeat.

        The loop notices within one poll timeout.
        """
        logger.info("Shutdown requested")
        self.ctx.request_termination()

    def _cleanup(self) -> None:
        """Close every handle and report what the server did."""
        self._restore_signals()

        closed = self._registry.shutdown_all()
        self._poller.close()

        logger.info(
            f"Server stopped: {self._registry.accepted_total} connections accepted, "
            f"{closed} closed at shutdown, {self.ctx.datagrams_received} datagrams, "
            f"commands={dict(self.ctx.commands)}"
        )

    # =========================================================================
    # SIGNALS
    # =========================================================================

    def _setup_signals(self) -> None:
        """
        Turn SIGINT / SIGTERM into a cooperative shutdown.

        Only possible from the main thread; a server run from a
        background thread (tests) keeps the process's handlers.
        """
        if threading.current_thread() is not threading.main_thread():
            return

        def shutdown_handler(signum, frame):
            logger.info(f"Received {signal.Signals(signum).name}, initiating shutdown...")
            self.ctx.request_termination()

        for sig in (signal.SIGTERM, signal.SIGINT):
            self._original_handlers[sig] = signal.signal(sig, shutdown_handler)

    def _restore_signals(self) -> None:
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()
