"""
pytest configuration and fixtures.
"""

import socket
import threading
from pathlib import Path
from typing import Generator

import pytest

# Add src to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from selectserver import SelectServer, ServerConfig
from selectserver.catalog import FileCatalog
from selectserver.core import Poller, ConnectionRegistry, Connection
from selectserver.protocol import CommandDispatcher, LoopContext


NOTES = b"hello world\n"
BINARY = bytes(range(256)) * 4


@pytest.fixture
def served_dir(tmp_path: Path) -> Path:
    """A directory with a text file, a binary file and a subdirectory."""
    root = tmp_path / "served"
    root.mkdir()
    (root / "notes.txt").write_bytes(NOTES)
    (root / "data.bin").write_bytes(BINARY)
    (root / "empty.txt").write_bytes(b"")
    (root / "subdir").mkdir()
    return root


@pytest.fixture
def config(served_dir: Path) -> ServerConfig:
    """Test server configuration: loopback, OS-picked port, fast polls."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,
        poll_timeout=0.1,
        root_dir=str(served_dir),
        log_level="WARNING",
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


# =============================================================================
# DISPATCHER FIXTURES (no server loop, socketpairs only)
# =============================================================================

class DispatchHarness:
    """A dispatcher wired to a registry, plus helpers to fake clients."""

    def __init__(self, root: Path, buffer_size: int = 32):
        self.poller = Poller()
        self.registry = ConnectionRegistry(self.poller, buffer_size=buffer_size)
        self.dispatcher = CommandDispatcher(
            self.registry,
            FileCatalog(root),
            buffer_size=buffer_size,
        )
        self.ctx = LoopContext()
        self._sockets = []

    def connect(self):
        """Return (connection, client_socket) joined by a socketpair."""
        server_side, client_side = socket.socketpair()
        client_side.settimeout(2.0)
        conn = Connection(socket=server_side, address=("127.0.0.1", 40000), buffer_size=self.registry.buffer_size)
        self.registry.add(conn)
        self._sockets.append(client_side)
        return conn, client_side

    def close(self):
        self.registry.shutdown_all()
        self.poller.close()
        for sock in self._sockets:
            sock.close()


@pytest.fixture
def harness(served_dir: Path) -> Generator[DispatchHarness, None, None]:
    h = DispatchHarness(served_dir)
    yield h
    h.close()


# =============================================================================
# RUNNING SERVER
# =============================================================================

class ServerHarness:
    """Runs a SelectServer in a background thread."""

    def __init__(self, server: SelectServer):
        self.server = server
        self._thread: threading.Thread = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self):
        """Start the server thread and wait until it is bound."""
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()

        if not self.server.ready.wait(5.0):
            raise RuntimeError("Server failed to start")

    def join(self, timeout: float = 5.0) -> bool:
        """Wait for the loop to exit. Returns True if it did."""
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def stop(self):
        """Stop the server."""
        self.server.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)


@pytest.fixture
def running_server(config: ServerConfig) -> Generator[ServerHarness, None, None]:
    """A live server on loopback, stopped on teardown."""
    harness = ServerHarness(SelectServer(config))
    harness.start()

    yield harness

    harness.stop()
