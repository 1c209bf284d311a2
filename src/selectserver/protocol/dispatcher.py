"""
=============================================================================
COMMAND DISPATCHER
=============================================================================

Given one ready handle, read from it, decide what the bytes mean and
apply the effect, all without blocking.

=============================================================================
STREAM PATH
=============================================================================

    ┌─────────────────────────────────────────────────────────────────┐
    │                    dispatch_stream(conn)                        │
    ├─────────────────────────────────────────────────────────────────┤
    │                                                                  │
    │   recv_into(buffer) ──► 0 bytes / error? ──► close, done        │
    │        │                                                         │
    │        ▼                                                         │
    │   parse_stream(raw)                                              │
    │        │                                                         │
    │        ├── Unrecognized ──► "Unknown command: <line>" ──► close │
    │        │                                                         │
    │        ▼                                                         │
    │   echo raw bytes back ──► short write? ──► close, done          │
    │        │                                                         │
    │        ▼                                                         │
    │   Terminate → set flag     List → send listing                  │
    │   Get       → size + file  Echo / Logout → nothing more         │
    │                                                                  │
    └─────────────────────────────────────────────────────────────────┘

Every recognised command is acknowledged by echoing the bytes that were
read; the interactive client prints that echo ("Server: list") and then
reads whatever follows.

=============================================================================
DATAGRAM PATH
=============================================================================

    recvfrom(buffer_size) ──► "terminate"? ──► set flag, no reply
                                   │
                                   └──► sendto(same bytes, sender)

No state survives between datagrams.

=============================================================================
THE KNOWN ASYMMETRY
=============================================================================

An unknown stream command gets an error line AND loses its connection.
A `get` for a missing file gets NOTHING, and the connection stays open.
The client cannot tell "missing file" from "slow server". This is how the
protocol behaves and existing clients depend on it; it is kept as is.

=============================================================================
"""

import logging
import socket
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Type

from ..catalog import FileCatalog
from ..core.connection import Connection
from ..core.registry import ConnectionRegistry
from ..errors import (
    TransportFailure, EchoMismatch, ProtocolViolation, ResourceNotFound,
)
from ..log import CommandLog, CommandLogger
from . import commands
from .commands import Command


logger = logging.getLogger(__name__)


@dataclass
class LoopContext:
    """
    State shared by the event loop and every dispatch call.

    Attributes:
        terminated: Set once by a `terminate` command (or shutdown());
                    never cleared. The loop checks it every iteration.
        commands: How many of each command were dispatched.
        datagrams_received: Datagrams read from the UDP socket.
    """
    terminated: bool = False
    commands: Counter = field(default_factory=Counter)
    datagrams_received: int = 0

    def request_termination(self) -> None:
        self.terminated = True


class CommandDispatcher:
    """
    Executes commands arriving on stream connections and the datagram
    socket.

    Usage:
        dispatcher = CommandDispatcher(registry, FileCatalog("."))
        ctx = LoopContext()
        dispatcher.dispatch_stream(conn, ctx)
        dispatcher.dispatch_datagram(udp_sock, ctx)
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        catalog: FileCatalog,
        buffer_size: int = 32,
        encoding: str = "ascii",
        command_logger: Optional[CommandLogger] = None,
    ):
        self._registry = registry
        self._catalog = catalog
        self.buffer_size = buffer_size
        self.encoding = encoding
        self._commands = command_logger or CommandLogger()

        # Effects applied after the acknowledgement echo
        self._handlers: Dict[Type[Command], Callable] = {
            commands.Terminate: self._handle_terminate,
            commands.List: self._handle_list,
            commands.Get: self._handle_get,
            commands.Logout: self._handle_nothing,
            commands.Echo: self._handle_nothing,
        }

    # =========================================================================
    # STREAM PATH
    # =========================================================================

    def dispatch_stream(self, conn: Connection, ctx: LoopContext) -> None:
        """Service one read-readiness event on a stream connection."""
        try:
            raw = conn.receive()
        except TransportFailure as e:
            logger.warning(f"[{conn.id}] {e}")
            self._registry.close_and_deregister(conn)
            return

        if raw is None:
            return  # Spurious wakeup

        if not raw:
            logger.info(f"[{conn.id}] Peer {conn.peer} closed the connection")
            self._registry.close_and_deregister(conn)
            return

        self.handle_stream_line(conn, raw, ctx)

    def handle_stream_line(self, conn: Connection, raw: bytes, ctx: LoopContext) -> None:
        """
        Parse and execute the bytes of one read.

        Connection-scoped failures end here: the connection is closed and
        the loop carries on with everyone else.
        """
        command = commands.parse_stream(raw, self.encoding)
        conn.last_line = commands.routing_line(commands.decode_line(raw, self.encoding))
        conn.commands_handled += 1
        ctx.commands[command.name] += 1

        logger.debug(f"[{conn.id}] TCP Client: {conn.last_line!r}")
        entry = self._commands.start("tcp", conn.peer, conn.id, command.name, len(raw))
        outcome = None

        try:
            if isinstance(command, commands.Unrecognized):
                raise ProtocolViolation(command.line, command.reply(self.encoding))

            self._acknowledge(conn, raw, entry)
            self._handlers[type(command)](conn, command, ctx, entry)

        except ProtocolViolation as e:
            logger.warning(f"[{conn.id}] {e}")
            try:
                entry.bytes_out += conn.send(e.reply)
            except TransportFailure as send_error:
                logger.debug(f"[{conn.id}] Error reply not delivered: {send_error}")
            self._registry.close_and_deregister(conn)
            outcome = "closed"

        except EchoMismatch as e:
            logger.warning(f"[{conn.id}] write() error, or connection closed: {e}")
            self._registry.close_and_deregister(conn)
            outcome = "mismatch"

        except TransportFailure as e:
            logger.warning(f"[{conn.id}] {e}")
            self._registry.close_and_deregister(conn)
            outcome = "failed"

        self._commands.finish(entry, outcome)

    def _acknowledge(self, conn: Connection, raw: bytes, entry: CommandLog) -> None:
        """Echo the received bytes; anything short of all of them is fatal."""
        sent = conn.send(raw)
        entry.bytes_out += sent
        if sent != len(raw):
            raise EchoMismatch(expected=len(raw), actual=sent)

    def _write(self, conn: Connection, data: bytes, entry: CommandLog) -> None:
        """One write of a command response. Short writes are not retried."""
        sent = conn.send(data)
        entry.bytes_out += sent
        if sent != len(data):
            raise TransportFailure(f"short write: {sent} of {len(data)} bytes")

    # ─────────────────────────────────────────────────────────────────────
    # COMMAND EFFECTS
    # ─────────────────────────────────────────────────────────────────────

    def _handle_terminate(self, conn, command, ctx: LoopContext, entry: CommandLog) -> None:
        logger.info(f"[{conn.id}] Terminating")
        ctx.request_termination()
        entry.outcome = "terminated"

    def _handle_list(self, conn, command, ctx: LoopContext, entry: CommandLog) -> None:
        logger.info(f"[{conn.id}] Sending file names")
        try:
            listing = self._catalog.listing(self.encoding)
        except OSError as e:
            raise TransportFailure(f"listing failed: {e}") from e
        self._write(conn, listing, entry)

    def _handle_get(self, conn, command, ctx: LoopContext, entry: CommandLog) -> None:
        logger.info(f"[{conn.id}] Open file: {command.filename}")
        try:
            data = self._catalog.read(command.filename)
        except ResourceNotFound as e:
            # Nothing goes back to the client; see module docstring
            logger.warning(f"[{conn.id}] open failed: {e}")
            entry.outcome = "not_found"
            return

        # Two writes, in this order: size line, then the raw bytes
        self._write(conn, f"{len(data)}\n".encode(self.encoding), entry)
        self._write(conn, data, entry)

    def _handle_nothing(self, conn, command, ctx: LoopContext, entry: CommandLog) -> None:
        pass

    # =========================================================================
    # DATAGRAM PATH
    # =========================================================================

    def dispatch_datagram(self, sock: socket.socket, ctx: LoopContext) -> None:
        """Receive one datagram and answer it (or stop the server)."""
        try:
            raw, address = sock.recvfrom(self.buffer_size)
        except BlockingIOError:
            return
        except OSError as e:
            logger.warning(f"UDP receive failed: {e}")
            return

        ctx.datagrams_received += 1
        command = commands.parse_datagram(raw, self.encoding)
        ctx.commands[command.name] += 1

        peer = f"{address[0]}:{address[1]}"
        logger.debug(f"UDP Client {peer}: {commands.decode_line(raw, self.encoding)!r}")
        entry = self._commands.start("udp", peer, "-", command.name, len(raw))

        if isinstance(command, commands.Terminate):
            logger.info(f"Terminating (datagram from {peer})")
            ctx.request_termination()
            self._commands.finish(entry, "terminated")
            return

        outcome = None
        try:
            entry.bytes_out = sock.sendto(raw, address)
        except OSError as e:
            logger.warning(f"UDP send to {peer} failed: {e}")
            outcome = "failed"

        self._commands.finish(entry, outcome)
