"""
=============================================================================
COMMAND LOGGING
=============================================================================

Two kinds of log output come out of the server:

1. LIFECYCLE LOGS - plain messages from each module's own logger
   ("Server listening on ...", "Accepted connection from ...").

2. COMMAND LOGS - one structured entry per dispatched command, emitted on
   the dedicated "selectserver.commands" logger so it can be routed or
   silenced on its own:

       logging.getLogger("selectserver.commands").setLevel(logging.WARNING)

Command logs come in two formats:

    text:  tcp 127.0.0.1:50312 [3f2a9c1e] list in=5 out=48 ok 0.21ms
    json:  {"transport": "tcp", "peer": "127.0.0.1:50312", ...}

=============================================================================
"""

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Optional


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger("selectserver.commands")


def setup_logging(level: str = "INFO") -> None:
    """
    Configure root logging for the server process.

    Args:
        level: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    numeric = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=numeric,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
    )

    logging.getLogger("selectserver").setLevel(numeric)


@dataclass
class CommandLog:
    """
    Structured log entry for one dispatched command.

    Fields:
        transport:   "tcp" or "udp"
        peer:        "ip:port" of the client
        conn_id:     Connection id ("-" for datagrams)
        command:     Command name (echo, list, get, ...)
        bytes_in:    Bytes received for this command
        bytes_out:   Bytes written back
        outcome:     ok / closed / not_found / mismatch / failed / terminated
        duration_ms: Time spent dispatching
        timestamp:   Wall-clock time the entry was built
    """

    transport: str
    peer: str
    conn_id: str
    command: str
    bytes_in: int
    bytes_out: int = 0
    outcome: str = "ok"
    duration_ms: float = 0.0
    timestamp: str = field(default_factory=lambda: time.strftime("%d/%b/%Y:%H:%M:%S %z"))
    started_at: float = field(default_factory=time.time, repr=False)

    def to_dict(self) -> dict:
        """Convert to a dictionary for JSON serialization."""
        return {
            "transport": self.transport,
            "peer": self.peer,
            "conn_id": self.conn_id,
            "command": self.command,
            "bytes_in": self.bytes_in,
            "bytes_out": self.bytes_out,
            "outcome": self.outcome,
            "duration_ms": round(self.duration_ms, 2),
            "timestamp": self.timestamp,
        }

    def to_text(self) -> str:
        """Format as a single human readable line."""
        return (
            f"{self.transport} {self.peer} [{self.conn_id}] {self.command} "
            f"in={self.bytes_in} out={self.bytes_out} {self.outcome} "
            f"{self.duration_ms:.2f}ms"
        )


class CommandLogger:
    """
    Emits CommandLog entries in the configured format.

    Usage:
        commands = CommandLogger(log_format="json")
        entry = commands.start("tcp", "127.0.0.1:5000", "3f2a9c1e", "list", 5)
        ...
        entry.bytes_out += sent
        commands.finish(entry)
    """

    def __init__(self, log_format: str = "text", log_level: int = logging.INFO):
        self.log_format = log_format
        self.log_level = log_level

    def start(
        self,
        transport: str,
        peer: str,
        conn_id: str,
        command: str,
        bytes_in: int,
    ) -> CommandLog:
        """Begin timing a command and return its (mutable) log entry."""
        entry = CommandLog(
            transport=transport,
            peer=peer,
            conn_id=conn_id,
            command=command,
            bytes_in=bytes_in,
        )
        return entry

    def finish(self, entry: CommandLog, outcome: Optional[str] = None) -> None:
        """Stop timing and emit the entry."""
        entry.duration_ms = (time.time() - entry.started_at) * 1000
        if outcome is not None:
            entry.outcome = outcome

        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(entry.to_dict()))
        else:
            logger.log(self.log_level, entry.to_text())
