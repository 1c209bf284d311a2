"""
=============================================================================
COMMAND PARSING
=============================================================================

Turns the raw bytes of one read into exactly one Command.

=============================================================================
THE COMMANDS
=============================================================================

    Command        Wire text          Stream effect           Datagram
    ─────────────  ─────────────────  ──────────────────────  ──────────
    Terminate      terminate          echo, stop server       stop server
    List           list               echo, send listing      (echo)
    Logout         logout             echo                    (echo)
    Get(name)      get <name>         echo, send file         (echo)
    Echo(payload)  blank line         echo                    echo
    Unrecognized   anything else      "Unknown command: ..."  (echo)
                                      then close

Datagrams only know `terminate`; everything else is echoed.

=============================================================================
TWO VIEWS OF THE SAME BYTES
=============================================================================

    raw bytes       b"list\r\n"        ← what gets ECHOED (unchanged)
        │
        │ decode (ascii, undecodable → U+FFFD)
        ▼
    decoded line    "list\r\n"         ← what "Unknown command:" quotes
        │
        │ remove every CR and LF
        ▼
    routing line    "list"             ← what command matching looks at

The routing line is only ever used to pick a command. Nothing is
reconstructed from it: echoes send the original bytes back.

=============================================================================
"""

from dataclasses import dataclass
from typing import ClassVar


TERMINATE = "terminate"
LIST = "list"
LOGOUT = "logout"
GET = "get"

UNKNOWN_PREFIX = "Unknown command: "


class Command:
    """Base class of the command variants."""
    name: ClassVar[str] = "command"


@dataclass(frozen=True)
class Echo(Command):
    """Send the received bytes back unchanged."""
    name: ClassVar[str] = "echo"
    payload: bytes


@dataclass(frozen=True)
class List(Command):
    """Send the directory listing."""
    name: ClassVar[str] = "list"


@dataclass(frozen=True)
class Get(Command):
    """Send one file: size line, then contents."""
    name: ClassVar[str] = "get"
    filename: str


@dataclass(frozen=True)
class Terminate(Command):
    """Stop the server."""
    name: ClassVar[str] = "terminate"


@dataclass(frozen=True)
class Logout(Command):
    """Client is about to disconnect; acknowledged like any command."""
    name: ClassVar[str] = "logout"


@dataclass(frozen=True)
class Unrecognized(Command):
    """A stream line that matches no command."""
    name: ClassVar[str] = "unknown"
    line: str

    def reply(self, encoding: str = "ascii") -> bytes:
        """The error text written back before the connection is closed."""
        return (UNKNOWN_PREFIX + self.line).encode(encoding, errors="replace")


def decode_line(raw: bytes, encoding: str = "ascii") -> str:
    """Decode received bytes, replacing anything undecodable."""
    return raw.decode(encoding, errors="replace")


def routing_line(decoded: str) -> str:
    """Remove every line terminator character (CR and LF)."""
    return decoded.replace("\r", "").replace("\n", "")


def parse_stream(raw: bytes, encoding: str = "ascii") -> Command:
    """
    Parse one read from a stream connection.

    First match wins:
        1. "terminate"                      → Terminate
        2. "list"                           → List
        3. "logout"                         → Logout
        4. no tokens (blank / whitespace)   → Echo
        5. "get <name> ..."                 → Get(name)
        6. anything else                    → Unrecognized

    Note that a bare "get" has no filename and falls to rule 6.
    """
    decoded = decode_line(raw, encoding)
    line = routing_line(decoded)

    if line == TERMINATE:
        return Terminate()
    if line == LIST:
        return List()
    if line == LOGOUT:
        return Logout()

    tokens = line.split()
    if not tokens:
        return Echo(raw)

    if tokens[0] == GET and len(tokens) > 1:
        return Get(tokens[1])

    return Unrecognized(decoded)


def parse_datagram(raw: bytes, encoding: str = "ascii") -> Command:
    """
    Parse one datagram.

    Only "terminate" means anything; every other payload is echoed.
    """
    if routing_line(decode_line(raw, encoding)) == TERMINATE:
        return Terminate()
    return Echo(raw)
