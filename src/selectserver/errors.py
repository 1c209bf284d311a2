"""
=============================================================================
ERROR TAXONOMY
=============================================================================

Every failure the server knows how to handle has its own exception type,
and each type has exactly one place that catches it:

    ┌──────────────────────┬──────────────────────┬────────────────────────┐
    │ Exception            │ Scope                │ Handled by             │
    ├──────────────────────┼──────────────────────┼────────────────────────┤
    │ TransportFailure     │ one connection       │ dispatcher: close it   │
    │ EchoMismatch         │ one connection       │ dispatcher: close it   │
    │ ProtocolViolation    │ one connection       │ dispatcher: reply,     │
    │                      │                      │ then close it          │
    │ ResourceNotFound     │ one request          │ dispatcher: log only   │
    │ PollFailure          │ the whole process    │ server: log, exit(1)   │
    └──────────────────────┴──────────────────────┴────────────────────────┘

Nothing is retried. The only "recovery" is the event loop moving on to
serve everybody else.

=============================================================================
"""


class ServerError(Exception):
    """Base class for all select server errors."""


class TransportFailure(ServerError):
    """
    A socket-level read, write or accept failed.

    Scoped to the connection it happened on; the server keeps running.
    """


class PollFailure(TransportFailure):
    """
    The readiness primitive itself failed.

    The loop cannot make progress without it, so this one is fatal.
    """


class EchoMismatch(TransportFailure):
    """
    An acknowledgement echo wrote fewer bytes than were read.

    Partial writes are never retried, so the connection is closed.
    """

    def __init__(self, expected: int, actual: int):
        super().__init__(f"echoed {actual} of {expected} bytes")
        self.expected = expected
        self.actual = actual


class ProtocolViolation(ServerError):
    """
    A stream client sent a line that is not a command.

    Carries the reply that is written to the client before the
    connection is closed.
    """

    def __init__(self, line: str, reply: bytes):
        super().__init__(f"Unknown command: {line!r}")
        self.line = line
        self.reply = reply


class ResourceNotFound(ServerError):
    """
    A `get` named a file that is not in the directory listing.

    Only logged; the client receives nothing.
    """

    def __init__(self, name: str):
        super().__init__(f"File not found: {name}")
        self.name = name
