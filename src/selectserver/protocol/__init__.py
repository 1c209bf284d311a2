"""
Line protocol: command parsing and dispatch.
"""

from .commands import (
    Command, Echo, List, Get, Terminate, Logout, Unrecognized,
    parse_stream, parse_datagram,
)
from .dispatcher import CommandDispatcher, LoopContext

__all__ = [
    "Command",
    "Echo",
    "List",
    "Get",
    "Terminate",
    "Logout",
    "Unrecognized",
    "parse_stream",
    "parse_datagram",
    "CommandDispatcher",
    "LoopContext",
]
