"""
=============================================================================
DRIVER CLIENT
=============================================================================

A small line-based client for driving the server by hand, plus the
building blocks the integration tests use.

=============================================================================
USAGE
=============================================================================

    # Interactive TCP session
    python -m selectserver.client 127.0.0.1 9000

    # Interactive UDP session (echo + terminate only)
    python -m selectserver.client 127.0.0.1 9000 --udp

Session example:

    Please enter a message to be sent to the server ('logout' to terminate): list
    Server: list
    -----Files-----
    notes.txt
    ---------------
    Please enter a message to be sent to the server ('logout' to terminate): get notes.txt
    Server: get notes.txt
    File saved in notes.txt-9000 (12 bytes)

=============================================================================
READING RESPONSES
=============================================================================

The protocol has no end-of-response marker. The client has to infer
where a reply stops:

    echo line   → read up to the first "\\n"
    list        → read until the server goes quiet for `quiet` seconds
    get         → read "<size>\\n", then exactly <size> bytes;
                  silence instead of a size line means "no such file"

=============================================================================
"""

import argparse
import os
import socket
import sys
from typing import List, Optional


PROMPT = "Please enter a message to be sent to the server ('logout' to terminate): "


class StreamClient:
    """
    TCP client with its own receive buffer.

    Usage:
        with StreamClient("127.0.0.1", 9000) as client:
            client.command("hello")          # echo line
            names = client.list_files()
            data = client.fetch("notes.txt")
    """

    def __init__(self, host: str, port: int, timeout: float = 5.0, encoding: str = "ascii"):
        self.address = (host, port)
        self.timeout = timeout
        self.encoding = encoding
        self._sock = socket.create_connection(self.address, timeout=timeout)
        self._buffer = b""

    # =========================================================================
    # RAW I/O
    # =========================================================================

    def send_raw(self, data: bytes) -> None:
        self._sock.sendall(data)

    def send_line(self, line: str) -> None:
        """Send one line, newline-terminated."""
        self.send_raw((line + "\n").encode(self.encoding))

    def _fill(self, timeout: float) -> None:
        """
        Read one chunk into the buffer.

        Raises:
            socket.timeout: Nothing arrived within `timeout`.
            ConnectionError: The server closed the connection.
        """
        self._sock.settimeout(timeout)
        chunk = self._sock.recv(4096)
        if not chunk:
            raise ConnectionError("Server closed the connection")
        self._buffer += chunk

    def read_line(self, timeout: Optional[float] = None) -> str:
        """Read up to and excluding the next newline."""
        while b"\n" not in self._buffer:
            self._fill(self.timeout if timeout is None else timeout)
        line, _, self._buffer = self._buffer.partition(b"\n")
        return line.decode(self.encoding, errors="replace")

    def read_exact(self, count: int) -> bytes:
        """Read exactly `count` bytes."""
        while len(self._buffer) < count:
            self._fill(self.timeout)
        data, self._buffer = self._buffer[:count], self._buffer[count:]
        return data

    def read_available(self, quiet: float = 0.2, first: Optional[float] = None) -> bytes:
        """
        Read until the server has been silent for `quiet` seconds.

        Args:
            quiet: Silence that ends the read.
            first: How long to wait for the first byte if nothing is
                   buffered yet (default: quiet).

        Returns:
            Everything received, possibly b"".
        """
        wait = quiet if (first is None or self._buffer) else first
        try:
            while True:
                self._fill(wait)
                wait = quiet
        except (socket.timeout, ConnectionError):
            pass
        data, self._buffer = self._buffer, b""
        return data

    def read_until_closed(self) -> bytes:
        """Read everything until the server closes the connection."""
        try:
            while True:
                self._fill(self.timeout)
        except ConnectionError:
            pass
        data, self._buffer = self._buffer, b""
        return data

    # =========================================================================
    # PROTOCOL HELPERS
    # =========================================================================

    def command(self, line: str) -> str:
        """Send a line and return the server's echo of it."""
        self.send_line(line)
        return self.read_line()

    def list_files(self, quiet: float = 0.2) -> List[str]:
        """Run `list` and return the entry names."""
        self.command("list")
        data = self.read_available(quiet=quiet, first=self.timeout)
        return [name for name in data.decode(self.encoding, errors="replace").split("\n") if name]

    def fetch(self, name: str, wait: float = 0.5) -> Optional[bytes]:
        """
        Run `get <name>`.

        Returns:
            The file contents, or None if the server sent nothing within
            `wait` seconds (which is how a missing file looks).
        """
        self.command(f"get {name}")
        try:
            size_line = self.read_line(timeout=wait)
        except socket.timeout:
            return None
        return self.read_exact(int(size_line))

    def close(self) -> None:
        try:
            self._sock.close()
        except OSError:
            pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class DatagramClient:
    """
    UDP client.

    Usage:
        with DatagramClient("127.0.0.1", 9000) as client:
            client.request(b"ping")      # b"ping"
    """

    def __init__(self, host: str, port: int, timeout: float = 5.0):
        self.address = (host, port)
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self._sock.settimeout(timeout)

    def send(self, payload: bytes) -> None:
        self._sock.sendto(payload, self.address)

    def receive(self, bufsize: int = 65535) -> bytes:
        """Receive one datagram (raises socket.timeout if none arrives)."""
        data, _ = self._sock.recvfrom(bufsize)
        return data

    def request(self, payload: bytes) -> bytes:
        self.send(payload)
        return self.receive()

    def close(self) -> None:
        self._sock.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


# =============================================================================
# INTERACTIVE SESSIONS
# =============================================================================

def _stream_session(host: str, port: int) -> None:
    with StreamClient(host, port) as client:
        line = input(PROMPT)
        while line != "logout":
            client.send_line(line)
            reply = client.read_line()
            print(f"Server: {reply}")

            if reply == "terminate":
                print("Server Terminated: Closing Socket")
                break

            if reply == "list":
                print("-----Files-----")
                print(client.read_available(first=client.timeout).decode("ascii", errors="replace"), end="")
                print("---------------")

            tokens = reply.split()
            if len(tokens) > 1 and tokens[0] == "get":
                try:
                    size_line = client.read_line(timeout=0.5)
                except socket.timeout:
                    print("File doesn't Exist")
                else:
                    data = client.read_exact(int(size_line))
                    filename = f"{tokens[1]}-{port}"
                    with open(os.path.join(os.getcwd(), filename), "wb") as f:
                        f.write(data)
                    print(f"File saved in {filename} ({len(data)} bytes)")

            line = input(PROMPT)


def _datagram_session(host: str, port: int) -> None:
    with DatagramClient(host, port) as client:
        line = input(PROMPT)
        while line != "logout":
            client.send(line.encode("ascii", errors="replace"))
            if line == "terminate":
                print("Server Terminated")
                break
            print(f"Server: {client.receive().decode('ascii', errors='replace')}")
            line = input(PROMPT)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="selectclient",
        description="Interactive client for selectserver",
    )
    parser.add_argument("host", help="Server IP or hostname")
    parser.add_argument("port", type=int, help="Server port")
    parser.add_argument("--udp", action="store_true", help="Talk to the datagram socket")
    args = parser.parse_args(argv)

    try:
        if args.udp:
            _datagram_session(args.host, args.port)
        else:
            _stream_session(args.host, args.port)
    except (EOFError, KeyboardInterrupt):
        print()
    except (ConnectionError, socket.timeout) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
