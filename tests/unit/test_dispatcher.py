"""
Unit tests for the command dispatcher.

Stream clients are faked with socketpairs; nothing here runs the loop.
"""

import json
import select
import shutil
import socket
from pathlib import Path

import pytest

from selectserver.core import Connection
from selectserver.log import CommandLogger
from selectserver.protocol import CommandDispatcher, LoopContext


def recv_quiet(sock: socket.socket, quiet: float = 0.2) -> bytes:
    """Read until the peer is silent for `quiet` seconds or closes."""
    data = b""
    sock.settimeout(quiet)
    try:
        while True:
            chunk = sock.recv(4096)
            if not chunk:
                break
            data += chunk
    except socket.timeout:
        pass
    return data


def send_and_dispatch(harness, conn, client, payload: bytes) -> None:
    client.sendall(payload)
    harness.dispatcher.dispatch_stream(conn, harness.ctx)


class ShortWriteConnection(Connection):
    """Accepts one byte less than asked on every write."""

    def send(self, data: bytes) -> int:
        super().send(data[:-1])
        return max(len(data) - 1, 0)


class TestStreamEcho:
    """Echo and unknown-command branches."""

    @pytest.mark.parametrize("payload", [b"\n", b"   \n", b"\t \r\n"])
    def test_blank_line_is_echoed_exactly(self, harness, payload):
        conn, client = harness.connect()
        send_and_dispatch(harness, conn, client, payload)

        assert recv_quiet(client) == payload
        assert conn in harness.registry

    @pytest.mark.parametrize("payload", [b"hello\n", b"hello world\n", b"get\n"])
    def test_unknown_command_replies_and_closes(self, harness, payload):
        conn, client = harness.connect()
        send_and_dispatch(harness, conn, client, payload)

        assert recv_quiet(client) == b"Unknown command: " + payload
        assert conn not in harness.registry
        assert not conn.is_open

    def test_unknown_command_is_not_echoed(self, harness):
        conn, client = harness.connect()
        send_and_dispatch(harness, conn, client, b"ping\n")

        assert not recv_quiet(client).startswith(b"ping")

    def test_echo_mismatch_closes_connection(self, harness):
        server_side, client = socket.socketpair()
        conn = ShortWriteConnection(socket=server_side, address=("127.0.0.1", 1))
        harness.registry.add(conn)
        try:
            harness.dispatcher.handle_stream_line(conn, b"  \n", harness.ctx)

            assert conn not in harness.registry
            assert not conn.is_open
        finally:
            client.close()

    def test_long_line_is_split_by_buffer(self, harness):
        """No reassembly: only the first 32 bytes are seen as one line."""
        conn, client = harness.connect()
        payload = b"x" * 40 + b"\n"
        send_and_dispatch(harness, conn, client, payload)

        assert recv_quiet(client) == b"Unknown command: " + b"x" * 32


class TestStreamCommands:
    """list / get / logout / terminate over a stream connection."""

    def test_list_echoes_then_sends_names(self, harness, served_dir):
        conn, client = harness.connect()
        send_and_dispatch(harness, conn, client, b"list\n")

        data = recv_quiet(client)
        echo, _, listing = data.partition(b"\n")

        assert echo == b"list"
        names = listing.decode("ascii").split("\n")
        assert names[-1] == ""
        assert set(names[:-1]) == {p.name for p in served_dir.iterdir()}

    def test_get_sends_size_line_then_bytes(self, harness):
        conn, client = harness.connect()
        send_and_dispatch(harness, conn, client, b"get notes.txt\n")

        assert recv_quiet(client) == b"get notes.txt\n" + b"12\n" + b"hello world\n"
        assert conn in harness.registry

    def test_get_empty_file(self, harness):
        conn, client = harness.connect()
        send_and_dispatch(harness, conn, client, b"get empty.txt\n")

        assert recv_quiet(client) == b"get empty.txt\n0\n"

    def test_get_missing_file_is_silent_and_keeps_connection(self, harness, caplog):
        """Only the acknowledgement comes back; no error, no close."""
        caplog.set_level("WARNING", logger="selectserver")
        conn, client = harness.connect()
        send_and_dispatch(harness, conn, client, b"get missing.txt\n")

        assert recv_quiet(client) == b"get missing.txt\n"
        assert conn in harness.registry
        assert conn.is_open
        assert "open failed" in caplog.text

    def test_get_directory_is_silent(self, harness):
        conn, client = harness.connect()
        send_and_dispatch(harness, conn, client, b"get subdir\n")

        assert recv_quiet(client) == b"get subdir\n"
        assert conn in harness.registry

    def test_get_unreadable_file_is_silent(self, harness, monkeypatch):
        def deny(self):
            raise PermissionError(13, "Permission denied", str(self))

        monkeypatch.setattr(Path, "read_bytes", deny)
        conn, client = harness.connect()
        send_and_dispatch(harness, conn, client, b"get notes.txt\n")

        assert recv_quiet(client) == b"get notes.txt\n"
        assert conn in harness.registry
        assert conn.is_open

    def test_list_of_removed_directory_closes_only_that_connection(self, harness, served_dir):
        conn, client = harness.connect()
        other, other_client = harness.connect()
        shutil.rmtree(served_dir)

        send_and_dispatch(harness, conn, client, b"list\n")

        assert recv_quiet(client) == b"list\n"
        assert conn not in harness.registry
        assert other in harness.registry
        assert harness.ctx.terminated is False

        send_and_dispatch(harness, other, other_client, b"logout\n")
        assert recv_quiet(other_client) == b"logout\n"

    def test_logout_is_acknowledged(self, harness):
        conn, client = harness.connect()
        send_and_dispatch(harness, conn, client, b"logout\n")

        assert recv_quiet(client) == b"logout\n"
        assert conn in harness.registry

    def test_terminate_sets_flag(self, harness):
        conn, client = harness.connect()
        assert harness.ctx.terminated is False

        send_and_dispatch(harness, conn, client, b"terminate\n")

        assert harness.ctx.terminated is True
        assert recv_quiet(client) == b"terminate\n"

    def test_commands_are_counted(self, harness):
        conn, client = harness.connect()
        send_and_dispatch(harness, conn, client, b"logout\n")
        recv_quiet(client)
        send_and_dispatch(harness, conn, client, b"get missing\n")
        recv_quiet(client)

        assert conn.commands_handled == 2
        assert conn.last_line == "get missing"
        assert harness.ctx.commands == {"logout": 1, "get": 1}


class TestStreamTransport:
    """Peer close and read errors."""

    def test_peer_close_deregisters(self, harness):
        conn, client = harness.connect()
        other, other_client = harness.connect()
        client.close()

        harness.dispatcher.dispatch_stream(conn, harness.ctx)

        assert conn not in harness.registry
        assert other in harness.registry

    def test_spurious_wakeup_is_ignored(self, harness):
        conn, client = harness.connect()
        harness.dispatcher.dispatch_stream(conn, harness.ctx)

        assert conn in harness.registry


class TestDatagramPath:
    """UDP receive / echo / terminate."""

    @pytest.fixture
    def udp_pair(self):
        server = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        server.bind(("127.0.0.1", 0))
        server.setblocking(False)
        client = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        client.settimeout(0.5)
        yield server, client
        server.close()
        client.close()

    def _dispatch(self, harness, server):
        select.select([server], [], [], 1.0)
        harness.dispatcher.dispatch_datagram(server, harness.ctx)

    def test_ping_is_echoed_to_sender(self, harness, udp_pair):
        server, client = udp_pair
        client.sendto(b"ping", server.getsockname())
        self._dispatch(harness, server)

        data, address = client.recvfrom(1024)
        assert data == b"ping"
        assert address == server.getsockname()
        assert harness.ctx.datagrams_received == 1

    def test_list_is_not_interpreted(self, harness, udp_pair):
        server, client = udp_pair
        client.sendto(b"list\n", server.getsockname())
        self._dispatch(harness, server)

        assert client.recvfrom(1024)[0] == b"list\n"

    def test_terminate_gets_no_reply(self, harness, udp_pair):
        server, client = udp_pair
        client.sendto(b"terminate\n", server.getsockname())
        self._dispatch(harness, server)

        assert harness.ctx.terminated is True
        with pytest.raises(socket.timeout):
            client.recvfrom(1024)

    def test_oversized_datagram_is_truncated(self, harness, udp_pair):
        server, client = udp_pair
        client.sendto(b"y" * 100, server.getsockname())
        self._dispatch(harness, server)

        assert client.recvfrom(1024)[0] == b"y" * 32

    def test_nothing_to_read_is_ignored(self, harness, udp_pair):
        server, _ = udp_pair
        harness.dispatcher.dispatch_datagram(server, harness.ctx)
        assert harness.ctx.datagrams_received == 0


class TestCommandLog:
    """Structured command log output."""

    def test_json_log_entry(self, served_dir, caplog):
        from selectserver.catalog import FileCatalog
        from selectserver.core import Poller, ConnectionRegistry

        caplog.set_level("INFO", logger="selectserver.commands")
        poller = Poller()
        registry = ConnectionRegistry(poller)
        dispatcher = CommandDispatcher(
            registry,
            FileCatalog(served_dir),
            command_logger=CommandLogger(log_format="json"),
        )
        server_side, client = socket.socketpair()
        conn = Connection(socket=server_side, address=("127.0.0.1", 5555))
        registry.add(conn)
        try:
            dispatcher.handle_stream_line(conn, b"get notes.txt\n", LoopContext())

            records = [r for r in caplog.records if r.name == "selectserver.commands"]
            entry = json.loads(records[-1].getMessage())
            assert entry["transport"] == "tcp"
            assert entry["peer"] == "127.0.0.1:5555"
            assert entry["command"] == "get"
            assert entry["bytes_in"] == 14
            assert entry["bytes_out"] == 14 + 3 + 12
            assert entry["outcome"] == "ok"
        finally:
            registry.shutdown_all()
            poller.close()
            client.close()
