"""
Unit tests for command parsing.
"""

import pytest

from selectserver.protocol.commands import (
    Echo, List, Get, Terminate, Logout, Unrecognized,
    parse_stream, parse_datagram, routing_line, decode_line,
)


class TestParseStream:
    """Tests for stream line parsing."""

    @pytest.mark.parametrize("raw", [b"terminate\n", b"terminate", b"terminate\r\n"])
    def test_terminate(self, raw: bytes):
        assert parse_stream(raw) == Terminate()

    @pytest.mark.parametrize("raw", [b"list\n", b"list\r\n", b"li\nst"])
    def test_list_ignores_line_terminators(self, raw: bytes):
        """Every CR and LF is removed before matching."""
        assert parse_stream(raw) == List()

    def test_logout(self):
        assert parse_stream(b"logout\n") == Logout()

    def test_get_with_filename(self):
        assert parse_stream(b"get notes.txt\n") == Get("notes.txt")

    def test_get_uses_second_token_only(self):
        assert parse_stream(b"get a.txt b.txt\n") == Get("a.txt")

    def test_get_tolerates_extra_whitespace(self):
        assert parse_stream(b"get   notes.txt\n") == Get("notes.txt")

    def test_bare_get_is_unrecognized(self):
        """`get` without a filename is not a Get."""
        command = parse_stream(b"get\n")
        assert isinstance(command, Unrecognized)
        assert command.line == "get\n"

    @pytest.mark.parametrize("raw", [b"\n", b"   \n", b"\t\r\n", b""])
    def test_blank_lines_are_echoed(self, raw: bytes):
        """No tokens → Echo of the exact bytes received."""
        assert parse_stream(raw) == Echo(raw)

    @pytest.mark.parametrize("raw", [b"hello\n", b"hello world\n", b"LIST\n", b"list \n", b"getfile x\n"])
    def test_other_text_is_unrecognized(self, raw: bytes):
        command = parse_stream(raw)
        assert isinstance(command, Unrecognized)
        assert command.line == raw.decode("ascii")

    def test_unrecognized_reply_keeps_terminator(self):
        command = parse_stream(b"hello\n")
        assert command.reply() == b"Unknown command: hello\n"

    def test_non_ascii_bytes_do_not_raise(self):
        command = parse_stream(b"caf\xe9\n")
        assert isinstance(command, Unrecognized)
        assert "�" in command.line


class TestParseDatagram:
    """Tests for datagram parsing."""

    def test_terminate(self):
        assert parse_datagram(b"terminate") == Terminate()
        assert parse_datagram(b"terminate\n") == Terminate()

    @pytest.mark.parametrize("raw", [b"ping", b"list", b"get notes.txt", b"hello world", b""])
    def test_everything_else_is_echo(self, raw: bytes):
        """Datagrams never get list/get/unknown handling."""
        assert parse_datagram(raw) == Echo(raw)


class TestLineHelpers:
    """Tests for decoding helpers."""

    def test_routing_line_strips_cr_and_lf_everywhere(self):
        assert routing_line("a\r\nb\n") == "ab"

    def test_decode_line_replaces_undecodable(self):
        assert decode_line(b"\xff") == "�"

    def test_command_names(self):
        assert Echo(b"").name == "echo"
        assert List().name == "list"
        assert Get("x").name == "get"
        assert Terminate().name == "terminate"
        assert Logout().name == "logout"
        assert Unrecognized("x").name == "unknown"
