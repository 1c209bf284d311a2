"""
=============================================================================
SELECT SERVER CLI ENTRY POINT
=============================================================================

    # Serve the current directory on TCP+UDP port 9000
    python -m selectserver 9000

    # Localhost only, bigger buffer, JSON command logs
    python -m selectserver 9000 --host 127.0.0.1 --buffer-size 64 --log-format json

    # Serve another directory
    python -m selectserver 9000 --root /srv/files

The port is the one required argument. Anything else missing or extra is
a usage error (exit status 2).

Environment variables (see ServerConfig.from_env) provide the defaults;
command-line flags override them.

=============================================================================
"""

import argparse
import sys

from . import __version__
from .config import ServerConfig, LOG_FORMATS
from .server import SelectServer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="selectserver",
        description="TCP + UDP command server multiplexed on one event loop",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m selectserver 9000                     # Serve cwd on port 9000
  python -m selectserver 9000 --root ./files      # Serve another directory
  python -m selectserver 9000 --log-level DEBUG   # Show every line received
        """
    )

    parser.add_argument(
        "port",
        type=int,
        help="TCP and UDP port to listen on"
    )

    # ─────────────────────────────────────────────────────────────────────
    # OPTIONAL OVERRIDES
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Address to bind to (default: 0.0.0.0)"
    )

    parser.add_argument(
        "--buffer-size", "-b",
        type=int,
        default=None,
        help="Receive buffer size in bytes (default: 32)"
    )

    parser.add_argument(
        "--poll-timeout", "-t",
        type=float,
        default=None,
        help="Poll timeout in seconds (default: 0.5)"
    )

    parser.add_argument(
        "--root", "-r",
        default=None,
        help="Directory served by list/get (default: current directory)"
    )

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        default=None,
        help="Command log format (default: text)"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"selectserver {__version__}"
    )

    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """Environment defaults, overridden by whatever flags were given."""
    config = ServerConfig.from_env()
    config.port = args.port

    if args.host is not None:
        config.host = args.host
    if args.buffer_size is not None:
        config.buffer_size = args.buffer_size
    if args.poll_timeout is not None:
        config.poll_timeout = args.poll_timeout
    if args.root is not None:
        config.root_dir = args.root
    if args.log_level is not None:
        config.log_level = args.log_level
    if args.log_format is not None:
        config.log_format = args.log_format

    return config


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        server = SelectServer(config_from_args(args))
        server.run()
    except (ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
