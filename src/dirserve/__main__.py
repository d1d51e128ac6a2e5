"""
=============================================================================
DIRSERVE CLI ENTRY POINT
=============================================================================

=============================================================================
USAGE
=============================================================================

    # Serve the current directory on 127.0.0.1:8123 with 4 workers
    python -m dirserve

    # Port 9000, 8 worker threads
    python -m dirserve 9000 8

    # Another directory, all interfaces
    python -m dirserve --root /srv/files --host 0.0.0.0

    # JSON access log, debug output
    python -m dirserve --log-format json --log-level DEBUG

=============================================================================
CONFIGURATION PRECEDENCE
=============================================================================

    command line  >  DIRSERVE_* environment  >  ServerConfig defaults

Arguments left off the command line are taken from ServerConfig.from_env(),
which itself falls back to the defaults.

=============================================================================
"""

import argparse
import sys
from typing import List, Optional

from . import __version__
from .config import ServerConfig, LOG_FORMATS
from .server import FileServer


def build_parser() -> argparse.ArgumentParser:
    """Command-line parser. Every option defaults to None (= not given)."""
    parser = argparse.ArgumentParser(
        prog="dirserve",
        description="Serve a directory tree over HTTP with a fixed pool of worker threads",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m dirserve                        # cwd on 127.0.0.1:8123, 4 workers
  python -m dirserve 9000 8                 # port 9000, 8 workers
  python -m dirserve --root ./public        # serve another directory
  python -m dirserve --host 0.0.0.0         # listen on all interfaces
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # POSITIONAL
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "port",
        nargs="?",
        type=int,
        default=None,
        help="Port to listen on (default: 8123)"
    )

    parser.add_argument(
        "threads",
        nargs="?",
        type=int,
        default=None,
        help="Number of worker threads (default: 4)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK / CONTENT
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Host to bind to (default: 127.0.0.1, use 0.0.0.0 for containers)"
    )

    parser.add_argument(
        "--root", "-r",
        default=None,
        help="Directory to serve (default: current directory)"
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Per-connection socket timeout in seconds (default: none)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

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
        help="Access log format (default: text)"
    )

    parser.add_argument(
        "--no-access-log",
        action="store_true",
        help="Do not write an access log line per connection"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"dirserve {__version__}"
    )

    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """
    Overlay parsed arguments on the environment configuration.

    Raises:
        ValueError: If an environment variable holds a malformed number.
    """
    config = ServerConfig.from_env()

    if args.port is not None:
        config.port = args.port
    if args.threads is not None:
        config.workers = args.threads
    if args.host is not None:
        config.host = args.host
    if args.root is not None:
        config.root = args.root
    if args.timeout is not None:
        config.timeout = args.timeout
    if args.log_level is not None:
        config.log_level = args.log_level
    if args.log_format is not None:
        config.log_format = args.log_format
    if args.no_access_log:
        config.access_log = False

    return config


def main(argv: Optional[List[str]] = None):
    """Parse arguments, build the server, run it until stopped."""
    args = build_parser().parse_args(argv)

    try:
        config = config_from_args(args)
        server = FileServer(config)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)

    try:
        server.run()
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
