"""Command-line entry point for the CDC-ACM bridge.

Examples::

    cdc-bridge read_sw_version
    cdc-bridge prog 0A 1B
    cdc-bridge --max-polls 20 -v CANbus_status
"""

from __future__ import annotations

import argparse
import logging
import sys

from .protocol.commands import UnknownCommand, encode_command, usage
from .protocol.reporter import format_response, format_sent
from .transceiver import PollLimitExceeded, Transceiver
from .transport.base import READ_TIMEOUT_MS, TransportError, TransportInitError
from .transport.usb_connection import PRODUCT_ID, VENDOR_ID, USBConnection

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_BAD_ARGUMENT = 2
EXIT_NO_REPLY = 3
EXIT_INTERRUPTED = 130


def _hex_int(text: str) -> int:
    return int(text, 16)


def build_parser(prog: str = "cdc-bridge") -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=prog,
        description="Send one command to a CDC-ACM device over USB bulk transfers",
    )
    parser.add_argument("command", nargs="?", help="Command name")
    parser.add_argument("args", nargs="*", help="Hex byte arguments (prog only)")
    parser.add_argument(
        "--vid", type=_hex_int, default=VENDOR_ID,
        help=f"USB vendor ID in hex (default {VENDOR_ID:04x})",
    )
    parser.add_argument(
        "--pid", type=_hex_int, default=PRODUCT_ID,
        help=f"USB product ID in hex (default {PRODUCT_ID:04x})",
    )
    parser.add_argument(
        "--timeout", type=int, default=READ_TIMEOUT_MS, metavar="MS",
        help="Timeout of each receive in milliseconds",
    )
    parser.add_argument(
        "--max-polls", type=int, default=None, metavar="N",
        help="Give up after N receives without a matching reply (default: never)",
    )
    parser.add_argument(
        "--strict", action="store_true",
        help="Reject malformed hex arguments instead of using 0",
    )
    parser.add_argument(
        "-v", "--verbose", action="count", default=0,
        help="Also show raw bytes sent and received",
    )
    parser.add_argument(
        "-q", "--quiet", action="store_true",
        help="Hide the timeout and polling diagnostics",
    )
    return parser


def _configure_logging(verbosity: int, quiet: bool = False) -> None:
    level = logging.INFO
    if quiet:
        level = logging.WARNING
    elif verbosity:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(message)s")


def _exit_code(code: int | None) -> int:
    return abs(code) if code else EXIT_FAILURE


def main(argv: list[str] | None = None) -> int:
    """Run one command against the device and return the exit status."""
    parser = build_parser()
    opts = parser.parse_args(argv)
    _configure_logging(opts.verbose, opts.quiet)
    if opts.max_polls is not None and opts.max_polls < 1:
        parser.error("--max-polls must be at least 1")

    if opts.command is None:
        print(usage(parser.prog))
        return EXIT_OK

    try:
        command = encode_command(opts.command, opts.args, strict=opts.strict)
    except UnknownCommand as e:
        logger.debug("%s", e)
        print(usage(parser.prog))
        return EXIT_OK
    except ValueError as e:
        print(f"{parser.prog}: {e}", file=sys.stderr)
        return EXIT_BAD_ARGUMENT

    connection = USBConnection(vendor_id=opts.vid, product_id=opts.pid)
    try:
        connection.open()
    except TransportInitError as e:
        print(f"{parser.prog}: {e}", file=sys.stderr)
        return _exit_code(e.code)

    try:
        transceiver = Transceiver(
            connection, timeout_ms=opts.timeout, max_polls=opts.max_polls
        )
        print(format_sent(command))
        frame = transceiver.run(command)
        if frame is not None:
            print(format_response(frame))
    except TransportError as e:
        print(f"{parser.prog}: {e}", file=sys.stderr)
        return EXIT_OK
    except PollLimitExceeded as e:
        print(f"{parser.prog}: {e}", file=sys.stderr)
        return EXIT_NO_REPLY
    except KeyboardInterrupt:
        return EXIT_INTERRUPTED
    finally:
        connection.close()

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
