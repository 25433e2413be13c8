"""Command table and command encoder.

Every command starts with the ``0xFF`` command prefix followed by a
single opcode byte. Switch-style commands add one parameter byte (on/off)
and get no reply; queries are two bytes long and the device answers with
a reply starting with the same two bytes.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Sequence

from .framing import MAX_FRAME

COMMAND_PREFIX = 0xFF
ECHO_PREFIX_SIZE = 2


class Opcode(IntEnum):
    """Opcode byte following the command prefix."""

    CANBUS = 0x00
    LOOPBACK = 0x02
    CANBUS_STATUS = 0x06
    CANBUS_ERR_COUNT = 0x07
    JUMP_TO_BOOTLOADER = 0xB0
    RESET_DEVICE = 0xB1
    DEVICE_MODE = 0xB2
    SW_VERSION = 0xC0


class UnknownCommand(ValueError):
    """The requested command name (or its argument count) is not valid."""

    def __init__(self, name: str, reason: str = "") -> None:
        self.name = name
        message = f"Unknown command {name!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


@dataclass(frozen=True)
class CommandSpec:
    """One row of the command table.

    ``prefix`` holds the fixed leading bytes. Commands with ``arg_count``
    greater than zero append one byte per hex argument.
    """

    name: str
    prefix: bytes
    expects_reply: bool
    arg_count: int = 0
    arg_help: str = ""


@dataclass(frozen=True)
class Command:
    """An encoded command, ready to send."""

    name: str
    payload: bytes
    expects_reply: bool

    def __post_init__(self) -> None:
        if not ECHO_PREFIX_SIZE <= len(self.payload) <= MAX_FRAME:
            raise ValueError(
                f"Command payload must be {ECHO_PREFIX_SIZE}-{MAX_FRAME} bytes, "
                f"got {len(self.payload)}"
            )

    @property
    def echo_prefix(self) -> bytes:
        """Leading bytes the device repeats at the start of its reply."""
        return self.payload[:ECHO_PREFIX_SIZE]

    def __repr__(self) -> str:
        return (
            f"Command(name={self.name!r}, payload={self.payload.hex(' ')}, "
            f"expects_reply={self.expects_reply})"
        )


def _spec(name: str, *body: int, reply: bool) -> CommandSpec:
    return CommandSpec(name, bytes([COMMAND_PREFIX, *body]), reply)


COMMANDS: dict[str, CommandSpec] = {
    spec.name: spec
    for spec in (
        CommandSpec(
            "prog",
            bytes([COMMAND_PREFIX]),
            expects_reply=False,
            arg_count=2,
            arg_help="command1 command2",
        ),
        _spec("read_sw_version", Opcode.SW_VERSION, reply=True),
        _spec("request_jump_to_bootloader_app", Opcode.JUMP_TO_BOOTLOADER, reply=True),
        _spec("request_to_reset_device", Opcode.RESET_DEVICE, reply=True),
        _spec("query_device_mode", Opcode.DEVICE_MODE, reply=True),
        _spec("enable_CANbus", Opcode.CANBUS, 0x01, reply=False),
        _spec("disable_CANbus", Opcode.CANBUS, 0x00, reply=False),
        _spec("enable_loopback_mode", Opcode.LOOPBACK, 0x01, reply=False),
        _spec("disable_loopback_mode", Opcode.LOOPBACK, 0x00, reply=False),
        _spec("CANbus_status", Opcode.CANBUS_STATUS, reply=True),
        _spec("CANbus_err_count", Opcode.CANBUS_ERR_COUNT, reply=True),
    )
}


def parse_hex_byte(text: str, strict: bool = False) -> int:
    """Parse one byte written in base 16 (``"1b"``, ``"0x1B"``).

    Args:
        text: The argument as typed on the command line.
        strict: Raise instead of falling back to zero.

    Returns:
        The byte value. In permissive mode, text that is not valid hex or
        does not fit in a byte gives ``0``.

    Raises:
        ValueError: In strict mode, for invalid or out-of-range text.
    """
    try:
        if "_" in text:
            raise ValueError(text)
        value = int(text.strip(), 16)
    except ValueError:
        if strict:
            raise ValueError(f"Not a hex byte: {text!r}") from None
        return 0

    if not 0 <= value <= 0xFF:
        if strict:
            raise ValueError(f"Hex byte out of range 00-FF: {text!r}")
        return 0
    return value


def encode_command(
    name: str,
    args: Sequence[str] = (),
    strict: bool = False,
) -> Command:
    """Build the :class:`Command` for a command name and its arguments.

    Args:
        name: Command name, matched exactly (case-sensitive).
        args: Hex byte arguments. Only ``prog`` takes any (exactly two);
            extra arguments to other commands are ignored.
        strict: Reject malformed hex arguments instead of using zero.

    Raises:
        UnknownCommand: If the name is not in the table or the argument
            count is wrong.
        ValueError: In strict mode, if an argument is not a hex byte.
    """
    spec = COMMANDS.get(name)
    if spec is None:
        raise UnknownCommand(name)

    if spec.arg_count:
        if len(args) != spec.arg_count:
            raise UnknownCommand(
                name, f"expected {spec.arg_count} arguments, got {len(args)}"
            )
        params = bytes(parse_hex_byte(a, strict=strict) for a in args)
    else:
        params = b""

    return Command(
        name=spec.name,
        payload=spec.prefix + params,
        expects_reply=spec.expects_reply,
    )


def usage(prog: str) -> str:
    """Return the usage listing, one line per command."""
    lines = ["Usage:"]
    for spec in COMMANDS.values():
        line = f"{prog} {spec.name}"
        if spec.arg_help:
            line = f"{line} {spec.arg_help}"
        lines.append(line)
    return "\n".join(lines)
