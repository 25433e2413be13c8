"""Send one command and wait for the device's matching reply.

The device may put stale or unsolicited bytes on the IN endpoint, so a
reply only counts when it starts with the command's echo prefix. Anything
else is dropped and the loop keeps listening. A receive timeout is not a
failure; the command is sent once and never repeated.
"""

from __future__ import annotations

import logging

from .protocol.commands import Command
from .protocol.framing import MAX_FRAME, Frame, build_report
from .transport.base import READ_TIMEOUT_MS, Transport

logger = logging.getLogger(__name__)


class PollLimitExceeded(TimeoutError):
    """No matching reply arrived within the allowed number of reads."""

    def __init__(self, command: Command, attempts: int) -> None:
        super().__init__(
            f"No reply to {command.name} after {attempts} reads"
        )
        self.command = command
        self.attempts = attempts


def transceive(
    transport: Transport,
    command: Command,
    *,
    timeout_ms: int = READ_TIMEOUT_MS,
    max_polls: int | None = None,
) -> Frame | None:
    """Drive one command to completion.

    Args:
        transport: Open transport to the device.
        command: The encoded command.
        timeout_ms: Timeout of each individual read.
        max_polls: Give up after this many reads without a match.
            ``None`` polls until a reply or a transport error.

    Returns:
        The matching reply, or None for commands that expect no reply.

    Raises:
        TransportError: If a send or receive fails. No further reads are
            attempted.
        PollLimitExceeded: If ``max_polls`` reads produced no match.
    """
    transport.write(build_report(command.payload))
    if not command.expects_reply:
        return None

    attempts = 0
    while max_polls is None or attempts < max_polls:
        attempts += 1
        data = transport.read(MAX_FRAME, timeout_ms)

        if data is None:
            logger.info("timeout")
            continue

        frame = Frame(data)
        if frame.length == 0:
            logger.debug("Empty transfer")
            continue

        if not frame.startswith(command.echo_prefix):
            logger.info("Polling")
            logger.debug("Discarded %r", frame)
            continue

        return frame

    raise PollLimitExceeded(command, attempts)


class Transceiver:
    """A transport bound to the read timeout and poll limit of a session."""

    def __init__(
        self,
        transport: Transport,
        timeout_ms: int = READ_TIMEOUT_MS,
        max_polls: int | None = None,
    ) -> None:
        if max_polls is not None and max_polls < 1:
            raise ValueError(f"max_polls must be at least 1, got {max_polls}")
        self.transport = transport
        self.timeout_ms = timeout_ms
        self.max_polls = max_polls

    def run(self, command: Command) -> Frame | None:
        return transceive(
            self.transport,
            command,
            timeout_ms=self.timeout_ms,
            max_polls=self.max_polls,
        )
