"""Human-readable rendering of sent and received bytes."""

from __future__ import annotations

from .commands import Command
from .framing import Frame


def format_bytes(data: bytes) -> str:
    """Render bytes as space-separated ``0xNN`` values."""
    return " ".join(f"0x{b:02X}" for b in data)


def format_sent(command: Command) -> str:
    return f"Sent: {format_bytes(command.payload)}"


def format_response(frame: Frame) -> str:
    """Render a matched reply with its byte count.

    Example: ``Received (4): 0xFF 0xC0 0x01 0x02``
    """
    return f"Received ({frame.length}): {format_bytes(frame.data)}"
