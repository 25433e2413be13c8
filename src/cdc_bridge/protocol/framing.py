"""Frames exchanged with the device over the bulk endpoints.

Every OUT transfer is a fixed 64-byte report::

    +-----------------+-----------------+----------------------+
    | Opcode (2 B)    | Param (0-1 B)   | Zero padding to 64 B |
    +-----------------+-----------------+----------------------+

Replies arrive on the IN endpoint as up to 64 raw bytes. The device echoes
the two opcode bytes at the start of every reply.
"""

from __future__ import annotations

from dataclasses import dataclass

MAX_FRAME = 64


@dataclass
class Frame:
    """Bytes received in one IN transfer."""

    data: bytes

    @property
    def length(self) -> int:
        return len(self.data)

    def startswith(self, prefix: bytes) -> bool:
        return self.data[: len(prefix)] == prefix

    def __len__(self) -> int:
        return len(self.data)

    def __repr__(self) -> str:
        return (
            f"Frame(length={self.length}, "
            f"data={self.data.hex(' ') if self.data else '(empty)'})"
        )


def build_report(payload: bytes) -> bytes:
    """Pad a command payload to a full 64-byte OUT report.

    Args:
        payload: Command bytes, 1 to 64 of them.

    Returns:
        A 64-byte ``bytes`` object ready for a bulk OUT transfer.
    """
    if not payload:
        raise ValueError("Payload must not be empty")
    if len(payload) > MAX_FRAME:
        raise ValueError(
            f"Payload must be at most {MAX_FRAME} bytes, got {len(payload)}"
        )
    return payload + b"\x00" * (MAX_FRAME - len(payload))
