"""Transport interface used by the transceiver loop.

A transport is a duplex byte channel: ``write`` blocks until the OUT
transfer completes, ``read`` blocks for at most ``timeout_ms`` and returns
``None`` when nothing arrived in time.
"""

from __future__ import annotations

from typing import Protocol

from ..protocol.framing import MAX_FRAME

READ_TIMEOUT_MS = 1000
WRITE_TIMEOUT_MS = 0  # no limit


class TransportInitError(ConnectionError):
    """The device could not be found, opened or claimed."""

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


class TransportError(IOError):
    """A bulk transfer failed."""

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


class Transport(Protocol):
    def write(self, data: bytes) -> int:
        """Send one OUT transfer, returning the number of bytes written."""

    def read(
        self,
        size: int = MAX_FRAME,
        timeout_ms: int = READ_TIMEOUT_MS,
    ) -> bytes | None:
        """Receive up to ``size`` bytes, or ``None`` on timeout."""
