"""Shared fixtures: a scripted stand-in for the USB transport."""

from __future__ import annotations

import pytest


class FakeTransport:
    """Transport that replays a scripted list of read results.

    Each script entry is returned from ``read`` in order: ``bytes`` for
    data, ``None`` for a timeout, or an exception instance to raise.
    """

    def __init__(self, replies=()):
        self.replies = list(replies)
        self.writes: list[bytes] = []
        self.reads = 0
        self.read_timeouts: list[int] = []

    def write(self, data: bytes) -> int:
        self.writes.append(bytes(data))
        return len(data)

    def read(self, size: int = 64, timeout_ms: int = 1000) -> bytes | None:
        self.reads += 1
        self.read_timeouts.append(timeout_ms)
        if not self.replies:
            raise AssertionError("read() called after the script ran out")
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply


@pytest.fixture
def fake_transport():
    return FakeTransport
