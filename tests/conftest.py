import asyncio
from typing import List, Optional

import pytest

from wakelink.core.events import NO_DETECTION, Frame, WakeWordEvent


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeGate:
    """Gate that detects the wake word on the given frame sequence numbers."""

    def __init__(self, detect_on=(), calls: Optional[list] = None):
        self.detect_on = set(detect_on)
        self.evaluated: List[int] = []
        self.released = False
        self._calls = calls if calls is not None else []

    def evaluate(self, frame: Frame) -> WakeWordEvent:
        self.evaluated.append(frame.seq)
        if frame.seq in self.detect_on:
            return WakeWordEvent(detected=True, keyword_index=0)
        return NO_DETECTION

    def release(self) -> None:
        self._calls.append("release")
        self.released = True


class FakeLink:
    def __init__(self, calls: Optional[list] = None):
        self.handler = None
        self.opens = 0
        self.closes = 0
        self.sent: List[int] = []
        self.is_open = False
        self._calls = calls if calls is not None else []

    def bind(self, handler) -> None:
        self.handler = handler

    def open(self) -> None:
        if self.is_open:
            return
        self.opens += 1
        self.is_open = True
        self._calls.append("open")

    def send(self, frame: Frame) -> bool:
        self.sent.append(frame.seq)
        return self.is_open

    def close(self) -> None:
        self._calls.append("close")
        if self.is_open:
            self.closes += 1
        self.is_open = False


class FakeConnection:
    """In-memory stand-in for a realtime websocket connection."""

    def __init__(self):
        self.sent: list = []
        self.inbound: asyncio.Queue = asyncio.Queue()
        self.closed = False
        self.send_error: Optional[BaseException] = None
        self.block_sends = False
        self.hang_on_close = False

    async def send(self, event) -> None:
        if self.send_error is not None:
            raise self.send_error
        while self.block_sends:
            await asyncio.sleep(0.01)
        self.sent.append(event)

    async def recv_bytes(self) -> bytes:
        item = await self.inbound.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self) -> None:
        if self.hang_on_close:
            await asyncio.Event().wait()
        self.closed = True


def make_frame(seq: int, size: int = 1024) -> Frame:
    return Frame(seq=seq, pcm=b"\x01\x00" * (size // 2), timestamp=float(seq))


async def settle(rounds: int = 10) -> None:
    """Let pending tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def clock():
    return FakeClock(100.0)
