from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Union


@dataclass(frozen=True)
class Frame:
    """One fixed-size slice of PCM16 audio, tagged with its arrival order."""

    seq: int
    pcm: bytes
    timestamp: float = field(default_factory=time.monotonic)


@dataclass(frozen=True)
class WakeWordEvent:
    detected: bool
    keyword_index: int = -1


NO_DETECTION = WakeWordEvent(detected=False)


class ConnectionState(Enum):
    DISCONNECTED = auto()
    CONNECTING = auto()
    OPEN = auto()
    CLOSING = auto()


@dataclass(frozen=True)
class Opened:
    pass


@dataclass(frozen=True)
class PartialResult:
    text: str


@dataclass(frozen=True)
class Complete:
    pass


@dataclass(frozen=True)
class ProtocolError:
    detail: str


@dataclass(frozen=True)
class Closed:
    pass


# Events surfaced by the realtime link to its owner
RemoteEvent = Union[Opened, PartialResult, Complete, ProtocolError, Closed]
