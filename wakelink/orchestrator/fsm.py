from __future__ import annotations

from enum import Enum, auto


class State(Enum):
    IDLE = auto()
    ACTIVE = auto()


class FSM:
    """Two-state session machine. Transitions report whether they took effect."""

    def __init__(self) -> None:
        self.state = State.IDLE

    def to_idle(self) -> bool:
        if self.state is State.IDLE:
            return False
        self.state = State.IDLE
        return True

    def to_active(self) -> bool:
        if self.state is State.ACTIVE:
            return False
        self.state = State.ACTIVE
        return True
