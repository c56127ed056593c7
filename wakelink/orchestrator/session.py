from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class Session:
    number: int
    started_at: float
    keyword_index: int = -1
    frames_forwarded: int = 0
    ended_at: Optional[float] = None
    end_reason: Optional[str] = None

    def end(self, reason: str, now: float) -> None:
        self.end_reason = reason
        self.ended_at = now

    @property
    def duration(self) -> Optional[float]:
        if self.ended_at is None:
            return None
        return self.ended_at - self.started_at


@dataclass
class SessionHistory:
    sessions: List[Session] = field(default_factory=list)
    max_sessions: int = 8

    def add(self, session: Session) -> None:
        self.sessions.append(session)
        if len(self.sessions) > self.max_sessions:
            self.sessions = self.sessions[-self.max_sessions :]

    @property
    def last(self) -> Optional[Session]:
        return self.sessions[-1] if self.sessions else None
