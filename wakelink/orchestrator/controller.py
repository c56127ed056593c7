from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from wakelink.core.events import (
    Closed,
    Complete,
    Frame,
    Opened,
    PartialResult,
    ProtocolError,
    RemoteEvent,
    WakeWordEvent,
)
from wakelink.orchestrator.fsm import FSM, State
from wakelink.orchestrator.session import Session, SessionHistory
from wakelink.orchestrator.watchdog import SilenceWatchdog
from wakelink.utils.display import printable

logger = logging.getLogger(__name__)


class Gate(Protocol):
    def evaluate(self, frame: Frame) -> WakeWordEvent: ...

    def release(self) -> None: ...


class Link(Protocol):
    def bind(self, handler: Callable[[RemoteEvent], None]) -> None: ...

    def open(self) -> None: ...

    def send(self, frame: Frame) -> bool: ...

    def close(self) -> None: ...


@dataclass
class RoutingStats:
    frames_received: int = 0
    frames_dropped: int = 0
    frames_to_gate: int = 0
    frames_to_link: int = 0
    wake_detections: int = 0
    timeouts: int = 0
    source_errors: int = 0


class SessionController:
    """Routes audio frames between the wake-word gate and the realtime link.

    The controller is the only owner of session state. Everything that can
    change it (frames, remote events, the silence deadline) is handled on the
    event loop thread, one at a time:

    - IDLE: frames go to the gate; a detection opens the link, arms the
      watchdog and switches to ACTIVE.
    - ACTIVE: frames reset the watchdog and go to the link; completion, a
      remote error, a dropped connection or the silence deadline close the
      link and switch back to IDLE.

    Frames are delivered through `offer` into a bounded inbox. When it is full
    the frame is dropped and counted, the audio source is never paused.
    """

    def __init__(
        self,
        gate: Gate,
        link: Link,
        watchdog: SilenceWatchdog,
        inbox_max: int = 50,
        clock: Callable[[], float] = time.monotonic,
        history_max: int = 8,
    ) -> None:
        self._gate = gate
        self._link = link
        self._watchdog = watchdog
        self._clock = clock
        self._fsm = FSM()
        self._session: Optional[Session] = None
        self._session_count = 0
        self._inbox: asyncio.Queue[Frame] = asyncio.Queue(maxsize=inbox_max)
        self._stopped = False

        self.stats = RoutingStats()
        self.history = SessionHistory(max_sessions=history_max)
        self._link.bind(self.handle_remote_event)

    @property
    def state(self) -> State:
        return self._fsm.state

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def stopped(self) -> bool:
        return self._stopped

    # ---- inputs ----

    def offer(self, frame: Frame) -> bool:
        """Accept a frame from the audio source without ever blocking it."""
        self.stats.frames_received += 1
        try:
            self._inbox.put_nowait(frame)
        except asyncio.QueueFull:
            self.stats.frames_dropped += 1
            logger.debug("Inbox full, dropping frame %d", frame.seq)
            return False
        return True

    def handle_source_error(self, error: object) -> None:
        self.stats.source_errors += 1
        logger.warning("Audio source error: %s", error)

    def handle_frame(self, frame: Frame) -> None:
        if self._stopped:
            return
        if self._fsm.state is State.IDLE:
            self.stats.frames_to_gate += 1
            event = self._gate.evaluate(frame)
            if event.detected:
                self.handle_wake(event)
        elif self._fsm.state is State.ACTIVE:
            self._watchdog.reset(now=self._clock())
            self.stats.frames_to_link += 1
            if self._session is not None:
                self._session.frames_forwarded += 1
            self._link.send(frame)

    def handle_wake(self, event: WakeWordEvent) -> None:
        if not event.detected or self._stopped:
            return
        self.stats.wake_detections += 1
        if not self._fsm.to_active():
            logger.debug("Wake word while already active, ignoring")
            return

        now = self._clock()
        self._session_count += 1
        self._session = Session(number=self._session_count, started_at=now, keyword_index=event.keyword_index)
        logger.info("Wake word detected, session %d listening", self._session_count)
        self._link.open()
        self._watchdog.arm(now=now)

    def handle_remote_event(self, event: RemoteEvent) -> None:
        if isinstance(event, Opened):
            logger.info("Realtime session open")
        elif isinstance(event, PartialResult):
            logger.info("Assistant: %s", printable(event.text))
        elif isinstance(event, Complete):
            logger.info("Response complete")
            self._end_session("complete")
        elif isinstance(event, ProtocolError):
            logger.error("Realtime error: %s", event.detail)
            self._end_session("error")
        elif isinstance(event, Closed):
            self._end_session("closed")

    def check_timeout(self, now: Optional[float] = None) -> bool:
        if self._fsm.state is not State.ACTIVE:
            return False
        now = self._clock() if now is None else now
        if not self._watchdog.poll(now=now):
            return False
        self.stats.timeouts += 1
        logger.info("Silence detected, stopping listening")
        self._end_session("silence", now)
        return True

    # ---- lifecycle ----

    async def run(self) -> None:
        """Consume frames in arrival order until shut down.

        A frame already waiting in the inbox is always handled before the
        silence deadline is evaluated, so a frame that arrives at the deadline
        keeps the session alive.
        """
        logger.info("Listening for wake word")
        while not self._stopped:
            frame = await self._next_frame()
            if frame is not None:
                self.handle_frame(frame)
            self.check_timeout()

    async def _next_frame(self) -> Optional[Frame]:
        try:
            return self._inbox.get_nowait()
        except asyncio.QueueEmpty:
            pass

        remaining = self._watchdog.remaining(now=self._clock())
        if remaining is None:
            return await self._inbox.get()
        if remaining <= 0:
            return None
        try:
            return await asyncio.wait_for(self._inbox.get(), timeout=remaining)
        except asyncio.TimeoutError:
            return None

    def shutdown(self) -> None:
        """Disarm the watchdog, request the link close and release the detector."""
        if self._stopped:
            return
        self._stopped = True
        self._watchdog.disarm()
        self._link.close()
        try:
            self._gate.release()
        except Exception as exc:
            logger.error("Failed to release wake-word detector: %s", exc)
        if self._fsm.to_idle():
            self._record_end("shutdown", self._clock())
        logger.info("Session controller stopped")

    def _end_session(self, reason: str, now: Optional[float] = None) -> None:
        if not self._fsm.to_idle():
            return
        self._watchdog.disarm()
        self._link.close()
        self._record_end(reason, self._clock() if now is None else now)

    def _record_end(self, reason: str, now: float) -> None:
        session, self._session = self._session, None
        if session is None:
            return
        session.end(reason, now)
        self.history.add(session)
        logger.info(
            "Session %d ended (%s) after %.1fs, %d frames forwarded",
            session.number,
            reason,
            session.duration or 0.0,
            session.frames_forwarded,
        )
