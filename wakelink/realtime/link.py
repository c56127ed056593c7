from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Coroutine, Dict, Optional, Protocol, Sequence, Set

from websockets.exceptions import ConnectionClosedOK

from wakelink.core.events import Closed, ConnectionState, Frame, Opened, ProtocolError, RemoteEvent
from wakelink.realtime import protocol

logger = logging.getLogger(__name__)


class RealtimeConnection(Protocol):
    async def send(self, event: Dict[str, Any]) -> None: ...

    async def recv_bytes(self) -> bytes: ...

    async def close(self) -> None: ...


Connector = Callable[[], Awaitable[RealtimeConnection]]
EventHandler = Callable[[RemoteEvent], None]


@dataclass
class LinkStats:
    opened: int = 0
    sent: int = 0
    dropped_not_open: int = 0
    dropped_backpressure: int = 0
    failures: int = 0


class RealtimeLink:
    """Owns the duplex connection to the realtime endpoint.

    `open`, `send` and `close` are synchronous and never block the caller: the
    handshake, outbound writes and socket shutdown run in link-owned tasks. Every
    connection gets a generation number; anything still running for an older
    generation is cancelled or ignored, so events of a closed connection never
    reach the handler.
    """

    def __init__(
        self,
        connector: Connector,
        instructions: str,
        modalities: Sequence[str] = ("text", "audio"),
        connect_timeout_s: float = 10.0,
        close_timeout_s: float = 2.0,
        send_queue_max: int = 64,
    ) -> None:
        self._connector = connector
        self._instructions = instructions
        self._modalities = tuple(modalities)
        self._connect_timeout_s = connect_timeout_s
        self._close_timeout_s = close_timeout_s
        self._send_queue_max = send_queue_max

        self.state = ConnectionState.DISCONNECTED
        self.stats = LinkStats()
        self._handler: Optional[EventHandler] = None
        self._generation = 0
        self._connection: Optional[RealtimeConnection] = None
        self._outbound: Optional[asyncio.Queue[Dict[str, Any]]] = None
        self._tasks: Set[asyncio.Task] = set()
        self._closing: Set[asyncio.Task] = set()

    def bind(self, handler: EventHandler) -> None:
        self._handler = handler

    @property
    def is_open(self) -> bool:
        return self.state is ConnectionState.OPEN

    def open(self) -> None:
        if self.state in (ConnectionState.CONNECTING, ConnectionState.OPEN):
            return
        self._generation += 1
        self.state = ConnectionState.CONNECTING
        logger.info("Connecting to realtime endpoint")
        self._spawn(self._connect(self._generation))

    def send(self, frame: Frame) -> bool:
        """Queue one frame for transmission; drop it when the link cannot take it."""
        if self.state is not ConnectionState.OPEN or self._outbound is None:
            self.stats.dropped_not_open += 1
            logger.debug("Link %s, dropping frame %d", self.state.name.lower(), frame.seq)
            return False
        try:
            self._outbound.put_nowait(protocol.audio_item(frame.pcm))
        except asyncio.QueueFull:
            self.stats.dropped_backpressure += 1
            logger.debug("Send queue full, dropping frame %d", frame.seq)
            return False
        return True

    def close(self) -> None:
        if self.state is ConnectionState.DISCONNECTED:
            return
        self.state = ConnectionState.CLOSING
        self._detach()
        self.state = ConnectionState.DISCONNECTED
        logger.info("Realtime link closed")

    async def wait_closed(self, timeout: float) -> bool:
        """Wait for pending socket shutdowns; False if some did not finish in time."""
        pending = set(self._closing)
        if not pending:
            return True
        _, not_done = await asyncio.wait(pending, timeout=timeout)
        for task in not_done:
            task.cancel()
        return not not_done

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _detach(self) -> None:
        self._generation += 1
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        for task in list(self._tasks):
            if task is not current:
                task.cancel()
        self._tasks.clear()
        self._outbound = None

        connection, self._connection = self._connection, None
        if connection is not None:
            task = asyncio.get_running_loop().create_task(self._close_connection(connection))
            self._closing.add(task)
            task.add_done_callback(self._closing.discard)

    async def _close_connection(self, connection: RealtimeConnection) -> None:
        try:
            await asyncio.wait_for(connection.close(), timeout=self._close_timeout_s)
        except asyncio.TimeoutError:
            logger.warning("Timed out closing realtime connection")
        except Exception as exc:
            logger.warning("Error closing realtime connection: %s", exc)

    async def _connect(self, generation: int) -> None:
        try:
            connection = await asyncio.wait_for(self._connector(), timeout=self._connect_timeout_s)
        except Exception as exc:
            self._fail(generation, f"connect failed: {exc!r}")
            return
        if generation != self._generation:
            await self._close_connection(connection)
            return

        self._connection = connection
        try:
            await connection.send(protocol.response_create(self._instructions, self._modalities))
        except Exception as exc:
            self._fail(generation, f"session announcement failed: {exc!r}")
            return
        if generation != self._generation:
            return

        outbound: asyncio.Queue[Dict[str, Any]] = asyncio.Queue(maxsize=self._send_queue_max)
        self._outbound = outbound
        self.state = ConnectionState.OPEN
        self.stats.opened += 1
        logger.info("Connected to realtime endpoint")
        self._spawn(self._read_loop(connection, generation))
        self._spawn(self._write_loop(connection, outbound, generation))
        self._emit(generation, Opened())

    async def _read_loop(self, connection: RealtimeConnection, generation: int) -> None:
        try:
            while generation == self._generation:
                raw = await connection.recv_bytes()
                event = protocol.decode_server_message(raw)
                if event is not None:
                    self._emit(generation, event)
        except ConnectionClosedOK:
            self._remote_closed(generation)
        except Exception as exc:
            self._fail(generation, f"receive failed: {exc!r}")

    async def _write_loop(
        self,
        connection: RealtimeConnection,
        outbound: "asyncio.Queue[Dict[str, Any]]",
        generation: int,
    ) -> None:
        try:
            while generation == self._generation:
                message = await outbound.get()
                await connection.send(message)
                self.stats.sent += 1
        except Exception as exc:
            self._fail(generation, f"send failed: {exc!r}")

    def _remote_closed(self, generation: int) -> None:
        if generation != self._generation:
            return
        logger.info("Realtime endpoint closed the connection")
        self.state = ConnectionState.CLOSING
        self._detach()
        self.state = ConnectionState.DISCONNECTED
        self._deliver(Closed())

    def _fail(self, generation: int, detail: str) -> None:
        if generation != self._generation:
            return
        self.stats.failures += 1
        logger.warning("Realtime link failed: %s", detail)
        self.state = ConnectionState.CLOSING
        self._detach()
        self.state = ConnectionState.DISCONNECTED
        self._deliver(ProtocolError(detail))
        self._deliver(Closed())

    def _emit(self, generation: int, event: RemoteEvent) -> None:
        if generation == self._generation:
            self._deliver(event)

    def _deliver(self, event: RemoteEvent) -> None:
        if self._handler is not None:
            self._handler(event)
