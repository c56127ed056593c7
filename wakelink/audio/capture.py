from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional

import pyaudio

from wakelink.core.events import Frame

logger = logging.getLogger(__name__)


def list_input_devices(pa: pyaudio.PyAudio) -> List[str]:
    names = []
    for i in range(pa.get_device_count()):
        info = pa.get_device_info_by_index(i)
        if info.get("maxInputChannels", 0) > 0:
            names.append(str(info.get("name")))
    return names


def describe_status(status: int) -> str:
    flags = []
    if status & pyaudio.paInputUnderflow:
        flags.append("input underflow")
    if status & pyaudio.paInputOverflow:
        flags.append("input overflow")
    return ", ".join(flags) or f"status {status}"


class AudioCapture:
    """Microphone capture delivering mono PCM16 frames of `frame_length` samples.

    PortAudio calls the stream callback on its own thread; each buffer is handed
    to the event loop with call_soon_threadsafe and passed to `on_frame` there.
    Nothing is buffered here, the consumer decides what to drop.
    """

    def __init__(
        self,
        pa: pyaudio.PyAudio,
        sample_rate: int,
        frame_length: int,
        device: Optional[str],
        on_frame: Callable[[Frame], object],
        on_error: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.sample_rate = sample_rate
        self.frame_length = frame_length
        self.device_name = device

        self._pa = pa
        self._device_index = self._find_device_index(device)
        self._on_frame = on_frame
        self._on_error = on_error
        self._stream = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._seq = 0

    def _find_device_index(self, device_name: Optional[str]) -> Optional[int]:
        if not device_name or device_name == "default":
            return None
        for i in range(self._pa.get_device_count()):
            info = self._pa.get_device_info_by_index(i)
            if info.get("name") == device_name and info.get("maxInputChannels") > 0:
                return i
        logger.warning("Input device %r not found, using default", device_name)
        return None

    @property
    def running(self) -> bool:
        return self._stream is not None

    def start(self) -> None:
        """Open the input stream. Raises if the device cannot be opened."""
        self._loop = asyncio.get_running_loop()
        stream = self._pa.open(
            format=pyaudio.paInt16,
            channels=1,
            rate=self.sample_rate,
            input=True,
            frames_per_buffer=self.frame_length,
            input_device_index=self._device_index,
            stream_callback=self._stream_callback,
        )
        self._stream = stream
        stream.start_stream()
        logger.info("Audio capture started (rate=%d, frame_length=%d)", self.sample_rate, self.frame_length)

    def _stream_callback(self, in_data, frame_count, time_info, status):
        loop = self._loop
        if loop is not None and not loop.is_closed():
            if status:
                loop.call_soon_threadsafe(self._report, status)
            if in_data:
                loop.call_soon_threadsafe(self._deliver, in_data)
        return (None, pyaudio.paContinue)

    def _deliver(self, pcm: bytes) -> None:
        if self._stream is None:
            return
        self._seq += 1
        self._on_frame(Frame(seq=self._seq, pcm=pcm))

    def _report(self, status: int) -> None:
        if self._on_error is not None:
            self._on_error(describe_status(status))

    def stop(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        stream.stop_stream()
        stream.close()
        logger.info("Audio capture stopped after %d frames", self._seq)
