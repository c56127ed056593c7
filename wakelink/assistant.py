from __future__ import annotations

import logging

import pvporcupine
import pyaudio

from wakelink.audio.capture import AudioCapture
from wakelink.audio.wakeword import WakeWordGate
from wakelink.config.settings import AppSettings, Credentials
from wakelink.orchestrator.controller import SessionController
from wakelink.orchestrator.watchdog import SilenceWatchdog
from wakelink.realtime.link import RealtimeLink
from wakelink.realtime.openai_realtime import openai_connector

logger = logging.getLogger(__name__)

STARTUP_ERRORS = (pvporcupine.PorcupineError, OSError, ValueError)


class Assistant:
    def __init__(self, settings: AppSettings, credentials: Credentials):
        self._settings = settings
        self._gate = WakeWordGate.create(
            access_key=credentials.porcupine_access_key,
            keywords=settings.wakeword.keywords,
            sensitivities=settings.wakeword.sensitivities,
        )
        try:
            self._pa = pyaudio.PyAudio()
        except Exception:
            self._gate.release()
            raise

        self._link = RealtimeLink(
            openai_connector(
                credentials.openai_api_key,
                settings.realtime.model,
                open_timeout_s=settings.timeouts.connect_ms / 1000.0,
            ),
            instructions=settings.realtime.instructions,
            modalities=settings.realtime.modalities,
            connect_timeout_s=settings.timeouts.connect_ms / 1000.0,
            close_timeout_s=settings.timeouts.close_ms / 1000.0,
            send_queue_max=settings.realtime.send_queue_max,
        )
        self._watchdog = SilenceWatchdog(timeout_s=settings.timeouts.silence_ms / 1000.0)
        self._controller = SessionController(
            self._gate,
            self._link,
            self._watchdog,
            inbox_max=settings.audio.queue_max_frames,
            history_max=settings.debugging.history_max,
        )
        self._capture = AudioCapture(
            self._pa,
            sample_rate=self._gate.sample_rate,
            frame_length=self._gate.frame_length,
            device=settings.audio.device_input,
            on_frame=self._controller.offer,
            on_error=self._controller.handle_source_error,
        )

    def warm_up(self) -> None:
        print("Starting voice assistant…")
        print(f"Wake words: {', '.join(self._settings.wakeword.keywords)}")
        print(f"Realtime model: {self._settings.realtime.model}")
        print(
            f"Audio: sample_rate={self._gate.sample_rate}, frame_length={self._gate.frame_length}, "
            f"input={self._settings.audio.device_input}, silence_timeout={self._settings.timeouts.silence_ms}ms"
        )

    def start_capture(self) -> None:
        self._capture.start()

    async def run(self) -> None:
        await self._controller.run()

    async def stop(self) -> None:
        # watchdog, link, detector, then the audio source
        try:
            self._controller.shutdown()
        except Exception as e:
            logger.error("Session shutdown failed: %s", e)
        try:
            self._capture.stop()
            timeout = self._settings.timeouts.shutdown_ms / 1000.0
            if not await self._link.wait_closed(timeout):
                logger.warning("Realtime connection did not close within %.1fs", timeout)
        finally:
            self._pa.terminate()
        logger.info("Stats: %s", self._controller.stats)
