from __future__ import annotations

import array
import logging
import sys
from typing import Optional, Protocol, Sequence

import pvporcupine

from wakelink.core.events import NO_DETECTION, Frame, WakeWordEvent

logger = logging.getLogger(__name__)


class Detector(Protocol):
    frame_length: int
    sample_rate: int

    def process(self, pcm: Sequence[int]) -> int: ...

    def delete(self) -> None: ...


class WakeWordGate:
    """Turns raw PCM16 frames into wake-word events.

    Wraps a Porcupine handle that is acquired once and released once. Evaluation
    never raises: malformed frames and detector failures count as "no detection".
    """

    def __init__(self, detector: Detector) -> None:
        self._detector: Optional[Detector] = detector
        self.frame_length = detector.frame_length
        self.sample_rate = detector.sample_rate
        self.failures = 0

    @classmethod
    def create(cls, access_key: str, keywords: Sequence[str], sensitivities: Sequence[float]) -> "WakeWordGate":
        detector = pvporcupine.create(
            access_key=access_key,
            keywords=list(keywords),
            sensitivities=list(sensitivities),
        )
        logger.info(
            "Porcupine ready (keywords=%s, frame_length=%d, sample_rate=%d)",
            ",".join(keywords),
            detector.frame_length,
            detector.sample_rate,
        )
        return cls(detector)

    @property
    def released(self) -> bool:
        return self._detector is None

    def _samples(self, pcm: bytes) -> Optional[array.array]:
        if len(pcm) != self.frame_length * 2:
            return None
        samples = array.array("h")
        samples.frombytes(pcm)
        if sys.byteorder == "big":
            samples.byteswap()
        return samples

    def evaluate(self, frame: Frame) -> WakeWordEvent:
        if self._detector is None:
            return NO_DETECTION

        samples = self._samples(frame.pcm)
        if samples is None:
            self.failures += 1
            logger.warning(
                "Dropping malformed frame %d (%d bytes, expected %d)",
                frame.seq,
                len(frame.pcm),
                self.frame_length * 2,
            )
            return NO_DETECTION

        try:
            index = self._detector.process(samples)
        except Exception as exc:
            self.failures += 1
            logger.warning("Wake-word evaluation failed on frame %d: %s", frame.seq, exc)
            return NO_DETECTION

        if index >= 0:
            return WakeWordEvent(detected=True, keyword_index=index)
        return NO_DETECTION

    def release(self) -> None:
        detector, self._detector = self._detector, None
        if detector is None:
            return
        detector.delete()
        logger.info("Porcupine released")
