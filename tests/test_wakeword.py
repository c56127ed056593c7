"""Tests for the wake-word gate."""

import struct
from unittest.mock import patch

import pytest

from wakelink.audio.wakeword import WakeWordGate
from wakelink.core.events import Frame


class FakeDetector:
    frame_length = 4
    sample_rate = 16000

    def __init__(self, results=None, error=None):
        self.results = list(results or [])
        self.error = error
        self.received = []
        self.deleted = 0

    def process(self, pcm):
        if self.error is not None:
            raise self.error
        self.received.append(list(pcm))
        return self.results.pop(0) if self.results else -1

    def delete(self):
        self.deleted += 1


def pcm(*samples):
    return struct.pack(f"<{len(samples)}h", *samples)


class TestWakeWordGate:
    def test_exposes_detector_format(self):
        gate = WakeWordGate(FakeDetector())
        assert gate.frame_length == 4
        assert gate.sample_rate == 16000

    def test_detection_carries_keyword_index(self):
        detector = FakeDetector(results=[-1, 2])
        gate = WakeWordGate(detector)

        first = gate.evaluate(Frame(seq=1, pcm=pcm(0, 0, 0, 0)))
        second = gate.evaluate(Frame(seq=2, pcm=pcm(1, -2, 3, 4)))

        assert not first.detected
        assert second.detected
        assert second.keyword_index == 2
        assert detector.received[1] == [1, -2, 3, 4]

    def test_malformed_frame_is_no_detection(self):
        detector = FakeDetector(results=[0])
        gate = WakeWordGate(detector)

        event = gate.evaluate(Frame(seq=1, pcm=b"\x00\x01\x02"))

        assert not event.detected
        assert gate.failures == 1
        assert detector.received == []

    def test_detector_failure_is_absorbed(self):
        gate = WakeWordGate(FakeDetector(error=RuntimeError("engine fault")))

        event = gate.evaluate(Frame(seq=1, pcm=pcm(0, 0, 0, 0)))

        assert not event.detected
        assert event.keyword_index == -1
        assert gate.failures == 1

    def test_scanning_continues_after_failure(self):
        detector = FakeDetector(error=RuntimeError("boom"))
        gate = WakeWordGate(detector)
        gate.evaluate(Frame(seq=1, pcm=pcm(0, 0, 0, 0)))

        detector.error = None
        detector.results = [0]
        assert gate.evaluate(Frame(seq=2, pcm=pcm(0, 0, 0, 0))).detected

    def test_release_is_idempotent(self):
        detector = FakeDetector()
        gate = WakeWordGate(detector)

        gate.release()
        gate.release()

        assert detector.deleted == 1
        assert gate.released

    def test_evaluate_after_release_is_no_detection(self):
        detector = FakeDetector(results=[0])
        gate = WakeWordGate(detector)
        gate.release()

        assert not gate.evaluate(Frame(seq=1, pcm=pcm(0, 0, 0, 0))).detected
        assert detector.received == []

    def test_create_uses_porcupine(self):
        detector = FakeDetector()
        with patch("wakelink.audio.wakeword.pvporcupine.create", return_value=detector) as create:
            gate = WakeWordGate.create("key", ["computer"], [0.7])

        create.assert_called_once_with(access_key="key", keywords=["computer"], sensitivities=[0.7])
        assert gate.frame_length == detector.frame_length

    def test_create_propagates_engine_errors(self):
        with patch("wakelink.audio.wakeword.pvporcupine.create", side_effect=ValueError("bad keyword")):
            with pytest.raises(ValueError):
                WakeWordGate.create("key", ["nope"], [0.5])
