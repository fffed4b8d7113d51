"""
Test Configuration
==================

Pytest fixtures and test doubles for FaceKiosk.
"""

import threading
import time
from typing import List, Optional, Sequence

import numpy as np
import pytest

from face_kiosk.capture.frame import Frame
from face_kiosk.capture.source import DeviceError
from face_kiosk.models.detection import Detection, Region
from face_kiosk.recognition.client import RecognitionError


# =============================================================================
# Frame sources
# =============================================================================

def make_frame(sequence: int, width: int = 160, height: int = 120, value: int = 40) -> Frame:
    """Solid gray BGR frame with a lighter square in the middle."""
    image = np.full((height, width, 3), value, dtype=np.uint8)
    image[height // 4: 3 * height // 4, width // 4: 3 * width // 4] = 200
    return Frame(image=image, sequence=sequence, timestamp=1700000000.0 + sequence)


class ListFrameSource:
    """Yields a fixed list of frames, then empty reads."""

    def __init__(self, frames: Sequence[Optional[Frame]], fail_open: bool = False) -> None:
        self._frames = list(frames)
        self.fail_open = fail_open
        self.opened = False
        self.released = False
        self.reads = 0

    def open(self) -> None:
        if self.fail_open:
            raise DeviceError("can't find camera")
        self.opened = True

    def read(self) -> Optional[Frame]:
        self.reads += 1
        if not self._frames:
            return None
        return self._frames.pop(0)

    def release(self) -> None:
        self.released = True


class EndlessFrameSource:
    """Produces frames forever at roughly the given rate."""

    def __init__(self, interval: float = 0.01) -> None:
        self.interval = interval
        self._sequence = 0
        self.released = False

    def open(self) -> None:
        pass

    def read(self) -> Optional[Frame]:
        time.sleep(self.interval)
        frame = make_frame(self._sequence)
        self._sequence += 1
        return frame

    def release(self) -> None:
        self.released = True


# =============================================================================
# Recognition
# =============================================================================

class GatedRecognizer:
    """
    Recognition client whose calls block until released.

    Each call takes the next scripted name (or raises the scripted
    exception) once its gate opens. Tracks how many calls overlap.
    """

    def __init__(self, script: Sequence[object], region: Optional[Region] = None) -> None:
        self._script = list(script)
        self.region = region
        self.gates: List[threading.Event] = []
        self.started = threading.Event()
        self.calls = 0
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def release_next(self) -> None:
        """Open the gate of the oldest blocked call."""
        for gate in self.gates:
            if not gate.is_set():
                gate.set()
                return

    def release_all(self) -> None:
        for gate in self.gates:
            gate.set()

    def check(self, image: bytes, issued_sequence: int = -1) -> List[Detection]:
        gate = threading.Event()
        with self._lock:
            self.gates.append(gate)
            item = self._script[self.calls % len(self._script)]
            self.calls += 1
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        self.started.set()

        try:
            gate.wait(timeout=5.0)
            if isinstance(item, Exception):
                raise item
            return [Detection(name=item, identity=item.lower(), region=self.region,
                              issued_sequence=issued_sequence)]
        finally:
            with self._lock:
                self.active -= 1


class InstantRecognizer:
    """Recognition client that answers immediately."""

    def __init__(self, name: str = "Amy", error: Optional[RecognitionError] = None) -> None:
        self.name = name
        self.error = error
        self.calls = 0

    def check(self, image: bytes, issued_sequence: int = -1) -> List[Detection]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return [Detection(name=self.name, identity="id-1", issued_sequence=issued_sequence)]


# =============================================================================
# Detection / annotation / speech
# =============================================================================

class StaticDetector:
    """Face detector that always reports the same regions."""

    def __init__(self, regions: Sequence[Region]) -> None:
        self.regions = list(regions)

    def detect(self, frame: Frame) -> List[Region]:
        return list(self.regions)


class RecordingAnnotator:
    """Wraps an Annotator and records what each frame was annotated with."""

    def __init__(self, inner) -> None:
        self.inner = inner
        self.calls: List[tuple] = []

    def annotate(self, frame: Frame, detections):
        self.calls.append((frame.sequence, list(detections)))
        return self.inner.annotate(frame, detections)


class FakeSynthesizer:
    """Speech backend returning fixed bytes."""

    media_type = "audio/mpeg"

    def __init__(self, audio: bytes = b"ID3fake-mp3", error: Optional[Exception] = None) -> None:
        self.audio = audio
        self.error = error
        self.texts: List[str] = []

    def synthesize(self, text: str) -> bytes:
        self.texts.append(text)
        if self.error is not None:
            raise self.error
        return self.audio


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def frame() -> Frame:
    return make_frame(0)


@pytest.fixture
def face_region() -> Region:
    return Region(x=40, y=30, width=80, height=60)


@pytest.fixture
def sample_facebox_response():
    """Provide a sample /facebox/check body for testing."""
    return {
        "success": True,
        "facesCount": 2,
        "faces": [
            {
                "rect": {"top": 30, "left": 40, "width": 80, "height": 60},
                "id": "amy.jpg",
                "name": "Amy",
                "matched": True,
                "confidence": 0.91,
            },
            {
                "rect": {"top": -5, "left": 100, "width": 40, "height": 40},
                "id": "",
                "name": "",
                "matched": False,
            },
        ],
    }
