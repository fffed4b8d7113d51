"""
Recognition Client
==================

Abstraction over the remote face-recognition service.

This module provides the RecognitionClient protocol, its error
taxonomy, and MockRecognitionClient for running without a service.

Design Rules:
    - Takes JPEG bytes, never raw frames
    - Every call is assumed slow and allowed to fail
    - Callers degrade failures to "no detections"
"""

import itertools
import logging
import threading
import time
from typing import Iterable, List, Optional, Protocol

from face_kiosk.models.detection import Detection, Region


logger = logging.getLogger(__name__)


class RecognitionError(Exception):
    """Raised when a recognition call fails."""
    pass


class RecognitionUnavailable(RecognitionError):
    """Service could not be reached or answered with an error."""
    pass


class RecognitionTimeout(RecognitionError):
    """Service did not answer within the configured timeout."""
    pass


class RecognitionMalformed(RecognitionError):
    """Service answered with a payload that could not be parsed."""
    pass


class RecognitionClient(Protocol):
    """
    Protocol for recognition backends.

    Implementations are blocking; the kiosk loop runs them on a
    worker thread so they never stall the preview.
    """

    def check(self, image: bytes, issued_sequence: int = -1) -> List[Detection]:
        """
        Recognize faces in a JPEG image.

        Args:
            image: JPEG-encoded image bytes
            issued_sequence: Sequence of the frame the image came from

        Returns:
            Detections in the order the service reported them

        Raises:
            RecognitionError: On any failure
        """
        ...


class MockRecognitionClient:
    """
    Deterministic mock recognition client.

    Cycles through a fixed list of names, one per call, after a
    simulated round-trip delay. An empty name yields an unknown face.
    Useful for demos without a recognition service and for tests.

    Attributes:
        names: Names returned on successive calls
        latency_seconds: Simulated round-trip time
        region: Region attached to every detection (None = no region)
    """

    def __init__(
        self,
        names: Iterable[str] = ("Amy", "Zoe", ""),
        latency_seconds: float = 0.3,
        region: Optional[Region] = None,
    ) -> None:
        self.names = list(names) or [""]
        self.latency_seconds = latency_seconds
        self.region = region

        self._cycle = itertools.cycle(self.names)
        self._lock = threading.Lock()
        self._call_count: int = 0

        logger.info(
            f"MockRecognitionClient initialized: names={self.names}, "
            f"latency={latency_seconds}s"
        )

    @property
    def call_count(self) -> int:
        return self._call_count

    def check(self, image: bytes, issued_sequence: int = -1) -> List[Detection]:
        if not image:
            raise RecognitionMalformed("empty image")

        with self._lock:
            name = next(self._cycle)
            self._call_count += 1
            call_id = self._call_count

        if self.latency_seconds:
            time.sleep(self.latency_seconds)

        return [
            Detection(
                name=name,
                identity=f"mock-{call_id}" if name else "",
                region=self.region,
                issued_sequence=issued_sequence,
            )
        ]
