"""
Cascade Face Detector
=====================

Local face localization with an OpenCV Haar cascade.

The cascade only finds WHERE faces are on the current frame. WHO they
are comes from the recognition service, asynchronously.

Design Rules:
    - Fail fast on a missing or unloadable cascade file
    - Returns regions clamped to the frame
    - Never modifies the frame
"""

import logging
from pathlib import Path
from typing import List, Protocol

import cv2

from face_kiosk.capture.frame import Frame
from face_kiosk.models.detection import Region


logger = logging.getLogger(__name__)


class FaceDetector(Protocol):
    """Protocol for local face localizers."""

    def detect(self, frame: Frame) -> List[Region]:
        ...


def resolve_cascade_path(cascade_file: str) -> str:
    """
    Resolve a cascade file name.

    Existing paths are used as-is; bare names are looked up in the
    cascades bundled with opencv-python.
    """
    if Path(cascade_file).exists():
        return cascade_file
    return str(Path(cv2.data.haarcascades) / cascade_file)


class CascadeFaceDetector:
    """
    Haar cascade face detector.

    Attributes:
        cascade_path: Resolved cascade XML path
        scale_factor: detectMultiScale scaleFactor
        min_neighbors: detectMultiScale minNeighbors
        min_size: Smallest face side in pixels
    """

    def __init__(
        self,
        cascade_file: str = "haarcascade_frontalface_default.xml",
        scale_factor: float = 1.1,
        min_neighbors: int = 5,
        min_size: int = 30,
    ) -> None:
        self.cascade_path = resolve_cascade_path(cascade_file)
        self.scale_factor = scale_factor
        self.min_neighbors = min_neighbors
        self.min_size = min_size

        self._classifier = cv2.CascadeClassifier(self.cascade_path)
        if self._classifier.empty():
            raise ValueError(f"Error reading cascade file: {self.cascade_path}")

        logger.info(f"CascadeFaceDetector loaded: {self.cascade_path}")

    def detect(self, frame: Frame) -> List[Region]:
        """
        Find face rectangles on a frame.

        Args:
            frame: BGR or grayscale frame

        Returns:
            Regions in frame coordinates
        """
        if frame.channels == 1:
            gray = frame.image
        elif frame.channels == 4:
            gray = cv2.cvtColor(frame.image, cv2.COLOR_BGRA2GRAY)
        else:
            gray = cv2.cvtColor(frame.image, cv2.COLOR_BGR2GRAY)

        rects = self._classifier.detectMultiScale(
            gray,
            scaleFactor=self.scale_factor,
            minNeighbors=self.min_neighbors,
            minSize=(self.min_size, self.min_size),
        )

        regions = []
        for x, y, w, h in rects:
            region = Region.from_xywh(x, y, w, h, frame.width, frame.height)
            if region is not None:
                regions.append(region)
        return regions
