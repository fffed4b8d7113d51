"""
Recognition Module
==================

Remote face recognition and the cache that holds its results.

Components:
    - RecognitionClient: Protocol for recognition backends
    - FaceboxClient: HTTP client for a Facebox-compatible service
    - MockRecognitionClient: Deterministic client for demos and tests
    - DetectionCache: Latest completed result per session

Design Philosophy:
    Recognition is a slow, fallible black box. The kiosk never waits
    on it to draw a frame; it only reads what has already finished.
"""

from face_kiosk.recognition.client import (
    MockRecognitionClient,
    RecognitionClient,
    RecognitionError,
    RecognitionMalformed,
    RecognitionTimeout,
    RecognitionUnavailable,
)
from face_kiosk.recognition.facebox import FaceboxClient, parse_faces
from face_kiosk.recognition.cache import DetectionCache

__all__ = [
    "RecognitionClient",
    "RecognitionError",
    "RecognitionUnavailable",
    "RecognitionTimeout",
    "RecognitionMalformed",
    "MockRecognitionClient",
    "FaceboxClient",
    "parse_faces",
    "DetectionCache",
]
