"""
Perception Module
=================

Local face localization.

Components:
    - FaceDetector: Protocol for region finders
    - CascadeFaceDetector: OpenCV Haar cascade implementation
"""

from face_kiosk.perception.cascade import (
    CascadeFaceDetector,
    FaceDetector,
    resolve_cascade_path,
)

__all__ = [
    "FaceDetector",
    "CascadeFaceDetector",
    "resolve_cascade_path",
]
