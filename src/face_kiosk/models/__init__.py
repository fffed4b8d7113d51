"""
Data Models
===========

Models shared across the kiosk pipeline.

Models:
    Detection (dataclasses):
        - Region: Face rectangle in frame coordinates
        - Detection: One recognized face
        - RecognitionResult: DetectionCache entry for one completed call

    Output (pydantic):
        - FaceLookup: GET /face payload
        - DetectionsMessage: WS /ws/detections payload
"""

from face_kiosk.models.detection import Detection, RecognitionResult, Region
from face_kiosk.models.output import DetectionPayload, DetectionsMessage, FaceLookup

__all__ = [
    # Detection
    "Region",
    "Detection",
    "RecognitionResult",
    # Output
    "FaceLookup",
    "DetectionPayload",
    "DetectionsMessage",
]
