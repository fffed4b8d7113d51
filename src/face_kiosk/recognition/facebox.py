"""
Facebox Recognition Client
==========================

HTTP client for a Facebox-compatible face recognition service.

This client:
    - POSTs the JPEG as multipart form data to /facebox/check
    - Parses the returned faces into Detections
    - Maps transport and payload failures onto RecognitionError subclasses

Response Contract:
    {
        "success": true,
        "facesCount": 1,
        "faces": [
            {
                "rect": {"top": 40, "left": 60, "width": 120, "height": 120},
                "id": "amy.jpg",
                "name": "Amy",
                "matched": true
            }
        ]
    }

Design Rules:
    - One requests.Session per client, reused across calls
    - Never retries: the kiosk loop decides when to call again
    - Unmatched faces are reported with an empty name
"""

import logging
from typing import List, Optional

import requests

from face_kiosk.models.detection import Detection, Region
from face_kiosk.recognition.client import (
    RecognitionMalformed,
    RecognitionTimeout,
    RecognitionUnavailable,
)


logger = logging.getLogger(__name__)


class FaceboxClient:
    """
    Recognition client for the Facebox HTTP API.

    Attributes:
        base_url: Service root, e.g. http://localhost:8080
        timeout_seconds: Per-request timeout
    """

    CHECK_PATH = "/facebox/check"

    def __init__(
        self,
        base_url: str = "http://localhost:8080",
        timeout_seconds: float = 5.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._session = session or requests.Session()

        self._call_count: int = 0
        self._error_count: int = 0

        logger.info(
            f"FaceboxClient initialized: base_url={self.base_url}, "
            f"timeout={timeout_seconds}s"
        )

    @property
    def check_url(self) -> str:
        return self.base_url + self.CHECK_PATH

    def check(self, image: bytes, issued_sequence: int = -1) -> List[Detection]:
        """
        Send a JPEG to the service and parse the recognized faces.

        Args:
            image: JPEG-encoded image bytes
            issued_sequence: Sequence of the frame the image came from

        Returns:
            Detections in service order (possibly empty)

        Raises:
            RecognitionTimeout: Request timed out
            RecognitionUnavailable: Connection failed or non-2xx / success=false
            RecognitionMalformed: Body is not the expected JSON shape
        """
        self._call_count += 1

        try:
            response = self._session.post(
                self.check_url,
                files={"file": ("frame.jpg", image, "image/jpeg")},
                timeout=self.timeout_seconds,
            )
        except requests.Timeout as e:
            self._error_count += 1
            raise RecognitionTimeout(f"recognition timed out: {e}")
        except requests.RequestException as e:
            self._error_count += 1
            raise RecognitionUnavailable(f"recognition request failed: {e}")

        if response.status_code >= 400:
            self._error_count += 1
            raise RecognitionUnavailable(
                f"recognition service returned HTTP {response.status_code}"
            )

        try:
            payload = response.json()
        except ValueError as e:
            self._error_count += 1
            raise RecognitionMalformed(f"invalid JSON from recognition service: {e}")

        try:
            return parse_faces(payload, issued_sequence)
        except (RecognitionUnavailable, RecognitionMalformed):
            self._error_count += 1
            raise

    def close(self) -> None:
        self._session.close()

    def get_metrics(self) -> dict:
        """Get client metrics for observability."""
        return {
            "call_count": self._call_count,
            "error_count": self._error_count,
        }


def parse_faces(payload: object, issued_sequence: int = -1) -> List[Detection]:
    """
    Convert a /facebox/check response body into Detections.

    Raises:
        RecognitionUnavailable: The service reported success=false
        RecognitionMalformed: The body is not the expected shape
    """
    if not isinstance(payload, dict):
        raise RecognitionMalformed(f"expected JSON object, got {type(payload).__name__}")

    if payload.get("success") is False:
        raise RecognitionUnavailable(
            f"recognition service error: {payload.get('error', 'unknown error')}"
        )

    faces = payload.get("faces") or []
    if not isinstance(faces, list):
        raise RecognitionMalformed("'faces' is not a list")

    detections = []
    for face in faces:
        if not isinstance(face, dict):
            raise RecognitionMalformed("face entry is not an object")

        matched = face.get("matched", True)
        name = str(face.get("name") or "") if matched else ""

        detections.append(
            Detection(
                name=name,
                identity=str(face.get("id") or ""),
                region=_parse_rect(face.get("rect")),
                issued_sequence=issued_sequence,
            )
        )

    return detections


def _parse_rect(rect: object) -> Optional[Region]:
    if rect is None:
        return None
    if not isinstance(rect, dict):
        raise RecognitionMalformed("'rect' is not an object")

    try:
        left = int(rect["left"])
        top = int(rect["top"])
        width = int(rect["width"])
        height = int(rect["height"])
    except (KeyError, ValueError, TypeError) as e:
        raise RecognitionMalformed(f"invalid rect: {e}")

    # Faces at the image edge can come back with a negative origin
    right = left + width
    bottom = top + height
    left, top = max(0, left), max(0, top)
    if right <= left or bottom <= top:
        return None
    return Region(x=left, y=top, width=right - left, height=bottom - top)
