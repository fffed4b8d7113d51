"""
Detection Models
================

Data models for face regions and recognition results.

These models are produced by the cascade detector and the recognition
client, stored in the DetectionCache, and consumed by the Annotator.
"""

import time
from dataclasses import dataclass, field
from typing import Optional, Tuple


@dataclass(frozen=True, slots=True)
class Region:
    """
    Axis-aligned rectangle in frame coordinates.

    Attributes:
        x: Left edge in pixels
        y: Top edge in pixels
        width: Width in pixels
        height: Height in pixels
    """

    x: int
    y: int
    width: int
    height: int

    def __post_init__(self) -> None:
        """Validate invariants."""
        if self.x < 0 or self.y < 0:
            raise ValueError("region origin must be non-negative")
        if self.width < 0 or self.height < 0:
            raise ValueError("region size must be non-negative")

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.width / 2.0, self.y + self.height / 2.0)

    @property
    def is_empty(self) -> bool:
        return self.width == 0 or self.height == 0

    @classmethod
    def from_xywh(
        cls,
        x: float,
        y: float,
        width: float,
        height: float,
        frame_width: int,
        frame_height: int,
    ) -> Optional["Region"]:
        """
        Build a region from possibly out-of-bounds values.

        Clips the rectangle to [0, frame_width) x [0, frame_height).

        Returns:
            The clipped Region, or None if nothing is left inside the frame.
        """
        left = max(0, int(x))
        top = max(0, int(y))
        right = min(frame_width, int(x + width))
        bottom = min(frame_height, int(y + height))
        if right <= left or bottom <= top:
            return None
        return cls(x=left, y=top, width=right - left, height=bottom - top)

    def clamp(self, frame_width: int, frame_height: int) -> Optional["Region"]:
        """Return this region clipped to the given frame size."""
        return Region.from_xywh(
            self.x, self.y, self.width, self.height, frame_width, frame_height
        )

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass(frozen=True, slots=True)
class Detection:
    """
    One recognized (or unrecognized) face.

    Attributes:
        name: Recognized name; empty string means unknown
        identity: Identifier reported by the recognition service
        region: Face rectangle in the issuing frame, if reported
        issued_sequence: Sequence of the frame the request was issued for
    """

    name: str
    identity: str = ""
    region: Optional[Region] = None
    issued_sequence: int = -1

    @property
    def is_known(self) -> bool:
        return bool(self.name)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "identity": self.identity,
            "region": self.region.to_dict() if self.region else None,
            "issued_sequence": self.issued_sequence,
        }


@dataclass(frozen=True, slots=True)
class RecognitionResult:
    """
    Outcome of one completed recognition call.

    This is the value held by the DetectionCache. The empty result
    (issued_sequence == -1) means "nothing recognized yet".

    Attributes:
        detections: Detections in the order the service reported them
        issued_sequence: Sequence of the frame the request was issued for
        completed_at: UNIX timestamp when the call completed
        failed: True if the call errored and degraded to no detections
    """

    detections: Tuple[Detection, ...] = ()
    issued_sequence: int = -1
    completed_at: float = field(default_factory=time.time)
    failed: bool = False

    @classmethod
    def empty(cls) -> "RecognitionResult":
        return cls(detections=(), issued_sequence=-1, completed_at=0.0)

    @property
    def is_empty(self) -> bool:
        return not self.detections

    @property
    def primary(self) -> Optional[Detection]:
        """First detection reported, if any."""
        return self.detections[0] if self.detections else None

    def to_dict(self) -> dict:
        """Export as dictionary for logging/serialization."""
        return {
            "issued_sequence": self.issued_sequence,
            "completed_at": round(self.completed_at, 3),
            "failed": self.failed,
            "detections": [d.to_dict() for d in self.detections],
        }
