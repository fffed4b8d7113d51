"""
Frame Data Model
=================

Internal frame representation for the capture pipeline.

This module defines the typed Frame class that is passed between the
capture, annotation and publishing stages.

Design Rules:
    - This is the ONLY frame format passed between stages
    - The pixel buffer is read-only once captured
    - Stages that draw produce a new Frame instead of editing one
"""

import time
from dataclasses import dataclass, field
from typing import Optional

import numpy as np


@dataclass(frozen=True, slots=True)
class Frame:
    """
    Captured camera frame.

    Immutable (frozen) and backed by a read-only numpy array so
    that no stage can modify pixels another stage is holding.

    Attributes:
        image: BGR (or grayscale) pixel array, shape (H, W[, C]), uint8
        sequence: Monotonically increasing counter assigned at capture
        timestamp: UNIX timestamp when the frame was captured
    """

    image: np.ndarray
    sequence: int
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        """Validate invariants and lock the pixel buffer."""
        if self.sequence < 0:
            raise ValueError("sequence must be non-negative")
        if self.image.ndim not in (2, 3):
            raise ValueError(f"Invalid image shape: {self.image.shape}")
        if self.image.flags.writeable:
            self.image.setflags(write=False)

    @property
    def height(self) -> int:
        return int(self.image.shape[0])

    @property
    def width(self) -> int:
        return int(self.image.shape[1])

    @property
    def channels(self) -> int:
        return 1 if self.image.ndim == 2 else int(self.image.shape[2])

    def with_image(self, image: np.ndarray) -> "Frame":
        """Return a frame carrying new pixels but the same sequence and time."""
        return Frame(image=image, sequence=self.sequence, timestamp=self.timestamp)

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the pixels."""
        return (
            f"Frame(sequence={self.sequence}, "
            f"size={self.width}x{self.height}x{self.channels}, "
            f"timestamp={self.timestamp:.3f})"
        )


@dataclass(frozen=True, slots=True)
class EncodedFrame:
    """
    JPEG-encoded frame ready for publishing.

    Attributes:
        sequence: Sequence number of the source Frame
        data: JPEG bytes
    """

    sequence: int
    data: bytes

    def __repr__(self) -> str:
        return f"EncodedFrame(sequence={self.sequence}, bytes={len(self.data)})"


def blank_frame(
    width: int,
    height: int,
    sequence: int,
    channels: int = 3,
    value: int = 0,
    timestamp: Optional[float] = None,
) -> Frame:
    """Build a solid-color frame (used for placeholders and tests)."""
    image = np.full((height, width, channels), value, dtype=np.uint8)
    return Frame(
        image=image,
        sequence=sequence,
        timestamp=time.time() if timestamp is None else timestamp,
    )
