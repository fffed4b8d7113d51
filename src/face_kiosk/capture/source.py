"""
Frame Source
============

Camera abstraction for the kiosk loop.

This module provides:
    - FrameSource: Protocol every camera backend implements
    - OpenCVFrameSource: cv2.VideoCapture backed source (device or file)
    - DeviceError: Raised when the device cannot be opened

Failure Policy:
    - open() failing is fatal: the kiosk has no purpose without a camera
    - read() returning None is transient: logged by the caller and retried
"""

import logging
import time
from typing import Optional, Protocol, Union

import cv2

from face_kiosk.capture.frame import Frame


logger = logging.getLogger(__name__)


class DeviceError(Exception):
    """Raised when the camera device cannot be opened."""
    pass


class FrameSource(Protocol):
    """
    Protocol for camera backends.

    Implementations assign strictly increasing sequence numbers
    to the frames they return.
    """

    def open(self) -> None:
        """Open the device. Raises DeviceError on failure."""
        ...

    def read(self) -> Optional[Frame]:
        """Return the next frame, or None on a transient empty read."""
        ...

    def release(self) -> None:
        """Release the device."""
        ...


class OpenCVFrameSource:
    """
    Frame source backed by cv2.VideoCapture.

    Accepts a device index (webcam) or a path/URL (video file or
    network stream), matching what cv2.VideoCapture itself accepts.

    Attributes:
        device: Device index or path
        width: Requested capture width (None = device default)
        height: Requested capture height (None = device default)
    """

    def __init__(
        self,
        device: Union[int, str] = 0,
        width: Optional[int] = None,
        height: Optional[int] = None,
    ) -> None:
        self.device = device
        self.width = width
        self.height = height

        self._capture: Optional[cv2.VideoCapture] = None
        self._next_sequence: int = 0
        self._empty_reads: int = 0

    @property
    def is_open(self) -> bool:
        return self._capture is not None and self._capture.isOpened()

    @property
    def empty_reads(self) -> int:
        """Number of reads that returned no frame."""
        return self._empty_reads

    def open(self) -> None:
        """
        Open the capture device.

        Raises:
            DeviceError: If OpenCV cannot open the device
        """
        if self.is_open:
            return

        capture = cv2.VideoCapture(self.device)
        if not capture.isOpened():
            capture.release()
            raise DeviceError(f"can't open camera device {self.device!r}")

        if self.width:
            capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        if self.height:
            capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)

        self._capture = capture
        logger.info(
            f"Camera opened: device={self.device!r}, "
            f"size={int(capture.get(cv2.CAP_PROP_FRAME_WIDTH))}x"
            f"{int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT))}"
        )

    def read(self) -> Optional[Frame]:
        """
        Read the next frame.

        Returns:
            Frame, or None if the device returned nothing this time.

        Raises:
            DeviceError: If called before open()
        """
        if self._capture is None:
            raise DeviceError("camera is not open")

        ok, image = self._capture.read()
        if not ok or image is None or image.size == 0:
            self._empty_reads += 1
            return None

        frame = Frame(image=image, sequence=self._next_sequence, timestamp=time.time())
        self._next_sequence += 1
        return frame

    def release(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.info(f"Camera released: device={self.device!r}")
