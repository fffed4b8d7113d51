"""
Image Encoder
=============

Dedicated module for encoding frames to JPEG.

Design Rules:
    - This is the ONLY place in the codebase that encodes images
    - Fails fast on frames OpenCV cannot serialize
    - Callers drop the frame on EncodeError and keep going
"""

import logging

import cv2
import numpy as np

from face_kiosk.capture.frame import EncodedFrame, Frame


logger = logging.getLogger(__name__)


class EncodeError(Exception):
    """Raised when a frame cannot be encoded."""
    pass


def encode_jpeg(frame: Frame, quality: int = 80) -> EncodedFrame:
    """
    Encode a frame to JPEG.

    Args:
        frame: Frame to encode
        quality: JPEG quality in [1, 100]

    Returns:
        EncodedFrame carrying the frame's sequence number

    Raises:
        EncodeError: If OpenCV rejects the image
    """
    if frame.image.dtype != np.uint8:
        raise EncodeError(
            f"Invalid dtype for frame {frame.sequence}: {frame.image.dtype}"
        )

    try:
        ok, buffer = cv2.imencode(
            ".jpg",
            frame.image,
            [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)],
        )
    except cv2.error as e:
        raise EncodeError(f"Failed to encode frame {frame.sequence}: {e}")

    if not ok:
        raise EncodeError(
            f"Failed to encode frame {frame.sequence}: cv2.imencode returned False"
        )

    return EncodedFrame(sequence=frame.sequence, data=buffer.tobytes())


def decode_jpeg(data: bytes) -> np.ndarray:
    """
    Decode JPEG bytes to a BGR array.

    Raises:
        EncodeError: If the bytes are not a decodable image
    """
    nparr = np.frombuffer(data, np.uint8)
    bgr = cv2.imdecode(nparr, cv2.IMREAD_COLOR)
    if bgr is None:
        raise EncodeError("cv2.imdecode returned None")
    return bgr
