"""
MJPEG Framing
=============

Multipart framing for the live preview endpoint.

Wire Format (one part per frame):
    --frame\r\n
    Content-Type: image/jpeg\r\n
    Content-Length: 12345\r\n
    \r\n
    <jpeg bytes>\r\n
"""

import logging
from typing import AsyncIterator

from face_kiosk.stream.publisher import PreviewPublisher, Subscriber


logger = logging.getLogger(__name__)


def content_type(boundary: str = "frame") -> str:
    """Response Content-Type for an MJPEG stream."""
    return f"multipart/x-mixed-replace; boundary={boundary}"


def mjpeg_part(data: bytes, boundary: str = "frame") -> bytes:
    """Frame one JPEG as a multipart part."""
    header = (
        f"--{boundary}\r\n"
        f"Content-Type: image/jpeg\r\n"
        f"Content-Length: {len(data)}\r\n"
        f"\r\n"
    ).encode("ascii")
    return header + data + b"\r\n"


async def mjpeg_stream(
    publisher: PreviewPublisher,
    subscriber: Subscriber,
    boundary: str = "frame",
) -> AsyncIterator[bytes]:
    """
    Yield multipart parts for one subscriber until it closes.

    The subscriber is detached when the stream ends for any reason,
    including the client going away mid-write.
    """
    try:
        async for frame in subscriber:
            yield mjpeg_part(frame.data, boundary)
    finally:
        publisher.unsubscribe(subscriber)
