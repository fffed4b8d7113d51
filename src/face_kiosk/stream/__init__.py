"""
Stream Module
=============

Live preview publishing.

This module provides the output layer of the kiosk:
    - PreviewPublisher: Fan-out with per-subscriber time budget
    - Subscriber: Bounded per-client frame queue
    - mjpeg_stream / mjpeg_part: Multipart framing for HTTP clients
    - LocalWindow: On-device OpenCV window

Example:
    from face_kiosk.stream import PreviewPublisher, mjpeg_stream

    publisher = PreviewPublisher(publish_timeout_ms=50)

    # HTTP handler
    subscriber = publisher.subscribe()
    body = mjpeg_stream(publisher, subscriber)

    # Kiosk loop
    await publisher.publish(encoded_frame)
"""

from face_kiosk.stream.publisher import PreviewPublisher, PublishError, Subscriber
from face_kiosk.stream.mjpeg import content_type, mjpeg_part, mjpeg_stream
from face_kiosk.stream.window import LocalWindow


__all__ = [
    "PreviewPublisher",
    "PublishError",
    "Subscriber",
    "content_type",
    "mjpeg_part",
    "mjpeg_stream",
    "LocalWindow",
]
