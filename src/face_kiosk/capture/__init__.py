"""
Capture Module
==============

Camera capture and frame serialization.

This module provides the ingestion layer for the kiosk:
    - Frame / EncodedFrame: Typed frame data models
    - FrameSource / OpenCVFrameSource: Camera abstraction
    - encode_jpeg: JPEG serialization (raises EncodeError)

Example:
    from face_kiosk.capture import OpenCVFrameSource, encode_jpeg

    source = OpenCVFrameSource(device=0)
    source.open()
    frame = source.read()
    if frame is not None:
        jpeg = encode_jpeg(frame)
"""

from face_kiosk.capture.frame import EncodedFrame, Frame, blank_frame
from face_kiosk.capture.source import DeviceError, FrameSource, OpenCVFrameSource
from face_kiosk.capture.encoder import EncodeError, decode_jpeg, encode_jpeg


__all__ = [
    "Frame",
    "EncodedFrame",
    "blank_frame",
    "FrameSource",
    "OpenCVFrameSource",
    "DeviceError",
    "EncodeError",
    "encode_jpeg",
    "decode_jpeg",
]
