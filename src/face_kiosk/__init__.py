"""
FaceKiosk
=========

Webcam face-recognition kiosk with a live annotated preview.

This package reads frames from a camera, localizes faces with an OpenCV
cascade, asks a remote recognition service who they are, captions the
frame, and republishes it as an MJPEG stream. A greeting endpoint speaks
"welcome <name>" through a cloud text-to-speech service.

Components:
    - capture: Camera source, frame model, JPEG encoding
    - perception: Local cascade face detection
    - recognition: Remote recognition client and DetectionCache
    - annotate: Label policy and frame drawing
    - stream: Preview publisher, MJPEG framing, local window
    - speech: Text-to-speech backends
    - kiosk: The orchestrating loop

Example:
    from face_kiosk.config import settings
    from face_kiosk.main import create_app

    app = create_app(settings)
    # uvicorn face_kiosk.main:app
"""

__version__ = "0.1.0"
__author__ = "FaceKiosk Project"

__all__ = [
    "__version__",
]
