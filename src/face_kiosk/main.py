"""
FaceKiosk Main Application
==========================

FastAPI entry point for the kiosk.

The kiosk loop runs as a background task for the lifetime of the app;
HTTP handlers only read what it produces.

Endpoints:
    GET  /                  - Service information
    GET  /health            - Liveness probe (is process alive?)
    GET  /ready             - Readiness probe (camera session running?)
    GET  /metrics           - Loop, publisher and cache counters
    GET  /camera            - MJPEG live preview
    GET  /face              - One-shot lookup of the latest frame
    GET  /audio/name/{name} - Spoken greeting (MP3)
    WS   /ws/detections     - Latest recognition result, once a second
"""

import argparse
import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse, PlainTextResponse, Response, StreamingResponse

from face_kiosk.annotate import Annotator, LabelPolicy
from face_kiosk.capture import FrameSource, OpenCVFrameSource
from face_kiosk.config import Settings, load_config, settings as default_settings
from face_kiosk.kiosk import KioskLoop, PublishMode
from face_kiosk.models import DetectionPayload, DetectionsMessage
from face_kiosk.perception import CascadeFaceDetector
from face_kiosk.recognition import (
    DetectionCache,
    FaceboxClient,
    MockRecognitionClient,
    RecognitionClient,
)
from face_kiosk.speech import (
    DisabledSpeechSynthesizer,
    GoogleSpeechSynthesizer,
    SpeechSynthesisError,
    SpeechSynthesizer,
)
from face_kiosk.stream import LocalWindow, PreviewPublisher, PublishError, content_type, mjpeg_stream


logger = logging.getLogger(__name__)


# =============================================================================
# Runtime
# =============================================================================

@dataclass
class KioskRuntime:
    """Everything one running kiosk needs, built once and passed around."""

    settings: Settings
    kiosk: KioskLoop
    cache: DetectionCache
    policy: LabelPolicy
    synthesizer: SpeechSynthesizer
    publisher: Optional[PreviewPublisher] = None


# =============================================================================
# Factories
# =============================================================================

def create_recognition_client(settings: Settings) -> RecognitionClient:
    """
    Create recognition client based on config.

    Fails fast on an unknown backend.
    """
    backend = settings.recognition.backend

    if backend == "mock":
        logger.info("Using MockRecognitionClient")
        return MockRecognitionClient(
            names=settings.recognition.mock.names,
            latency_seconds=settings.recognition.mock.latency_seconds,
        )

    elif backend == "facebox":
        logger.info(f"Using FaceboxClient: {settings.recognition.base_url}")
        return FaceboxClient(
            base_url=settings.recognition.base_url,
            timeout_seconds=settings.recognition.timeout_seconds,
        )

    else:
        raise ValueError(f"Unknown recognition backend: {backend}")


def create_speech_synthesizer(settings: Settings) -> SpeechSynthesizer:
    """
    Create speech backend based on config.

    A Google client that cannot be created (e.g. missing credentials)
    disables speech instead of stopping the kiosk.
    """
    backend = settings.speech.backend

    if backend == "disabled":
        logger.info("Speech synthesis disabled")
        return DisabledSpeechSynthesizer()

    elif backend == "google":
        try:
            return GoogleSpeechSynthesizer(
                language_code=settings.speech.language_code,
                voice_name=settings.speech.voice_name,
                credentials_path=settings.speech.credentials_path,
            )
        except SpeechSynthesisError as e:
            logger.error(f"{e}; speech endpoint will return errors")
            return DisabledSpeechSynthesizer()

    else:
        raise ValueError(f"Unknown speech backend: {backend}")


def create_runtime(
    settings: Settings,
    source: Optional[FrameSource] = None,
    recognizer: Optional[RecognitionClient] = None,
    synthesizer: Optional[SpeechSynthesizer] = None,
    publish_mode: Optional[PublishMode] = None,
) -> KioskRuntime:
    """Build the kiosk and its collaborators from settings."""
    mode = PublishMode(publish_mode or settings.stream.publish_mode)

    policy = LabelPolicy.from_config(settings.labels)
    cache = DetectionCache()

    if source is None:
        source = OpenCVFrameSource(
            device=settings.camera.device,
            width=settings.camera.width,
            height=settings.camera.height,
        )

    if recognizer is None:
        recognizer = create_recognition_client(settings)

    detector = None
    if settings.detection.enabled:
        detector = CascadeFaceDetector(
            cascade_file=settings.detection.cascade_file,
            scale_factor=settings.detection.scale_factor,
            min_neighbors=settings.detection.min_neighbors,
            min_size=settings.detection.min_size,
        )

    publisher = None
    window = None
    if mode is PublishMode.HTTP_STREAM:
        publisher = PreviewPublisher(
            publish_timeout_ms=settings.stream.publish_timeout_ms,
            queue_size=settings.stream.subscriber_queue_size,
            max_consecutive_drops=settings.stream.max_consecutive_drops,
        )
    else:
        window = LocalWindow(settings.stream.window_name)

    kiosk = KioskLoop(
        source=source,
        annotator=Annotator(policy),
        cache=cache,
        publisher=publisher,
        window=window,
        recognizer=recognizer,
        detector=detector,
        enable_recognition=settings.recognition.enabled,
        publish_mode=mode,
        jpeg_quality=settings.camera.jpeg_quality,
        empty_read_backoff_ms=settings.camera.empty_read_backoff_ms,
        stats_every_n_frames=settings.logging.stats_every_n_frames,
    )

    return KioskRuntime(
        settings=settings,
        kiosk=kiosk,
        cache=cache,
        policy=policy,
        synthesizer=synthesizer or create_speech_synthesizer(settings),
        publisher=publisher,
    )


# =============================================================================
# Lifespan Management
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager with graceful shutdown."""
    settings: Settings = app.state.settings

    logger.info(f"Starting {settings.kiosk.name} {settings.kiosk.version}")

    if app.state.runtime is None:
        app.state.runtime = create_runtime(settings, publish_mode=PublishMode.HTTP_STREAM)
    runtime: KioskRuntime = app.state.runtime

    # No camera, no kiosk: DeviceError aborts startup
    runtime.kiosk.open()
    app.state.started_at = time.time()

    loop_task = asyncio.create_task(runtime.kiosk.run(), name="kiosk_loop")
    logger.info("Kiosk loop started")

    yield

    logger.info("Shutting down gracefully...")
    runtime.kiosk.stop()

    try:
        await asyncio.wait_for(loop_task, timeout=5.0)
    except asyncio.TimeoutError:
        loop_task.cancel()
        try:
            await loop_task
        except asyncio.CancelledError:
            pass

    logger.info("Shutdown complete")


# =============================================================================
# FastAPI Application
# =============================================================================

def create_app(
    settings: Optional[Settings] = None,
    runtime: Optional[KioskRuntime] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Loaded settings (default: module-level settings)
        runtime: Prebuilt runtime; built from settings at startup if None
    """
    settings = settings or (runtime.settings if runtime else default_settings)

    app = FastAPI(
        title="FaceKiosk",
        description="Webcam face-recognition kiosk with live MJPEG preview",
        version=settings.kiosk.version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.runtime = runtime
    app.state.started_at = time.time()

    _register_routes(app)
    return app


def _runtime(request: Request) -> KioskRuntime:
    return request.app.state.runtime


def _register_routes(app: FastAPI) -> None:

    # -------------------------------------------------------------------------
    # Service endpoints
    # -------------------------------------------------------------------------

    @app.get("/")
    async def root(request: Request) -> JSONResponse:
        """Service information endpoint."""
        settings: Settings = request.app.state.settings
        return JSONResponse({
            "service": "FaceKiosk",
            "version": settings.kiosk.version,
            "name": settings.kiosk.name,
            "status": "running",
            "recognition_backend": settings.recognition.backend,
            "recognition_enabled": settings.recognition.enabled,
            "detection_enabled": settings.detection.enabled,
        })

    @app.get("/health")
    async def health(request: Request) -> JSONResponse:
        """
        Liveness probe - is the process alive?

        Always returns 200 if the service is running.
        """
        return JSONResponse({
            "status": "healthy",
            "uptime_seconds": round(time.time() - request.app.state.started_at, 1),
        })

    @app.get("/ready")
    async def ready(request: Request) -> JSONResponse:
        """
        Readiness probe - is the camera session producing frames?

        Returns 200 once at least one frame was captured, 503 otherwise.
        """
        kiosk = _runtime(request).kiosk
        is_ready = kiosk.is_running and kiosk.metrics.frames_captured > 0

        body = {
            "status": "ready" if is_ready else "not_ready",
            "state": kiosk.state.value,
            "frames_captured": kiosk.metrics.frames_captured,
        }
        return JSONResponse(body, status_code=200 if is_ready else 503)

    @app.get("/metrics")
    async def metrics(request: Request) -> JSONResponse:
        """Detailed metrics for observability."""
        runtime = _runtime(request)

        body = {
            "uptime_seconds": round(time.time() - request.app.state.started_at, 1),
            "kiosk": runtime.kiosk.get_metrics(),
            "cache": runtime.cache.metrics(),
        }
        if runtime.publisher is not None:
            body["publisher"] = runtime.publisher.metrics()
        recognizer = runtime.kiosk.recognizer
        if recognizer is not None and hasattr(recognizer, "get_metrics"):
            body["recognition"] = recognizer.get_metrics()

        return JSONResponse(body)

    # -------------------------------------------------------------------------
    # Kiosk endpoints
    # -------------------------------------------------------------------------

    @app.get("/camera")
    async def camera(request: Request) -> Response:
        """MJPEG live preview of annotated frames."""
        runtime = _runtime(request)
        if runtime.publisher is None:
            return PlainTextResponse("Preview stream not enabled", status_code=404)

        try:
            subscriber = runtime.publisher.subscribe()
        except PublishError:
            return PlainTextResponse("Preview stream closed", status_code=503)

        boundary = runtime.settings.stream.boundary
        return StreamingResponse(
            mjpeg_stream(runtime.publisher, subscriber, boundary),
            media_type=content_type(boundary),
            headers={"Cache-Control": "no-cache, private", "Pragma": "no-cache"},
        )

    @app.get("/face")
    async def face(request: Request) -> JSONResponse:
        """Recognize the latest captured frame once and map it to a profile."""
        runtime = _runtime(request)
        cors = {"Access-Control-Allow-Origin": "*"}

        try:
            detections = await runtime.kiosk.recognize_latest()
        except LookupError as e:
            logger.warning(f"Face lookup unavailable: {e}")
            return JSONResponse({"error": str(e)}, status_code=503, headers=cors)

        if detections:
            logger.info(f"this photo is {detections[0].name or '<unknown>'}")

        lookup = runtime.policy.lookup(detections[0] if detections else None)
        logger.info(f"face json is: {lookup.model_dump_json()}")
        return JSONResponse(lookup.model_dump(), headers=cors)

    @app.get("/audio/name/{name}")
    async def audio_greeting(name: str, request: Request) -> Response:
        """Speak the greeting for a name."""
        runtime = _runtime(request)
        logger.info(f"Generating text-to-speech for the name {name}")

        text = runtime.settings.speech.greeting + name
        try:
            audio = await asyncio.to_thread(runtime.synthesizer.synthesize, text)
        except SpeechSynthesisError as e:
            logger.error(f"Error calling speech synthesis: {e}")
            return PlainTextResponse(
                "Error synthesizing text Internal Server Error",
                status_code=500,
            )

        return Response(content=audio, media_type=runtime.synthesizer.media_type)

    # -------------------------------------------------------------------------
    # WebSocket endpoints
    # -------------------------------------------------------------------------

    @app.websocket("/ws/detections")
    async def detections_stream(websocket: WebSocket) -> None:
        """WebSocket endpoint pushing the latest recognition result."""
        runtime: KioskRuntime = websocket.app.state.runtime
        await websocket.accept()
        logger.info("Client connected to /ws/detections")

        try:
            while runtime.kiosk.is_running:
                await websocket.send_json(
                    build_detections_message(runtime).model_dump(mode="json")
                )
                await asyncio.sleep(1.0)
        except WebSocketDisconnect:
            pass
        except Exception as e:
            logger.warning(f"WebSocket error: {e}")
        finally:
            logger.info("Client disconnected from /ws/detections")


def build_detections_message(runtime: KioskRuntime) -> DetectionsMessage:
    """Snapshot the cached result of the running session."""
    result = runtime.kiosk.latest_result()
    return DetectionsMessage(
        session=runtime.kiosk.session,
        issued_sequence=result.issued_sequence,
        completed_at=result.completed_at,
        detections=[
            DetectionPayload(
                name=d.name,
                caption=runtime.policy.label_for(d.name).caption,
                identity=d.identity,
                region=d.region.to_dict() if d.region else None,
            )
            for d in result.detections
        ],
    )


app = create_app()


# =============================================================================
# Main Entry Point
# =============================================================================

async def run_local_window(settings: Settings) -> None:
    """Run the kiosk with an on-device window instead of HTTP."""
    runtime = create_runtime(settings, publish_mode=PublishMode.LOCAL_WINDOW)
    await runtime.kiosk.run()


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Webcam face-recognition kiosk"
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to config.yaml (default: search common locations)",
    )
    parser.add_argument(
        "--mode",
        choices=[m.value for m in PublishMode],
        default=None,
        help="Publish mode (default: stream.publish_mode from config)",
    )
    parser.add_argument(
        "--no-recognition",
        action="store_true",
        help="Do not call the recognition service from the loop",
    )
    parser.add_argument("--host", type=str, default=None, help="Bind host")
    parser.add_argument("--port", type=int, default=None, help="Bind port")
    args = parser.parse_args()

    settings = load_config(args.config) if args.config else default_settings
    if args.no_recognition:
        settings.recognition.enabled = False
    mode = PublishMode(args.mode or settings.stream.publish_mode)

    if mode is PublishMode.LOCAL_WINDOW:
        try:
            asyncio.run(run_local_window(settings))
        except KeyboardInterrupt:
            logger.info("Interrupted")
        return

    import uvicorn

    uvicorn.run(
        create_app(settings),
        host=args.host or settings.server.host,
        port=args.port or settings.server.port,
        reload=False,
    )


if __name__ == "__main__":
    main()
