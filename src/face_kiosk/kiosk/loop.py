"""
Kiosk Loop
==========

Orchestrates capture -> detect -> recognize -> annotate -> publish.

State Machine:
    IDLE -> CAPTURING -> RECOGNIZING (optional) -> ANNOTATING -> PUBLISHING -> CAPTURING ...
    Any state -> SHUTDOWN on stop() or an unrecoverable device error.

Concurrency:
    - One asyncio task drives the loop; blocking camera reads and the
      cascade run on worker threads via asyncio.to_thread
    - Recognition runs as a separate short-lived task, at most one in
      flight per session; frames captured while one is outstanding are
      annotated from the cache and not submitted
    - The loop never awaits a recognition call. It draws whatever the
      DetectionCache holds right now
    - Recognition tasks still running when the session ends are
      abandoned; their results are discarded by the cache

Failure Policy:
    - Camera open failure: DeviceError raised from open() (fatal)
    - Empty camera read: counted, logged, retried next iteration
    - Encode failure: frame dropped, loop continues
    - Recognition failure: cached as an empty (failed) result
"""

import asyncio
import logging
import time
import uuid
from enum import Enum
from typing import List, Optional

from face_kiosk.annotate.annotator import Annotator, pair_overlays
from face_kiosk.capture.encoder import EncodeError, encode_jpeg
from face_kiosk.capture.frame import EncodedFrame, Frame
from face_kiosk.capture.source import DeviceError, FrameSource
from face_kiosk.models.detection import Detection, RecognitionResult
from face_kiosk.perception.cascade import FaceDetector
from face_kiosk.recognition.cache import DetectionCache
from face_kiosk.recognition.client import RecognitionClient, RecognitionError
from face_kiosk.stream.publisher import PreviewPublisher
from face_kiosk.stream.window import LocalWindow


logger = logging.getLogger(__name__)


class KioskState(str, Enum):
    """Loop states."""

    IDLE = "IDLE"
    CAPTURING = "CAPTURING"
    RECOGNIZING = "RECOGNIZING"
    ANNOTATING = "ANNOTATING"
    PUBLISHING = "PUBLISHING"
    SHUTDOWN = "SHUTDOWN"


class PublishMode(str, Enum):
    """Where annotated frames go."""

    HTTP_STREAM = "http_stream"
    LOCAL_WINDOW = "local_window"


class KioskMetrics:
    """Metrics for KioskLoop observability."""

    __slots__ = (
        "frames_captured",
        "empty_reads",
        "encode_errors",
        "frames_published",
        "recognition_issued",
        "recognition_skipped",
        "recognition_completed",
        "recognition_errors",
        "last_sequence",
    )

    def __init__(self) -> None:
        self.frames_captured: int = 0
        self.empty_reads: int = 0
        self.encode_errors: int = 0
        self.frames_published: int = 0
        self.recognition_issued: int = 0
        self.recognition_skipped: int = 0
        self.recognition_completed: int = 0
        self.recognition_errors: int = 0
        self.last_sequence: int = -1

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {name: getattr(self, name) for name in self.__slots__}


class KioskLoop:
    """
    The kiosk pipeline for one camera session.

    All collaborators are passed in; the loop owns none of them
    globally.

    Attributes:
        source: Camera frame source
        annotator: Renders cached detections onto frames
        cache: Shared DetectionCache
        publisher: MJPEG fan-out (http_stream mode)
        window: Local display (local_window mode)
        recognizer: Remote recognition client
        detector: Local face localizer (None = use recognizer regions)
        enable_recognition: Issue recognition calls from the loop
        publish_mode: http_stream or local_window
        metrics: Operational counters

    Example:
        kiosk = KioskLoop(
            source=OpenCVFrameSource(0),
            annotator=Annotator(policy),
            cache=DetectionCache(),
            publisher=PreviewPublisher(),
            recognizer=FaceboxClient("http://localhost:8080"),
        )
        kiosk.open()
        task = asyncio.create_task(kiosk.run())

        # Later
        kiosk.stop()
        await task
    """

    def __init__(
        self,
        source: FrameSource,
        annotator: Annotator,
        cache: DetectionCache,
        publisher: Optional[PreviewPublisher] = None,
        window: Optional[LocalWindow] = None,
        recognizer: Optional[RecognitionClient] = None,
        detector: Optional[FaceDetector] = None,
        enable_recognition: bool = True,
        publish_mode: PublishMode = PublishMode.HTTP_STREAM,
        jpeg_quality: int = 80,
        empty_read_backoff_ms: int = 10,
        stats_every_n_frames: int = 300,
    ) -> None:
        publish_mode = PublishMode(publish_mode)
        if publish_mode is PublishMode.HTTP_STREAM and publisher is None:
            raise ValueError("http_stream mode requires a publisher")
        if publish_mode is PublishMode.LOCAL_WINDOW and window is None:
            raise ValueError("local_window mode requires a window")
        if enable_recognition and recognizer is None:
            raise ValueError("recognition is enabled but no recognizer was given")

        self.source = source
        self.annotator = annotator
        self.cache = cache
        self.publisher = publisher
        self.window = window
        self.recognizer = recognizer
        self.detector = detector
        self.enable_recognition = enable_recognition
        self.publish_mode = publish_mode
        self.jpeg_quality = jpeg_quality
        self.empty_read_backoff = empty_read_backoff_ms / 1000.0
        self.stats_every_n_frames = stats_every_n_frames

        self.metrics = KioskMetrics()

        self._state: KioskState = KioskState.IDLE
        self._session: Optional[str] = None
        self._stop_event: asyncio.Event = asyncio.Event()
        self._inflight: Optional[asyncio.Task] = None
        self._latest_frame: Optional[Frame] = None
        self._latest_annotated: Optional[Frame] = None
        self._started_at: float = 0.0

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def state(self) -> KioskState:
        return self._state

    @property
    def session(self) -> Optional[str]:
        return self._session

    @property
    def is_running(self) -> bool:
        return self._session is not None and self._state is not KioskState.SHUTDOWN

    @property
    def inflight_count(self) -> int:
        """Recognition calls outstanding for this session (0 or 1)."""
        return 1 if self._inflight is not None and not self._inflight.done() else 0

    @property
    def latest_frame(self) -> Optional[Frame]:
        """Most recent raw captured frame."""
        return self._latest_frame

    @property
    def latest_annotated(self) -> Optional[Frame]:
        return self._latest_annotated

    def latest_result(self) -> RecognitionResult:
        """Latest completed recognition result for the running session."""
        if self._session is None:
            return RecognitionResult.empty()
        return self.cache.read(self._session)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def open(self) -> str:
        """
        Open the camera and start a session.

        Returns:
            The new session id

        Raises:
            DeviceError: If the camera cannot be opened
        """
        if self._session is not None:
            return self._session

        self.source.open()

        self._session = uuid.uuid4().hex[:12]
        self.cache.open(self._session)
        self._stop_event.clear()
        self._started_at = time.time()
        self._state = KioskState.CAPTURING

        logger.info(
            f"Kiosk session {self._session} started: "
            f"mode={self.publish_mode.value}, "
            f"recognition={'on' if self.enable_recognition else 'off'}, "
            f"detection={'on' if self.detector else 'off'}"
        )
        return self._session

    def stop(self) -> None:
        """Ask the loop to exit after the current frame."""
        if not self._stop_event.is_set():
            logger.info("Kiosk loop stopping...")
        self._stop_event.set()

    async def run(self) -> None:
        """
        Drive the loop until stop() or a device failure.

        Raises:
            DeviceError: If the camera cannot be opened at startup
        """
        self.open()

        try:
            while not self._stop_event.is_set():
                try:
                    frame = await asyncio.to_thread(self.source.read)
                except DeviceError as e:
                    logger.error(f"Camera failed, shutting down: {e}")
                    break

                if frame is None:
                    self.metrics.empty_reads += 1
                    if self.metrics.empty_reads == 1 or self.metrics.empty_reads % 100 == 0:
                        logger.warning(
                            f"cannot read camera (empty reads: {self.metrics.empty_reads})"
                        )
                    await asyncio.sleep(self.empty_read_backoff)
                    continue

                await self.process_frame(frame)

        except asyncio.CancelledError:
            logger.info("Kiosk loop cancelled")
            raise
        finally:
            self._shutdown()

    def _shutdown(self) -> None:
        self._state = KioskState.SHUTDOWN

        if self._inflight is not None and not self._inflight.done():
            logger.info("Abandoning in-flight recognition request")

        if self._session is not None:
            self.cache.close(self._session)
            logger.info(
                f"Kiosk session {self._session} ended after "
                f"{time.time() - self._started_at:.1f}s: {self.metrics.to_dict()}"
            )
            self._session = None

        self.source.release()
        if self.publisher is not None:
            self.publisher.close()
        if self.window is not None:
            self.window.close()

    # -------------------------------------------------------------------------
    # Pipeline
    # -------------------------------------------------------------------------

    async def process_frame(self, frame: Frame) -> Optional[Frame]:
        """
        Run one captured frame through the pipeline.

        Args:
            frame: Freshly captured frame

        Returns:
            The annotated frame, or None if the loop is not running.
        """
        if self._session is None:
            logger.warning(f"Frame {frame.sequence} ignored: no active session")
            return None

        self._latest_frame = frame
        self.metrics.frames_captured += 1

        if self.enable_recognition:
            self._state = KioskState.RECOGNIZING
            self._maybe_recognize(frame)

        self._state = KioskState.ANNOTATING
        regions = None
        if self.detector is not None:
            regions = await asyncio.to_thread(self.detector.detect, frame)

        result = self.cache.read(self._session)
        annotated = self.annotator.annotate(frame, pair_overlays(regions, result))
        self._latest_annotated = annotated

        self._state = KioskState.PUBLISHING
        await self._publish(annotated)

        if self._state is not KioskState.SHUTDOWN:
            self._state = KioskState.CAPTURING

        if self.stats_every_n_frames and self.metrics.frames_captured % self.stats_every_n_frames == 0:
            logger.info(f"Kiosk stats: {self.metrics.to_dict()}")

        return annotated

    def _maybe_recognize(self, frame: Frame) -> bool:
        """Submit the frame unless a request is already outstanding."""
        if self.inflight_count:
            self.metrics.recognition_skipped += 1
            return False

        try:
            encoded = encode_jpeg(frame, self.jpeg_quality)
        except EncodeError as e:
            self.metrics.encode_errors += 1
            logger.error(f"unable to encode frame for recognition: {e}")
            return False

        self.metrics.recognition_issued += 1
        self._inflight = asyncio.create_task(
            self._recognize(self._session, encoded),
            name=f"recognize-{frame.sequence}",
        )
        return True

    async def _recognize(self, session: str, encoded: EncodedFrame) -> None:
        """Recognition task: call the service, then write the cache."""
        try:
            detections = await asyncio.to_thread(
                self.recognizer.check, encoded.data, encoded.sequence
            )
            result = RecognitionResult(
                detections=tuple(detections),
                issued_sequence=encoded.sequence,
            )
            self.metrics.recognition_completed += 1
            if detections:
                logger.debug(
                    f"Frame {encoded.sequence} recognized: "
                    f"{[d.name or '<unknown>' for d in detections]}"
                )
        except RecognitionError as e:
            self.metrics.recognition_errors += 1
            logger.warning(f"unable to recognize face (frame={encoded.sequence}): {e}")
            result = RecognitionResult(
                detections=(), issued_sequence=encoded.sequence, failed=True
            )
        except Exception as e:
            self.metrics.recognition_errors += 1
            logger.exception(f"Recognition client error (frame={encoded.sequence}): {e}")
            result = RecognitionResult(
                detections=(), issued_sequence=encoded.sequence, failed=True
            )

        self.cache.update(session, result)

    async def _publish(self, annotated: Frame) -> None:
        if self.publish_mode is PublishMode.LOCAL_WINDOW:
            if not self.window.show(annotated):
                logger.info("Quit key pressed in preview window")
                self.stop()
            self.metrics.frames_published += 1
            self.metrics.last_sequence = annotated.sequence
            return

        try:
            encoded = encode_jpeg(annotated, self.jpeg_quality)
        except EncodeError as e:
            self.metrics.encode_errors += 1
            logger.error(f"unable to encode matrix: {e}")
            return

        await self.publisher.publish(encoded)
        self.metrics.frames_published += 1
        self.metrics.last_sequence = annotated.sequence

    async def wait_for_recognition(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the outstanding recognition call, if any.

        Returns:
            True if nothing is outstanding afterwards.
        """
        task = self._inflight
        if task is None or task.done():
            return True
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def recognize_latest(self) -> List[Detection]:
        """
        One-shot recognition of the most recent captured frame.

        Runs outside the in-flight budget of the loop and does not
        touch the DetectionCache.

        Returns:
            Detections, empty if recognition failed

        Raises:
            LookupError: If no frame has been captured yet or no recognizer is set
        """
        frame = self._latest_frame
        if frame is None:
            raise LookupError("no frame captured yet")
        if self.recognizer is None:
            raise LookupError("no recognition client configured")

        try:
            encoded = encode_jpeg(frame, self.jpeg_quality)
        except EncodeError as e:
            logger.error(f"unable to encode frame for lookup: {e}")
            return []

        try:
            return await asyncio.to_thread(
                self.recognizer.check, encoded.data, encoded.sequence
            )
        except RecognitionError as e:
            logger.warning(f"unable to recognize face: {e}")
            return []

    def get_metrics(self) -> dict:
        """Get loop metrics for observability."""
        return {
            "state": self._state.value,
            "session": self._session,
            "inflight": self.inflight_count,
            "uptime_seconds": round(time.time() - self._started_at, 1) if self._started_at else 0.0,
            **self.metrics.to_dict(),
        }
