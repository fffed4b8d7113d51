"""
HTTP API Tests
==============

Tests for the FastAPI endpoints with an injected runtime.
"""

import time

import pytest
from fastapi.testclient import TestClient

from face_kiosk.config import DetectionConfig, Settings, SpeechConfig
from face_kiosk.main import (
    build_detections_message,
    create_app,
    create_recognition_client,
    create_runtime,
    create_speech_synthesizer,
)
from face_kiosk.models import Detection, RecognitionResult, Region
from face_kiosk.recognition import FaceboxClient, MockRecognitionClient, RecognitionUnavailable
from face_kiosk.speech import DisabledSpeechSynthesizer, SpeechSynthesisError

from conftest import EndlessFrameSource, FakeSynthesizer, InstantRecognizer, ListFrameSource


@pytest.fixture
def test_settings() -> Settings:
    return Settings(detection=DetectionConfig(enabled=False))


def make_client(settings, source=None, recognizer=None, synthesizer=None) -> TestClient:
    runtime = create_runtime(
        settings,
        source=source or EndlessFrameSource(),
        recognizer=recognizer or InstantRecognizer("Amy"),
        synthesizer=synthesizer or FakeSynthesizer(),
    )
    return TestClient(create_app(settings, runtime=runtime))


def wait_ready(client: TestClient, timeout: float = 3.0) -> None:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if client.get("/ready").status_code == 200:
            return
        time.sleep(0.02)
    raise AssertionError("kiosk never became ready")


class TestServiceEndpoints:
    """Tests for /, /health, /ready and /metrics."""

    def test_root(self, test_settings):
        with make_client(test_settings) as client:
            body = client.get("/").json()
        assert body["service"] == "FaceKiosk"
        assert body["detection_enabled"] is False

    def test_health(self, test_settings):
        with make_client(test_settings) as client:
            response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_ready_after_first_frame(self, test_settings):
        with make_client(test_settings) as client:
            wait_ready(client)
            body = client.get("/ready").json()
        assert body["status"] == "ready"
        assert body["frames_captured"] > 0

    def test_not_ready_without_frames(self, test_settings):
        with make_client(test_settings, source=ListFrameSource([])) as client:
            response = client.get("/ready")
        assert response.status_code == 503

    def test_metrics(self, test_settings):
        with make_client(test_settings) as client:
            wait_ready(client)
            body = client.get("/metrics").json()
        assert body["kiosk"]["frames_captured"] > 0
        assert body["kiosk"]["inflight"] in (0, 1)
        assert body["cache"]["sessions"] == 1
        assert "publisher" in body


class TestFaceEndpoint:
    """Tests for GET /face."""

    def test_known_face(self, test_settings):
        with make_client(test_settings, recognizer=InstantRecognizer("Amy")) as client:
            wait_ready(client)
            response = client.get("/face")

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"
        assert response.json() == {
            "studentname": "Amy",
            "counselorname": "Wink",
            "counselorimage": "wink.jpg",
        }

    def test_after_split_face(self, test_settings):
        with make_client(test_settings, recognizer=InstantRecognizer("Zoe")) as client:
            wait_ready(client)
            body = client.get("/face").json()
        assert body["counselorname"] == "Lizzie"
        assert body["counselorimage"] == "lizzie.jpg"

    def test_unknown_face(self, test_settings):
        with make_client(test_settings, recognizer=InstantRecognizer("")) as client:
            wait_ready(client)
            body = client.get("/face").json()
        assert body == {
            "studentname": "Who are you?",
            "counselorname": "Nope",
            "counselorimage": "none.jpg",
        }

    def test_recognition_failure_is_unknown(self, test_settings):
        recognizer = InstantRecognizer(error=RecognitionUnavailable("down"))
        with make_client(test_settings, recognizer=recognizer) as client:
            wait_ready(client)
            body = client.get("/face").json()
        assert body["counselorname"] == "Nope"

    def test_no_frame_yet(self, test_settings):
        with make_client(test_settings, source=ListFrameSource([])) as client:
            response = client.get("/face")
        assert response.status_code == 503
        assert response.headers["access-control-allow-origin"] == "*"


class TestAudioEndpoint:
    """Tests for GET /audio/name/{name}."""

    def test_greeting_audio(self, test_settings):
        synthesizer = FakeSynthesizer(audio=b"ID3-audio")
        with make_client(test_settings, synthesizer=synthesizer) as client:
            response = client.get("/audio/name/Amy")

        assert response.status_code == 200
        assert response.content == b"ID3-audio"
        assert response.headers["content-type"].startswith("audio/mpeg")
        assert synthesizer.texts == ["welcome Amy"]

    def test_synthesis_failure(self, test_settings):
        synthesizer = FakeSynthesizer(error=SpeechSynthesisError("no credentials"))
        with make_client(test_settings, synthesizer=synthesizer) as client:
            response = client.get("/audio/name/Amy")

        assert response.status_code == 500
        assert response.text == "Error synthesizing text Internal Server Error"

    def test_disabled_backend(self, test_settings):
        with make_client(test_settings, synthesizer=DisabledSpeechSynthesizer()) as client:
            response = client.get("/audio/name/Zoe")
        assert response.status_code == 500


class TestDetectionsMessage:
    """Tests for the /ws/detections snapshot."""

    def test_snapshot_of_cached_result(self, test_settings):
        runtime = create_runtime(
            test_settings,
            source=ListFrameSource([]),
            recognizer=InstantRecognizer(),
            synthesizer=FakeSynthesizer(),
        )
        session = runtime.kiosk.open()
        runtime.cache.update(
            session,
            RecognitionResult(
                detections=(
                    Detection(name="Amy", identity="a1", region=Region(1, 2, 3, 4)),
                    Detection(name=""),
                ),
                issued_sequence=7,
            ),
        )

        message = build_detections_message(runtime)

        assert message.session == session
        assert message.issued_sequence == 7
        assert [d.caption for d in message.detections] == ["Amy", "Who are you?"]
        assert message.detections[0].region == {"x": 1, "y": 2, "width": 3, "height": 4}


class TestFactories:
    """Tests for backend selection."""

    def test_mock_recognition(self):
        settings = Settings.model_validate({"recognition": {"backend": "mock"}})
        assert isinstance(create_recognition_client(settings), MockRecognitionClient)

    def test_facebox_recognition(self):
        settings = Settings.model_validate(
            {"recognition": {"backend": "facebox", "base_url": "http://box:8080"}}
        )
        client = create_recognition_client(settings)
        assert isinstance(client, FaceboxClient)
        assert client.check_url == "http://box:8080/facebox/check"

    def test_unknown_recognition_backend(self):
        settings = Settings.model_validate({"recognition": {"backend": "nope"}})
        with pytest.raises(ValueError):
            create_recognition_client(settings)

    def test_disabled_speech(self):
        settings = Settings(speech=SpeechConfig(backend="disabled"))
        assert isinstance(create_speech_synthesizer(settings), DisabledSpeechSynthesizer)

    def test_unknown_speech_backend(self):
        settings = Settings(speech=SpeechConfig(backend="nope"))
        with pytest.raises(ValueError):
            create_speech_synthesizer(settings)
