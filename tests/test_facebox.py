"""
Recognition Client Tests
========================

Tests for the Facebox HTTP client, its response parsing and the mock client.
"""

import pytest
import requests

from face_kiosk.models import Region
from face_kiosk.recognition import (
    FaceboxClient,
    MockRecognitionClient,
    RecognitionMalformed,
    RecognitionTimeout,
    RecognitionUnavailable,
    parse_faces,
)


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self._text = text

    def json(self):
        if self._text is not None:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._payload


class FakeSession:
    """Stands in for requests.Session and records posts."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.posts = []
        self.closed = False

    def post(self, url, files=None, timeout=None):
        self.posts.append({"url": url, "files": files, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response

    def close(self):
        self.closed = True


class TestParseFaces:
    """Tests for parse_faces."""

    def test_matched_and_unmatched(self, sample_facebox_response):
        detections = parse_faces(sample_facebox_response, issued_sequence=4)

        assert [d.name for d in detections] == ["Amy", ""]
        assert detections[0].identity == "amy.jpg"
        assert detections[0].region == Region(x=40, y=30, width=80, height=60)
        assert all(d.issued_sequence == 4 for d in detections)

    def test_negative_origin_is_clipped(self, sample_facebox_response):
        detections = parse_faces(sample_facebox_response)
        assert detections[1].region == Region(x=100, y=0, width=40, height=35)

    def test_no_faces(self):
        assert parse_faces({"success": True, "facesCount": 0, "faces": None}) == []

    def test_missing_rect(self):
        detections = parse_faces({"success": True, "faces": [{"name": "Zoe", "matched": True}]})
        assert detections[0].region is None
        assert detections[0].name == "Zoe"

    def test_success_false_is_unavailable(self):
        with pytest.raises(RecognitionUnavailable):
            parse_faces({"success": False, "error": "boom"})

    def test_faces_not_a_list(self):
        with pytest.raises(RecognitionMalformed):
            parse_faces({"success": True, "faces": {"name": "Amy"}})

    def test_bad_rect(self):
        with pytest.raises(RecognitionMalformed):
            parse_faces({"success": True, "faces": [{"rect": {"top": "x"}}]})

    def test_not_an_object(self):
        with pytest.raises(RecognitionMalformed):
            parse_faces(["Amy"])


class TestFaceboxClient:
    """Tests for FaceboxClient transport handling."""

    def test_posts_multipart_file(self, sample_facebox_response):
        session = FakeSession(FakeResponse(payload=sample_facebox_response))
        client = FaceboxClient("http://facebox:8080/", timeout_seconds=2.0, session=session)

        detections = client.check(b"jpeg-bytes", issued_sequence=9)

        post = session.posts[0]
        assert post["url"] == "http://facebox:8080/facebox/check"
        assert post["files"] == {"file": ("frame.jpg", b"jpeg-bytes", "image/jpeg")}
        assert post["timeout"] == 2.0
        assert detections[0].name == "Amy"
        assert detections[0].issued_sequence == 9

    def test_timeout(self):
        client = FaceboxClient(session=FakeSession(error=requests.Timeout("slow")))
        with pytest.raises(RecognitionTimeout):
            client.check(b"jpeg")
        assert client.get_metrics() == {"call_count": 1, "error_count": 1}

    def test_connection_error(self):
        client = FaceboxClient(session=FakeSession(error=requests.ConnectionError("refused")))
        with pytest.raises(RecognitionUnavailable):
            client.check(b"jpeg")

    def test_http_error_status(self):
        client = FaceboxClient(session=FakeSession(FakeResponse(status_code=500)))
        with pytest.raises(RecognitionUnavailable):
            client.check(b"jpeg")

    def test_invalid_json(self):
        client = FaceboxClient(session=FakeSession(FakeResponse(text="<html>")))
        with pytest.raises(RecognitionMalformed):
            client.check(b"jpeg")
        assert client.get_metrics()["error_count"] == 1

    def test_close_closes_session(self):
        session = FakeSession()
        FaceboxClient(session=session).close()
        assert session.closed


class TestMockRecognitionClient:
    """Tests for MockRecognitionClient."""

    def test_cycles_names(self):
        client = MockRecognitionClient(names=["Amy", "", "Zoe"], latency_seconds=0)
        names = [client.check(b"jpeg", i)[0].name for i in range(4)]
        assert names == ["Amy", "", "Zoe", "Amy"]
        assert client.call_count == 4

    def test_unknown_has_no_identity(self):
        client = MockRecognitionClient(names=[""], latency_seconds=0)
        assert client.check(b"jpeg")[0].identity == ""

    def test_empty_image_is_malformed(self):
        with pytest.raises(RecognitionMalformed):
            MockRecognitionClient(latency_seconds=0).check(b"")
