"""
Annotator Tests
===============

Tests for drawing, caption placement and overlay pairing.
"""

import cv2
import numpy as np
import pytest

from face_kiosk.annotate import Annotator, pair_overlays
from face_kiosk.capture import blank_frame
from face_kiosk.models import Detection, RecognitionResult, Region


@pytest.fixture
def annotator() -> Annotator:
    return Annotator()


class TestAnnotate:
    """Tests for Annotator.annotate."""

    def test_input_frame_untouched(self, annotator, frame, face_region):
        before = frame.image.copy()
        annotator.annotate(frame, [Detection(name="Amy", region=face_region)])
        assert np.array_equal(frame.image, before)

    def test_same_input_same_pixels(self, annotator, frame, face_region):
        detections = [Detection(name="Zoe", region=face_region)]
        first = annotator.annotate(frame, detections)
        second = annotator.annotate(frame, detections)
        assert first.image.tobytes() == second.image.tobytes()

    def test_keeps_sequence_and_timestamp(self, annotator, frame, face_region):
        out = annotator.annotate(frame, [Detection(name="Amy", region=face_region)])
        assert out.sequence == frame.sequence
        assert out.timestamp == frame.timestamp

    def test_draws_box(self, annotator, frame, face_region):
        out = annotator.annotate(frame, [Detection(name="Amy", region=face_region)])
        assert not np.array_equal(out.image, frame.image)
        # Left edge of the box is blue (BGR)
        assert tuple(out.image[face_region.y + 30, face_region.x]) == (255, 0, 0)

    def test_no_detections_copies_frame(self, annotator, frame):
        out = annotator.annotate(frame, [])
        assert np.array_equal(out.image, frame.image)
        assert out.image is not frame.image

    def test_detection_without_region_not_drawn(self, annotator, frame):
        out = annotator.annotate(frame, [Detection(name="Amy")])
        assert np.array_equal(out.image, frame.image)

    def test_region_outside_frame_not_drawn(self, annotator, frame):
        far = Region(x=500, y=500, width=20, height=20)
        out = annotator.annotate(frame, [Detection(name="Amy", region=far)])
        assert np.array_equal(out.image, frame.image)

    def test_grayscale_frame(self, annotator, face_region):
        frame = blank_frame(160, 120, sequence=0, channels=1)
        out = annotator.annotate(frame, [Detection(name="Amy", region=face_region)])
        assert out.image.shape == frame.image.shape
        assert out.image.any()


class TestCaptionOrigin:
    """Tests for caption placement."""

    def _size(self, annotator, caption):
        (w, h), baseline = cv2.getTextSize(
            caption, annotator.font, annotator.font_scale, annotator.text_thickness
        )
        return w, h

    def test_centered_above_region(self, annotator):
        region = Region(x=100, y=100, width=80, height=80)
        w, _ = self._size(annotator, "Amy")

        x, y = annotator.caption_origin("Amy", region, 640, 480)

        assert x == 140 - w // 2
        assert y == region.y - 2

    def test_clamped_at_top(self, annotator):
        region = Region(x=100, y=0, width=80, height=80)
        _, h = self._size(annotator, "Amy")

        _, y = annotator.caption_origin("Amy", region, 640, 480)

        assert y == h

    def test_clamped_at_left(self, annotator):
        region = Region(x=0, y=100, width=4, height=4)
        x, _ = annotator.caption_origin("A very long caption", region, 640, 480)
        assert x == 0

    def test_clamped_at_right(self, annotator):
        caption = "A very long caption"
        region = Region(x=630, y=100, width=10, height=10)
        w, _ = self._size(annotator, caption)

        x, _ = annotator.caption_origin(caption, region, 640, 480)

        assert x == 640 - w


class TestPairOverlays:
    """Tests for combining local regions with cached names."""

    def test_without_local_regions_uses_result_regions(self, face_region):
        result = RecognitionResult(
            detections=(Detection(name="Amy", region=face_region), Detection(name="Zoe")),
            issued_sequence=1,
        )
        paired = pair_overlays(None, result)
        assert [d.name for d in paired] == ["Amy"]

    def test_region_takes_nearest_name(self):
        left = Region(x=0, y=0, width=20, height=20)
        right = Region(x=100, y=0, width=20, height=20)
        result = RecognitionResult(
            detections=(
                Detection(name="Zoe", region=Region(x=98, y=2, width=20, height=20)),
                Detection(name="Amy", region=Region(x=2, y=2, width=20, height=20)),
            ),
            issued_sequence=1,
        )
        paired = pair_overlays([right, left], result)
        assert [(d.name, d.region) for d in paired] == [("Amy", left), ("Zoe", right)]

    def test_regionless_detection_pairs_in_order(self, face_region):
        result = RecognitionResult(detections=(Detection(name="Amy"),), issued_sequence=1)
        paired = pair_overlays([face_region], result)
        assert paired == [Detection(name="Amy", region=face_region)]

    def test_extra_regions_are_unknown(self):
        regions = [Region(0, 0, 10, 10), Region(50, 0, 10, 10)]
        result = RecognitionResult(detections=(Detection(name="Amy"),), issued_sequence=1)
        paired = pair_overlays(regions, result)
        assert [d.name for d in paired] == ["Amy", ""]

    def test_empty_result_gives_unknown_faces(self, face_region):
        paired = pair_overlays([face_region], RecognitionResult.empty())
        assert paired == [Detection(name="", region=face_region)]

    def test_no_faces_no_overlays(self):
        result = RecognitionResult(detections=(Detection(name="Amy"),), issued_sequence=1)
        assert pair_overlays([], result) == []
