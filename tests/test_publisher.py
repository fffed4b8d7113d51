"""
Publisher Tests
===============

Tests for the preview fan-out and MJPEG framing.
"""

import asyncio
import time

import pytest

from face_kiosk.capture import EncodedFrame
from face_kiosk.stream import (
    PreviewPublisher,
    PublishError,
    content_type,
    mjpeg_part,
    mjpeg_stream,
)


def _frame(sequence: int) -> EncodedFrame:
    return EncodedFrame(sequence=sequence, data=b"\xff\xd8jpeg-%d\xff\xd9" % sequence)


class TestPreviewPublisher:
    """Tests for PreviewPublisher."""

    def test_fan_out_to_all_subscribers(self):
        async def scenario():
            publisher = PreviewPublisher()
            a = publisher.subscribe()
            b = publisher.subscribe()

            accepted = await publisher.publish(_frame(0))

            return accepted, await a.get(timeout=1), await b.get(timeout=1)

        accepted, got_a, got_b = asyncio.run(scenario())
        assert accepted == 2
        assert got_a.sequence == 0
        assert got_b.sequence == 0

    def test_publish_without_subscribers(self):
        publisher = PreviewPublisher()
        assert asyncio.run(publisher.publish(_frame(0))) == 0
        assert publisher.last_sequence == 0

    def test_out_of_order_frame_rejected(self):
        async def scenario():
            publisher = PreviewPublisher()
            sub = publisher.subscribe()
            await publisher.publish(_frame(5))
            rejected = await publisher.publish(_frame(3))
            duplicate = await publisher.publish(_frame(5))
            await publisher.publish(_frame(9))
            received = [await sub.get(timeout=1), await sub.get(timeout=1)]
            return publisher, rejected, duplicate, received

        publisher, rejected, duplicate, received = asyncio.run(scenario())
        assert rejected == 0
        assert duplicate == 0
        assert [f.sequence for f in received] == [5, 9]
        assert publisher.metrics()["rejected_count"] == 2

    def test_subscriber_sees_increasing_sequences(self):
        async def scenario():
            publisher = PreviewPublisher(publish_timeout_ms=0, queue_size=1)
            sub = publisher.subscribe()
            seen = []
            for seq in range(0, 20, 2):
                await publisher.publish(_frame(seq))
                if seq % 4 == 0:
                    frame = await sub.get(timeout=0.1)
                    if frame is not None:
                        seen.append(frame.sequence)
            return seen

        seen = asyncio.run(scenario())
        assert seen == sorted(set(seen))
        assert seen

    def test_stalled_subscriber_does_not_block_others(self):
        """A reader that never drains only costs the publish budget."""
        async def scenario():
            publisher = PreviewPublisher(publish_timeout_ms=50, queue_size=1)
            stalled = publisher.subscribe()
            fast = publisher.subscribe()

            durations = []
            received = []
            for seq in range(5):
                start = time.monotonic()
                await publisher.publish(_frame(seq))
                durations.append(time.monotonic() - start)
                received.append((await fast.get(timeout=1)).sequence)

            return publisher, stalled, durations, received

        publisher, stalled, durations, received = asyncio.run(scenario())
        assert received == [0, 1, 2, 3, 4]
        assert max(durations) < 0.5
        assert stalled.delivered == 1
        assert stalled.dropped == 4
        assert publisher.metrics()["dropped_count"] == 4

    def test_stalled_subscriber_evicted_after_max_drops(self):
        async def scenario():
            publisher = PreviewPublisher(
                publish_timeout_ms=0, queue_size=1, max_consecutive_drops=3
            )
            stalled = publisher.subscribe()
            for seq in range(5):
                await publisher.publish(_frame(seq))
            return publisher, stalled

        publisher, stalled = asyncio.run(scenario())
        assert publisher.subscriber_count == 0
        assert stalled.closed
        assert publisher.metrics()["evicted_count"] == 1

    def test_closed_subscriber_evicted(self):
        async def scenario():
            publisher = PreviewPublisher()
            sub = publisher.subscribe()
            sub.close()
            accepted = await publisher.publish(_frame(0))
            return publisher, accepted

        publisher, accepted = asyncio.run(scenario())
        assert accepted == 0
        assert publisher.subscriber_count == 0

    def test_close_ends_subscriber_iteration(self):
        async def scenario():
            publisher = PreviewPublisher()
            sub = publisher.subscribe()
            await publisher.publish(_frame(0))
            publisher.close()
            return [f async for f in sub]

        assert asyncio.run(scenario()) == []

    def test_subscribe_after_close_raises(self):
        publisher = PreviewPublisher()
        publisher.close()
        with pytest.raises(PublishError):
            publisher.subscribe()


class TestMjpeg:
    """Tests for multipart framing."""

    def test_content_type(self):
        assert content_type("frame") == "multipart/x-mixed-replace; boundary=frame"

    def test_part_layout(self):
        part = mjpeg_part(b"abc", "frame")
        assert part == (
            b"--frame\r\n"
            b"Content-Type: image/jpeg\r\n"
            b"Content-Length: 3\r\n"
            b"\r\n"
            b"abc\r\n"
        )

    def test_stream_yields_parts_and_detaches(self):
        async def scenario():
            publisher = PreviewPublisher()
            sub = publisher.subscribe()
            await publisher.publish(_frame(0))
            await publisher.publish(_frame(1))

            stream = mjpeg_stream(publisher, sub, "frame")
            parts = [await stream.__anext__(), await stream.__anext__()]
            await stream.aclose()
            return publisher, parts

        publisher, parts = asyncio.run(scenario())
        assert parts[0] == mjpeg_part(_frame(0).data)
        assert parts[1] == mjpeg_part(_frame(1).data)
        assert publisher.subscriber_count == 0
