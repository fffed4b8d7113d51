"""
Preview Publisher
=================

Fans encoded frames out to any number of live subscribers.

This module provides the PreviewPublisher class, which sits between the
kiosk loop (single producer) and the HTTP preview clients (consumers).

Design Rules:
    - Each subscriber owns a small bounded queue
    - A subscriber that cannot take a frame within the time budget
      misses that frame; nobody else is affected
    - All subscribers are offered a frame concurrently, so one publish
      costs at most one budget regardless of subscriber count
    - Published sequences are strictly increasing; gaps are fine
    - Closed or persistently stalled subscribers are evicted
"""

import asyncio
import itertools
import logging
from typing import AsyncIterator, Dict, List, Optional

from face_kiosk.capture.frame import EncodedFrame


logger = logging.getLogger(__name__)


class PublishError(Exception):
    """Raised when a subscriber can no longer be written to."""
    pass


class Subscriber:
    """
    One attached preview client.

    Frames arrive in publish order. Iterating yields frames until the
    subscriber is closed.

    Attributes:
        subscriber_id: Unique id within the publisher
        delivered: Frames queued for this subscriber
        dropped: Frames this subscriber missed
        consecutive_drops: Frames missed since the last delivery
    """

    def __init__(self, subscriber_id: int, queue_size: int = 2) -> None:
        if queue_size < 1:
            raise ValueError("queue_size must be >= 1")

        self.subscriber_id = subscriber_id
        self._queue: asyncio.Queue[Optional[EncodedFrame]] = asyncio.Queue(maxsize=queue_size)
        self._closed: bool = False

        self.delivered: int = 0
        self.dropped: int = 0
        self.consecutive_drops: int = 0
        self.last_sequence: int = -1

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def offer(self, frame: EncodedFrame, timeout: float) -> bool:
        """
        Try to queue a frame within the time budget.

        Returns:
            True if queued, False if the frame was dropped.

        Raises:
            PublishError: If the subscriber is closed
        """
        if self._closed:
            raise PublishError(f"subscriber {self.subscriber_id} is closed")

        try:
            self._queue.put_nowait(frame)
        except asyncio.QueueFull:
            if timeout <= 0:
                return self._mark_dropped()
            try:
                await asyncio.wait_for(self._queue.put(frame), timeout=timeout)
            except asyncio.TimeoutError:
                return self._mark_dropped()

        self.delivered += 1
        self.consecutive_drops = 0
        self.last_sequence = frame.sequence
        return True

    def _mark_dropped(self) -> bool:
        self.dropped += 1
        self.consecutive_drops += 1
        return False

    async def get(self, timeout: Optional[float] = None) -> Optional[EncodedFrame]:
        """
        Get the next frame.

        Args:
            timeout: Maximum seconds to wait. None = wait forever.

        Returns:
            Next frame, or None on timeout or once closed.
        """
        if self._closed and self._queue.empty():
            return None
        try:
            if timeout is not None:
                return await asyncio.wait_for(self._queue.get(), timeout=timeout)
            return await self._queue.get()
        except asyncio.TimeoutError:
            return None

    def close(self) -> None:
        """Close the subscriber and wake any waiting reader."""
        if self._closed:
            return
        self._closed = True
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
        self._queue.put_nowait(None)

    async def __aiter__(self) -> AsyncIterator[EncodedFrame]:
        while True:
            frame = await self.get()
            if frame is None:
                return
            yield frame

    def metrics(self) -> dict:
        return {
            "id": self.subscriber_id,
            "pending": self.pending,
            "delivered": self.delivered,
            "dropped": self.dropped,
            "last_sequence": self.last_sequence,
        }


class PreviewPublisher:
    """
    Single-producer, multi-subscriber frame fan-out.

    Attributes:
        publish_timeout: Per-subscriber budget in seconds
        queue_size: Queue length given to new subscribers
        max_consecutive_drops: Evict after this many misses in a row (0 = never)

    Example:
        publisher = PreviewPublisher(publish_timeout_ms=50)

        # HTTP handler
        subscriber = publisher.subscribe()
        async for frame in subscriber:
            send(frame.data)

        # Kiosk loop
        await publisher.publish(encoded)
    """

    def __init__(
        self,
        publish_timeout_ms: int = 50,
        queue_size: int = 2,
        max_consecutive_drops: int = 100,
    ) -> None:
        if queue_size < 1:
            raise ValueError("queue_size must be >= 1")

        self.publish_timeout = publish_timeout_ms / 1000.0
        self.queue_size = queue_size
        self.max_consecutive_drops = max_consecutive_drops

        self._subscribers: Dict[int, Subscriber] = {}
        self._ids = itertools.count(1)
        self._last_sequence: int = -1
        self._closed: bool = False

        self._published_count: int = 0
        self._rejected_count: int = 0
        self._dropped_count: int = 0
        self._evicted_count: int = 0

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def last_sequence(self) -> int:
        return self._last_sequence

    def subscribers(self) -> List[Subscriber]:
        return list(self._subscribers.values())

    def subscribe(self) -> Subscriber:
        """Attach a new subscriber. It receives frames published from now on."""
        if self._closed:
            raise PublishError("publisher is closed")

        subscriber = Subscriber(next(self._ids), queue_size=self.queue_size)
        self._subscribers[subscriber.subscriber_id] = subscriber
        logger.info(
            f"Subscriber {subscriber.subscriber_id} attached "
            f"({self.subscriber_count} active)"
        )
        return subscriber

    def unsubscribe(self, subscriber: Subscriber) -> None:
        """Detach and close a subscriber. Safe to call twice."""
        if self._subscribers.pop(subscriber.subscriber_id, None) is not None:
            logger.info(
                f"Subscriber {subscriber.subscriber_id} detached "
                f"(delivered={subscriber.delivered}, dropped={subscriber.dropped}, "
                f"{self.subscriber_count} active)"
            )
        subscriber.close()

    async def publish(self, frame: EncodedFrame) -> int:
        """
        Offer a frame to every subscriber.

        Args:
            frame: Encoded frame; its sequence must exceed the last one published

        Returns:
            Number of subscribers that accepted the frame.
        """
        if frame.sequence <= self._last_sequence:
            self._rejected_count += 1
            logger.warning(
                f"Rejected out-of-order frame {frame.sequence} "
                f"(last published {self._last_sequence})"
            )
            return 0

        self._last_sequence = frame.sequence
        self._published_count += 1

        subscribers = self.subscribers()
        if not subscribers:
            return 0

        results = await asyncio.gather(
            *(s.offer(frame, self.publish_timeout) for s in subscribers),
            return_exceptions=True,
        )

        accepted = 0
        for subscriber, result in zip(subscribers, results):
            if isinstance(result, PublishError):
                self._evict(subscriber, str(result))
            elif isinstance(result, BaseException):
                raise result
            elif result:
                accepted += 1
            else:
                self._dropped_count += 1
                if (
                    self.max_consecutive_drops > 0
                    and subscriber.consecutive_drops >= self.max_consecutive_drops
                ):
                    self._evict(
                        subscriber,
                        f"missed {subscriber.consecutive_drops} frames in a row",
                    )

        return accepted

    def _evict(self, subscriber: Subscriber, reason: str) -> None:
        self._evicted_count += 1
        logger.warning(f"Evicting subscriber {subscriber.subscriber_id}: {reason}")
        self.unsubscribe(subscriber)

    def close(self) -> None:
        """Close every subscriber; their streams end."""
        self._closed = True
        for subscriber in self.subscribers():
            self.unsubscribe(subscriber)

    def metrics(self) -> dict:
        """
        Get publisher metrics for observability.

        Returns:
            Dict with subscriber and frame counters
        """
        return {
            "subscribers": self.subscriber_count,
            "last_sequence": self._last_sequence,
            "published_count": self._published_count,
            "rejected_count": self._rejected_count,
            "dropped_count": self._dropped_count,
            "evicted_count": self._evicted_count,
        }
