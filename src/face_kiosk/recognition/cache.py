"""
Detection Cache
===============

Latest completed recognition result per session.

The cache decouples the slow recognition round-trip from the fast
display loop: recognition tasks write here when they finish, the
loop reads here on every frame.

Design Rules:
    - read() never blocks and never raises
    - update() is last-writer-wins by completion order, not issue order
    - The lock guards a dict swap only, never a network call
    - Writes for a closed session are discarded
"""

import logging
import threading
from typing import Dict, List

from face_kiosk.models.detection import RecognitionResult


logger = logging.getLogger(__name__)


_EMPTY = RecognitionResult.empty()


class DetectionCache:
    """
    Thread-safe map of session id to latest RecognitionResult.

    Example:
        cache = DetectionCache()
        cache.open("session-1")

        # Recognition task, on completion
        cache.update("session-1", result)

        # Display loop, every frame
        latest = cache.read("session-1")

        cache.close("session-1")
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: Dict[str, RecognitionResult] = {}
        self._update_count: int = 0
        self._discarded_count: int = 0

    def open(self, session: str) -> None:
        """Start a session with the empty result."""
        with self._lock:
            self._entries[session] = _EMPTY
        logger.debug(f"Detection cache opened for session {session}")

    def close(self, session: str) -> None:
        """End a session. Later updates for it are discarded."""
        with self._lock:
            self._entries.pop(session, None)
        logger.debug(f"Detection cache closed for session {session}")

    def is_open(self, session: str) -> bool:
        with self._lock:
            return session in self._entries

    def update(self, session: str, result: RecognitionResult) -> bool:
        """
        Overwrite the session's entry.

        Args:
            session: Session id
            result: Completed recognition result

        Returns:
            True if stored, False if the session is no longer open.
        """
        with self._lock:
            if session not in self._entries:
                self._discarded_count += 1
                stored = False
            else:
                self._entries[session] = result
                self._update_count += 1
                stored = True

        if not stored:
            logger.debug(
                f"Discarded result for closed session {session} "
                f"(issued at frame {result.issued_sequence})"
            )
        return stored

    def read(self, session: str) -> RecognitionResult:
        """Return the latest result, or the empty result."""
        with self._lock:
            return self._entries.get(session, _EMPTY)

    def sessions(self) -> List[str]:
        with self._lock:
            return list(self._entries)

    def metrics(self) -> dict:
        """
        Get cache metrics for observability.

        Returns:
            Dict with sessions, update_count, discarded_count
        """
        with self._lock:
            return {
                "sessions": len(self._entries),
                "update_count": self._update_count,
                "discarded_count": self._discarded_count,
            }
