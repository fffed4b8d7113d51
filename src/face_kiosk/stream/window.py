"""
Local Preview Window
====================

Shows annotated frames in an OpenCV window on the kiosk itself.

Used when the kiosk runs with publish_mode = local_window instead of
serving an MJPEG stream.
"""

import logging

import cv2

from face_kiosk.capture.frame import Frame


logger = logging.getLogger(__name__)


# q and ESC
QUIT_KEYS = (ord("q"), 27)


class LocalWindow:
    """
    OpenCV display window.

    Must be driven from the main thread on most platforms.

    Attributes:
        name: Window title
    """

    def __init__(self, name: str = "Face Kiosk") -> None:
        self.name = name
        self._opened = False

    def show(self, frame: Frame) -> bool:
        """
        Display a frame and pump window events.

        Returns:
            False if the user asked to quit, True otherwise.
        """
        if not self._opened:
            cv2.namedWindow(self.name, cv2.WINDOW_NORMAL)
            self._opened = True
            logger.info(f"Opened preview window '{self.name}'")

        cv2.imshow(self.name, frame.image)
        key = cv2.waitKey(1) & 0xFF
        return key not in QUIT_KEYS

    def close(self) -> None:
        if self._opened:
            cv2.destroyWindow(self.name)
            self._opened = False
