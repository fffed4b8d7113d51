"""
Frame Annotator
===============

Draws face boxes and captions onto a copy of a frame.

Design Rules:
    - Pure: never modifies the input frame, same input gives same pixels
    - Captions are centered over their box using the measured text width
    - Captions are clamped so they never draw outside the frame
    - Detections without a region are not drawn
"""

import logging
import math
from dataclasses import replace
from typing import List, Optional, Sequence, Tuple

import cv2

from face_kiosk.annotate.labels import LabelPolicy
from face_kiosk.capture.frame import Frame
from face_kiosk.models.detection import Detection, RecognitionResult, Region


logger = logging.getLogger(__name__)


# BGR
BOX_COLOR = (255, 0, 0)
CAPTION_COLOR = (255, 0, 0)


class Annotator:
    """
    Renders detections onto frames.

    Attributes:
        policy: LabelPolicy used to turn names into captions
        font: OpenCV Hershey font id
        font_scale: Caption font scale
        text_thickness: Caption stroke thickness
        box_thickness: Rectangle stroke thickness
    """

    def __init__(
        self,
        policy: Optional[LabelPolicy] = None,
        font: int = cv2.FONT_HERSHEY_PLAIN,
        font_scale: float = 1.2,
        text_thickness: int = 2,
        box_thickness: int = 3,
    ) -> None:
        self.policy = policy or LabelPolicy()
        self.font = font
        self.font_scale = font_scale
        self.text_thickness = text_thickness
        self.box_thickness = box_thickness

    def annotate(self, frame: Frame, detections: Sequence[Detection]) -> Frame:
        """
        Draw detections onto a copy of the frame.

        Args:
            frame: Source frame (left untouched)
            detections: Detections to draw; those without a region are skipped

        Returns:
            New Frame with the same sequence and timestamp
        """
        image = frame.image.copy()
        box_color = _color_for(image, BOX_COLOR)
        text_color = _color_for(image, CAPTION_COLOR)

        for detection in detections:
            if detection.region is None:
                continue
            region = detection.region.clamp(frame.width, frame.height)
            if region is None:
                continue

            caption = self.policy.label_for(detection.name).caption

            cv2.rectangle(
                image,
                (region.x, region.y),
                (region.x + region.width - 1, region.y + region.height - 1),
                box_color,
                self.box_thickness,
            )
            origin = self.caption_origin(caption, region, frame.width, frame.height)
            cv2.putText(
                image,
                caption,
                origin,
                self.font,
                self.font_scale,
                text_color,
                self.text_thickness,
            )

        return frame.with_image(image)

    def caption_origin(
        self,
        caption: str,
        region: Region,
        frame_width: int,
        frame_height: int,
    ) -> Tuple[int, int]:
        """
        Bottom-left origin for a caption drawn above a region.

        The caption is horizontally centered on the region and sits
        two pixels above its top edge, then clamped into the frame.
        """
        (text_w, text_h), baseline = cv2.getTextSize(
            caption, self.font, self.font_scale, self.text_thickness
        )

        x = region.x + region.width // 2 - text_w // 2
        x = min(max(0, x), max(0, frame_width - text_w))

        y = region.y - 2
        y = min(max(text_h, y), max(text_h, frame_height - baseline - 1))

        return (x, y)


def _color_for(image, bgr: Tuple[int, int, int]):
    if image.ndim == 2:
        return int(sum(bgr) / 3)
    if image.shape[2] == 4:
        return (*bgr, 255)
    return bgr


def pair_overlays(
    regions: Optional[Sequence[Region]],
    result: RecognitionResult,
) -> List[Detection]:
    """
    Combine fresh local face regions with the cached recognition result.

    Without local regions (cascade disabled) the result's own regions
    are used as-is. With local regions, each region takes the name of
    the nearest unused cached detection; regions left over are unknown.

    Args:
        regions: Regions found on the current frame, or None
        result: Latest completed recognition result

    Returns:
        Detections positioned on the current frame
    """
    if regions is None:
        return [d for d in result.detections if d.region is not None]

    remaining = list(result.detections)
    paired = []
    for region in sorted(regions, key=lambda r: (r.x, r.y)):
        if not remaining:
            paired.append(Detection(name="", region=region))
            continue

        cx, cy = region.center
        best = min(remaining, key=lambda d: _distance(d.region, cx, cy))
        remaining.remove(best)
        paired.append(replace(best, region=region))

    return paired


def _distance(region: Optional[Region], cx: float, cy: float) -> float:
    # Detections without a position match last, in service order
    if region is None:
        return math.inf
    rx, ry = region.center
    return math.hypot(rx - cx, ry - cy)
