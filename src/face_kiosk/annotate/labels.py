"""
Label Policy
============

Maps recognized names to captions and presentation profiles.

Policy (configured in config.yaml under `labels`):
    - Empty name -> unknown caption and the unknown profile
    - Known name -> the name as caption; profile chosen by comparing the
      lower-cased first letter against a fixed split point:
        letter <  split_point -> before_split profile
        letter >= split_point -> after_split profile

The split point and the profiles are kiosk configuration, not a rule
derived from anything. Keep them in config.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from face_kiosk.config import LabelsConfig
from face_kiosk.models.detection import Detection
from face_kiosk.models.output import FaceLookup


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Profile:
    """Fixed presentation profile shown for a recognized face."""

    counselor_name: str
    counselor_image: str


@dataclass(frozen=True, slots=True)
class Label:
    """Caption drawn on the frame plus the profile it maps to."""

    caption: str
    profile: Profile
    known: bool


class LabelPolicy:
    """
    Deterministic name -> Label mapping.

    Example:
        policy = LabelPolicy.from_config(settings.labels)
        policy.label_for("Amy").profile.counselor_name   # "Wink"
        policy.label_for("Zoe").profile.counselor_name   # "Lizzie"
        policy.label_for("").caption                     # "Who are you?"
    """

    def __init__(
        self,
        unknown_caption: str = "Who are you?",
        unknown_profile: Profile = Profile("Nope", "none.jpg"),
        split_point: str = "k",
        before_split: Profile = Profile("Wink", "wink.jpg"),
        after_split: Profile = Profile("Lizzie", "lizzie.jpg"),
    ) -> None:
        if len(split_point) != 1:
            raise ValueError("split_point must be a single character")

        self.unknown_caption = unknown_caption
        self.unknown_profile = unknown_profile
        self.split_point = split_point.lower()
        self.before_split = before_split
        self.after_split = after_split

    @classmethod
    def from_config(cls, config: LabelsConfig) -> "LabelPolicy":
        return cls(
            unknown_caption=config.unknown_caption,
            unknown_profile=Profile(
                config.unknown_profile.counselor_name,
                config.unknown_profile.counselor_image,
            ),
            split_point=config.split_point,
            before_split=Profile(
                config.before_split.counselor_name,
                config.before_split.counselor_image,
            ),
            after_split=Profile(
                config.after_split.counselor_name,
                config.after_split.counselor_image,
            ),
        )

    def label_for(self, name: Optional[str]) -> Label:
        """Return the label for a name (None or blank means unknown)."""
        name = (name or "").strip()
        if not name:
            return Label(caption=self.unknown_caption, profile=self.unknown_profile, known=False)

        if name[0].lower() < self.split_point:
            profile = self.before_split
        else:
            profile = self.after_split
        return Label(caption=name, profile=profile, known=True)

    def lookup(self, detection: Optional[Detection]) -> FaceLookup:
        """Build the GET /face payload for a detection (None = nobody)."""
        label = self.label_for(detection.name if detection else "")
        return FaceLookup(
            studentname=label.caption,
            counselorname=label.profile.counselor_name,
            counselorimage=label.profile.counselor_image,
        )
