"""
Annotate Module
===============

Caption policy and frame drawing.

Components:
    - LabelPolicy: Name -> caption/profile mapping (configuration)
    - Annotator: Pure box + caption renderer
    - pair_overlays: Positions cached detections on the current frame
"""

from face_kiosk.annotate.labels import Label, LabelPolicy, Profile
from face_kiosk.annotate.annotator import Annotator, pair_overlays

__all__ = [
    "Label",
    "LabelPolicy",
    "Profile",
    "Annotator",
    "pair_overlays",
]
