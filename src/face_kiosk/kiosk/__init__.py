"""
Kiosk Module
============

The capture -> annotate -> publish orchestrator.
"""

from face_kiosk.kiosk.loop import KioskLoop, KioskMetrics, KioskState, PublishMode

__all__ = [
    "KioskLoop",
    "KioskMetrics",
    "KioskState",
    "PublishMode",
]
