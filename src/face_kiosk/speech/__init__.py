"""
Speech Module
=============

Text-to-speech for the greeting endpoint.
"""

from face_kiosk.speech.synthesizer import (
    DisabledSpeechSynthesizer,
    GoogleSpeechSynthesizer,
    SpeechSynthesisError,
    SpeechSynthesizer,
)

__all__ = [
    "SpeechSynthesizer",
    "SpeechSynthesisError",
    "GoogleSpeechSynthesizer",
    "DisabledSpeechSynthesizer",
]
