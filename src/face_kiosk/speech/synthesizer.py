"""
Speech Synthesizer
==================

Text-to-speech for the kiosk greeting endpoint.

This module provides:
    - SpeechSynthesizer: Protocol for TTS backends
    - GoogleSpeechSynthesizer: Google Cloud Text-to-Speech (MP3)
    - DisabledSpeechSynthesizer: Backend used when speech is turned off
    - SpeechSynthesisError: Raised on any synthesis failure

Design Rules:
    - Fail fast on misconfiguration
    - Every synthesis failure surfaces as SpeechSynthesisError
    - Audio bytes are returned verbatim
"""

import logging
from typing import Optional, Protocol


logger = logging.getLogger(__name__)


class SpeechSynthesisError(Exception):
    """Raised when text cannot be synthesized."""
    pass


class SpeechSynthesizer(Protocol):
    """
    Protocol for TTS backends.

    Attributes:
        media_type: MIME type of the bytes synthesize() returns
    """

    media_type: str

    def synthesize(self, text: str) -> bytes:
        """
        Synthesize speech.

        Raises:
            SpeechSynthesisError: On any failure
        """
        ...


class GoogleSpeechSynthesizer:
    """
    Speech backend using Google Cloud Text-to-Speech.

    Attributes:
        language_code: BCP-47 voice language, e.g. en-AU
        voice_name: Specific voice name (None = service default for the language)
        credentials_path: Path to service account JSON
    """

    media_type = "audio/mpeg"

    def __init__(
        self,
        language_code: str = "en-AU",
        voice_name: Optional[str] = None,
        credentials_path: Optional[str] = None,
    ) -> None:
        """
        Initialize the Text-to-Speech client.

        Raises:
            ImportError: If google-cloud-texttospeech is not installed
            SpeechSynthesisError: If the client cannot be created
        """
        self.language_code = language_code
        self.voice_name = voice_name
        self.credentials_path = credentials_path

        self._client = None
        self._call_count: int = 0
        self._error_count: int = 0
        self._init_client(credentials_path)

    def _init_client(self, credentials_path: Optional[str]) -> None:
        """Initialize Google Cloud Text-to-Speech client."""
        try:
            from google.cloud import texttospeech

            if credentials_path:
                self._client = texttospeech.TextToSpeechClient.from_service_account_json(
                    credentials_path
                )
                logger.info(f"Text-to-Speech client initialized from: {credentials_path}")
            else:
                # Use default credentials (ADC)
                self._client = texttospeech.TextToSpeechClient()
                logger.info("Text-to-Speech client initialized with default credentials")

        except ImportError:
            raise ImportError(
                "google-cloud-texttospeech is required for GoogleSpeechSynthesizer. "
                "Install with: pip install google-cloud-texttospeech"
            )
        except Exception as e:
            raise SpeechSynthesisError(f"Failed to initialize Text-to-Speech client: {e}")

    def synthesize(self, text: str) -> bytes:
        """
        Synthesize MP3 audio for a piece of text.

        Args:
            text: Text to speak

        Returns:
            MP3 bytes
        """
        from google.cloud import texttospeech

        self._call_count += 1

        voice_params = {"language_code": self.language_code}
        if self.voice_name:
            voice_params["name"] = self.voice_name

        try:
            response = self._client.synthesize_speech(
                input=texttospeech.SynthesisInput(text=text),
                voice=texttospeech.VoiceSelectionParams(**voice_params),
                audio_config=texttospeech.AudioConfig(
                    audio_encoding=texttospeech.AudioEncoding.MP3
                ),
            )
        except Exception as e:
            self._error_count += 1
            raise SpeechSynthesisError(f"Text-to-Speech call failed: {e}")

        if not response.audio_content:
            self._error_count += 1
            raise SpeechSynthesisError("Text-to-Speech returned no audio")

        logger.debug(f"Synthesized {len(response.audio_content)} bytes for {text!r}")
        return response.audio_content

    def get_metrics(self) -> dict:
        """Get synthesizer metrics for observability."""
        return {
            "call_count": self._call_count,
            "error_count": self._error_count,
        }


class DisabledSpeechSynthesizer:
    """Speech backend that always fails; used when speech.backend is 'disabled'."""

    media_type = "audio/mpeg"

    def synthesize(self, text: str) -> bytes:
        raise SpeechSynthesisError("speech synthesis is disabled")
