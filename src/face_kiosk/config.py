"""
FaceKiosk Configuration
=======================

This module handles configuration loading for the kiosk.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    KIOSK_CAMERA_DEVICE         -> camera.device
    KIOSK_RECOGNITION_URL       -> recognition.base_url
    KIOSK_RECOGNITION_BACKEND   -> recognition.backend
    KIOSK_RECOGNITION_ENABLED   -> recognition.enabled
    KIOSK_DETECTION_ENABLED     -> detection.enabled
    KIOSK_PUBLISH_MODE          -> stream.publish_mode
    KIOSK_SPEECH_BACKEND        -> speech.backend
    KIOSK_PORT                  -> server.port
    KIOSK_LOG_LEVEL             -> logging.level
    PORT                        -> server.port (container platforms)

Example:
    from face_kiosk.config import settings

    print(settings.camera.device)
    print(settings.recognition.base_url)
    print(settings.labels.split_point)
"""

import os
import logging
from pathlib import Path
from typing import List, Optional, Union

import yaml
from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class KioskConfig(BaseModel):
    """Service identification configuration."""

    name: str = Field(default="face-kiosk", description="Service name")
    version: str = Field(default="v0.1.0", description="Service version")


class CameraConfig(BaseModel):
    """Camera capture configuration."""

    device: Union[int, str] = Field(
        default=0,
        description="cv2.VideoCapture device index, file path or stream URL",
    )
    width: Optional[int] = Field(default=None, ge=1, description="Requested width")
    height: Optional[int] = Field(default=None, ge=1, description="Requested height")
    jpeg_quality: int = Field(default=80, ge=1, le=100, description="JPEG quality")
    empty_read_backoff_ms: int = Field(
        default=10,
        ge=0,
        description="Pause after an empty camera read before retrying",
    )


class DetectionConfig(BaseModel):
    """Local cascade face detection configuration."""

    enabled: bool = Field(default=True, description="Run the cascade on every frame")
    cascade_file: str = Field(
        default="haarcascade_frontalface_default.xml",
        description="Cascade file name (resolved against cv2.data.haarcascades) or path",
    )
    scale_factor: float = Field(default=1.1, gt=1.0, description="detectMultiScale scaleFactor")
    min_neighbors: int = Field(default=5, ge=0, description="detectMultiScale minNeighbors")
    min_size: int = Field(default=30, ge=1, description="Smallest face side in pixels")


class MockRecognitionConfig(BaseModel):
    """Mock recognition backend configuration."""

    names: List[str] = Field(
        default_factory=lambda: ["Amy", "Zoe", ""],
        description="Names cycled through on successive calls",
    )
    latency_seconds: float = Field(default=0.3, ge=0, description="Simulated round trip")


class RecognitionConfig(BaseModel):
    """Remote face recognition configuration."""

    enabled: bool = Field(default=True, description="Issue recognition calls from the loop")
    backend: str = Field(
        default="facebox",
        description="Recognition backend: 'facebox' or 'mock'",
    )
    base_url: str = Field(
        default="http://localhost:8080",
        description="Base URL of the recognition service",
    )
    timeout_seconds: float = Field(default=5.0, gt=0, description="HTTP timeout per call")
    mock: MockRecognitionConfig = Field(default_factory=MockRecognitionConfig)


class ProfileConfig(BaseModel):
    """A fixed presentation profile."""

    counselor_name: str = Field(..., description="Profile display name")
    counselor_image: str = Field(..., description="Profile image file")


class LabelsConfig(BaseModel):
    """Name to caption/profile mapping."""

    unknown_caption: str = Field(default="Who are you?", description="Caption for unknown faces")
    unknown_profile: ProfileConfig = Field(
        default_factory=lambda: ProfileConfig(counselor_name="Nope", counselor_image="none.jpg")
    )
    split_point: str = Field(
        default="k",
        min_length=1,
        max_length=1,
        description="Names whose lower-cased first letter sorts before this get the first profile",
    )
    before_split: ProfileConfig = Field(
        default_factory=lambda: ProfileConfig(counselor_name="Wink", counselor_image="wink.jpg")
    )
    after_split: ProfileConfig = Field(
        default_factory=lambda: ProfileConfig(counselor_name="Lizzie", counselor_image="lizzie.jpg")
    )


class StreamConfig(BaseModel):
    """Preview publishing configuration."""

    publish_mode: str = Field(
        default="http_stream",
        description="Publish mode: 'http_stream' or 'local_window'",
    )
    publish_timeout_ms: int = Field(
        default=50,
        ge=0,
        description="Per-subscriber budget to accept a frame before it is dropped",
    )
    subscriber_queue_size: int = Field(
        default=2,
        ge=1,
        description="Frames buffered per subscriber",
    )
    max_consecutive_drops: int = Field(
        default=100,
        ge=0,
        description="Evict a subscriber after this many drops in a row (0 = never)",
    )
    boundary: str = Field(default="frame", description="MJPEG multipart boundary")
    window_name: str = Field(default="Face Kiosk", description="Local window title")


class SpeechConfig(BaseModel):
    """Text-to-speech configuration."""

    backend: str = Field(
        default="google",
        description="Speech backend: 'google' or 'disabled'",
    )
    greeting: str = Field(default="welcome ", description="Prefix spoken before the name")
    language_code: str = Field(default="en-AU", description="Voice language")
    voice_name: Optional[str] = Field(default=None, description="Specific voice, if any")
    credentials_path: Optional[str] = Field(
        default=None,
        description="Service account JSON (None = default credentials)",
    )


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = Field(default="localhost", description="Bind host")
    port: int = Field(default=8090, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")
    stats_every_n_frames: int = Field(
        default=300,
        ge=0,
        description="Log loop statistics every N frames (0 = never)",
    )


class Settings(BaseModel):
    """
    Main settings class for FaceKiosk.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    kiosk: KioskConfig = Field(default_factory=KioskConfig)
    camera: CameraConfig = Field(default_factory=CameraConfig)
    detection: DetectionConfig = Field(default_factory=DetectionConfig)
    recognition: RecognitionConfig = Field(default_factory=RecognitionConfig)
    labels: LabelsConfig = Field(default_factory=LabelsConfig)
    stream: StreamConfig = Field(default_factory=StreamConfig)
    speech: SpeechConfig = Field(default_factory=SpeechConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to config.yaml. If None, searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path("/app/config.yaml"),
            Path(__file__).parent.parent.parent / "config.yaml",
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.warning("No config file found, using defaults and environment variables")

    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _parse_device(value: str) -> Union[int, str]:
    """Device indexes come through the environment as strings."""
    return int(value) if value.isdigit() else value


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Camera
    if env_device := os.environ.get("KIOSK_CAMERA_DEVICE"):
        config_data.setdefault("camera", {})["device"] = _parse_device(env_device)

    # Detection
    if env_det := os.environ.get("KIOSK_DETECTION_ENABLED"):
        config_data.setdefault("detection", {})["enabled"] = _parse_bool(env_det)

    # Recognition
    if env_url := os.environ.get("KIOSK_RECOGNITION_URL"):
        config_data.setdefault("recognition", {})["base_url"] = env_url
    if env_backend := os.environ.get("KIOSK_RECOGNITION_BACKEND"):
        config_data.setdefault("recognition", {})["backend"] = env_backend
    if env_rec := os.environ.get("KIOSK_RECOGNITION_ENABLED"):
        config_data.setdefault("recognition", {})["enabled"] = _parse_bool(env_rec)

    # Stream
    if env_mode := os.environ.get("KIOSK_PUBLISH_MODE"):
        config_data.setdefault("stream", {})["publish_mode"] = env_mode

    # Speech
    if env_speech := os.environ.get("KIOSK_SPEECH_BACKEND"):
        config_data.setdefault("speech", {})["backend"] = env_speech

    # Server settings (container platforms use PORT)
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    elif env_port := os.environ.get("KIOSK_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)

    # Logging
    if env_log := os.environ.get("KIOSK_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


# =============================================================================
# Global Settings Instance
# =============================================================================

# Loaded on import
settings = load_config()
setup_logging(settings)
