#!/usr/bin/env python3
"""
Preview Stream Probe
====================

Standalone script to check a running kiosk end to end.

This script:
    1. Connects to GET /camera and reads MJPEG parts
    2. Verifies every part decodes as a JPEG of stable dimensions
    3. Logs stream stats every few seconds
    4. Optionally calls GET /face once and reports the lookup

Prerequisites:
    - The kiosk must be running (face-kiosk, or uvicorn face_kiosk.main:app)
    - Install the project: pip install -e .

Usage:
    python scripts/probe_stream.py --duration 30
    python scripts/probe_stream.py --url http://localhost:8090 --face
"""

import argparse
import logging
import os
import sys
import time
from typing import BinaryIO, Iterator

import requests

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from face_kiosk.capture import EncodeError, decode_jpeg


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)


class StreamFormatError(Exception):
    """Raised when the multipart stream is not framed as expected."""
    pass


def iter_parts(raw: BinaryIO, boundary: str = "frame") -> Iterator[bytes]:
    """
    Yield JPEG payloads from a multipart/x-mixed-replace body.

    Every part must carry a Content-Length header.
    """
    delimiter = f"--{boundary}".encode("ascii")

    while True:
        line = raw.readline()
        if not line:
            return
        line = line.strip()
        if not line:
            continue
        if line != delimiter:
            raise StreamFormatError(f"expected boundary, got {line[:40]!r}")

        length = None
        while True:
            header = raw.readline()
            if not header:
                return
            header = header.strip()
            if not header:
                break
            name, _, value = header.decode("latin-1").partition(":")
            if name.strip().lower() == "content-length":
                length = int(value.strip())

        if length is None:
            raise StreamFormatError("part without Content-Length")

        data = raw.read(length)
        if len(data) < length:
            return
        yield data


def probe_face(url: str, timeout: float) -> None:
    """Call GET /face once and log the result."""
    response = requests.get(f"{url}/face", timeout=timeout)
    logger.info(f"GET /face -> {response.status_code}")
    logger.info(f"  CORS: {response.headers.get('Access-Control-Allow-Origin')}")
    logger.info(f"  Body: {response.text}")


def run_probe(url: str, duration: int, report_interval: int, timeout: float) -> dict:
    """
    Read the preview stream for a fixed time.

    Args:
        url: Kiosk base URL
        duration: Probe duration in seconds
        report_interval: Seconds between progress reports
        timeout: Connect/read timeout in seconds

    Returns:
        Final stats dict
    """
    logger.info("=" * 60)
    logger.info("Preview Stream Probe")
    logger.info("=" * 60)
    logger.info(f"Kiosk URL: {url}")
    logger.info(f"Duration: {duration} seconds")
    logger.info("=" * 60)

    frames = 0
    bad_frames = 0
    total_bytes = 0
    size = None

    start_time = time.time()
    last_report_time = start_time
    last_frame_count = 0

    with requests.get(f"{url}/camera", stream=True, timeout=timeout) as response:
        response.raise_for_status()
        content_type = response.headers.get("Content-Type", "")
        logger.info(f"Content-Type: {content_type}")

        boundary = "frame"
        if "boundary=" in content_type:
            boundary = content_type.split("boundary=", 1)[1].strip()

        try:
            for data in iter_parts(response.raw, boundary):
                frames += 1
                total_bytes += len(data)

                try:
                    image = decode_jpeg(data)
                    if size is None:
                        size = image.shape[:2]
                    elif image.shape[:2] != size:
                        logger.warning(f"Frame size changed: {size} -> {image.shape[:2]}")
                        size = image.shape[:2]
                except EncodeError as e:
                    bad_frames += 1
                    logger.warning(f"Undecodable part #{frames}: {e}")

                now = time.time()
                if now - start_time >= duration:
                    logger.info(f"Probe duration ({duration}s) reached")
                    break

                if now - last_report_time >= report_interval:
                    fps = (frames - last_frame_count) / (now - last_report_time)
                    logger.info("-" * 40)
                    logger.info(f"Progress Report (elapsed: {now - start_time:.0f}s)")
                    logger.info(f"  Frames received: {frames}")
                    logger.info(f"  Current FPS: {fps:.1f}")
                    logger.info(f"  Undecodable: {bad_frames}")
                    last_report_time = now
                    last_frame_count = frames

        except KeyboardInterrupt:
            logger.info("Probe interrupted by user")

    total_time = time.time() - start_time
    avg_fps = frames / total_time if total_time > 0 else 0

    logger.info("=" * 60)
    logger.info("FINAL SUMMARY")
    logger.info("=" * 60)
    logger.info(f"Total runtime: {total_time:.1f} seconds")
    logger.info(f"Frames received: {frames}")
    logger.info(f"Average FPS: {avg_fps:.1f}")
    logger.info(f"Average frame size: {total_bytes // frames if frames else 0} bytes")
    logger.info(f"Frame dimensions: {size}")
    logger.info(f"Undecodable frames: {bad_frames}")
    logger.info("=" * 60)

    return {
        "duration": total_time,
        "frames_received": frames,
        "avg_fps": avg_fps,
        "bad_frames": bad_frames,
    }


def main():
    parser = argparse.ArgumentParser(
        description="Probe a running kiosk's MJPEG preview stream"
    )
    parser.add_argument(
        "--url",
        type=str,
        default=os.environ.get("KIOSK_URL", "http://localhost:8090"),
        help="Kiosk base URL",
    )
    parser.add_argument(
        "--duration",
        type=int,
        default=30,
        help="Probe duration in seconds (default: 30)",
    )
    parser.add_argument(
        "--report-interval",
        type=int,
        default=5,
        help="Seconds between progress reports (default: 5)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=10.0,
        help="Connect/read timeout in seconds (default: 10)",
    )
    parser.add_argument(
        "--face",
        action="store_true",
        help="Also call GET /face once after the stream probe",
    )

    args = parser.parse_args()
    url = args.url.rstrip("/")

    try:
        result = run_probe(url, args.duration, args.report_interval, args.timeout)
    except requests.RequestException as e:
        logger.error(f"Stream probe failed: {e}")
        sys.exit(1)
    except StreamFormatError as e:
        logger.error(f"Malformed preview stream: {e}")
        sys.exit(1)

    if args.face:
        try:
            probe_face(url, args.timeout)
        except requests.RequestException as e:
            logger.error(f"Face lookup failed: {e}")

    ok = result["frames_received"] > 0 and result["bad_frames"] == 0
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
